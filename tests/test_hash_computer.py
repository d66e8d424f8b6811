"""Unit tests for block and transaction hashing."""

import hashlib
from dataclasses import replace

import pytest

from btc_importer.core.hash_computer import HashComputer
from btc_importer.utils.bitcoin import (
    double_sha256, serialize_header, serialize_transaction, to_display_hex
)

from conftest import GENESIS_HASH, GENESIS_MERKLE_ROOT


@pytest.fixture
def hashes():
    return HashComputer()


class TestBlockHash:
    """Tests for block_hash()."""

    def test_genesis_block_hash(self, hashes, genesis_block):
        assert hashes.block_hash(genesis_block.header) == GENESIS_HASH

    def test_header_serializes_to_80_bytes(self, genesis_block):
        assert len(serialize_header(genesis_block.header)) == 80

    def test_deterministic(self, hashes, genesis_block):
        assert hashes.block_hash(genesis_block.header) == hashes.block_hash(genesis_block.header)

    def test_any_field_changes_the_hash(self, hashes, genesis_block):
        changed = replace(genesis_block.header, nonce=genesis_block.header.nonce + 1)

        assert hashes.block_hash(changed) != GENESIS_HASH

    def test_display_form_is_reversed_digest(self, genesis_block):
        digest = hashlib.sha256(hashlib.sha256(serialize_header(genesis_block.header)).digest()).digest()

        assert double_sha256(serialize_header(genesis_block.header)) == digest
        assert to_display_hex(digest) == digest[::-1].hex()
        assert to_display_hex(digest).startswith("0000000000")


class TestTransactionHash:
    """Tests for transaction_hash()."""

    def test_genesis_coinbase_hash_is_merkle_root(self, hashes, genesis_block):
        """Test a single-transaction block's merkle root equals its txid."""
        assert hashes.transaction_hash(genesis_block.transactions[0]) == GENESIS_MERKLE_ROOT

    def test_txid_ignores_witness(self, hashes, make_transaction):
        segwit = make_transaction(7, inputs=2, witness=True)
        stripped = replace(segwit, witnesses=())

        assert hashes.transaction_hash(segwit) == hashes.transaction_hash(stripped)
        assert hashes.witness_hash(segwit) != hashes.transaction_hash(segwit)

    def test_legacy_witness_hash_equals_txid(self, hashes, make_transaction):
        tx = make_transaction(8)

        assert hashes.witness_hash(tx) == hashes.transaction_hash(tx)

    def test_segwit_serialization_has_marker(self, make_transaction):
        segwit = make_transaction(9, witness=True)

        assert serialize_transaction(segwit)[4:6] == b"\x00\x01"
        assert serialize_transaction(segwit, include_witness=False)[4:6] != b"\x00\x01"

    def test_distinct_transactions_distinct_hashes(self, hashes, make_transaction):
        txids = {hashes.transaction_hash(make_transaction(seed)) for seed in range(20)}

        assert len(txids) == 20
