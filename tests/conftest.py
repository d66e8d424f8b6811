"""Pytest configuration and fixtures for block importer tests."""

import hashlib
import pytest
from pathlib import Path
from typing import Callable, List, Sequence

from btc_importer.models.blockchain import (
    Block, BlockHeader, Transaction, TxInput, TxOutput
)
from btc_importer.models.config import ImporterConfig
from btc_importer.utils.bitcoin import frame_block, serialize_block


# ============================================================================
# GENESIS BLOCK
# ============================================================================

GENESIS_HASH = "000000000019d6689c085ae165831e934ff763ae46a2a6c172b3f1b60a8ce26f"
GENESIS_MERKLE_ROOT = "4a5e1e4baab89f3a32518a88c31bc87f618f76673e2cc77ab2127b7afdeda33b"
GENESIS_TIME = 1231006505
GENESIS_SIZE = 285

GENESIS_COINBASE_SCRIPT = bytes.fromhex("04ffff001d010445") + (
    b"The Times 03/Jan/2009 Chancellor on brink of second bailout for banks"
)
GENESIS_PUBKEY_SCRIPT = bytes.fromhex(
    "4104678afdb0fe5548271967f1a67130b7105cd6a828e03909a67962e0ea1f61de"
    "b649f6bc3f4cef38c4f35504e51ec112de5c384df7ba0b8d578a4c702b6bf11d5fac"
)


def build_genesis_block() -> Block:
    coinbase = Transaction(
        version=1,
        inputs=(TxInput(
            previous_transaction_hash=bytes(32),
            previous_output_index=0xFFFFFFFF,
            script_signature=GENESIS_COINBASE_SCRIPT,
            sequence=0xFFFFFFFF,
        ),),
        outputs=(TxOutput(value=5000000000, script_pubkey=GENESIS_PUBKEY_SCRIPT),),
        lock_time=0,
    )
    header = BlockHeader(
        version=1,
        previous_block_hash=bytes(32),
        merkle_root=bytes.fromhex(GENESIS_MERKLE_ROOT)[::-1],
        time=GENESIS_TIME,
        bits=0x1d00ffff,
        nonce=2083236893,
    )
    return Block(header=header, size=GENESIS_SIZE, transaction_count=1,
                 transactions=(coinbase,))


# ============================================================================
# BLOCK BUILDERS
# ============================================================================

P2PKH_SCRIPT = bytes.fromhex("76a914") + bytes(range(20)) + bytes.fromhex("88ac")


def build_transaction(seed: int, inputs: int = 1, outputs: int = 1,
                      witness: bool = False) -> Transaction:
    """Deterministic, structurally valid transaction derived from ``seed``."""
    tx_inputs = tuple(
        TxInput(
            previous_transaction_hash=hashlib.sha256(f"prev:{seed}:{i}".encode()).digest(),
            previous_output_index=i,
            script_signature=bytes([0x47]) + hashlib.sha256(f"sig:{seed}:{i}".encode()).digest(),
            sequence=0xFFFFFFFE,
        )
        for i in range(inputs)
    )
    tx_outputs = tuple(
        TxOutput(value=(seed + 1) * 100000 + o, script_pubkey=P2PKH_SCRIPT)
        for o in range(outputs)
    )
    witnesses = ()
    if witness:
        witnesses = tuple((bytes([0x30]) * 71, bytes([0x02]) * 33) for _ in range(inputs))
    return Transaction(version=2 if witness else 1, inputs=tx_inputs,
                       outputs=tx_outputs, lock_time=seed, witnesses=witnesses)


def build_coinbase(seed: int) -> Transaction:
    return Transaction(
        version=1,
        inputs=(TxInput(
            previous_transaction_hash=bytes(32),
            previous_output_index=0xFFFFFFFF,
            script_signature=f"coinbase {seed}".encode(),
            sequence=0xFFFFFFFF,
        ),),
        outputs=(TxOutput(value=5000000000, script_pubkey=P2PKH_SCRIPT),),
        lock_time=0,
    )


def build_block(transactions: Sequence[Transaction], seed: int = 0,
                previous_block_hash: bytes = bytes(32)) -> Block:
    """Block around ``transactions`` with ``size`` matching its serialization."""
    header = BlockHeader(
        version=0x20000000,
        previous_block_hash=previous_block_hash,
        merkle_root=hashlib.sha256(f"merkle:{seed}".encode()).digest(),
        time=GENESIS_TIME + seed * 600,
        bits=0x1d00ffff,
        nonce=seed,
    )
    unsized = Block(header=header, size=0, transaction_count=len(transactions),
                    transactions=tuple(transactions))
    return Block(header=header, size=len(serialize_block(unsized)),
                 transaction_count=len(transactions), transactions=tuple(transactions))


def frame(block: Block, magic: bytes = bytes.fromhex("f9beb4d9")) -> bytes:
    return frame_block(serialize_block(block), magic)


# ============================================================================
# FIXTURES
# ============================================================================

@pytest.fixture
def genesis_block() -> Block:
    return build_genesis_block()


@pytest.fixture
def make_transaction() -> Callable[..., Transaction]:
    return build_transaction


@pytest.fixture
def make_block() -> Callable[..., Block]:
    return build_block


@pytest.fixture
def make_frame() -> Callable[..., bytes]:
    return frame


@pytest.fixture
def two_blocks() -> List[Block]:
    """Block 1 with one transaction, block 2 with three."""
    first = build_block([build_coinbase(1)], seed=1)
    second = build_block(
        [build_coinbase(2), build_transaction(20, inputs=2, outputs=2),
         build_transaction(21, inputs=1, outputs=3)],
        seed=2,
    )
    return [first, second]


@pytest.fixture
def two_block_bytes(two_blocks) -> bytes:
    return b"".join(frame(block) for block in two_blocks)


@pytest.fixture
def block_dir(tmp_path, two_block_bytes) -> Path:
    """Directory holding blk00000.dat with the two-block fixture."""
    directory = tmp_path / "blocks"
    directory.mkdir()
    (directory / "blk00000.dat").write_bytes(two_block_bytes)
    return directory


@pytest.fixture
def store_url(tmp_path) -> str:
    return f"sqlite:///{tmp_path / 'store.db'}"


@pytest.fixture
def make_config(store_url) -> Callable[..., ImporterConfig]:
    """Build an ImporterConfig pointing at a temporary SQLite store."""
    def _make(**overrides) -> ImporterConfig:
        values = {"db_url": store_url, "log_format": "text"}
        values.update(overrides)
        return ImporterConfig(**values)
    return _make
