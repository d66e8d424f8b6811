"""Block and transaction identifiers."""

from btc_importer.models.blockchain import BlockHeader, Transaction
from btc_importer.utils.bitcoin import (
    double_sha256, serialize_header, serialize_transaction, to_display_hex
)


class HashComputer:
    """
    Derives the canonical identifiers used as record keys.

    Both hashes are SHA-256 applied twice, reversed and hex encoded, so they
    match the form block explorers and node RPCs display.
    """

    def block_hash(self, header: BlockHeader) -> str:
        """Hash of the 80 serialized header bytes."""
        return to_display_hex(double_sha256(serialize_header(header)))

    def transaction_hash(self, tx: Transaction) -> str:
        """Hash of the transaction serialized without witness data (the txid)."""
        return to_display_hex(double_sha256(serialize_transaction(tx, include_witness=False)))

    def witness_hash(self, tx: Transaction) -> str:
        """Hash of the full serialization including witness data (the wtxid)."""
        return to_display_hex(double_sha256(serialize_transaction(tx, include_witness=True)))
