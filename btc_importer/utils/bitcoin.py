"""Bitcoin-specific utility functions."""

import hashlib
import struct
from decimal import Decimal
from typing import Iterable, Tuple

from btc_importer.models.blockchain import (
    Block, BlockHeader, Transaction, TxInput, TxOutput
)
from btc_importer.models.config import NETWORK_MAGIC

HEADER_SIZE = 80

# Segwit serialization: marker byte then flag byte, in place of the input count
WITNESS_MARKER = 0x00
WITNESS_FLAG = 0x01

# Satoshis per Bitcoin
SATOSHIS_PER_BTC = Decimal('100000000')

_HEADER = struct.Struct("<i32s32sIII")


def satoshi_to_btc(satoshis: int) -> Decimal:
    """Convert satoshis to BTC."""
    return Decimal(satoshis) / SATOSHIS_PER_BTC


def double_sha256(data: bytes) -> bytes:
    """SHA-256 applied twice."""
    return hashlib.sha256(hashlib.sha256(data).digest()).digest()


def to_display_hex(digest: bytes) -> str:
    """Reverse a digest and hex-encode it, the way hashes are usually shown."""
    return digest[::-1].hex()


def encode_varint(value: int) -> bytes:
    """Encode an unsigned integer in the shortest varint form."""
    if value < 0:
        raise ValueError(f"varint cannot be negative: {value}")
    if value < 0xFD:
        return bytes([value])
    if value <= 0xFFFF:
        return b"\xfd" + struct.pack("<H", value)
    if value <= 0xFFFFFFFF:
        return b"\xfe" + struct.pack("<I", value)
    if value <= 0xFFFFFFFFFFFFFFFF:
        return b"\xff" + struct.pack("<Q", value)
    raise ValueError(f"varint out of range: {value}")


def encode_var_bytes(data: bytes) -> bytes:
    return encode_varint(len(data)) + data


def serialize_header(header: BlockHeader) -> bytes:
    """Serialize a header to its 80 wire bytes."""
    return _HEADER.pack(
        header.version,
        header.previous_block_hash,
        header.merkle_root,
        header.time,
        header.bits,
        header.nonce,
    )


def serialize_input(tx_input: TxInput) -> bytes:
    return b"".join((
        tx_input.previous_transaction_hash,
        struct.pack("<I", tx_input.previous_output_index),
        encode_var_bytes(tx_input.script_signature),
        struct.pack("<I", tx_input.sequence),
    ))


def serialize_output(tx_output: TxOutput) -> bytes:
    return struct.pack("<q", tx_output.value) + encode_var_bytes(tx_output.script_pubkey)


def _serialize_items(items: Iterable[bytes]) -> bytes:
    items = list(items)
    return encode_varint(len(items)) + b"".join(items)


def serialize_transaction(tx: Transaction, include_witness: bool = True) -> bytes:
    """
    Serialize a transaction.

    With ``include_witness`` (and witness data present) the segwit layout is
    produced, matching what a node stores on disk. Without it the legacy
    layout is produced, which is what the transaction id commits to.
    """
    with_witness = include_witness and tx.has_witness
    parts = [struct.pack("<I", tx.version)]
    if with_witness:
        parts.append(bytes([WITNESS_MARKER, WITNESS_FLAG]))
    parts.append(_serialize_items(serialize_input(i) for i in tx.inputs))
    parts.append(_serialize_items(serialize_output(o) for o in tx.outputs))
    if with_witness:
        for stack in tx.witnesses:
            parts.append(_serialize_items(encode_var_bytes(item) for item in stack))
    parts.append(struct.pack("<I", tx.lock_time))
    return b"".join(parts)


def serialize_block(block: Block) -> bytes:
    """Serialize a block payload (header, tx count, transactions)."""
    return b"".join(
        [serialize_header(block.header), encode_varint(block.transaction_count)]
        + [serialize_transaction(tx) for tx in block.transactions]
    )


def frame_block(payload: bytes, magic: bytes = NETWORK_MAGIC["mainnet"]) -> bytes:
    """Wrap a block payload the way blk*.dat files store it."""
    return magic + struct.pack("<I", len(payload)) + payload


def unpack_header(data: bytes) -> Tuple[int, bytes, bytes, int, int, int]:
    """Split 80 header bytes into their fields."""
    return _HEADER.unpack(data)
