"""Utility functions and helpers."""

from btc_importer.utils.logging import setup_logging, get_logger
from btc_importer.utils.bitcoin import (
    double_sha256,
    encode_varint,
    serialize_block,
    serialize_header,
    serialize_transaction,
    to_display_hex,
)
from btc_importer.utils.time import format_block_time

__all__ = [
    "setup_logging",
    "get_logger",
    "double_sha256",
    "encode_varint",
    "serialize_block",
    "serialize_header",
    "serialize_transaction",
    "to_display_hex",
    "format_block_time",
]
