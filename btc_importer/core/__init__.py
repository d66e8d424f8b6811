"""Core block file import components."""

from btc_importer.core.byte_reader import ByteReader
from btc_importer.core.frame_scanner import BlockFrameScanner
from btc_importer.core.block_parser import BlockStreamParser
from btc_importer.core.hash_computer import HashComputer
from btc_importer.core.record_mapper import RecordMapper
from btc_importer.core.ingestor import BatchIngestor
from btc_importer.core.importer import BlockImporter

__all__ = [
    "ByteReader",
    "BlockFrameScanner",
    "BlockStreamParser",
    "HashComputer",
    "RecordMapper",
    "BatchIngestor",
    "BlockImporter",
]
