"""Main block file import orchestrator."""

from enum import Enum
from pathlib import Path
from typing import BinaryIO, Callable, List, Optional

import structlog

from btc_importer.core.block_parser import BlockStreamParser
from btc_importer.core.errors import (
    FrameSyncLost, InputEnumerationFailed, OversizedBlock, SCOPE_FILE
)
from btc_importer.core.frame_scanner import BlockFrameScanner
from btc_importer.core.hash_computer import HashComputer
from btc_importer.core.ingestor import BatchIngestor
from btc_importer.core.record_mapper import BLOCK_TABLE, TRANSACTION_TABLE, RecordMapper
from btc_importer.database.manager import DatabaseManager
from btc_importer.models.blockchain import Block, FileReport, ImportFailure, ImportSummary
from btc_importer.models.config import ImporterConfig

logger = structlog.get_logger(__name__)

DEFAULT_BUFFER_SIZE = 64 * 1024


class ImporterState(str, Enum):
    IDLE = "idle"
    OPENING = "opening"
    SCANNING = "scanning"
    PARSING = "parsing"
    MAPPING = "mapping"
    FLUSHING = "flushing"
    COMPLETED = "completed"


def list_block_files(block_dir: str, prefix: str) -> List[Path]:
    """
    List the files in ``block_dir`` whose names start with ``prefix``.

    Files are returned in name order, which for blkNNNNN.dat is the order the
    node wrote them.
    """
    directory = Path(block_dir).expanduser()
    try:
        return sorted(
            path for path in directory.iterdir()
            if path.is_file() and path.name.startswith(prefix)
        )
    except OSError as e:
        raise InputEnumerationFailed(
            f"cannot list block directory {directory}: {e}", file_name=str(directory)
        ) from e


class BlockImporter:
    """
    Loads blk*.dat files into the block and transaction tables.

    Files are processed one at a time: scanned, parsed, mapped, then flushed
    in one batch per table. Failures are contained at the smallest unit that
    lets the run continue: a bad block is skipped, a desynchronised or
    unwritable file is abandoned, and only an unreadable input directory
    stops the run.
    """

    def __init__(self, config: ImporterConfig, store: Optional[DatabaseManager] = None,
                 file_lister: Callable[[str, str], List[Path]] = list_block_files):
        self.config = config
        self.logger = logger.bind(component="block_importer", dry_run=config.dry_run)

        if store is None and not config.dry_run:
            store = DatabaseManager(config)
        self.store = store
        self.file_lister = file_lister

        self.parser = BlockStreamParser()
        self.hash_computer = HashComputer()
        self.mapper = RecordMapper(self.hash_computer)
        self.ingestor = BatchIngestor(store, dry_run=config.dry_run)
        self.state = ImporterState.IDLE

        self.logger.info("Block importer initialized",
                         block_dir=config.block_dir,
                         magic=[magic.hex() for magic in config.magic_values],
                         max_block_size=config.max_block_size)

    def initialize(self) -> bool:
        """Verify the store and create its tables. Always true in dry-run mode."""
        if self.config.dry_run or self.store is None:
            return True

        if not self.store.test_connection():
            self.logger.error("Failed to connect to store")
            return False

        self.store.create_tables()
        return True

    def run(self) -> ImportSummary:
        """
        Import every matching file in the configured directory.

        Raises:
            InputEnumerationFailed: the directory could not be listed.
        """
        files = self.file_lister(self.config.block_dir, self.config.file_prefix)
        self.logger.info("Starting import", files=len(files))

        summary = ImportSummary(dry_run=self.config.dry_run)
        for path in files:
            summary.files.append(self.import_file(path))

        self.state = ImporterState.COMPLETED
        self.logger.info("Import completed",
                         files=summary.files_processed,
                         files_failed=summary.files_failed,
                         blocks=summary.blocks,
                         blocks_skipped=summary.blocks_skipped,
                         block_records=summary.total_records(BLOCK_TABLE),
                         transaction_records=summary.total_records(TRANSACTION_TABLE))
        return summary

    def import_file(self, path: Path) -> FileReport:
        """Import one block file; never raises for problems inside the file."""
        self.state = ImporterState.OPENING
        self.logger.info("Processing file", file=str(path))

        try:
            with open(path, "rb", buffering=DEFAULT_BUFFER_SIZE) as handle:
                return self.import_stream(handle, path.name)
        except OSError as e:
            self.ingestor.discard()
            self.logger.error("Failed to read file", file=str(path), error=str(e))
            report = FileReport(file_name=path.name, aborted=True)
            report.failures.append(ImportFailure(
                kind=type(e).__name__,
                scope=SCOPE_FILE,
                file_name=path.name,
                offset=None,
                message=str(e),
            ))
            return report
        finally:
            self.state = ImporterState.IDLE

    def import_stream(self, source: BinaryIO, file_name: str) -> FileReport:
        """Scan, parse, map and flush one stream of framed blocks."""
        report = FileReport(file_name=file_name)
        self.ingestor.begin(file_name)

        self.state = ImporterState.SCANNING
        scanner = BlockFrameScanner(
            source,
            file_name=file_name,
            magic_values=self.config.magic_values,
            max_block_size=self.config.max_block_size,
        )
        try:
            for frame in scanner.frames():
                report.frames += 1

                self.state = ImporterState.PARSING
                outcome = self.parser.decode(frame)
                if not outcome.ok:
                    report.blocks_skipped += 1
                    report.failures.append(outcome.failure)
                    continue

                self.state = ImporterState.MAPPING
                self._stage_block(outcome.block, file_name)
                report.blocks_parsed += 1
                self.state = ImporterState.SCANNING
        except (FrameSyncLost, OversizedBlock) as e:
            report.aborted = True
            report.failures.append(ImportFailure.from_error(e))
            self.logger.error("Abandoning rest of file",
                              file=file_name, offset=e.offset, kind=e.kind, error=e.message)

        self.state = ImporterState.FLUSHING
        flush = self.ingestor.flush()
        report.records = flush.records
        report.imported = flush.imported
        if flush.failure is not None:
            report.aborted = True
            report.failures.append(flush.failure)

        self.logger.info("File processed",
                         file=file_name,
                         blocks=report.blocks_parsed,
                         skipped=report.blocks_skipped,
                         processed=report.records,
                         imported=report.imported)
        return report

    def _stage_block(self, block: Block, file_name: str):
        block_hash = self.hash_computer.block_hash(block.header)
        self.ingestor.add_block(
            self.mapper.map_block(block, block_hash, file_name),
            self.mapper.map_transactions(block, block_hash),
        )

    def close(self):
        """Close the store connection."""
        if self.store is not None:
            self.store.close()
