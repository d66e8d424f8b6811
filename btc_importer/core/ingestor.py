"""Per-file accumulation and batched writing of records."""

from typing import Dict, List, Optional, Sequence

import structlog

from btc_importer.core.errors import StoreWriteFailed
from btc_importer.core.record_mapper import BLOCK_TABLE, TRANSACTION_TABLE
from btc_importer.database.manager import DatabaseManager
from btc_importer.models.blockchain import (
    BlockRecord, FlushResult, ImportFailure, TransactionRecord
)

logger = structlog.get_logger(__name__)


class BatchIngestor:
    """
    Collects one file's records per table and writes each table in one batch.

    In dry-run mode nothing is written, but the record counts are computed
    exactly as in a live run.
    """

    def __init__(self, store: Optional[DatabaseManager] = None, dry_run: bool = False,
                 tables: Sequence[str] = (BLOCK_TABLE, TRANSACTION_TABLE)):
        if store is None and not dry_run:
            raise ValueError("a store is required unless running dry")
        self.store = store
        self.dry_run = dry_run
        self.tables = tuple(tables)
        self.file_name: Optional[str] = None
        self._pending: Dict[str, List] = {}
        self.logger = logger.bind(component="batch_ingestor", dry_run=dry_run)

    def begin(self, file_name: str):
        """Start accumulating records for ``file_name``, dropping anything pending."""
        self.file_name = file_name
        self._pending = {table: [] for table in self.tables}

    def add_block(self, block_record: BlockRecord,
                  transaction_records: Sequence[TransactionRecord]):
        self._pending[BLOCK_TABLE].append(block_record)
        self._pending[TRANSACTION_TABLE].extend(transaction_records)

    def pending(self, table: str) -> int:
        return len(self._pending.get(table, ()))

    def discard(self):
        self._pending = {table: [] for table in self.tables}

    def flush(self) -> FlushResult:
        """
        Write every table's pending records, one batch per table, committed
        together.

        A failed write rolls back all of the file's tables and discards its
        pending records; it is returned as a failure, not raised.
        """
        result = FlushResult(
            records={table: len(records) for table, records in self._pending.items()},
            imported={table: 0 for table in self.tables},
        )

        if self.dry_run:
            self.logger.info("Dry run, skipping writes",
                             file=self.file_name, records=result.records)
            self.discard()
            return result

        batches = {
            table: [record.as_row() for record in self._pending.get(table, ())]
            for table in self.tables
        }
        try:
            if any(batches.values()):
                result.imported.update(self.store.write_batches(batches))
        except StoreWriteFailed as e:
            e.with_context(file_name=self.file_name)
            result.failure = ImportFailure.from_error(e)
            self.logger.error("Discarding file records after failed write",
                              file=self.file_name, table=e.table, error=e.message)
        finally:
            self.discard()

        return result
