"""Database management and batched writes."""

from typing import Any, Dict, Iterable, List, Mapping

from sqlalchemy import create_engine, event, func, select, text
from sqlalchemy.dialects import postgresql, sqlite
from sqlalchemy.engine import make_url
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.pool import QueuePool
import structlog

from btc_importer.core.errors import StoreWriteFailed
from btc_importer.database.models import Base
from btc_importer.models.config import ImporterConfig

logger = structlog.get_logger(__name__)

_INSERT_BY_DIALECT = {
    "postgresql": postgresql.insert,
    "sqlite": sqlite.insert,
}


def _disable_sqlite_journal(dbapi_connection, connection_record):
    # The rollback journal stays in memory so a failed batch still rolls back
    cursor = dbapi_connection.cursor()
    cursor.execute("PRAGMA journal_mode=MEMORY")
    cursor.execute("PRAGMA synchronous=OFF")
    cursor.close()


class DatabaseManager:
    """
    Manages the store connection and per-table batched writes.

    Rows are upserted on their hash key, so importing the same file twice
    leaves the tables unchanged. When ``db_unlogged`` is set the write-ahead
    log is bypassed: PostgreSQL tables are made ``UNLOGGED`` and batches
    commit asynchronously, SQLite keeps its journal in memory and never
    syncs. This trades crash durability for load throughput; a crashed
    import is simply re-run.
    """

    def __init__(self, config: ImporterConfig):
        self.config = config
        self.logger = logger.bind(component="database_manager")

        url = make_url(config.database_url)
        self.dialect = url.get_backend_name()
        if self.dialect not in _INSERT_BY_DIALECT:
            raise ValueError(f"unsupported store backend: {self.dialect}")

        engine_options: Dict[str, Any] = {"pool_pre_ping": True, "echo": False}
        if self.dialect != "sqlite":
            engine_options.update(
                poolclass=QueuePool,
                pool_size=config.db_pool_size,
                max_overflow=config.db_max_overflow,
            )
        self.engine = create_engine(url, **engine_options)

        if self.dialect == "sqlite" and config.db_unlogged:
            event.listen(self.engine, "connect", _disable_sqlite_journal)

        self.logger.info("Database manager initialized",
                         backend=self.dialect,
                         host=url.host,
                         database=url.database,
                         unlogged=config.db_unlogged)

    def create_tables(self):
        """Create the block and transaction tables if missing."""
        Base.metadata.create_all(bind=self.engine)
        if self.dialect == "postgresql" and self.config.db_unlogged:
            with self.engine.begin() as conn:
                for table in Base.metadata.sorted_tables:
                    conn.execute(text(f'ALTER TABLE "{table.name}" SET UNLOGGED'))
        self.logger.info("Database tables ready", tables=self.table_names)

    @property
    def table_names(self) -> List[str]:
        return [table.name for table in Base.metadata.sorted_tables]

    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            self.logger.info("Database connection successful")
            return True
        except SQLAlchemyError as e:
            self.logger.error("Database connection failed", error=str(e))
            return False

    def write_batch(self, table_name: str, rows: Iterable[Dict[str, Any]]) -> int:
        """Upsert ``rows`` into one table. See ``write_batches``."""
        return self.write_batches({table_name: rows})[table_name]

    def write_batches(self, batches: Mapping[str, Iterable[Dict[str, Any]]]) -> Dict[str, int]:
        """
        Upsert each table's rows, one batched statement per table, in a
        single transaction.

        Either every table's batch is committed or none is. Rows sharing a
        key are collapsed to the last one first, since a single multi-row
        upsert may not touch the same key twice.

        Returns:
            Number of distinct rows written per table.

        Raises:
            StoreWriteFailed: the store rejected a batch; nothing was committed.
        """
        prepared = []
        for table_name, rows in batches.items():
            table = self._table(table_name)
            key = [column.name for column in table.primary_key.columns]
            unique_rows = list({tuple(row[k] for k in key): row for row in rows}.values())
            prepared.append((table_name, self._upsert(table, key), unique_rows))

        written = {table_name: 0 for table_name, _, _ in prepared}
        if not any(rows for _, _, rows in prepared):
            return written

        table_name = None
        try:
            with self.engine.begin() as conn:
                if self.dialect == "postgresql" and self.config.db_unlogged:
                    conn.execute(text("SET LOCAL synchronous_commit TO OFF"))
                for table_name, statement, unique_rows in prepared:
                    if unique_rows:
                        conn.execute(statement, unique_rows)
        except SQLAlchemyError as e:
            self.logger.error("Batch write failed, transaction rolled back",
                              table=table_name,
                              error=str(e))
            raise StoreWriteFailed(
                f"batch write to {table_name} failed: {e}", table=table_name
            ) from e

        for table_name, _, unique_rows in prepared:
            written[table_name] = len(unique_rows)
        self.logger.debug("Batches written", rows=written)
        return written

    def _upsert(self, table, key: List[str]):
        insert = _INSERT_BY_DIALECT[self.dialect](table)
        return insert.on_conflict_do_update(
            index_elements=key,
            set_={
                column.name: insert.excluded[column.name]
                for column in table.columns
                if not column.primary_key
            },
        )

    def count_rows(self, table_name: str) -> int:
        table = self._table(table_name)
        with self.engine.connect() as conn:
            return conn.execute(select(func.count()).select_from(table)).scalar_one()

    def _table(self, table_name: str):
        try:
            return Base.metadata.tables[table_name]
        except KeyError:
            raise ValueError(f"unknown table: {table_name}") from None

    def close(self):
        """Close database connections."""
        self.engine.dispose()
        self.logger.info("Database connections closed")
