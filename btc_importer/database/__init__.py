"""Store management and table definitions."""

from btc_importer.database.manager import DatabaseManager
from btc_importer.database.models import Base, BlockRow, TransactionRow

__all__ = [
    "DatabaseManager",
    "Base",
    "BlockRow",
    "TransactionRow",
]
