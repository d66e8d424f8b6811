"""Data models and configuration."""

from btc_importer.models.config import ImporterConfig
from btc_importer.models.blockchain import (
    Block, BlockHeader, BlockRecord, Transaction, TransactionRecord, TxInput, TxOutput
)

__all__ = [
    "ImporterConfig",
    "Block",
    "BlockHeader",
    "BlockRecord",
    "Transaction",
    "TransactionRecord",
    "TxInput",
    "TxOutput",
]
