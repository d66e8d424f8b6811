"""
Bitcoin Block File Importer

Bulk loads the blocks stored in a node's blk*.dat files into block and
transaction tables keyed by hash.
"""

__version__ = "1.0.0"
__author__ = "Bitcoin Data Engineering Team"
__description__ = "Raw blk*.dat importer for Bitcoin block and transaction metadata"

from btc_importer.core.importer import BlockImporter
from btc_importer.database.manager import DatabaseManager
from btc_importer.models.config import ImporterConfig

__all__ = [
    "BlockImporter",
    "DatabaseManager",
    "ImporterConfig",
]
