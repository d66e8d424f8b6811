"""Mapping of parsed blocks to store records."""

from typing import List, Optional

from btc_importer.core.hash_computer import HashComputer
from btc_importer.models.blockchain import Block, BlockRecord, TransactionRecord

BLOCK_TABLE = "block"
TRANSACTION_TABLE = "transaction"


class RecordMapper:
    """Pure mapping from a ``Block`` to its block and transaction records."""

    def __init__(self, hash_computer: Optional[HashComputer] = None):
        self.hash_computer = hash_computer or HashComputer()

    def map_block(self, block: Block, block_hash: str, file_name: str) -> BlockRecord:
        return BlockRecord(
            block_hash=block_hash,
            time=block.header.time,
            size=block.size,
            tx_count=block.transaction_count,
            file_name=file_name,
        )

    def map_transactions(self, block: Block, block_hash: str) -> List[TransactionRecord]:
        """One record per transaction, in block order, each pointing back at the block."""
        return [
            TransactionRecord(
                tx_hash=self.hash_computer.transaction_hash(tx),
                input_count=len(tx.inputs),
                output_count=len(tx.outputs),
                block_tx_count=block.transaction_count,
                block_hash=block_hash,
            )
            for tx in block.transactions
        ]
