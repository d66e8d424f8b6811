"""SQLAlchemy table definitions for imported block data."""

from sqlalchemy import BigInteger, Column, Index, Integer, String
from sqlalchemy.orm import declarative_base

Base = declarative_base()


class BlockRow(Base):
    """One row per block, keyed by display-form block hash."""
    __tablename__ = 'block'

    block_hash = Column(String(64), primary_key=True)
    time = Column(BigInteger, nullable=False)
    size = Column(BigInteger, nullable=False)
    tx_count = Column(BigInteger, nullable=False)
    file_name = Column(String(255), nullable=False)


class TransactionRow(Base):
    """One row per transaction, keyed by txid, pointing back at its block."""
    __tablename__ = 'transaction'

    tx_hash = Column(String(64), primary_key=True)
    input_count = Column(Integer, nullable=False)
    output_count = Column(Integer, nullable=False)
    block_tx_count = Column(BigInteger, nullable=False)
    block_hash = Column(String(64), nullable=False)

    __table_args__ = (
        Index('idx_transaction_block_hash', 'block_hash'),
    )
