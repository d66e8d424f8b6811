"""Blockchain data models for raw block files."""

from dataclasses import asdict, dataclass, field
from typing import Any, Dict, List, Optional, Tuple


@dataclass(frozen=True)
class BlockHeader:
    """Fixed 80-byte block header, hashes kept in wire byte order."""
    version: int
    previous_block_hash: bytes
    merkle_root: bytes
    time: int
    bits: int
    nonce: int


@dataclass(frozen=True)
class TxInput:
    """Transaction input."""
    previous_transaction_hash: bytes
    previous_output_index: int
    script_signature: bytes
    sequence: int

    @property
    def is_coinbase(self) -> bool:
        return (self.previous_transaction_hash == bytes(32)
                and self.previous_output_index == 0xFFFFFFFF)


@dataclass(frozen=True)
class TxOutput:
    """Transaction output."""
    value: int
    script_pubkey: bytes


@dataclass(frozen=True)
class Transaction:
    """Transaction as serialized inside a block."""
    version: int
    inputs: Tuple[TxInput, ...]
    outputs: Tuple[TxOutput, ...]
    lock_time: int
    witnesses: Tuple[Tuple[bytes, ...], ...] = ()

    @property
    def has_witness(self) -> bool:
        return any(self.witnesses)


@dataclass(frozen=True)
class Block:
    """Block-level data structure decoded from one frame."""
    header: BlockHeader
    size: int
    transaction_count: int
    transactions: Tuple[Transaction, ...]


@dataclass(frozen=True)
class Frame:
    """One magic- and length-prefixed span of a block file."""
    file_name: str
    offset: int
    magic: bytes
    length: int
    payload: bytes

    @property
    def end_offset(self) -> int:
        """Offset of the byte following this frame."""
        return self.offset + 8 + self.length


@dataclass(frozen=True)
class BlockRecord:
    """Row for the ``block`` table."""
    block_hash: str
    time: int
    size: int
    tx_count: int
    file_name: str

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class TransactionRecord:
    """Row for the ``transaction`` table."""
    tx_hash: str
    input_count: int
    output_count: int
    block_tx_count: int
    block_hash: str

    def as_row(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass(frozen=True)
class ImportFailure:
    """A recovered failure, kept for reporting."""
    kind: str
    scope: str
    file_name: Optional[str]
    offset: Optional[int]
    message: str

    @classmethod
    def from_error(cls, error) -> "ImportFailure":
        return cls(
            kind=error.kind,
            scope=error.scope,
            file_name=error.file_name,
            offset=error.offset,
            message=error.message,
        )


@dataclass(frozen=True)
class BlockOutcome:
    """Result of decoding one frame: either a block or a failure."""
    frame: Frame
    block: Optional[Block] = None
    failure: Optional[ImportFailure] = None

    @property
    def ok(self) -> bool:
        return self.block is not None


@dataclass
class FlushResult:
    """Outcome of writing one file's pending records."""
    records: Dict[str, int] = field(default_factory=dict)
    imported: Dict[str, int] = field(default_factory=dict)
    failure: Optional[ImportFailure] = None


@dataclass
class FileReport:
    """Per-file processing result."""
    file_name: str
    frames: int = 0
    blocks_parsed: int = 0
    blocks_skipped: int = 0
    records: Dict[str, int] = field(default_factory=dict)
    imported: Dict[str, int] = field(default_factory=dict)
    failures: List[ImportFailure] = field(default_factory=list)
    aborted: bool = False

    @property
    def ok(self) -> bool:
        return not self.aborted and not self.failures


@dataclass
class ImportSummary:
    """Totals for one importer run."""
    files: List[FileReport] = field(default_factory=list)
    dry_run: bool = False

    @property
    def files_processed(self) -> int:
        return len(self.files)

    @property
    def files_failed(self) -> int:
        return sum(1 for report in self.files if report.aborted)

    @property
    def blocks(self) -> int:
        return sum(report.blocks_parsed for report in self.files)

    @property
    def blocks_skipped(self) -> int:
        return sum(report.blocks_skipped for report in self.files)

    @property
    def failures(self) -> List[ImportFailure]:
        return [failure for report in self.files for failure in report.failures]

    def total_records(self, table: str) -> int:
        return sum(report.records.get(table, 0) for report in self.files)

    def total_imported(self, table: str) -> int:
        return sum(report.imported.get(table, 0) for report in self.files)
