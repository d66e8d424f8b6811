"""Error taxonomy for the block file importer.

Each error carries the file name and byte offset where it happened and a
``scope`` naming the narrowest unit of work it aborts:

* ``run``   - nothing can be imported at all
* ``file``  - the remainder of the current file is abandoned
* ``block`` - only the current frame is skipped
"""

from typing import Optional

SCOPE_RUN = "run"
SCOPE_FILE = "file"
SCOPE_BLOCK = "block"


class BlockImportError(Exception):
    """Base class for all importer errors."""

    scope = SCOPE_FILE

    def __init__(self, message: str, file_name: Optional[str] = None,
                 offset: Optional[int] = None):
        super().__init__(message)
        self.message = message
        self.file_name = file_name
        self.offset = offset

    @property
    def kind(self) -> str:
        return type(self).__name__

    def with_context(self, file_name: Optional[str] = None,
                     offset: Optional[int] = None) -> "BlockImportError":
        """Fill in location details that were unknown where the error was raised."""
        if self.file_name is None:
            self.file_name = file_name
        if self.offset is None:
            self.offset = offset
        return self

    def __str__(self) -> str:
        location = []
        if self.file_name is not None:
            location.append(f"file={self.file_name}")
        if self.offset is not None:
            location.append(f"offset={self.offset}")
        if location:
            return f"{self.message} ({', '.join(location)})"
        return self.message


class InputEnumerationFailed(BlockImportError):
    """The input directory could not be listed."""
    scope = SCOPE_RUN


class FrameSyncLost(BlockImportError):
    """Bytes where a frame should start do not match any magic value."""
    scope = SCOPE_FILE


class OversizedBlock(BlockImportError):
    """Declared frame length exceeds the configured maximum block size."""
    scope = SCOPE_FILE


class StoreWriteFailed(BlockImportError):
    """A batched write to the store was rejected."""
    scope = SCOPE_FILE

    def __init__(self, message: str, table: Optional[str] = None, **kwargs):
        super().__init__(message, **kwargs)
        self.table = table


class TruncatedInput(BlockImportError):
    """Fewer bytes remain than a fixed-width read needs."""
    scope = SCOPE_BLOCK


class MalformedVarInt(BlockImportError):
    """A varint prefix is followed by too few bytes, or is not minimally encoded."""
    scope = SCOPE_BLOCK


class BlockSizeMismatch(BlockImportError):
    """Decoding a block consumed a different number of bytes than the frame declared."""
    scope = SCOPE_BLOCK


class MalformedTransaction(BlockImportError):
    """Transaction bytes are well-sized but not a valid layout (e.g. bad segwit flag)."""
    scope = SCOPE_BLOCK
