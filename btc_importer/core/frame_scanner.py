"""Magic- and length-framed block scanning for blk*.dat files."""

import struct
from typing import BinaryIO, Iterator, Sequence, Union

import structlog

from btc_importer.core.byte_reader import ByteReader
from btc_importer.core.errors import FrameSyncLost, OversizedBlock
from btc_importer.models.blockchain import Frame
from btc_importer.models.config import DEFAULT_MAX_BLOCK_SIZE, NETWORK_MAGIC

logger = structlog.get_logger(__name__)

MAGIC_SIZE = 4
LENGTH_SIZE = 4

# Nodes pre-allocate block files, so the unused tail reads as zeros
_ZERO_MAGIC = bytes(MAGIC_SIZE)


class BlockFrameScanner:
    """
    Yields the frames of one block file in order.

    Each frame is ``magic (4) | length (4, LE) | payload (length)``. The
    sequence is lazy and finite: it stops silently when the file ends,
    including in the middle of a frame. A magic mismatch raises
    ``FrameSyncLost`` and a length above ``max_block_size`` raises
    ``OversizedBlock``; both end the scan of the file.

    The scanner always advances by the declared frame length, whatever the
    payload holds, so a malformed block never shifts later frames.
    """

    def __init__(self, source: Union[bytes, BinaryIO], file_name: str = "<memory>",
                 magic_values: Sequence[bytes] = (NETWORK_MAGIC["mainnet"],),
                 max_block_size: int = DEFAULT_MAX_BLOCK_SIZE):
        if not magic_values:
            raise ValueError("at least one magic value is required")
        self.reader = ByteReader(source)
        self.file_name = file_name
        self.magic_values = tuple(magic_values)
        self.max_block_size = max_block_size
        self.logger = logger.bind(component="frame_scanner", file=file_name)

    def frames(self) -> Iterator[Frame]:
        while True:
            offset = self.reader.position

            magic = self.reader.read_up_to(MAGIC_SIZE)
            if len(magic) < MAGIC_SIZE:
                self._log_end(offset, len(magic))
                return
            if magic not in self.magic_values:
                if magic == _ZERO_MAGIC:
                    self.logger.debug("Reached zero-filled tail", offset=offset)
                    return
                raise FrameSyncLost(
                    f"expected magic {self._expected()}, found {magic.hex()}",
                    file_name=self.file_name,
                    offset=offset,
                )

            raw_length = self.reader.read_up_to(LENGTH_SIZE)
            if len(raw_length) < LENGTH_SIZE:
                self._log_end(offset, MAGIC_SIZE + len(raw_length))
                return
            length = struct.unpack("<I", raw_length)[0]
            if length > self.max_block_size:
                raise OversizedBlock(
                    f"frame length {length} exceeds maximum block size {self.max_block_size}",
                    file_name=self.file_name,
                    offset=offset,
                )

            payload = self.reader.read_up_to(length)
            if len(payload) < length:
                self._log_end(offset, MAGIC_SIZE + LENGTH_SIZE + len(payload))
                return

            yield Frame(
                file_name=self.file_name,
                offset=offset,
                magic=magic,
                length=length,
                payload=payload,
            )

    def __iter__(self) -> Iterator[Frame]:
        return self.frames()

    def _expected(self) -> str:
        return "|".join(magic.hex() for magic in self.magic_values)

    def _log_end(self, offset: int, partial: int):
        if partial:
            self.logger.debug("Ignoring incomplete frame at end of file",
                              offset=offset, bytes_left=partial)
