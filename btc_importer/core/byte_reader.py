"""Position-tracking reader over raw block bytes."""

import io
import struct
import sys
from typing import BinaryIO, Union

from btc_importer.core.errors import MalformedVarInt, TruncatedInput

_UINT16 = struct.Struct("<H")
_UINT32 = struct.Struct("<I")
_INT32 = struct.Struct("<i")
_UINT64 = struct.Struct("<Q")
_INT64 = struct.Struct("<q")

# prefix byte -> (value width, smallest value that needs this width)
_VARINT_WIDTHS = {
    0xFD: (_UINT16, 0xFD),
    0xFE: (_UINT32, 0x10000),
    0xFF: (_UINT64, 0x100000000),
}


class ByteReader:
    """
    Buffered reader that knows how many bytes it has consumed.

    Wraps either a bytes-like object or an open binary stream. All multi-byte
    integers are little-endian. Fixed-width reads never return short: a read
    that cannot be satisfied raises ``TruncatedInput``.
    """

    def __init__(self, source: Union[bytes, bytearray, memoryview, BinaryIO],
                 base_offset: int = 0):
        if isinstance(source, (bytes, bytearray, memoryview)):
            self._stream = io.BytesIO(bytes(source))
            self._size = len(source)
        else:
            self._stream = source
            self._size = None
        self._position = 0
        self.base_offset = base_offset

    @property
    def position(self) -> int:
        """Bytes consumed so far."""
        return self._position

    @property
    def absolute_position(self) -> int:
        """Position relative to the start of the enclosing file."""
        return self.base_offset + self._position

    def remaining(self) -> int:
        if self._size is None:
            raise TypeError("remaining() is only known for in-memory sources")
        return self._size - self._position

    def at_end(self) -> bool:
        return self.remaining() == 0

    def read_up_to(self, n: int) -> bytes:
        """Read at most ``n`` bytes; a short result means end of input."""
        data = self._stream.read(n)
        self._position += len(data)
        return data

    def read_fixed(self, n: int) -> bytes:
        """Read exactly ``n`` bytes or raise ``TruncatedInput``."""
        if n < 0:
            raise ValueError(f"cannot read a negative number of bytes: {n}")
        start = self.absolute_position
        # n may come straight from a varint, up to 2**64 - 1
        available = sys.maxsize if self._size is None else self.remaining()
        if n > available:
            raise TruncatedInput(f"needed {n} bytes, at most {available} available",
                                 offset=start)
        data = self.read_up_to(n)
        if len(data) != n:
            raise TruncatedInput(
                f"needed {n} bytes, only {len(data)} available",
                offset=start,
            )
        return data

    def read_uint32(self) -> int:
        return _UINT32.unpack(self.read_fixed(4))[0]

    def read_int32(self) -> int:
        return _INT32.unpack(self.read_fixed(4))[0]

    def read_int64(self) -> int:
        return _INT64.unpack(self.read_fixed(8))[0]

    def read_hash(self) -> bytes:
        """Read a 32-byte digest in wire (internal) byte order."""
        return self.read_fixed(32)

    def read_varint(self) -> int:
        """
        Decode a variable-length integer.

        A first byte below 0xFD is the value itself; 0xFD, 0xFE and 0xFF
        announce a 2, 4 or 8 byte little-endian value. Values that would fit
        a shorter form are rejected so that re-encoding is byte-exact.
        """
        start = self.absolute_position
        prefix = self.read_fixed(1)[0]
        if prefix < 0xFD:
            return prefix

        width, minimum = _VARINT_WIDTHS[prefix]
        try:
            value = width.unpack(self.read_fixed(width.size))[0]
        except TruncatedInput as e:
            raise MalformedVarInt(
                f"varint prefix 0x{prefix:02x} needs {width.size} bytes",
                offset=start,
            ) from e
        if value < minimum:
            raise MalformedVarInt(
                f"non-canonical varint: {value} encoded with prefix 0x{prefix:02x}",
                offset=start,
            )
        return value

    def read_var_bytes(self) -> bytes:
        """Read a varint length followed by that many bytes."""
        return self.read_fixed(self.read_varint())
