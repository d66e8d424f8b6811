"""Unit tests for ByteReader and varint encoding."""

import io
import pytest

from btc_importer.core.byte_reader import ByteReader
from btc_importer.core.errors import MalformedVarInt, TruncatedInput
from btc_importer.utils.bitcoin import encode_varint


class TestFixedReads:
    """Tests for fixed-width reads."""

    def test_read_fixed_returns_exact_bytes(self):
        reader = ByteReader(b"abcdef")

        assert reader.read_fixed(2) == b"ab"
        assert reader.read_fixed(3) == b"cde"
        assert reader.position == 5
        assert reader.remaining() == 1

    def test_read_fixed_raises_on_short_input(self):
        """Test TruncatedInput when fewer bytes remain than requested."""
        reader = ByteReader(b"\x01\x02\x03")
        reader.read_fixed(1)

        with pytest.raises(TruncatedInput) as exc_info:
            reader.read_fixed(4)

        assert exc_info.value.offset == 1

    @pytest.mark.parametrize("source", [bytes(16), io.BytesIO(bytes(16))])
    def test_huge_declared_length_is_truncation(self, source):
        """Test a length beyond any buffer raises TruncatedInput, not OverflowError."""
        reader = ByteReader(source)

        with pytest.raises(TruncatedInput) as exc_info:
            reader.read_fixed(2 ** 64 - 1)

        assert exc_info.value.offset == 0

    def test_huge_var_bytes_length(self):
        reader = ByteReader(b"\xff" * 9 + b"script")

        with pytest.raises(TruncatedInput):
            reader.read_var_bytes()

    def test_offsets_include_base_offset(self):
        reader = ByteReader(b"\x00", base_offset=100)

        with pytest.raises(TruncatedInput) as exc_info:
            reader.read_uint32()

        assert exc_info.value.offset == 100

    def test_little_endian_integers(self):
        reader = ByteReader(
            bytes.fromhex("01000000") + bytes.fromhex("ffffffff")
            + bytes.fromhex("00f2052a01000000") + bytes.fromhex("ffffffffffffffff")
        )

        assert reader.read_uint32() == 1
        assert reader.read_int32() == -1
        assert reader.read_int64() == 5000000000
        assert reader.read_int64() == -1
        assert reader.at_end()

    def test_reads_from_stream(self):
        reader = ByteReader(io.BytesIO(b"\x02\xaa\xbb\xcc"))

        assert reader.read_var_bytes() == b"\xaa\xbb"
        assert reader.read_up_to(5) == b"\xcc"
        assert reader.position == 4


class TestVarInt:
    """Tests for variable-length integer decoding."""

    @pytest.mark.parametrize("value,width", [
        (0, 1),
        (252, 1),
        (253, 3),
        (65535, 3),
        (65536, 5),
        (2**32 - 1, 5),
        (2**32, 9),
        (2**64 - 1, 9),
    ])
    def test_boundary_values_round_trip(self, value, width):
        """Test each boundary uses the expected prefix width and decodes back."""
        encoded = encode_varint(value)

        assert len(encoded) == width
        reader = ByteReader(encoded)
        assert reader.read_varint() == value
        assert reader.at_end()

    def test_prefix_bytes(self):
        assert encode_varint(252) == b"\xfc"
        assert encode_varint(253) == b"\xfd\xfd\x00"
        assert encode_varint(65536) == b"\xfe\x00\x00\x01\x00"
        assert encode_varint(2**32) == b"\xff\x00\x00\x00\x00\x01\x00\x00\x00"

    @pytest.mark.parametrize("data", [b"\xfd\x01", b"\xfe\x01\x02\x03", b"\xff\x00"])
    def test_incomplete_prefix_is_malformed(self, data):
        with pytest.raises(MalformedVarInt) as exc_info:
            ByteReader(data, base_offset=7).read_varint()

        assert exc_info.value.offset == 7

    def test_missing_prefix_is_truncated(self):
        with pytest.raises(TruncatedInput):
            ByteReader(b"").read_varint()

    @pytest.mark.parametrize("data", [
        b"\xfd\x05\x00",
        b"\xfe\xff\xff\x00\x00",
        b"\xff\xff\xff\xff\xff\x00\x00\x00\x00",
    ])
    def test_non_canonical_encoding_rejected(self, data):
        """Test values that fit a shorter form are refused."""
        with pytest.raises(MalformedVarInt):
            ByteReader(data).read_varint()

    def test_negative_value_cannot_be_encoded(self):
        with pytest.raises(ValueError):
            encode_varint(-1)
