"""
Tests for the byte <-> big-integer codec.
"""

import pytest

from lagrange_erasure.codec import (
    Sign,
    decode,
    encode,
    encode_erasure,
    head_padding_length,
    pack_words,
    settle,
    unpack_words,
)
from lagrange_erasure.errors import CodecError


class TestHeadPadding:
    """Tests for head padding sizing."""

    def test_known_lengths(self):
        """Should follow 8 - ((n + 1) mod 8) + 16."""
        assert head_padding_length(0) == 23
        assert head_padding_length(1) == 22
        assert head_padding_length(6) == 17
        assert head_padding_length(7) == 24
        assert head_padding_length(8) == 23

    def test_buffer_is_word_aligned(self):
        """Head + data + tail should always fill whole 64-bit words."""
        for n in range(64):
            padding = head_padding_length(n)
            assert 16 < padding <= 24
            assert (padding + n + 1) % 8 == 0

    def test_negative_length_rejected(self):
        """Should reject a negative data length."""
        with pytest.raises(CodecError):
            head_padding_length(-1)


class TestWords:
    """Tests for 64-bit word packing."""

    def test_pack_little_endian(self):
        """Should read the first byte as least significant."""
        assert pack_words(b"\x01" + b"\x00" * 7) == 1
        assert pack_words(b"\x00" * 8 + b"\x01" + b"\x00" * 7) == 1 << 64

    def test_pack_rejects_partial_word(self):
        """Should reject buffers that are not whole words."""
        with pytest.raises(CodecError, match="multiple"):
            pack_words(b"\x01\x02\x03")

    def test_unpack_minimal_words(self):
        """Should expand to the minimal number of whole words."""
        assert unpack_words(0) == b""
        assert unpack_words(1) == b"\x01" + b"\x00" * 7
        assert len(unpack_words(1 << 64)) == 16

    def test_unpack_rejects_negative(self):
        """Should refuse to unpack a signed value."""
        with pytest.raises(CodecError):
            unpack_words(-5)


class TestSign:
    """Tests for the out-of-band sign."""

    def test_of(self):
        assert Sign.of(-3) is Sign.MINUS
        assert Sign.of(0) is Sign.NO_SIGN
        assert Sign.of(12) is Sign.PLUS

    def test_apply(self):
        assert Sign.MINUS.apply(7) == -7
        assert Sign.PLUS.apply(7) == 7
        assert Sign.NO_SIGN.apply(0) == 0

    def test_no_sign_with_magnitude_rejected(self):
        """A zero sign cannot describe a non-zero value."""
        with pytest.raises(CodecError):
            Sign.NO_SIGN.apply(3)

    def test_json_names(self):
        assert [s.value for s in Sign] == ["minus", "no_sign", "plus"]


class TestDataRoundTrip:
    """Tests for encode -> decode of data fragments."""

    @pytest.mark.parametrize("data", [
        b"",
        b"\x00",
        b"\xff",
        b"\x00" * 9,
        b"\xff" * 13,
        b"Hello, World!",
        b"trailing zeros\x00\x00\x00",
        b"\x00\x00leading zeros",
        bytes(range(256)),
    ])
    def test_round_trip(self, data):
        """Should restore the exact bytes, zero and 0xFF runs included."""
        value, padding = encode(data)
        assert decode(value, padding, True) == data

    def test_value_width_is_fixed(self):
        """The integer width should only depend on the data length."""
        for data in (b"\x00" * 10, b"\xff" * 10, b"\x01" * 10):
            value, padding = encode(data)
            assert value > 0
            assert value.bit_length() == 8 * (padding + len(data) + 1)

    def test_head_region_is_sentinel(self):
        """The low head_padding bytes should read all-ones."""
        value, padding = encode(b"payload")
        mask = (1 << (8 * padding)) - 1
        assert value & mask == mask


class TestSettle:
    """Tests for drift correction through the head sentinel."""

    @pytest.mark.parametrize("data", [b"\x00" * 16, b"\xff" * 16, b"mixed \x00\xff data"])
    @pytest.mark.parametrize("drift", [1, -1, 5, -7, 1000, -1000])
    def test_drift_is_removed(self, data, drift):
        """Small upward or downward drift should decode to the original bytes."""
        value, padding = encode(data)
        assert settle(value + drift, padding) == value
        assert decode(value + drift, padding, True) == data

    def test_undisturbed_value_untouched(self):
        value, padding = encode(b"abc")
        assert settle(value, padding) == value


class TestDecodeErrors:
    """Tests for geometry checks during decode."""

    def test_negative_data_value(self):
        """A data fragment can never be negative."""
        value, padding = encode(b"abc")
        with pytest.raises(CodecError, match="positive"):
            decode(-value, padding, True)

    @pytest.mark.parametrize("padding", [0, 8, 16, 25])
    def test_padding_out_of_range(self, padding):
        """Should reject head padding no encode could have produced."""
        value, _ = encode(b"abc")
        with pytest.raises(CodecError, match="head padding"):
            decode(value, padding, True)

    def test_mismatched_padding(self):
        """Should reject padding inconsistent with the value width."""
        value, padding = encode(b"abcd")
        with pytest.raises(CodecError):
            decode(value, padding + 1, True)

    def test_damaged_sentinel_rejected(self):
        """Drift far beyond what interpolation produces is not corrected."""
        value, padding = encode(b"abcd")
        with pytest.raises(CodecError, match="sentinel"):
            decode(value - (1 << 100), padding, True)


class TestErasureValues:
    """Tests for unpadded erasure fragment values."""

    def test_encode_applies_sign(self):
        raw = (12345).to_bytes(8, "little")
        assert encode_erasure(raw, Sign.PLUS) == 12345
        assert encode_erasure(raw, Sign.MINUS) == -12345

    def test_empty_file_is_zero(self):
        assert encode_erasure(b"", Sign.NO_SIGN) == 0

    def test_decode_strips_sign(self):
        """Erasure bytes hold the magnitude only."""
        value = -(1 << 100) - 3
        raw = decode(value, 0, False)
        assert len(raw) % 8 == 0
        assert encode_erasure(raw, Sign.of(value)) == value

    def test_misaligned_file_rejected(self):
        with pytest.raises(CodecError):
            encode_erasure(b"\x01\x02", Sign.PLUS)
