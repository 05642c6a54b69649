"""
Byte <-> big-integer codec.

A data fragment of ``n`` bytes is laid out little-endian as::

    [0xFF * head_padding][data bytes][0xFF]

so that the buffer is a whole number of 64-bit words and the integer built from
it always has the same width, whatever the data holds (leading or trailing zero
bytes included). The low ``head_padding`` bytes act as a sentinel region: if
interpolation leaves the value slightly off, the region no longer reads all-ones
and :func:`settle` pulls the value back before the data is sliced out.

Erasure fragments are arithmetic results, not slices, so they carry neither head
nor tail padding. Their magnitude is stored as-is and their sign lives in the
fragment metadata.
"""

import logging
from enum import Enum
from typing import Tuple

from .errors import CodecError

logger = logging.getLogger(__name__)

WORD_SIZE = 8
SENTINEL_WORDS = 2
FILLER = 0xFF
# Interpolation drift stays below the number of known fragments
DRIFT_LIMIT = 1 << (8 * WORD_SIZE)


class Sign(Enum):
    """Sign of a fragment value, persisted out-of-band in the manifest."""

    MINUS = "minus"
    NO_SIGN = "no_sign"
    PLUS = "plus"

    @classmethod
    def of(cls, value: int) -> "Sign":
        if value < 0:
            return cls.MINUS
        if value == 0:
            return cls.NO_SIGN
        return cls.PLUS

    def apply(self, magnitude: int) -> int:
        """Attach this sign to a non-negative magnitude."""
        if magnitude < 0:
            raise CodecError(f"magnitude must be non-negative, got {magnitude}")
        if self is Sign.NO_SIGN and magnitude != 0:
            raise CodecError("sign 'no_sign' recorded for a non-zero magnitude")
        return -magnitude if self is Sign.MINUS else magnitude


def head_padding_length(data_len: int) -> int:
    """Head filler size for ``data_len`` data bytes plus one tail byte."""
    if data_len < 0:
        raise CodecError(f"data length must be non-negative, got {data_len}")
    return WORD_SIZE - (data_len + 1) % WORD_SIZE + WORD_SIZE * SENTINEL_WORDS


def pack_words(buf: bytes) -> int:
    """
    Build a non-negative integer from little-endian 64-bit words.

    Raises:
        CodecError: If ``buf`` is not a whole number of words
    """
    if len(buf) % WORD_SIZE:
        raise CodecError(
            f"buffer of {len(buf)} bytes is not a multiple of {WORD_SIZE}-byte words"
        )
    return int.from_bytes(bytes(buf), "little")


def unpack_words(value: int) -> bytes:
    """Expand a non-negative integer into its minimal little-endian word bytes."""
    if value < 0:
        raise CodecError("cannot unpack a negative integer; strip the sign first")
    words = (value.bit_length() + WORD_SIZE * 8 - 1) // (WORD_SIZE * 8)
    return value.to_bytes(words * WORD_SIZE, "little")


def encode(data: bytes) -> Tuple[int, int]:
    """
    Encode data fragment bytes.

    Returns:
        Tuple of (positive integer, head padding length)
    """
    head_padding = head_padding_length(len(data))
    buf = bytearray([FILLER]) * head_padding
    buf += data
    buf.append(FILLER)
    return pack_words(buf), head_padding


def encode_erasure(raw: bytes, sign: Sign) -> int:
    """Encode erasure fragment bytes (an unpadded magnitude) with its sign."""
    return sign.apply(pack_words(raw))


def settle(value: int, head_padding: int) -> int:
    """
    Undo interpolation drift detected through the head sentinel.

    Interpolation truncates each Lagrange term, so a rebuilt data value can sit
    a few units away from the true one. Those units land in the head filler:
    a value that came out one too high carries into the data and leaves the
    filler reading zero. The drift is recovered as the signed residue of the
    filler region and subtracted.
    """
    modulus = 1 << (8 * head_padding)
    sentinel = modulus - 1
    if value & sentinel == sentinel:
        return value

    drift = (value - sentinel) % modulus
    if drift >= modulus >> 1:
        drift -= modulus
    if abs(drift) >= DRIFT_LIMIT:
        raise CodecError(
            f"head sentinel damaged beyond drift correction ({head_padding} byte region)"
        )
    logger.debug("head sentinel disturbed, correcting drift of %d", drift)
    return value - drift


def decode(value: int, head_padding: int, is_data_fragment: bool) -> bytes:
    """
    Map a fragment value back to the bytes stored in its fragment file.

    Args:
        value: Signed fragment value
        head_padding: Head filler length recorded for the fragment
        is_data_fragment: True for data fragments, False for erasure fragments

    Returns:
        Fragment file bytes

    Raises:
        CodecError: If the value does not fit the recorded geometry
    """
    if not is_data_fragment:
        return unpack_words(abs(value))

    if not WORD_SIZE * SENTINEL_WORDS < head_padding <= WORD_SIZE * (SENTINEL_WORDS + 1):
        raise CodecError(f"invalid head padding for a data fragment: {head_padding}")

    value = settle(value, head_padding)
    if value <= 0:
        raise CodecError(f"data fragment value must be positive, got sign {Sign.of(value).value}")

    raw = unpack_words(value)
    data_len = len(raw) - head_padding - 1
    if data_len < 0 or raw[-1] != FILLER:
        raise CodecError(
            f"value of {len(raw)} bytes does not carry a tail sentinel after "
            f"{head_padding} bytes of head padding"
        )
    if head_padding_length(data_len) != head_padding:
        raise CodecError(
            f"head padding {head_padding} inconsistent with {data_len} data bytes"
        )
    return raw[head_padding:-1]
