"""
Fragments: one indexed value of the implicit polynomial plus its metadata.
"""

import logging
from dataclasses import dataclass
from pathlib import Path

from . import codec
from .codec import Sign
from .manifest import FragmentMetadata

logger = logging.getLogger(__name__)


@dataclass
class Fragment:
    """A fragment value held in memory."""
    value: int
    meta: FragmentMetadata

    @property
    def index(self) -> int:
        return self.meta.part_index

    @staticmethod
    def exists(meta: FragmentMetadata) -> bool:
        return meta.path.is_file()

    @classmethod
    def load(cls, meta: FragmentMetadata) -> "Fragment":
        """
        Read a fragment file through the codec.

        Data fragments get their head padding recomputed from the file length;
        erasure fragments take their sign from ``meta``.

        Raises:
            FileNotFoundError: If the fragment file is absent
            CodecError: If an erasure file is not word-aligned
        """
        raw = meta.path.read_bytes()
        if meta.is_erasure:
            value = codec.encode_erasure(raw, meta.sign)
            meta.head_padding_length = 0
        else:
            value, padding = codec.encode(raw)
            if meta.head_padding_length and meta.head_padding_length != padding:
                logger.debug(
                    "part %d: recorded padding %d, file implies %d",
                    meta.part_index, meta.head_padding_length, padding,
                )
            meta.head_padding_length = padding
            meta.sign = Sign.PLUS
        logger.debug("loaded part %d (%d bytes) from %s", meta.part_index, len(raw), meta.path)
        return cls(value=value, meta=meta)

    def dump(self) -> Path:
        """
        Write the fragment file, replacing any file already there.

        A rebuilt data fragment is settled first, so the value left in memory
        is the exact one its file now holds.

        Returns:
            Path of the written fragment file
        """
        meta = self.meta
        raw = codec.decode(self.value, meta.head_padding_length, not meta.is_erasure)
        if meta.is_erasure:
            meta.sign = Sign.of(self.value)
        else:
            self.value = codec.settle(self.value, meta.head_padding_length)
            meta.sign = Sign.PLUS

        path = meta.path
        path.unlink(missing_ok=True)
        path.write_bytes(raw)
        logger.debug("dumped part %d (%d bytes) to %s", meta.part_index, len(raw), path)
        return path
