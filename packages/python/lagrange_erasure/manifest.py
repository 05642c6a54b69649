"""
Fragment metadata and manifest persistence for the Lagrange erasure kit.

The manifest is a JSON array with one record per fragment on disk, ordered by
part index. It is the only place fragment geometry is kept: fragment files carry
no header.
"""

import json
import logging
import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, Iterable, List, Optional, Union

from .codec import Sign
from .config import get_settings
from .errors import FormatError, InvariantViolation, ManifestError

if TYPE_CHECKING:
    from .fragment import Fragment

logger = logging.getLogger(__name__)

DATA_SUFFIX = "d.block"
ERASURE_SUFFIX = "e.block"

_RECORD_FIELDS = ("data_count", "curr_part", "erasure_count", "sign", "padding", "work_dir")


def fragment_file_name(part_index: int, data_count: int) -> str:
    suffix = ERASURE_SUFFIX if part_index >= data_count else DATA_SUFFIX
    return f"{part_index}.{suffix}"


def parse_fragment_index(file_name: str) -> int:
    """
    Extract the part index from a fragment file name.

    Raises:
        FormatError: If the name is not ``<index>.d.block`` or ``<index>.e.block``
    """
    match = re.fullmatch(r"(\d+)\.[de]\.block", file_name)
    if match is None:
        raise FormatError(f"Not a fragment file name: {file_name!r}")
    return int(match.group(1))


@dataclass
class FragmentMetadata:
    """Geometry of one fragment."""
    data_count: int
    erasure_count: int
    part_index: int
    sign: Sign = Sign.PLUS
    head_padding_length: int = 0   # recomputed whenever the fragment is materialized
    working_directory: Path = field(default_factory=Path)

    def __post_init__(self):
        self.working_directory = Path(self.working_directory)
        if self.data_count < 1:
            raise InvariantViolation(f"data_count must be >= 1, got {self.data_count}")
        if self.erasure_count < 0:
            raise InvariantViolation(f"erasure_count must be >= 0, got {self.erasure_count}")
        if not 0 <= self.part_index < self.total_count:
            raise InvariantViolation(
                f"part_index {self.part_index} outside [0, {self.total_count})"
            )

    @classmethod
    def new_for_encode(
        cls,
        workdir: Union[str, Path],
        data_count: int,
        curr_part: int,
        erasure_count: int,
    ) -> "FragmentMetadata":
        return cls(
            data_count=data_count,
            erasure_count=erasure_count,
            part_index=curr_part,
            sign=Sign.PLUS,
            head_padding_length=0,
            working_directory=Path(workdir),
        )

    @property
    def total_count(self) -> int:
        return self.data_count + self.erasure_count

    @property
    def is_erasure(self) -> bool:
        return self.part_index >= self.data_count

    @property
    def file_name(self) -> str:
        return fragment_file_name(self.part_index, self.data_count)

    @property
    def path(self) -> Path:
        return self.working_directory / self.file_name

    def for_part(self, part_index: int) -> "FragmentMetadata":
        """Same geometry, another index. Padding is left to materialization."""
        return replace(self, part_index=part_index, sign=Sign.PLUS, head_padding_length=0)

    def to_record(self) -> Dict[str, Any]:
        return {
            "data_count": self.data_count,
            "curr_part": self.part_index,
            "erasure_count": self.erasure_count,
            "sign": self.sign.value,
            "padding": self.head_padding_length,
            "work_dir": str(self.working_directory),
        }

    @classmethod
    def from_record(cls, record: Dict[str, Any]) -> "FragmentMetadata":
        if not isinstance(record, dict):
            raise ManifestError(f"Manifest record must be an object, got {type(record).__name__}")
        for key in _RECORD_FIELDS:
            if key not in record:
                raise ManifestError(f"Missing required field: {key}")
        for key in ("data_count", "curr_part", "erasure_count", "padding"):
            if not isinstance(record[key], int) or isinstance(record[key], bool):
                raise ManifestError(f"Field {key} must be an unsigned integer")
        try:
            sign = Sign(record["sign"])
        except ValueError as e:
            raise ManifestError(f"Unknown sign: {record['sign']!r}") from e
        if record["padding"] < 0:
            raise ManifestError("Field padding must be an unsigned integer")
        if not isinstance(record["work_dir"], str):
            raise ManifestError("Field work_dir must be a string")
        try:
            return cls(
                data_count=record["data_count"],
                erasure_count=record["erasure_count"],
                part_index=record["curr_part"],
                sign=sign,
                head_padding_length=record["padding"],
                working_directory=Path(record["work_dir"]),
            )
        except InvariantViolation as e:
            raise ManifestError(f"Invalid manifest record: {e}") from e


def manifest_path(workdir: Union[str, Path], manifest_name: Optional[str] = None) -> Path:
    return Path(workdir) / (manifest_name or get_settings().manifest_name)


def load_manifest(
    workdir: Union[str, Path],
    manifest_name: Optional[str] = None,
) -> List[FragmentMetadata]:
    """
    Load the manifest of a working directory.

    Records written for another location are rebased onto ``workdir``.

    Raises:
        ManifestError: If the manifest is missing, malformed or inconsistent
    """
    workdir = Path(workdir)
    p = manifest_path(workdir, manifest_name)
    if not p.exists():
        raise ManifestError(f"Manifest not found: {p}")
    try:
        with p.open("r", encoding="utf-8") as f:
            records = json.load(f)
    except UnicodeDecodeError as e:
        raise ManifestError(f"Manifest is not valid UTF-8: {e}") from e
    except json.JSONDecodeError as e:
        raise ManifestError(f"Invalid JSON: {e}") from e

    if not isinstance(records, list):
        raise ManifestError("Manifest must be a JSON array of fragment records")
    if not records:
        raise ManifestError("Manifest lists no fragments")

    metas = [FragmentMetadata.from_record(r) for r in records]

    first = metas[0]
    seen = set()
    for meta in metas:
        if (meta.data_count, meta.erasure_count) != (first.data_count, first.erasure_count):
            raise ManifestError(
                f"Inconsistent geometry: {meta.data_count}+{meta.erasure_count} "
                f"vs {first.data_count}+{first.erasure_count}"
            )
        if meta.part_index in seen:
            raise ManifestError(f"Duplicate part index in manifest: {meta.part_index}")
        seen.add(meta.part_index)
        if meta.working_directory != workdir:
            logger.debug(
                "rebasing part %d from %s onto %s",
                meta.part_index, meta.working_directory, workdir,
            )
            meta.working_directory = workdir

    logger.info("loaded manifest %s with %d fragment(s)", p, len(metas))
    return sorted(metas, key=lambda m: m.part_index)


def save_manifest(
    fragments: Iterable[Union["Fragment", "FragmentMetadata"]],
    manifest_name: Optional[str] = None,
) -> Path:
    """
    Rewrite the manifest from the full in-memory fragment set.

    Args:
        fragments: Fragments or FragmentMetadata objects, all from one workdir
        manifest_name: Manifest file name (defaults to the configured one)

    Returns:
        Path of the written manifest
    """
    metas: List[FragmentMetadata] = [getattr(f, "meta", f) for f in fragments]
    if not metas:
        raise InvariantViolation("Cannot save a manifest with no fragments")

    first = metas[0]
    for meta in metas:
        if meta.working_directory != first.working_directory:
            raise InvariantViolation(
                f"Fragments span several working directories: "
                f"{first.working_directory}, {meta.working_directory}"
            )
        if (meta.data_count, meta.erasure_count) != (first.data_count, first.erasure_count):
            raise InvariantViolation("Fragments disagree on data/erasure counts")

    indices = [m.part_index for m in metas]
    if len(set(indices)) != len(indices):
        raise InvariantViolation(f"Duplicate part index among fragments: {sorted(indices)}")

    metas = sorted(metas, key=lambda m: m.part_index)
    p = manifest_path(first.working_directory, manifest_name)
    p.unlink(missing_ok=True)
    with p.open("w", encoding="utf-8") as f:
        json.dump([m.to_record() for m in metas], f, indent=2)
    logger.info("saved manifest %s with %d fragment(s)", p, len(metas))
    return p
