"""
Encode and rebuild workflows for the Lagrange erasure kit.

Encode splits a source file into ``K`` data fragments, derives ``R`` erasure
fragments by interpolation and writes the manifest. Rebuild reloads whatever
fragments survived, interpolates the missing ones, rewrites the manifest and
merges the data fragments back into the original file.
"""

import logging
import re
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple, Union

from .config import get_settings
from .erasure import analyze_reconstruction, interpolate_missing, missing_indices
from .errors import FormatError, GeometryError, ManifestError
from .fragment import Fragment
from .manifest import (
    FragmentMetadata,
    fragment_file_name,
    load_manifest,
    parse_fragment_index,
    save_manifest,
)

logger = logging.getLogger(__name__)


@dataclass
class EncodeReport:
    """Summary of an encode run."""
    source: Path
    workdir: Path
    source_size: int
    data_count: int
    erasure_count: int
    manifest_path: Path
    fragment_sizes: Dict[int, int] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "source": str(self.source),
            "workdir": str(self.workdir),
            "source_size": self.source_size,
            "data_count": self.data_count,
            "erasure_count": self.erasure_count,
            "manifest_path": str(self.manifest_path),
            "fragment_sizes": dict(self.fragment_sizes),
        }


@dataclass
class ReconstructionReport:
    """Detailed report of a rebuild run."""
    success: bool
    data_count: int
    erasure_count: int
    known_indices: List[int]
    rebuilt_indices: List[int]
    output_path: Optional[Path] = None
    output_size: int = 0

    @property
    def fast_path(self) -> bool:
        """True if no data fragment had to be interpolated."""
        return not any(i < self.data_count for i in self.rebuilt_indices)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary for JSON serialization."""
        return {
            "success": self.success,
            "data_count": self.data_count,
            "erasure_count": self.erasure_count,
            "known_indices": list(self.known_indices),
            "rebuilt_indices": list(self.rebuilt_indices),
            "fast_path": self.fast_path,
            "output_path": str(self.output_path) if self.output_path else None,
            "output_size": self.output_size,
        }


def parse_pattern(pattern: str) -> Tuple[int, int]:
    """
    Parse a ``"<data>+<erasure>"`` pattern such as ``"3+2"``.

    Raises:
        FormatError: If the pattern is malformed or asks for no data fragment
    """
    match = re.fullmatch(r"([0-9]+)\+([0-9]+)", pattern)
    if match is None:
        raise FormatError(f"Malformed pattern: {pattern!r} (expected '<data>+<erasure>')")
    data_count, erasure_count = int(match.group(1)), int(match.group(2))
    if data_count < 1:
        raise FormatError(f"Pattern {pattern!r} must ask for at least 1 data fragment")
    return data_count, erasure_count


def _copy_range(source: Path, dest: Path, start: int, length: int, block_size: int) -> Path:
    dest.unlink(missing_ok=True)
    with source.open("rb") as src, dest.open("wb") as dst:
        src.seek(start)
        remaining = length
        while remaining:
            block = src.read(min(block_size, remaining))
            if not block:
                raise OSError(f"{source} ended {remaining} byte(s) before the end of range at {start}")
            dst.write(block)
            remaining -= len(block)
    logger.debug("copied %d byte(s) at offset %d to %s", length, start, dest)
    return dest


def split_file(
    source: Union[str, Path],
    data_count: int,
    workdir: Union[str, Path],
    workers: Optional[int] = None,
) -> List[Path]:
    """
    Split a file into ``data_count`` data fragment files.

    Every range is ``size // data_count`` bytes long except the last, which
    absorbs the remainder. Ranges are copied in parallel, each through its own
    handle on the source.

    Returns:
        Data fragment paths, in index order
    """
    settings = get_settings()
    source = Path(source)
    workdir = Path(workdir)
    workers = workers or settings.workers

    size = source.stat().st_size
    chunk_size = size // data_count
    tasks = []
    for i in range(data_count):
        start = i * chunk_size
        length = size - start if i == data_count - 1 else chunk_size
        tasks.append((workdir / fragment_file_name(i, data_count), start, length))

    logger.info("splitting %s (%d bytes) into %d part(s)", source, size, data_count)
    with ThreadPoolExecutor(max_workers=min(workers, data_count)) as pool:
        futures = [
            pool.submit(_copy_range, source, dest, start, length, settings.copy_block_size)
            for dest, start, length in tasks
        ]
        return [f.result() for f in futures]


def merge_fragments(
    workdir: Union[str, Path],
    data_count: int,
    output: Union[str, Path],
) -> int:
    """
    Concatenate data fragments ``0..data_count-1`` into ``output``.

    Returns:
        Number of bytes written
    """
    workdir = Path(workdir)
    output = Path(output)
    block_size = get_settings().copy_block_size

    output.unlink(missing_ok=True)
    written = 0
    with output.open("wb") as dst:
        for i in range(data_count):
            with (workdir / fragment_file_name(i, data_count)).open("rb") as src:
                while True:
                    block = src.read(block_size)
                    if not block:
                        break
                    dst.write(block)
                    written += len(block)
    logger.info("merged %d part(s) into %s (%d bytes)", data_count, output, written)
    return written


def _remove_stale_fragments(workdir: Path, data_count: int, erasure_count: int) -> None:
    """Delete fragment files left by an earlier encode with another geometry."""
    expected = {fragment_file_name(i, data_count) for i in range(data_count + erasure_count)}
    for p in sorted(workdir.glob("*.block")):
        if p.name in expected:
            continue
        try:
            parse_fragment_index(p.name)
        except FormatError:
            logger.debug("leaving %s, not a fragment file name", p.name)
            continue
        logger.info("removing stale fragment %s", p)
        p.unlink()


def _derive(
    known: Sequence[Fragment],
    targets: List[int],
    metas: Dict[int, FragmentMetadata],
    workers: int,
) -> List[Fragment]:
    """Interpolate ``targets`` from ``known`` and pair each value with its metadata."""
    if not targets:
        return []
    template = known[0].meta
    values = interpolate_missing(
        [(f.index, f.value) for f in known],
        template.data_count,
        template.erasure_count,
        targets=targets,
        workers=workers,
    )
    return [Fragment(values[i], metas[i]) for i in targets]


def encode_file(
    source: Union[str, Path],
    data_count: int,
    erasure_count: int,
    workdir: Union[str, Path],
    workers: Optional[int] = None,
) -> EncodeReport:
    """
    Split ``source`` into data fragments and derive erasure fragments.

    Args:
        source: File to protect
        data_count: Number of data fragments (K)
        erasure_count: Number of erasure fragments (R)
        workdir: Directory receiving the fragment files and the manifest
        workers: Thread count (defaults to the configured one)

    Returns:
        EncodeReport
    """
    source = Path(source)
    workdir = Path(workdir)
    workers = workers or get_settings().workers
    # Validates the geometry before anything touches the disk
    FragmentMetadata.new_for_encode(workdir, data_count, 0, erasure_count)

    workdir.mkdir(parents=True, exist_ok=True)
    _remove_stale_fragments(workdir, data_count, erasure_count)
    split_file(source, data_count, workdir, workers=workers)

    data = [
        Fragment.load(FragmentMetadata.new_for_encode(workdir, data_count, i, erasure_count))
        for i in range(data_count)
    ]

    # Nodes 0..K-1 give integer Lagrange coefficients, so these values are exact
    targets = list(range(data_count, data_count + erasure_count))
    metas = {i: data[0].meta.for_part(i) for i in targets}
    erasures = _derive(data, targets, metas, workers)
    for fragment in erasures:
        fragment.dump()

    fragments = data + erasures
    path = save_manifest(fragments)
    logger.info(
        "encoded %s as %d+%d fragment(s) in %s", source, data_count, erasure_count, workdir
    )
    return EncodeReport(
        source=source,
        workdir=workdir,
        source_size=source.stat().st_size,
        data_count=data_count,
        erasure_count=erasure_count,
        manifest_path=path,
        fragment_sizes={f.index: f.meta.path.stat().st_size for f in fragments},
    )


def rebuild_file(
    workdir: Union[str, Path],
    output: Union[str, Path],
    force: bool = False,
    workers: Optional[int] = None,
) -> ReconstructionReport:
    """
    Rebuild missing fragments and reassemble the original file.

    Missing data fragments are interpolated from every surviving fragment and
    materialized with the padding recorded for them in the manifest. Missing
    erasure fragments are then recomputed from the complete data set.

    Args:
        workdir: Working directory holding the manifest and fragments
        output: File to write the reassembled data to
        force: Overwrite ``output`` if it exists
        workers: Thread count (defaults to the configured one)

    Returns:
        ReconstructionReport

    Raises:
        FileExistsError: If ``output`` exists and ``force`` is False
        ManifestError: If the manifest is missing or unusable
        GeometryError: If fewer than ``data_count`` fragments survive
    """
    workdir = Path(workdir)
    output = Path(output)
    workers = workers or get_settings().workers

    if output.exists() and not force:
        raise FileExistsError(f"Output file exists: {output} (use force to overwrite)")

    metas = load_manifest(workdir)
    data_count = metas[0].data_count
    erasure_count = metas[0].erasure_count
    by_index = {m.part_index: m for m in metas}

    loaded = [Fragment.load(m) for m in metas if Fragment.exists(m)]
    if len(loaded) < data_count:
        raise GeometryError(
            f"Need {data_count} fragments, only {len(loaded)} available in {workdir}"
        )

    known: Dict[int, Fragment] = {f.index: f for f in loaded}
    known_indices = sorted(known)
    missing = missing_indices(known, data_count, erasure_count)
    missing_data = [i for i in missing if i < data_count]
    missing_erasure = [i for i in missing if i >= data_count]

    template = loaded[0].meta
    for i in missing_data:
        if i not in by_index:
            raise ManifestError(f"No manifest entry records the geometry of data part {i}")
    for i in missing_erasure:
        by_index.setdefault(i, template.for_part(i))

    for fragment in _derive(loaded, missing_data, by_index, workers):
        fragment.dump()
        known[fragment.index] = fragment

    data = [known[i] for i in range(data_count)]
    for fragment in _derive(data, missing_erasure, by_index, workers):
        fragment.dump()
        known[fragment.index] = fragment

    save_manifest(known.values())
    size = merge_fragments(workdir, data_count, output)

    logger.info("rebuilt part(s) %s in %s", missing, workdir)
    return ReconstructionReport(
        success=True,
        data_count=data_count,
        erasure_count=erasure_count,
        known_indices=known_indices,
        rebuilt_indices=missing,
        output_path=output,
        output_size=size,
    )


def analyze_recoverability(workdir: Union[str, Path]) -> Dict[str, Any]:
    """
    Analyze whether a working directory can be rebuilt, without rebuilding.

    Returns:
        Analysis dict with feasibility assessment and any stray block files
    """
    workdir = Path(workdir)
    metas = load_manifest(workdir)
    data_count = metas[0].data_count
    erasure_count = metas[0].erasure_count

    present = [m.part_index for m in metas if Fragment.exists(m)]
    expected_names = {m.file_name for m in metas}

    # Block files the manifest does not account for
    stray = []
    unlisted = set()
    for p in sorted(workdir.glob("*.block")):
        if p.name in expected_names:
            continue
        stray.append(p.name)
        try:
            index = parse_fragment_index(p.name)
        except FormatError:
            logger.debug("%s is not a fragment file name", p.name)
            continue
        unlisted.add(index)

    analysis = analyze_reconstruction(present, data_count, data_count + erasure_count)
    result = {
        "data_count": data_count,
        "erasure_count": erasure_count,
        "fragments_declared": len(metas),
        "present_indices": present,
        "stray_files": stray,
        "unlisted_indices": sorted(unlisted),
    }
    result.update(analysis)
    return result
