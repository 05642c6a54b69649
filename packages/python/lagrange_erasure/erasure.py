"""
Lagrange interpolation engine for the Lagrange erasure kit.

Fragment ``j`` is the point ``(j, y_j)`` of an integer polynomial of degree
``data_count - 1``:
- The first ``data_count`` points are the data fragments.
- Every later point is an erasure fragment.

Any ``data_count`` of the points determine the polynomial. The value at a
missing index ``x`` is recovered as::

    value(x) = sum_j  y_j * L_j(x),    L_j(x) = prod_{i != j} (x - i) / (j - i)

``L_j(x)`` is an exact reduced fraction. Each term ``y_j * numerator`` is divided
by the denominator with truncation toward zero, and the terms are summed as
Python ints. The true sum is an integer, but the per-term truncation can leave a
rebuilt value a few units off. For data fragments the codec's head sentinel
absorbs that drift (see :func:`lagrange_erasure.codec.settle`).

Over the consecutive nodes ``0..data_count-1`` every ``L_j(x)`` is an integer,
so values computed from the full data set are exact.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from fractions import Fraction
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .errors import GeometryError, InvariantViolation

logger = logging.getLogger(__name__)

Point = Tuple[int, int]


def lagrange_coefficient(known_xs: Sequence[int], j: int, x: int) -> Fraction:
    """Lagrange basis polynomial of node ``j`` over ``known_xs``, evaluated at ``x``."""
    if j not in known_xs:
        raise InvariantViolation(f"node {j} is not among the known indices {list(known_xs)}")
    coefficient = Fraction(1)
    for i in known_xs:
        if i != j:
            coefficient *= Fraction(x - i, j - i)
    return coefficient


def _truncating_div(numerator: int, denominator: int) -> int:
    # Fraction denominators are always positive
    quotient = abs(numerator) // denominator
    return -quotient if numerator < 0 else quotient


def _check_distinct(xs: Sequence[int]) -> None:
    if len(set(xs)) != len(xs):
        duplicates = sorted({i for i in xs if xs.count(i) > 1})
        raise InvariantViolation(f"duplicate fragment indices: {duplicates}")


def interpolate_at(points: Sequence[Point], x: int) -> int:
    """
    Evaluate the polynomial through ``points`` at ``x``.

    Args:
        points: ``(index, value)`` pairs with distinct indices
        x: Index to evaluate

    Returns:
        Sum of the truncated Lagrange terms
    """
    if not points:
        raise InvariantViolation("cannot interpolate from an empty fragment set")
    xs = [j for j, _ in points]
    _check_distinct(xs)

    total = 0
    for j, y in points:
        coefficient = lagrange_coefficient(xs, j, x)
        total += _truncating_div(y * coefficient.numerator, coefficient.denominator)
    return total


def missing_indices(known: Iterable[int], data_count: int, erasure_count: int) -> List[int]:
    """Indices of ``[0, data_count + erasure_count)`` not in ``known``, ascending."""
    present = set(known)
    return [i for i in range(data_count + erasure_count) if i not in present]


def interpolate_missing(
    points: Iterable[Point],
    data_count: int,
    erasure_count: int,
    targets: Optional[Iterable[int]] = None,
    workers: int = 1,
) -> Dict[int, int]:
    """
    Compute the values of missing fragments from known ones.

    Args:
        points: Known ``(index, value)`` pairs
        data_count: Number of data fragments (polynomial degree + 1)
        erasure_count: Number of erasure fragments
        targets: Indices to compute (default: every missing index)
        workers: Threads used to evaluate independent targets

    Returns:
        Mapping of target index to value

    Raises:
        InvariantViolation: On an empty set, duplicate or out-of-range indices
        GeometryError: If fewer than ``data_count`` indices are known
    """
    points = list(points)
    if not points:
        raise InvariantViolation("cannot interpolate from an empty fragment set")

    total_count = data_count + erasure_count
    xs = [j for j, _ in points]
    _check_distinct(xs)
    out_of_range = [j for j in xs if not 0 <= j < total_count]
    if out_of_range:
        raise InvariantViolation(f"fragment indices outside [0, {total_count}): {out_of_range}")
    if len(xs) < data_count:
        raise GeometryError(f"Need {data_count} fragments, only {len(xs)} known")

    if targets is None:
        targets = missing_indices(xs, data_count, erasure_count)

    known = set(xs)
    pending: List[int] = []
    for x in targets:
        if not 0 <= x < total_count:
            raise InvariantViolation(f"target index {x} outside [0, {total_count})")
        if x in known:
            logger.info("part %d exists, no need to rebuild", x)
            continue
        pending.append(x)

    if not pending:
        return {}

    logger.info(
        "interpolating part(s) %s from %d known fragment(s)", pending, len(points)
    )
    if workers > 1 and len(pending) > 1:
        with ThreadPoolExecutor(max_workers=min(workers, len(pending))) as pool:
            values = list(pool.map(lambda x: interpolate_at(points, x), pending))
    else:
        values = [interpolate_at(points, x) for x in pending]

    return dict(zip(pending, values))


def analyze_reconstruction(
    available_indices: List[int],
    k: int,
    n: int
) -> dict:
    """
    Analyze whether reconstruction is feasible without actually reconstructing.

    Args:
        available_indices: List of available fragment indices
        k: Data fragments required
        n: Total fragments

    Returns:
        Analysis dict with feasibility and details
    """
    available = set(available_indices)
    available_count = len(available)
    missing = missing_indices(available, k, n - k)

    # All data fragments present: rebuild is a plain merge
    have_all_data = set(range(k)).issubset(available)

    return {
        "feasible": available_count >= k,
        "available_fragments": available_count,
        "required_fragments": k,
        "total_fragments": n,
        "missing_fragments": missing,
        "missing_count": len(missing),
        "redundancy_margin": available_count - k,
        "fast_path": have_all_data,
        "message": (
            "Reconstruction possible" if available_count >= k
            else f"Need {k - available_count} more fragment(s)"
        )
    }
