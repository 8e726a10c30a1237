"""
Hierarchical binning scheme used by BAI indices.

Coordinates are zero-based, half-open. The hierarchy has DEPTH + 1 levels; level 0 is a single bin spanning
[0, 2^29), every following level splits each bin of the previous one into 8. The constants are part of the index
file format and are shared by every Index instance.

    level  bin width  first bin
    0      2^29       0
    1      2^26       1
    2      2^23       9
    3      2^20       73
    4      2^17       585
    5      2^14       4681
"""

import numba

from .bgzf.util import RangeError
from .util import CACHE_JIT

MIN_SHIFT = 14
DEPTH = 5

MAX_POSITION = 1 << (MIN_SHIFT + DEPTH * 3)
"""int: Exclusive upper bound of indexable coordinates."""

LINEAR_WINDOW = 1 << MIN_SHIFT
"""int: Width of a linear index window."""

BIN_COUNT = ((1 << (DEPTH + 1) * 3) - 1) // 7
"""int: Number of real bins in the hierarchy."""

MAX_BIN = BIN_COUNT - 1
"""int: Highest real bin number."""

METADATA_BIN = BIN_COUNT + 1
"""int: Pseudo-bin holding per reference metadata (37450)."""


@numba.jit(nopython=True, nogil=True, cache=CACHE_JIT)
def reg2bin(beg, end, min_shift=MIN_SHIFT, depth=DEPTH):
    """
    Calculate bin given an alignment covering [beg,end) (zero-based, half-closed-half-open)
    Adapted directly from SAM spec.
    :param beg: Interval start.
    :param end: Interval end, must be greater than beg.
    :param min_shift: log2 of the smallest bin width.
    :param depth: Number of levels below the root bin.
    :return: Smallest bin fully containing the interval.
    """
    level = depth
    shift = min_shift
    offset = ((1 << depth * 3) - 1) // 7
    end -= 1
    while level > 0:
        if beg >> shift == end >> shift:
            return offset + (beg >> shift)
        level -= 1
        shift += 3
        offset -= 1 << level * 3
    return 0


@numba.jit(nopython=True, nogil=True, cache=CACHE_JIT)
def reg2bins(beg, end, min_shift=MIN_SHIFT, depth=DEPTH):
    """
    Calculate the list of bins that may overlap with region [beg,end) (zero-based)
    Adapted directly from SAM spec.
    :param beg: Interval start.
    :param end: Interval end, must be greater than beg.
    :param min_shift: log2 of the smallest bin width.
    :param depth: Number of levels below the root bin.
    :return: List of bin numbers ordered by level then position.
    """
    bins = [0]
    end -= 1
    shift = min_shift + depth * 3
    offset = 0
    for level in range(1, depth + 1):
        offset += 1 << (level - 1) * 3
        shift -= 3
        for k in range(offset + (beg >> shift), offset + (end >> shift) + 1):
            bins.append(k)
    return bins


def _interval(start, end) -> (int, int):
    if start < 0 or end < start:
        raise RangeError("Invalid interval [{}, {}).".format(start, end))
    if end == start:
        end = start + 1
    if end > MAX_POSITION:
        raise RangeError("Interval [{}, {}) exceeds the maximum indexable position {}.".format(start, end, MAX_POSITION))
    return start, end


def bin_for_interval(start: int, end: int) -> int:
    """
    Smallest bin that fully contains [start, end). Zero length intervals are treated as one base long.
    """
    start, end = _interval(start, end)
    return int(reg2bin(start, end))


def candidate_bins(start: int, end: int) -> set:
    """
    Every bin that could hold a record overlapping [start, end). Depends only on the interval.
    The query end is clamped to MAX_POSITION.
    """
    start, end = _interval(min(start, MAX_POSITION - 1), min(end, MAX_POSITION))
    return {int(b) for b in reg2bins(start, end)}


def linear_window(position: int) -> int:
    """Linear index window containing position."""
    return position >> MIN_SHIFT
