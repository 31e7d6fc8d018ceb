"""Alignment arithmetic and integer base-2 logarithms."""

from __future__ import annotations

MAX_ALIGNMENT = 16
"""The largest fundamental alignment, as for the platform's max_align_t."""


def is_valid_alignment(alignment: int) -> bool:
    """Return whether ``alignment`` is a non-zero power of two."""
    return alignment > 0 and (alignment & (alignment - 1)) == 0


def _require_valid(alignment: int) -> None:
    if not is_valid_alignment(alignment):
        raise ValueError(f"invalid alignment {alignment}: must be a non-zero power of two")


def align_offset(address: int, alignment: int) -> int:
    """Return how many bytes must be added to ``address`` to align it."""
    _require_valid(alignment)
    misaligned = address & (alignment - 1)
    return alignment - misaligned if misaligned else 0


def is_aligned(address: int, alignment: int) -> bool:
    """Return whether ``address`` is a multiple of ``alignment``."""
    _require_valid(alignment)
    return address & (alignment - 1) == 0


def alignment_for(size: int) -> int:
    """Return the minimum alignment a node of ``size`` bytes needs."""
    if size >= MAX_ALIGNMENT:
        return MAX_ALIGNMENT
    return 1 << ilog2(size)


def is_power_of_two(x: int) -> bool:
    """Return whether ``x`` has at most one bit set (meaningless for zero)."""
    return (x & (x - 1)) == 0


def _ilog2_base(x: int) -> int:
    if x <= 0:
        raise ValueError(f"logarithm undefined for {x}")
    return x.bit_length()


def ilog2(x: int) -> int:
    """Return the floor of the base-2 logarithm of ``x``."""
    return _ilog2_base(x) - 1


def ilog2_ceil(x: int) -> int:
    """Return the ceiling of the base-2 logarithm of ``x``."""
    return _ilog2_base(x) - int(is_power_of_two(x))