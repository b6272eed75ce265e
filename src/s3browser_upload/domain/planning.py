"""Chunk planner: decomposition of a file into contiguous part byte ranges."""

from __future__ import annotations

import math
from dataclasses import dataclass


@dataclass(slots=True, frozen=True)
class PartRange:
    """Half-open byte range `[start, end)` of one part."""

    part_number: int
    start: int
    end: int

    @property
    def length(self) -> int:
        return self.end - self.start


def plan_total_parts(total_size: int, part_size: int) -> int:
    """Return how many parts a file of `total_size` bytes decomposes into.

    A zero-byte file still yields one (empty) part.
    """

    _validate_sizes(total_size, part_size)
    return max(1, math.ceil(total_size / part_size))


def range_of(part_number: int, total_size: int, part_size: int) -> PartRange:
    """Return the byte range covered by `part_number` (1-based)."""

    total_parts = plan_total_parts(total_size, part_size)
    if part_number < 1 or part_number > total_parts:
        raise ValueError(f"Part number {part_number} is outside 1..{total_parts}.")
    start = (part_number - 1) * part_size
    end = min(part_number * part_size, total_size)
    return PartRange(part_number=part_number, start=start, end=end)


def plan_ranges(total_size: int, part_size: int) -> list[PartRange]:
    """Return every part range in ascending part order."""

    total_parts = plan_total_parts(total_size, part_size)
    return [
        range_of(part_number, total_size, part_size)
        for part_number in range(1, total_parts + 1)
    ]


def _validate_sizes(total_size: int, part_size: int) -> None:
    if total_size < 0:
        raise ValueError("total_size must be >= 0.")
    if part_size <= 0:
        raise ValueError("part_size must be > 0.")


__all__ = ["PartRange", "plan_ranges", "plan_total_parts", "range_of"]
