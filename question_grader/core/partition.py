"""Splits the question set into contiguous ranges for parallel runners."""

from typing import Tuple


def partition_range(total: int, runner_count: int, runner_id: int, start: int = 1) -> Tuple[int, int]:
    """Returns the inclusive ordinal range owned by ``runner_id`` (1-based).

    The span ``[start, total]`` is divided into equal contiguous slices; the
    last runner absorbs the remainder.

    Raises:
        ValueError: If the runner id or counts are out of range.
    """
    if runner_count < 1:
        raise ValueError(f"runner_count must be at least 1, got {runner_count}")
    if not 1 <= runner_id <= runner_count:
        raise ValueError(f"runner_id {runner_id} outside 1..{runner_count}")
    span = total - start + 1
    if span < runner_count:
        raise ValueError(f"Cannot split {span} questions across {runner_count} runners")

    size = span // runner_count
    first = start + (runner_id - 1) * size
    last = total if runner_id == runner_count else first + size - 1
    return first, last
