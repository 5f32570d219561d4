"""
Tests for splitting the question range across runners.
"""

import pytest

from question_grader.core.partition import partition_range


def test_even_split():
    assert [partition_range(90, 3, i) for i in (1, 2, 3)] == [(1, 30), (31, 60), (61, 90)]


def test_last_runner_takes_remainder():
    assert [partition_range(10, 3, i) for i in (1, 2, 3)] == [(1, 3), (4, 6), (7, 10)]


def test_slices_cover_range_without_overlap():
    covered = []
    for runner_id in range(1, 5):
        first, last = partition_range(50, 4, runner_id, start=5)
        covered.extend(range(first, last + 1))
    assert covered == list(range(5, 51))


def test_single_runner_gets_everything():
    assert partition_range(12, 1, 1) == (1, 12)


@pytest.mark.parametrize("total, runners, runner_id", [
    (10, 3, 0),
    (10, 3, 4),
    (2, 3, 1),
    (10, 0, 1),
])
def test_invalid_arguments(total, runners, runner_id):
    with pytest.raises(ValueError):
        partition_range(total, runners, runner_id)
