"""
Tests for the retry decorator.
"""

import pytest

from question_grader.utils.retry import backoff_delays, retry_on_exception


def make_flaky(failures, error=ConnectionError):
    """Returns a function that fails ``failures`` times; calls are counted on ``.calls``."""
    def flaky():
        flaky.calls += 1
        if flaky.calls <= failures:
            raise error(f"failure {flaky.calls}")
        return "ok"
    flaky.calls = 0
    return flaky


def test_retries_with_exponential_backoff():
    sleeps = []
    func = make_flaky(2)
    wrapped = retry_on_exception((ConnectionError,), max_attempts=3, initial_delay=1.0, jitter=0.0, sleep=sleeps.append)(func)

    assert wrapped() == "ok"
    assert func.calls == 3
    assert sleeps == [1.0, 2.0]


def test_reraises_after_max_attempts():
    sleeps = []
    func = make_flaky(5)
    wrapped = retry_on_exception((ConnectionError,), max_attempts=3, jitter=0.0, sleep=sleeps.append)(func)

    with pytest.raises(ConnectionError, match="failure 3"):
        wrapped()
    assert func.calls == 3
    assert len(sleeps) == 2


def test_unlisted_exceptions_propagate_immediately():
    func = make_flaky(1, error=KeyError)
    wrapped = retry_on_exception((ConnectionError,), sleep=lambda s: None)(func)

    with pytest.raises(KeyError):
        wrapped()
    assert func.calls == 1


def test_should_retry_predicate_rejects():
    sleeps = []
    func = make_flaky(1, error=ValueError)
    wrapped = retry_on_exception(should_retry=lambda e: False, sleep=sleeps.append)(func)

    with pytest.raises(ValueError):
        wrapped()
    assert func.calls == 1
    assert sleeps == []


def test_jitter_stays_within_bounds():
    sleeps = []
    wrapped = retry_on_exception(max_attempts=2, initial_delay=10.0, jitter=0.1, sleep=sleeps.append)(make_flaky(1))

    wrapped()
    assert 9.0 <= sleeps[0] <= 11.0


def test_backoff_delays_without_jitter():
    delays = backoff_delays(2.0, 2.0, 0.0)
    assert [next(delays) for _ in range(4)] == [2.0, 4.0, 8.0, 16.0]
