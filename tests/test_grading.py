"""
Tests for triggering the run action and reading the platform verdict.
"""

import pytest

from conftest import FakeDriver, FakeElement, FakeQuestion, FakeSite
from question_grader.core.grading import Grader
from question_grader.core.models import Outcome
from question_grader.utils.error_handler import GradingError


def grader_for(question, poll_attempts=5):
    site = FakeSite([question])
    site.markers[0].on_click()
    driver = FakeDriver(site)
    return Grader(driver, poll_attempts=poll_attempts, poll_interval_ms=10, settle_ms=0), driver


def test_processing_then_passed():
    grader, driver = grader_for(FakeQuestion(processing_polls=2))

    assert grader.grade(1) is Outcome.PASSED
    assert driver.waits.count(10) == 2


def test_failed_verdict():
    grader, _ = grader_for(FakeQuestion(result="Wrong Answer"))
    assert grader.grade(1) is Outcome.FAILED


def test_unrecognised_result_is_skipped():
    grader, _ = grader_for(FakeQuestion(result="Compilation finished"))
    assert grader.grade(1) is Outcome.SKIPPED


def test_processing_never_settles_is_skipped():
    grader, driver = grader_for(FakeQuestion(processing_polls=100), poll_attempts=3)

    assert grader.grade(1) is Outcome.SKIPPED
    assert driver.waits.count(10) == 3


def test_missing_run_control_raises():
    grader, _ = grader_for(FakeQuestion(run_missing=1))
    with pytest.raises(GradingError):
        grader.grade(1)


def test_run_click_failure_raises():
    grader, driver = grader_for(FakeQuestion())
    driver.overrides["run.primary"] = [FakeElement("RUN", click_error=True)]
    with pytest.raises(GradingError):
        grader.grade(1)


def test_page_content_fallback_when_no_indicator():
    grader, driver = grader_for(FakeQuestion(), poll_attempts=2)
    driver.overrides["result.primary"] = []
    driver.overrides["page.body"] = [FakeElement("Output matches. Congratulations!")]

    assert grader.grade(1) is Outcome.PASSED


def test_page_content_fallback_with_mixed_signals_is_skipped():
    grader, driver = grader_for(FakeQuestion(), poll_attempts=2)
    driver.overrides["result.primary"] = []
    driver.overrides["page.body"] = [FakeElement("Print 'correct' for valid input. Wrong answer")]

    assert grader.grade(1) is Outcome.SKIPPED


def test_no_indicator_and_no_body_is_skipped():
    grader, driver = grader_for(FakeQuestion(), poll_attempts=2)
    driver.overrides["result.primary"] = []

    assert grader.read_verdict(1) is Outcome.SKIPPED
