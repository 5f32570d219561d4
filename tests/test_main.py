"""
Tests for exit-code mapping and the run summary display.
"""

from contextlib import contextmanager
from types import SimpleNamespace

from conftest import FakeClassifier, fast_settings
from question_grader import main as grader_main
from question_grader.core.engine import RunOutcome, RunState
from question_grader.core.ledger import RunLedger
from question_grader.core.models import Outcome, QuestionResult, single_unit
from question_grader.main import EXIT_FAILURE, EXIT_INTERRUPTED, EXIT_OK, exit_code_for
from question_grader.ui import cli


def outcome(state, interrupted=False, ledger=None):
    ledger = ledger or RunLedger()
    return RunOutcome(state=state, reason="test", summary=ledger.summary(), interrupted=interrupted)


def test_exit_codes():
    assert exit_code_for(outcome(RunState.DONE)) == EXIT_OK
    assert exit_code_for(outcome(RunState.ABORTED)) == EXIT_FAILURE
    assert exit_code_for(outcome(RunState.ABORTED, interrupted=True)) == EXIT_INTERRUPTED


def test_run_summary_lists_totals(capsys):
    ledger = RunLedger()
    ledger.append(QuestionResult(1, "text", single_unit("code"), Outcome.PASSED))
    ledger.append(QuestionResult(2, "text", single_unit("code"), Outcome.FAILED))

    cli.display_run_summary(outcome(RunState.DONE, ledger=ledger))

    printed = capsys.readouterr().out
    assert "Pass Rate" in printed
    assert "50.00%" in printed
    assert "DONE" in printed


def test_run_summary_without_results(capsys):
    cli.display_run_summary(outcome(RunState.ABORTED, interrupted=True))

    printed = capsys.readouterr().out
    assert "interrupted" in printed
    assert "No questions were processed" in printed


class StubCoordinator:
    def __init__(self, **kwargs):
        self.released = False

    def prepare(self):
        return "user.json"

    def ensure_logged_in(self, session):
        pass

    def open_question_set(self, driver):
        pass

    def release(self):
        self.released = True


class CrashingEngine:
    def __init__(self, driver, classifier, sink, settings, token):
        self.ledger = RunLedger()
        self.ledger.append(QuestionResult(1, "text", single_unit("code"), Outcome.PASSED))
        self.report_path = "reports/report.xlsx"

    def run(self):
        raise RuntimeError("browser crashed")


@contextmanager
def stub_browser(storage_state, headless):
    yield SimpleNamespace(driver=object())


def test_crashed_run_still_prints_one_summary(monkeypatch, capsys):
    monkeypatch.setattr(grader_main, "SessionCoordinator", StubCoordinator)
    monkeypatch.setattr(grader_main, "TraversalSettings", SimpleNamespace(from_config=fast_settings))
    monkeypatch.setattr(grader_main, "build_classifier", lambda api_key: FakeClassifier())
    monkeypatch.setattr(grader_main, "open_browser_session", stub_browser)
    monkeypatch.setattr(grader_main, "ExcelReportSink", lambda: None)
    monkeypatch.setattr(grader_main, "TraversalEngine", CrashingEngine)

    code = grader_main.main()

    printed = capsys.readouterr().out
    assert code == EXIT_FAILURE
    assert printed.count("Run Summary:") == 1
    assert "ABORTED" in printed
    assert "browser crashed" in printed
    assert "Report saved to: reports/report.xlsx" in printed
