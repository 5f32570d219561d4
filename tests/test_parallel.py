"""
Tests for fanning out runner processes and merging their reports.
"""

from datetime import datetime

from question_grader.core.models import Outcome, QuestionResult, single_unit
from question_grader.parallel import MERGED_REPORT_FILENAME, launch_runners, runner_report_filename
from question_grader.services.report_sink import ExcelReportSink


class FakeProcess:
    def __init__(self, code):
        self.code = code

    def wait(self):
        return self.code


class FakePopen:
    def __init__(self, codes):
        self.codes = codes
        self.launches = []

    def __call__(self, command, env):
        self.launches.append((command, env))
        return FakeProcess(self.codes[len(self.launches) - 1])


def result(index):
    return QuestionResult(index, "text", single_unit("code"), Outcome.PASSED, created_at=datetime(2026, 1, 1))


def test_launches_each_runner_with_its_id(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    popen = FakePopen([0, 0, 0])
    sleeps = []

    code = launch_runners(3, sink=sink, popen=popen, sleep=sleeps.append, command=["grader"])

    assert code == 0
    assert [env["RUNNER_ID"] for _, env in popen.launches] == ["1", "2", "3"]
    assert all(env["RUNNERS"] == "3" for _, env in popen.launches)
    assert all(command == ["grader"] for command, _ in popen.launches)
    assert sleeps == [1.0, 1.0]


def test_merges_runner_reports(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    sink.write([result(4), result(5)], runner_report_filename(2))
    sink.write([result(1), result(2), result(3)], runner_report_filename(1))

    launch_runners(2, sink=sink, popen=FakePopen([0, 0]), sleep=lambda s: None, command=["grader"])

    merged = sink.read(str(tmp_path / MERGED_REPORT_FILENAME))
    assert [row["Question Number"] for row in merged] == ["Q1", "Q2", "Q3", "Q4", "Q5"]


def test_any_failed_runner_fails_the_run(tmp_path):
    sink = ExcelReportSink(str(tmp_path))

    code = launch_runners(2, sink=sink, popen=FakePopen([0, 130]), sleep=lambda s: None, command=["grader"])

    assert code == 1
    assert not (tmp_path / MERGED_REPORT_FILENAME).exists()


def test_runner_that_cannot_start_counts_as_failure(tmp_path):
    def broken_popen(command, env):
        raise FileNotFoundError("no interpreter")

    code = launch_runners(1, sink=ExcelReportSink(str(tmp_path)), popen=broken_popen,
                          sleep=lambda s: None, command=["grader"])

    assert code == 1
