"""
Tests for the Excel report sink.
"""

import os
from datetime import datetime

from openpyxl import load_workbook

from question_grader.core.ledger import RunLedger
from question_grader.core.models import (
    ClassifierResult,
    ClassifierVerdict,
    Outcome,
    QuestionResult,
    SourceUnit,
    single_unit,
)
from question_grader.services.report_sink import HEADERS, SHEET_TITLE, ExcelReportSink, parse_ordinal


def make_result(index, outcome=Outcome.PASSED):
    return QuestionResult(
        index, f"Question {index} text", single_unit(f"print({index})"), outcome,
        created_at=datetime(2026, 1, 2, 3, 4, 5),
    )


def test_write_creates_directory_and_rows(tmp_path):
    sink = ExcelReportSink(str(tmp_path / "reports"))
    result = make_result(1).with_classification(
        ClassifierResult(ClassifierVerdict.NO_MATCH, "Prints instead of returning", ("Print a value", "Loop"))
    )

    path = sink.write([result, make_result(2, Outcome.FAILED)], "report.xlsx")

    assert os.path.exists(path)
    workbook = load_workbook(path)
    assert workbook.active.title == SHEET_TITLE
    workbook.close()
    rows = sink.read(path)
    assert [row["Question Number"] for row in rows] == ["Q1", "Q2"]
    first = rows[0]
    assert first["Status"] == "PASSED"
    assert first["Timestamp"] == "2026-01-02T03:04:05"
    assert first["Gemini Verdict"] == "NoMatch"
    assert first["Suggested Requirements"] == "Print a value; Loop"
    assert first["Error Message"] == ""
    assert rows[1]["Gemini Verdict"] == ""
    assert list(first) == list(HEADERS)


def test_multi_file_code_is_prefixed(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    result = QuestionResult(
        3, "text", (SourceUnit("a.py", "x = 1"), SourceUnit("b.py", "y = 2")), Outcome.PASSED
    )
    rows = sink.read(sink.write([result], "multi.xlsx"))
    assert rows[0]["Code"].startswith("[2 files] === a.py ===")


def test_overwrite_by_default_and_unique_on_request(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    first = sink.write([make_result(1)], "report.xlsx")
    again = sink.write([make_result(1), make_result(2)], "report.xlsx")
    assert first == again
    assert len(sink.read(again)) == 2

    unique = sink.write([make_result(1)], "report.xlsx", unique=True)
    assert unique != first
    assert unique.endswith("report_1.xlsx")


def test_empty_ledger_writes_header_only(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    assert sink.read(sink.write([], "empty.xlsx")) == []


def test_illegal_characters_are_stripped(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    result = QuestionResult(1, "bad\x00text\x07", single_unit("code"), Outcome.PASSED)
    rows = sink.read(sink.write([result], "clean.xlsx"))
    assert rows[0]["Question Text"] == "badtext"


def test_merge_sorts_by_question_number(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    second = sink.write([make_result(10), make_result(11)], "report_runner2.xlsx")
    first = sink.write([make_result(2), make_result(9)], "report_runner1.xlsx")
    missing = str(tmp_path / "report_runner3.xlsx")

    merged = sink.merge([second, first, missing], "report_merged.xlsx")

    assert [row["Question Number"] for row in sink.read(merged)] == ["Q2", "Q9", "Q10", "Q11"]


def test_parse_ordinal():
    assert parse_ordinal("Q12") == 12
    assert parse_ordinal("") > parse_ordinal("Q999")


def test_flushing_unchanged_ledger_twice_gives_identical_reports(tmp_path):
    sink = ExcelReportSink(str(tmp_path))
    ledger = RunLedger()
    for result in (make_result(1), make_result(2, Outcome.FAILED), make_result(4, Outcome.SKIPPED)):
        ledger.append(result)

    first = ledger.flush(sink, "report.xlsx")
    second = ledger.flush(sink, "report_copy.xlsx")
    unique_a = sink.write(ledger.results, "unique.xlsx", unique=True)
    unique_b = sink.write(ledger.results, "unique.xlsx", unique=True)

    assert len({first, second, unique_a, unique_b}) == 4
    expected = sink.read(first)
    assert [row["Question Number"] for row in expected] == ["Q1", "Q2", "Q4"]
    for path in (second, unique_a, unique_b):
        assert sink.read(path) == expected
