"""Excel report sink: writes, reads back and merges run ledgers."""

import os
import re
from typing import Dict, Iterable, List, Optional, Protocol, Sequence, Tuple

from openpyxl import Workbook, load_workbook
from openpyxl.cell.cell import ILLEGAL_CHARACTERS_RE
from openpyxl.utils import get_column_letter

from question_grader import config
from question_grader.core.models import QuestionResult
from question_grader.utils.logger import get_logger

logger = get_logger()

SHEET_TITLE = "Coding Questions Report"
# Excel refuses cells longer than this
MAX_CELL_CHARS = 32767
REQUIREMENTS_SEPARATOR = "; "

# (header, column width)
COLUMNS: Tuple[Tuple[str, int], ...] = (
    ("Question Number", 15),
    ("Question Text", 50),
    ("Code", 80),
    ("Status", 12),
    ("Error Message", 30),
    ("Timestamp", 20),
    ("Gemini Verdict", 15),
    ("Gemini Remarks", 50),
    ("Suggested Requirements", 50),
)
HEADERS: Tuple[str, ...] = tuple(name for name, _ in COLUMNS)

ReportRow = Dict[str, str]


class ReportSink(Protocol):
    def write(self, results: Sequence[QuestionResult], filename: str) -> str:
        ...


def parse_ordinal(label: Optional[str]) -> int:
    """Extracts the question number from a label such as ``Q12``; unparseable labels sort last."""
    match = re.search(r"\d+", label or "")
    return int(match.group()) if match else 10**9


def _cell(value: Optional[str]) -> str:
    if not value:
        return ""
    value = ILLEGAL_CHARACTERS_RE.sub("", value)
    return value if len(value) <= MAX_CELL_CHARS else value[: MAX_CELL_CHARS - 3] + "..."


def result_to_row(result: QuestionResult) -> List[str]:
    code = result.code
    if result.is_multi_file:
        code = f"[{len(result.source_units)} files] {code}"
    requirements = REQUIREMENTS_SEPARATOR.join(result.classifier_suggested_requirements or ())
    return [
        result.label,
        _cell(result.question_text),
        _cell(code),
        result.outcome.value,
        _cell(result.error_detail),
        result.created_at.isoformat(timespec="seconds"),
        result.classifier_verdict.value if result.classifier_verdict else "",
        _cell(result.classifier_remarks),
        _cell(requirements),
    ]


class ExcelReportSink:
    """Writes one ``.xlsx`` file per flush under ``report_dir``."""

    def __init__(self, report_dir: str = config.REPORT_DIR):
        self.report_dir = report_dir

    def _resolve(self, filename: str, unique: bool) -> str:
        os.makedirs(self.report_dir, exist_ok=True)
        path = os.path.join(self.report_dir, filename)
        if not unique or not os.path.exists(path):
            return path
        stem, ext = os.path.splitext(path)
        counter = 1
        while os.path.exists(f"{stem}_{counter}{ext}"):
            counter += 1
        return f"{stem}_{counter}{ext}"

    def _save_rows(self, rows: Iterable[Sequence[str]], path: str) -> None:
        workbook = Workbook()
        sheet = workbook.active
        sheet.title = SHEET_TITLE
        sheet.append(list(HEADERS))
        for row in rows:
            sheet.append(list(row))
        for idx, (_, width) in enumerate(COLUMNS, start=1):
            sheet.column_dimensions[get_column_letter(idx)].width = width
        workbook.save(path)

    def write(self, results: Sequence[QuestionResult], filename: str, unique: bool = False) -> str:
        """Writes ``results`` to ``filename`` and returns the file path.

        Args:
            results: Ledger snapshot, written in the given order.
            filename: File name inside ``report_dir``.
            unique: When True, never overwrite; a numeric suffix is added instead.
        """
        path = self._resolve(filename, unique)
        self._save_rows((result_to_row(r) for r in results), path)
        logger.info(f"Excel report generated: {path} ({len(results)} rows)")
        return path

    def read(self, path: str) -> List[ReportRow]:
        """Reads a report back as dictionaries keyed by column header."""
        workbook = load_workbook(path, read_only=True)
        try:
            sheet = workbook.active
            rows = sheet.iter_rows(values_only=True)
            header = next(rows, None)
            if header is None:
                return []
            names = [str(h) if h is not None else "" for h in header]
            return [
                {name: ("" if value is None else str(value)) for name, value in zip(names, row)}
                for row in rows
                if any(value is not None for value in row)
            ]
        finally:
            workbook.close()

    def merge(self, paths: Sequence[str], filename: str) -> str:
        """Concatenates several reports into one, sorted by question number."""
        rows: List[ReportRow] = []
        for path in paths:
            if not os.path.exists(path):
                logger.warning(f"Report {path} not found, skipping it in the merge.")
                continue
            rows.extend(self.read(path))
        rows.sort(key=lambda row: parse_ordinal(row.get("Question Number")))
        out_path = self._resolve(filename, unique=False)
        self._save_rows(([row.get(h, "") for h in HEADERS] for row in rows), out_path)
        logger.info(f"Merged {len(paths)} reports ({len(rows)} rows) into {out_path}")
        return out_path
