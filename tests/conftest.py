"""Shared fixtures: an in-memory question site, a recording sink and a fake classifier."""

import os
import tempfile

# Keep log files out of the working tree; must run before the package is imported
os.environ.setdefault("GRADER_LOG_DIR", tempfile.mkdtemp(prefix="grader-logs-"))

from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Tuple

import pytest

from question_grader.core.cancellation import CancellationToken
from question_grader.core.engine import TraversalSettings
from question_grader.core.models import ClassifierResult, ClassifierVerdict
from question_grader.utils.error_handler import ElementInteractionError


class FakeElement:
    def __init__(self, text: str = "", value: Optional[str] = None, visible: bool = True,
                 on_click: Optional[Callable[[], None]] = None, click_error: bool = False):
        self.text = text
        self.value = value
        self.visible = visible
        self.on_click = on_click
        self.click_error = click_error
        self.clicks = 0

    def __repr__(self) -> str:
        return f"FakeElement({self.text!r})"


@dataclass
class FakeQuestion:
    text: Optional[str] = "Write a function that adds two numbers"
    code: Optional[str] = "def add(a, b):\n    return a + b"
    result: str = "Congratulations! All test cases passed"
    files: Optional[List[Tuple[str, str]]] = None
    processing_polls: int = 0
    # Number of attempts on which the run control is missing
    run_missing: int = 0


class FakeSite:
    """A question set with ``Q1..Qn`` marker buttons, a run control and a next control."""

    def __init__(self, questions: List[FakeQuestion], extra_buttons: Tuple[str, ...] = (),
                 next_control: bool = True):
        self.questions = questions
        self.current: Optional[int] = None
        self.active_file = 0
        self.ran = False
        self.pending_polls = 0
        self.next_control = next_control
        self.run_hook: Optional[Callable[[int], None]] = None
        self.markers = [FakeElement(f"Q{i}", on_click=self._goto(i)) for i in range(1, len(questions) + 1)]
        self.extra_buttons = [FakeElement(label) for label in extra_buttons]

    def _goto(self, index: int) -> Callable[[], None]:
        def go() -> None:
            self.current = index
            self.active_file = 0
            self.ran = False
        return go

    @property
    def question(self) -> Optional[FakeQuestion]:
        return self.questions[self.current - 1] if self.current else None

    def click_run(self) -> None:
        q = self.question
        self.ran = True
        self.pending_polls = q.processing_polls
        if self.run_hook is not None:
            self.run_hook(self.current)

    def click_next(self) -> None:
        self._goto(self.current + 1)()


class FakeDriver:
    """PageDriver over a FakeSite."""

    def __init__(self, site: Optional[FakeSite] = None, exact_lookup: bool = True):
        self.site = site or FakeSite([])
        self.exact_lookup = exact_lookup
        self.url = "about:blank"
        self.navigations: List[str] = []
        self.waits: List[int] = []
        self.overrides: Dict[str, List[FakeElement]] = {}

    # --- lookup ---

    def find_by_exact_text(self, label: str) -> Optional[FakeElement]:
        if not self.exact_lookup:
            return None
        for element in self.site.markers + self.site.extra_buttons:
            if element.text == label:
                return element
        return None

    def find_all(self, kind: str) -> List[FakeElement]:
        if kind in self.overrides:
            return self.overrides[kind]
        site, q = self.site, self.site.question
        if kind == "question_marker":
            return site.markers + site.extra_buttons
        if q is None:
            return []
        if kind == "question_text.primary":
            return [FakeElement(q.text)] if q.text else []
        if kind == "code.primary":
            if q.files is not None:
                return [FakeElement(value=q.files[site.active_file][1])] if q.files else []
            return [FakeElement(value=q.code)] if q.code else []
        if kind == "file_tabs.container":
            return [FakeElement("files")] if q.files is not None else []
        if kind == "file_tabs.tab":
            return [
                FakeElement(label, on_click=lambda pos=pos: setattr(site, "active_file", pos))
                for pos, (label, _) in enumerate(q.files or [])
            ]
        if kind == "run.primary":
            if q.run_missing > 0:
                q.run_missing -= 1
                return []
            return [FakeElement("RUN", on_click=site.click_run)]
        if kind == "result.primary":
            if not site.ran:
                return []
            if site.pending_polls > 0:
                site.pending_polls -= 1
                return [FakeElement("Processing...")]
            return [FakeElement(q.result)]
        if kind == "next.primary":
            if site.next_control and site.current < len(site.questions):
                return [FakeElement("Next", on_click=site.click_next)]
            return []
        return []

    def is_visible(self, element: FakeElement, timeout_ms: int = 0) -> bool:
        return element.visible

    def click(self, element: FakeElement) -> None:
        if element.click_error:
            raise ElementInteractionError(f"Click failed on {element.text}")
        element.clicks += 1
        if element.on_click is not None:
            element.on_click()

    def read_text(self, element: FakeElement) -> Optional[str]:
        return element.text

    def read_value(self, element: FakeElement) -> Optional[str]:
        return element.value

    def navigate(self, url: str) -> None:
        self.navigations.append(url)
        self.url = url

    def current_url(self) -> str:
        return self.url

    def wait(self, ms: int) -> None:
        self.waits.append(ms)


class RecordingSink:
    def __init__(self) -> None:
        self.writes: List[Tuple[str, tuple]] = []

    def write(self, results, filename: str) -> str:
        self.writes.append((filename, tuple(results)))
        return f"reports/{filename}"


class FakeClassifier:
    def __init__(self, result: Optional[ClassifierResult] = None) -> None:
        self.result = result or ClassifierResult(ClassifierVerdict.MATCH, "Code matches the question")
        self.calls: List[Tuple[str, tuple]] = []

    def classify(self, question_text, source_units) -> ClassifierResult:
        self.calls.append((question_text, tuple(source_units)))
        return self.result


class RecordingToken(CancellationToken):
    def __init__(self) -> None:
        super().__init__()
        self.waited: List[float] = []

    def wait(self, seconds: float) -> None:
        self.waited.append(seconds)
        self.raise_if_cancelled()


def fast_settings(**overrides) -> TraversalSettings:
    values = dict(
        settle_ms=0,
        grade_poll_attempts=3,
        grade_poll_interval_ms=0,
        classifier_timeout_seconds=5.0,
        classifier_batch_size=100,
        classifier_cooldown_seconds=0.0,
        report_filename="report.xlsx",
    )
    values.update(overrides)
    return TraversalSettings(**values)


@pytest.fixture
def sink() -> RecordingSink:
    return RecordingSink()


@pytest.fixture
def classifier() -> FakeClassifier:
    return FakeClassifier()


@pytest.fixture
def token() -> RecordingToken:
    return RecordingToken()
