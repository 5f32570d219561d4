"""Data model for a grading run: per-question results and classifier verdicts."""

from dataclasses import dataclass, field, replace
from datetime import datetime
from enum import Enum
from typing import NamedTuple, Optional, Tuple

# Placeholder texts recorded when genuine extraction fails
CODE_NOT_CAPTURED = "Code not captured"
RETRY_EXHAUSTED = "Retry exhausted"
NO_CODE_FILES = "No code files found"
SENTINEL_CODE_TEXTS = frozenset({CODE_NOT_CAPTURED, RETRY_EXHAUSTED, NO_CODE_FILES})


def question_placeholder(index: int) -> str:
    return f"Question {index}"


class Outcome(str, Enum):
    """Ground-truth verdict from the platform's own run action."""
    PASSED = "PASSED"
    FAILED = "FAILED"
    SKIPPED = "SKIPPED"


class ClassifierVerdict(str, Enum):
    """Secondary judgment on whether the code matches the question."""
    MATCH = "Match"
    NO_MATCH = "NoMatch"
    PARTIAL = "Partial"
    NEEDS_REVIEW = "NeedsReview"
    ERROR = "Error"
    SKIPPED = "Skipped"


class SourceUnit(NamedTuple):
    label: str
    text: str

    @property
    def is_sentinel(self) -> bool:
        return not self.text.strip() or self.text in SENTINEL_CODE_TEXTS


@dataclass(frozen=True)
class ClassifierResult:
    verdict: ClassifierVerdict
    remarks: str
    suggested_requirements: Optional[Tuple[str, ...]] = None

    def __post_init__(self) -> None:
        # Requirements only describe a mismatch; a full match never carries them
        if self.verdict is ClassifierVerdict.MATCH and self.suggested_requirements is not None:
            object.__setattr__(self, "suggested_requirements", None)


@dataclass(frozen=True)
class QuestionResult:
    """One row of the run ledger.

    ``source_units`` is never empty: a missing submission is represented by a
    sentinel text rather than an empty sequence.
    """
    question_index: int
    question_text: str
    source_units: Tuple[SourceUnit, ...]
    outcome: Outcome
    error_detail: Optional[str] = None
    classifier_verdict: Optional[ClassifierVerdict] = None
    classifier_remarks: Optional[str] = None
    classifier_suggested_requirements: Optional[Tuple[str, ...]] = None
    created_at: datetime = field(default_factory=datetime.now)

    def __post_init__(self) -> None:
        if self.question_index < 1:
            raise ValueError(f"question_index must be positive, got {self.question_index}")
        if not self.source_units:
            raise ValueError(f"Q{self.question_index} has no source units")

    @property
    def label(self) -> str:
        return f"Q{self.question_index}"

    @property
    def is_multi_file(self) -> bool:
        return len(self.source_units) > 1

    @property
    def has_code(self) -> bool:
        return any(not unit.is_sentinel for unit in self.source_units)

    @property
    def code(self) -> str:
        """Combined code text; multi-file submissions get one section marker per file."""
        if not self.is_multi_file:
            return self.source_units[0].text
        return "\n\n".join(f"=== {unit.label} ===\n{unit.text}" for unit in self.source_units)

    def with_classification(self, result: ClassifierResult) -> "QuestionResult":
        return replace(
            self,
            classifier_verdict=result.verdict,
            classifier_remarks=result.remarks,
            classifier_suggested_requirements=result.suggested_requirements,
        )


def single_unit(text: str, label: str = "code") -> Tuple[SourceUnit, ...]:
    return (SourceUnit(label, text),)
