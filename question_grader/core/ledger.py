"""Append-only ledger of per-question outcomes for one run."""

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Dict, Iterator, List, Optional, Tuple

from question_grader.core.models import ClassifierVerdict, Outcome, QuestionResult
from question_grader.utils.logger import get_logger

if TYPE_CHECKING:
    from question_grader.services.report_sink import ReportSink

logger = get_logger()


@dataclass(frozen=True)
class RunSummary:
    total: int
    passed: int
    failed: int
    skipped: int
    pass_rate: float
    verdict_counts: Dict[str, int] = field(default_factory=dict)

    @property
    def pass_rate_text(self) -> str:
        return f"{self.pass_rate:.2f}"


class RunLedger:
    """Insertion-ordered results of a run.

    Only ``append`` mutates the ledger. Ordinals must be
    strictly increasing, which keeps at most one record per question.
    """

    def __init__(self) -> None:
        self._results: List[QuestionResult] = []

    def __len__(self) -> int:
        return len(self._results)

    def __iter__(self) -> Iterator[QuestionResult]:
        return iter(tuple(self._results))

    @property
    def results(self) -> Tuple[QuestionResult, ...]:
        """Snapshot of the current results."""
        return tuple(self._results)

    @property
    def last(self) -> Optional[QuestionResult]:
        return self._results[-1] if self._results else None

    def append(self, result: QuestionResult) -> None:
        last = self.last
        if last is not None and result.question_index <= last.question_index:
            raise ValueError(
                f"Cannot append {result.label} after {last.label}: ordinals must increase"
            )
        self._results.append(result)
        logger.debug(f"Ledger: recorded {result.label} as {result.outcome.value}")

    def flush(self, sink: "ReportSink", filename: str) -> str:
        """Hands a snapshot of the ledger to the sink and returns the written path."""
        path = sink.write(self.results, filename)
        logger.debug(f"Flushed {len(self._results)} results to {path}")
        return path

    def summary(self) -> RunSummary:
        total = len(self._results)
        passed = sum(1 for r in self._results if r.outcome is Outcome.PASSED)
        failed = sum(1 for r in self._results if r.outcome is Outcome.FAILED)
        skipped = sum(1 for r in self._results if r.outcome is Outcome.SKIPPED)
        pass_rate = round(passed / total * 100, 2) if total else 0.0

        verdict_counts: Dict[str, int] = {}
        for r in self._results:
            if r.classifier_verdict is not None:
                key = r.classifier_verdict.value
                verdict_counts[key] = verdict_counts.get(key, 0) + 1
        # Keep enum order for display
        ordered = {v.value: verdict_counts[v.value] for v in ClassifierVerdict if v.value in verdict_counts}
        return RunSummary(total, passed, failed, skipped, pass_rate, ordered)
