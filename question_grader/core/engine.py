"""Question traversal engine: the run loop from discovery to the final report."""

import threading
import time
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from question_grader import config
from question_grader.core.cancellation import CancellationToken
from question_grader.core.extraction import SubmissionExtractor
from question_grader.core.grading import Grader
from question_grader.core.ledger import RunLedger, RunSummary
from question_grader.core.models import (
    RETRY_EXHAUSTED,
    ClassifierResult,
    ClassifierVerdict,
    Outcome,
    QuestionResult,
    question_placeholder,
    single_unit,
)
from question_grader.core.navigation import QuestionNavigator
from question_grader.core.partition import partition_range
from question_grader.services.gemini_ai import SKIPPED_NO_CODE_REMARKS, VerdictClassifier
from question_grader.services.page_driver import PageDriver
from question_grader.services.report_sink import ReportSink
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ConfigError, RunCancelled

logger = get_logger()

# How often a pending classifier call checks for cancellation
_CANCEL_POLL_SECONDS = 0.5


class RunState(str, Enum):
    DISCOVERING = "DISCOVERING"
    NAVIGATING = "NAVIGATING"
    EXTRACTING = "EXTRACTING"
    GRADING = "GRADING"
    CLASSIFYING = "CLASSIFYING"
    ADVANCING = "ADVANCING"
    DONE = "DONE"
    ABORTED = "ABORTED"


@dataclass(frozen=True)
class TraversalSettings:
    start: int = 1
    end: Optional[int] = None
    runner_count: int = 1
    runner_id: Optional[int] = None
    max_retries: int = config.MAX_QUESTION_RETRIES
    settle_ms: int = config.SETTLE_MS
    grade_poll_attempts: int = config.GRADE_POLL_ATTEMPTS
    grade_poll_interval_ms: int = int(config.GRADE_POLL_INTERVAL_SECONDS * 1000)
    classifier_timeout_seconds: float = config.CLASSIFIER_TIMEOUT_SECONDS
    classifier_batch_size: int = config.CLASSIFIER_BATCH_SIZE
    classifier_cooldown_seconds: float = config.CLASSIFIER_COOLDOWN_SECONDS
    marker_prefix: str = config.QUESTION_MARKER_PREFIX
    default_question_count: int = config.DEFAULT_QUESTION_COUNT
    report_filename: str = "report.xlsx"

    def __post_init__(self) -> None:
        if self.start < 1:
            raise ConfigError(f"Start question must be positive, got {self.start}")
        if self.end is not None and self.end < self.start:
            raise ConfigError(f"End question {self.end} is before start question {self.start}")
        if self.classifier_batch_size < 1:
            raise ConfigError("Classifier batch size must be at least 1")

    @classmethod
    def from_config(cls) -> "TraversalSettings":
        runner_id = config.RUNNER_ID if config.RUNNERS > 1 else None
        filename = f"report_runner{runner_id}.xlsx" if runner_id else "report.xlsx"
        return cls(
            start=config.START_QUESTION,
            end=config.END_QUESTION,
            runner_count=config.RUNNERS,
            runner_id=runner_id,
            report_filename=filename,
        )


@dataclass(frozen=True)
class RunOutcome:
    state: RunState
    reason: str
    summary: RunSummary
    last_index: Optional[int] = None
    interrupted: bool = False
    report_path: Optional[str] = None


class TraversalEngine:
    """Walks the question range one ordinal at a time.

    Each ordinal is fully extracted, graded, classified and recorded before
    the next begins. The ledger is checkpointed after every ordinal and
    flushed exactly once more when the run ends, however it ends.
    """

    def __init__(
        self,
        driver: PageDriver,
        classifier: VerdictClassifier,
        sink: ReportSink,
        settings: Optional[TraversalSettings] = None,
        token: Optional[CancellationToken] = None,
        ledger: Optional[RunLedger] = None,
    ):
        self.driver = driver
        self.classifier = classifier
        self.sink = sink
        self.settings = settings or TraversalSettings.from_config()
        self.token = token or CancellationToken()
        self.ledger = ledger if ledger is not None else RunLedger()

        s = self.settings
        self.navigator = QuestionNavigator(
            driver, self._pause_ms, s.marker_prefix, s.default_question_count, s.settle_ms
        )
        self.extractor = SubmissionExtractor(driver, self._pause_ms, s.settle_ms)
        self.grader = Grader(driver, self._pause_ms, s.grade_poll_attempts, s.grade_poll_interval_ms, s.settle_ms)

        self.state = RunState.DISCOVERING
        self.current_index: Optional[int] = None
        self.report_path: Optional[str] = None
        self._finalized = False
        self._classifier_calls = 0
        self._cooldown_due = False
        self._last_question_text: Optional[str] = None

    # --- plumbing ---

    def _pause_ms(self, ms: int) -> None:
        """Every page-level wait is also a cancellation point."""
        self.token.raise_if_cancelled()
        if ms > 0:
            self.driver.wait(ms)
        self.token.raise_if_cancelled()

    def _set_state(self, state: RunState, index: Optional[int] = None) -> None:
        self.state = state
        self.current_index = index
        logger.debug(f"State -> {state.value}" + (f" (Q{index})" if index is not None else ""))

    def _checkpoint(self) -> None:
        try:
            self.report_path = self.ledger.flush(self.sink, self.settings.report_filename)
        except OSError as e:
            logger.error(f"Checkpoint flush failed: {e}", exc_info=config.DEBUG)

    def finalize(self, allow_empty: bool = True) -> Optional[str]:
        """Flushes the ledger once per run; later calls are no-ops."""
        if self._finalized:
            return self.report_path
        self._finalized = True
        if not self.ledger and not allow_empty:
            logger.info("No results recorded, skipping final report.")
            return None
        logger.info(f"Generating final report with {len(self.ledger)} results...")
        try:
            self.report_path = self.ledger.flush(self.sink, self.settings.report_filename)
        except OSError as e:
            logger.critical(f"Final report flush failed: {e}", exc_info=True)
        return self.report_path

    # --- run loop ---

    def run(self) -> RunOutcome:
        """Runs the traversal to DONE or ABORTED.

        Operator interruption ends the run as ABORTED with ``interrupted``
        set. Any other exception escaping the loop is re-raised after the
        final flush.
        """
        state, reason, interrupted = RunState.ABORTED, "", False
        failed = False
        try:
            state, reason = self._traverse()
        except (RunCancelled, KeyboardInterrupt) as e:
            logger.warning(f"Run interrupted during {self.state.value}: {str(e) or type(e).__name__}")
            reason = str(e) or "Interrupted by operator"
            interrupted = True
        except Exception as e:
            failed = True
            logger.critical(f"Unrecoverable error during {self.state.value}: {e}", exc_info=True)
            raise
        finally:
            self._set_state(state if not failed else RunState.ABORTED, self.current_index)
            self.finalize(allow_empty=not failed)

        last = self.ledger.last
        logger.info(f"Run finished: {state.value} ({reason})")
        return RunOutcome(
            state=state,
            reason=reason,
            summary=self.ledger.summary(),
            last_index=last.question_index if last else None,
            interrupted=interrupted,
            report_path=self.report_path,
        )

    def _resolve_range(self, total: int) -> Tuple[int, int]:
        s = self.settings
        start = s.start
        end = s.end if s.end is not None else total
        if s.runner_count > 1 and s.runner_id:
            try:
                start, end = partition_range(end, s.runner_count, s.runner_id, start=start)
            except ValueError as e:
                raise ConfigError(str(e)) from e
        if end < start:
            raise ConfigError(f"Nothing to process: end question {end} is before start {start}")
        return start, end

    def _traverse(self) -> Tuple[RunState, str]:
        self._set_state(RunState.DISCOVERING)
        total = self.navigator.discover_total()
        start, end = self._resolve_range(total)
        logger.info(f"Total questions detected: {total}. Processing Q{start} to Q{end}.")

        self._set_state(RunState.NAVIGATING, start)
        if not self.navigator.navigate_to(start):
            if not self.navigator.question_exists(start):
                return RunState.DONE, f"Q{start} does not exist"
            return RunState.ABORTED, f"Could not navigate to Q{start}"

        index = start
        while True:
            self.token.raise_if_cancelled()
            logger.info(f"=== Processing Q{index} ===")
            self._process_question(index)
            self._checkpoint()

            if index >= end:
                return RunState.DONE, f"Reached Q{end}"
            self._set_state(RunState.ADVANCING, index)
            if not self.navigator.exists_next(index):
                logger.info(f"No more questions after Q{index}. Completed all available questions!")
                return RunState.DONE, f"No more questions after Q{index}"
            if not self.navigator.advance(index):
                logger.error(f"Direct navigation to Q{index + 1} failed, stopping...")
                return RunState.ABORTED, f"Could not move from Q{index} to Q{index + 1}"
            index += 1

    def _process_question(self, index: int) -> None:
        """Attempts ``index`` with retries and records exactly one terminal result."""
        self._last_question_text = None
        max_retries = self.settings.max_retries
        result: Optional[QuestionResult] = None
        last_error: Optional[Exception] = None

        for attempt in range(max_retries + 1):
            if attempt > 0:
                logger.info(f"Retrying Q{index} (attempt {attempt}/{max_retries})...")
                self._pause_ms(self.settings.settle_ms)
                self._set_state(RunState.NAVIGATING, index)
                if not self.navigator.navigate_to(index):
                    logger.warning(f"Re-navigation to Q{index} failed, retrying in place")
            try:
                result = self._attempt(index)
                break
            except RunCancelled:
                raise
            except Exception as e:
                last_error = e
                logger.warning(f"Q{index} failed with error: {str(e)[:100]}", exc_info=config.DEBUG)

        if result is None:
            logger.warning(f"Q{index} failed after {max_retries} retries, marking as SKIPPED")
            result = QuestionResult(
                question_index=index,
                question_text=self._last_question_text or question_placeholder(index),
                source_units=single_unit(RETRY_EXHAUSTED),
                outcome=Outcome.SKIPPED,
                error_detail=f"Failed after {max_retries} retries due to: {last_error}",
            )

        classified = self._classify(result)
        # Appended only once classified, so an interrupted ordinal leaves no row
        self.token.raise_if_cancelled()
        self.ledger.append(classified)
        self._cooldown_if_due()

    def _attempt(self, index: int) -> QuestionResult:
        self._set_state(RunState.EXTRACTING, index)
        submission = self.extractor.extract_submission(index)
        self._last_question_text = submission.question_text

        if submission.no_files:
            outcome = Outcome.SKIPPED
        else:
            self._set_state(RunState.GRADING, index)
            outcome = self.grader.grade(index)

        return QuestionResult(
            question_index=index,
            question_text=submission.question_text,
            source_units=submission.source_units,
            outcome=outcome,
            created_at=submission.extracted_at,
        )

    # --- classification ---

    def _classify(self, result: QuestionResult) -> QuestionResult:
        self._set_state(RunState.CLASSIFYING, result.question_index)
        if not result.has_code:
            return result.with_classification(ClassifierResult(ClassifierVerdict.SKIPPED, SKIPPED_NO_CODE_REMARKS))

        logger.info(f"Analyzing {result.label}...")
        classification = self._call_classifier(result)
        logger.info(f"{result.label}: {classification.verdict.value} - {classification.remarks[:50]}...")

        self._classifier_calls += 1
        self._cooldown_due = self._classifier_calls % self.settings.classifier_batch_size == 0
        return result.with_classification(classification)

    def _cooldown_if_due(self) -> None:
        if not self._cooldown_due:
            return
        self._cooldown_due = False
        cooldown = self.settings.classifier_cooldown_seconds
        logger.info(
            f"Processed {self._classifier_calls} classifier requests. "
            f"Waiting {cooldown:g} seconds to avoid rate limits..."
        )
        self.token.wait(cooldown)

    def _call_classifier(self, result: QuestionResult) -> ClassifierResult:
        """Runs the classifier under an overall timeout, staying responsive to cancellation.

        The call runs on a daemon thread: an abandoned call (timed out or
        cancelled) never keeps the process alive after the run has ended.
        """
        timeout = self.settings.classifier_timeout_seconds
        reply: Dict[str, Any] = {}

        def call() -> None:
            try:
                reply["result"] = self.classifier.classify(result.question_text, result.source_units)
            except BaseException as e:
                # Re-raised or recorded on the engine thread
                reply["error"] = e

        worker = threading.Thread(target=call, name=f"classifier-q{result.question_index}", daemon=True)
        worker.start()
        deadline = time.monotonic() + timeout
        while worker.is_alive():
            remaining = deadline - time.monotonic()
            if remaining <= 0:
                logger.error(f"Gemini analysis timed out for {result.label} after {timeout:g}s")
                return ClassifierResult(ClassifierVerdict.ERROR, f"Analysis timeout after {timeout:g}s")
            worker.join(min(_CANCEL_POLL_SECONDS, remaining))
            self.token.raise_if_cancelled()

        error = reply.get("error")
        if error is None:
            return reply["result"]
        if isinstance(error, RunCancelled) or not isinstance(error, Exception):
            raise error
        logger.error(f"Gemini analysis failed for {result.label}: {error}", exc_info=config.DEBUG)
        return ClassifierResult(ClassifierVerdict.ERROR, f"Analysis failed: {error}")
