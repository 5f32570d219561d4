"""Extraction of the question prompt and the submitted source files."""

from dataclasses import dataclass
from datetime import datetime
from typing import Callable, List, Optional, Tuple

from question_grader import config
from question_grader.core.models import (
    CODE_NOT_CAPTURED,
    NO_CODE_FILES,
    SourceUnit,
    question_placeholder,
    single_unit,
)
from question_grader.core.strategies import CODE_CHAIN, QUESTION_TEXT_CHAIN, first_content
from question_grader.services.page_driver import PageDriver
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ElementInteractionError

logger = get_logger()


@dataclass(frozen=True)
class Submission:
    question_text: str
    source_units: Tuple[SourceUnit, ...]
    extracted_at: datetime
    # File selector present but it exposed no files; nothing could be graded
    no_files: bool = False


class SubmissionExtractor:
    """Reads the current question from the page.

    Missing content never aborts the question: placeholders are recorded
    instead, since the platform may still grade code left in the editor.
    """

    def __init__(
        self,
        driver: PageDriver,
        pause: Optional[Callable[[int], None]] = None,
        settle_ms: int = config.SETTLE_MS,
    ):
        self.driver = driver
        self.pause = pause or driver.wait
        self.settle_ms = settle_ms

    def extract_question_text(self, index: int) -> str:
        found = first_content(self.driver, QUESTION_TEXT_CHAIN)
        if found is None:
            logger.warning(f"Could not extract question text for Q{index}")
            return question_placeholder(index)
        strategy, text = found
        logger.debug(f"Question text for Q{index} via '{strategy.kind}': {text.strip()[:100]}...")
        return text.strip()

    def extract_code(self, index: int) -> str:
        found = first_content(self.driver, CODE_CHAIN)
        if found is None:
            logger.warning(f"Could not extract code for Q{index}")
            return CODE_NOT_CAPTURED
        strategy, code = found
        logger.debug(f"Code for Q{index} via '{strategy.kind}': {code[:50]}...")
        return code

    def extract_files(self, index: int) -> Tuple[SourceUnit, ...]:
        """Activates each file selector in turn and reads the then-visible source."""
        units: List[SourceUnit] = []
        tabs = self.driver.find_all("file_tabs.tab")
        for position, tab in enumerate(tabs, start=1):
            label = (self.driver.read_text(tab) or "").strip() or f"file{position}"
            try:
                self.driver.click(tab)
            except ElementInteractionError as e:
                logger.warning(f"Q{index}: could not open file '{label}': {e}")
                units.append(SourceUnit(label, CODE_NOT_CAPTURED))
                continue
            self.pause(self.settle_ms)
            units.append(SourceUnit(label, self.extract_code(index)))
        logger.info(f"Q{index}: extracted {len(units)} files")
        return tuple(units)

    def extract_submission(self, index: int) -> Submission:
        self.pause(self.settle_ms)
        extracted_at = datetime.now()
        question_text = self.extract_question_text(index)

        if self.driver.find_all("file_tabs.container"):
            units = self.extract_files(index)
            if not units:
                logger.warning(f"Q{index}: file selector present but no files found")
                return Submission(question_text, single_unit(NO_CODE_FILES), extracted_at, no_files=True)
            return Submission(question_text, units, extracted_at)

        return Submission(question_text, single_unit(self.extract_code(index)), extracted_at)
