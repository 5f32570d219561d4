"""Triggers the platform's run action and reads back its verdict."""

from typing import Callable, Optional

from question_grader import config
from question_grader.core.models import Outcome
from question_grader.core.strategies import (
    PAGE_CONTENT_CHAIN,
    RESULT_CHAIN,
    RUN_CONTROL_CHAIN,
    first_content,
    first_visible,
)
from question_grader.core.verdicts import classify_grading_text, is_processing
from question_grader.services.page_driver import PageDriver
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ElementInteractionError, GradingError

logger = get_logger()


class Grader:
    """Clicks RUN and polls the result indicator until a terminal text appears."""

    def __init__(
        self,
        driver: PageDriver,
        pause: Optional[Callable[[int], None]] = None,
        poll_attempts: int = config.GRADE_POLL_ATTEMPTS,
        poll_interval_ms: int = int(config.GRADE_POLL_INTERVAL_SECONDS * 1000),
        settle_ms: int = config.SETTLE_MS,
    ):
        self.driver = driver
        self.pause = pause or driver.wait
        self.poll_attempts = poll_attempts
        self.poll_interval_ms = poll_interval_ms
        self.settle_ms = settle_ms

    def grade(self, index: int) -> Outcome:
        """Runs the submission for question ``index``.

        Raises:
            GradingError: If no run control can be found or clicked.
        """
        found = first_visible(self.driver, RUN_CONTROL_CHAIN)
        if found is None:
            raise GradingError(f"RUN button not found with any selector for Q{index}")
        strategy, button = found
        try:
            self.driver.click(button)
        except ElementInteractionError as e:
            raise GradingError(f"Could not click RUN button for Q{index}: {e}") from e
        logger.info(f"Clicked RUN button for Q{index} via '{strategy.kind}'")
        self.pause(self.settle_ms)
        return self.read_verdict(index)

    def read_verdict(self, index: int) -> Outcome:
        indicator_seen = False
        for _ in range(self.poll_attempts):
            found = first_content(self.driver, RESULT_CHAIN)
            if found is not None:
                indicator_seen = True
                text = found[1]
                if not is_processing(text):
                    outcome = classify_grading_text(text)
                    logger.info(f"Q{index}: {outcome.value} ({text.strip()[:80]})")
                    return outcome
                logger.debug(f"Q{index}: still processing...")
            self.pause(self.poll_interval_ms)

        if indicator_seen:
            logger.warning(f"Q{index}: result still processing after {self.poll_attempts} polls, marking SKIPPED")
            return Outcome.SKIPPED

        logger.info(f"No result message found for Q{index}, scanning page content...")
        body = first_content(self.driver, PAGE_CONTENT_CHAIN)
        outcome = classify_grading_text(body[1] if body else None, strict=True)
        logger.info(f"Q{index}: {outcome.value} (page content fallback)")
        return outcome
