"""Question discovery, exact-match navigation and advancement."""

import re
from typing import Any, Callable, List, Optional

from question_grader import config
from question_grader.core.strategies import NEXT_CONTROL_CHAIN, first_visible
from question_grader.services.page_driver import PageDriver
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ElementInteractionError

logger = get_logger()

MARKER_KINDS = ("question_marker", "question_marker.styled")


class QuestionNavigator:
    """Finds and activates the ``Q<n>`` marker buttons.

    A marker only counts when its full trimmed text equals the label, so
    ``Q2`` never resolves to ``Q20``..``Q29``. "Not found" is reported as
    ``False``/``None``, never raised.
    """

    def __init__(
        self,
        driver: PageDriver,
        pause: Optional[Callable[[int], None]] = None,
        prefix: str = config.QUESTION_MARKER_PREFIX,
        default_count: int = config.DEFAULT_QUESTION_COUNT,
        settle_ms: int = config.SETTLE_MS,
    ):
        self.driver = driver
        self.pause = pause or driver.wait
        self.prefix = prefix
        self.default_count = default_count
        self.settle_ms = settle_ms
        self._marker_re = re.compile(rf"^{re.escape(prefix)}(\d+)$")

    def label(self, index: int) -> str:
        return f"{self.prefix}{index}"

    def _text(self, element: Any) -> str:
        return (self.driver.read_text(element) or "").strip()

    def discover_total(self) -> int:
        """Returns the highest marker number on the page, or the default count."""
        logger.info("Detecting total number of questions...")
        for kind in MARKER_KINDS:
            numbers: List[int] = []
            for element in self.driver.find_all(kind):
                match = self._marker_re.match(self._text(element))
                if match and int(match.group(1)) > 0:
                    numbers.append(int(match.group(1)))
            if numbers:
                total = max(numbers)
                logger.info(f"Detected {len(numbers)} question buttons via '{kind}', max question: {self.label(total)}")
                return total
        logger.warning(f"Could not detect total questions, using default of {self.default_count}")
        return self.default_count

    def locate(self, index: int, timeout_ms: int = config.PROBE_TIMEOUT_MS) -> Optional[Any]:
        """Returns the visible marker element for ``index``, or None."""
        label = self.label(index)

        element = self.driver.find_by_exact_text(label)
        if element is not None and self._text(element) == label and self.driver.is_visible(element, timeout_ms):
            return element

        logger.debug(f"Exact lookup for {label} failed, scanning all markers...")
        for element in self.driver.find_all("question_marker"):
            if self._text(element) == label and self.driver.is_visible(element, config.FALLBACK_TIMEOUT_MS):
                return element
        return None

    def question_exists(self, index: int) -> bool:
        return self.locate(index) is not None

    def exists_next(self, index: int) -> bool:
        exists = self.question_exists(index + 1)
        logger.debug(f"{self.label(index + 1)} {'exists' if exists else 'does not exist'}")
        return exists

    def navigate_to(self, index: int) -> bool:
        logger.info(f"Navigating to Question {index}...")
        element = self.locate(index)
        if element is None:
            logger.warning(f"Could not find {self.label(index)} button")
            return False
        try:
            self.driver.click(element)
        except ElementInteractionError as e:
            logger.warning(f"Clicking {self.label(index)} failed: {e}")
            return False
        self.pause(self.settle_ms)
        return True

    def advance(self, index: int) -> bool:
        """Moves from ``index`` to ``index + 1``: next control first, then direct navigation."""
        found = first_visible(self.driver, NEXT_CONTROL_CHAIN)
        if found is not None:
            strategy, button = found
            try:
                self.driver.click(button)
                logger.info(f"Moving to {self.label(index + 1)} via '{strategy.kind}'...")
                self.pause(self.settle_ms)
                return True
            except ElementInteractionError as e:
                logger.warning(f"Failed to click NEXT button: {e}")
        else:
            logger.info("No NEXT button found, trying direct navigation...")
        return self.navigate_to(index + 1)
