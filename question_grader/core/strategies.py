"""Layered locator strategies tried in order against the live page.

Each chain is plain data: adding a new fallback means adding a
``LocatorStrategy`` to a tuple, never another branch in the callers.
"""

from dataclasses import dataclass
from typing import Any, Optional, Sequence, Tuple

from question_grader import config
from question_grader.services.page_driver import PageDriver
from question_grader.utils.logger import get_logger

logger = get_logger()

READ_TEXT = "text"
READ_VALUE = "value"
READ_VALUE_OR_TEXT = "value_or_text"


@dataclass(frozen=True)
class LocatorStrategy:
    """One ``(probe, extract)`` attempt: locate ``kind``, then read it."""
    kind: str
    read: str = READ_TEXT
    timeout_ms: int = config.FALLBACK_TIMEOUT_MS

    def probe(self, driver: PageDriver) -> Optional[Any]:
        """Returns the first element of ``kind`` if it becomes visible in time."""
        elements = driver.find_all(self.kind)
        if not elements:
            return None
        element = elements[0]
        return element if driver.is_visible(element, self.timeout_ms) else None

    def extract(self, driver: PageDriver, element: Any) -> Optional[str]:
        if self.read == READ_VALUE:
            return driver.read_value(element)
        if self.read == READ_VALUE_OR_TEXT:
            value = driver.read_value(element)
            return value if value and value.strip() else driver.read_text(element)
        return driver.read_text(element)


def first_visible(
    driver: PageDriver, chain: Sequence[LocatorStrategy]
) -> Optional[Tuple[LocatorStrategy, Any]]:
    """Walks ``chain`` and returns the first strategy whose element is visible."""
    for strategy in chain:
        element = strategy.probe(driver)
        if element is not None:
            return strategy, element
        logger.debug(f"Locator '{strategy.kind}' not visible, trying next fallback")
    return None


def first_content(
    driver: PageDriver, chain: Sequence[LocatorStrategy]
) -> Optional[Tuple[LocatorStrategy, str]]:
    """Walks ``chain`` and returns the first non-empty content it extracts."""
    for strategy in chain:
        element = strategy.probe(driver)
        if element is None:
            continue
        content = strategy.extract(driver, element)
        if content and content.strip():
            return strategy, content
        logger.debug(f"Locator '{strategy.kind}' yielded no content, trying next fallback")
    return None


QUESTION_TEXT_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("question_text.primary", READ_TEXT, config.PROBE_TIMEOUT_MS),
    LocatorStrategy("question_text.label"),
    LocatorStrategy("question_text.class"),
    LocatorStrategy("question_text.heading"),
)

CODE_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("code.primary", READ_VALUE, config.PROBE_TIMEOUT_MS),
    LocatorStrategy("code.ace", READ_VALUE_OR_TEXT),
    LocatorStrategy("code.textarea", READ_VALUE_OR_TEXT),
    LocatorStrategy("code.input", READ_VALUE_OR_TEXT),
    LocatorStrategy("code.contenteditable", READ_VALUE_OR_TEXT),
    LocatorStrategy("code.pre", READ_TEXT),
    LocatorStrategy("code.inline", READ_TEXT),
)

RUN_CONTROL_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("run.primary", READ_TEXT, 3000),
    LocatorStrategy("run.processing"),
    LocatorStrategy("run.label"),
)

RESULT_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("result.primary", READ_TEXT, config.FALLBACK_TIMEOUT_MS),
)

PAGE_CONTENT_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("page.body", READ_TEXT, config.PROBE_TIMEOUT_MS),
)

NEXT_CONTROL_CHAIN: Tuple[LocatorStrategy, ...] = (
    LocatorStrategy("next.primary"),
    LocatorStrategy("next.label"),
    LocatorStrategy("next.testid"),
    LocatorStrategy("next.aria"),
)
