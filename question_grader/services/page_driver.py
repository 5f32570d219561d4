"""Page Driver: the browser-automation primitives the traversal engine relies on."""

from typing import Any, Dict, List, Optional, Protocol

from playwright.sync_api import Error as PlaywrightError
from playwright.sync_api import Page

from question_grader import config
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import ElementInteractionError, NavigationError

logger = get_logger()

# Opaque handle to a located element (a Playwright Locator in production)
ElementRef = Any


class PageDriver(Protocol):
    """Element lookup and interaction against one browsing context.

    Timeouts are reported as ``False``/``None``/``[]``. Only ``navigate``
    (unreachable URL) and ``click`` (element could not be activated) raise.
    """

    def find_by_exact_text(self, label: str) -> Optional[ElementRef]:
        ...

    def find_all(self, kind: str) -> List[ElementRef]:
        ...

    def is_visible(self, element: ElementRef, timeout_ms: int = config.FALLBACK_TIMEOUT_MS) -> bool:
        ...

    def click(self, element: ElementRef) -> None:
        ...

    def read_text(self, element: ElementRef) -> Optional[str]:
        ...

    def read_value(self, element: ElementRef) -> Optional[str]:
        ...

    def navigate(self, url: str) -> None:
        ...

    def current_url(self) -> str:
        ...

    def wait(self, ms: int) -> None:
        ...


class PlaywrightPageDriver:
    """PageDriver over a Playwright sync ``Page``; locator kinds come from ``config.SELECTORS``."""

    def __init__(
        self,
        page: Page,
        selectors: Optional[Dict[str, str]] = None,
        read_timeout_ms: int = config.FALLBACK_TIMEOUT_MS,
        navigation_timeout_ms: int = 30000,
    ):
        self.page = page
        self.selectors = dict(selectors if selectors is not None else config.SELECTORS)
        self.read_timeout_ms = read_timeout_ms
        self.navigation_timeout_ms = navigation_timeout_ms

    def find_by_exact_text(self, label: str) -> Optional[ElementRef]:
        try:
            locator = self.page.get_by_text(label, exact=True)
            if locator.count() == 0:
                return None
            return locator.first
        except PlaywrightError as e:
            logger.debug(f"Exact-text lookup for '{label}' failed: {e}")
            return None

    def find_all(self, kind: str) -> List[ElementRef]:
        selector = self.selectors.get(kind)
        if not selector:
            logger.debug(f"No selector configured for locator kind '{kind}'")
            return []
        try:
            return self.page.locator(selector).all()
        except PlaywrightError as e:
            logger.debug(f"Lookup for '{kind}' ({selector}) failed: {e}")
            return []

    def is_visible(self, element: ElementRef, timeout_ms: int = config.FALLBACK_TIMEOUT_MS) -> bool:
        try:
            element.wait_for(state="visible", timeout=timeout_ms)
            return True
        except PlaywrightError:
            return False

    def click(self, element: ElementRef) -> None:
        try:
            element.scroll_into_view_if_needed(timeout=self.read_timeout_ms)
            element.click(force=True, timeout=self.read_timeout_ms * 3)
        except PlaywrightError as e:
            raise ElementInteractionError(f"Click failed: {e}") from e

    def read_text(self, element: ElementRef) -> Optional[str]:
        try:
            return element.text_content(timeout=self.read_timeout_ms)
        except PlaywrightError:
            return None

    def read_value(self, element: ElementRef) -> Optional[str]:
        # input_value only works on input/textarea/select elements
        try:
            return element.input_value(timeout=self.read_timeout_ms)
        except PlaywrightError:
            return None

    def navigate(self, url: str) -> None:
        logger.debug(f"Navigating to {url}")
        try:
            self.page.goto(url, wait_until="networkidle", timeout=self.navigation_timeout_ms)
        except PlaywrightError as e:
            raise NavigationError(f"Could not load {url}: {e}") from e

    def current_url(self) -> str:
        return self.page.url

    def wait(self, ms: int) -> None:
        self.page.wait_for_timeout(ms)
