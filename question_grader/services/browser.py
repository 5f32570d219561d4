"""Factory for authenticated Playwright browsing contexts."""

import os
from contextlib import contextmanager
from typing import Dict, Iterator, Optional

from playwright.sync_api import BrowserContext, Page, sync_playwright
from playwright.sync_api import Error as PlaywrightError

from question_grader import config
from question_grader.services.page_driver import PlaywrightPageDriver
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import AuthenticationError

logger = get_logger()

_HIDE_WEBDRIVER_SCRIPT = "Object.defineProperty(navigator, 'webdriver', { get: () => undefined });"


class BrowserSession:
    """One browsing context plus the page driver bound to its page."""

    def __init__(self, context: BrowserContext, page: Page, selectors: Optional[Dict[str, str]] = None):
        self.context = context
        self.page = page
        self.driver = PlaywrightPageDriver(page, selectors)

    def save_storage_state(self, path: str) -> str:
        """Persists cookies and local storage to ``path``.

        The state is written to a temporary file and renamed into place, so a
        reader polling for ``path`` never observes a partially written file.
        """
        parent = os.path.dirname(path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        tmp_path = f"{path}.{os.getpid()}.tmp"
        try:
            self.context.storage_state(path=tmp_path)
            os.replace(tmp_path, path)
        except (PlaywrightError, OSError) as e:
            raise AuthenticationError(f"Could not save session state to {path}: {e}") from e
        logger.info(f"Session saved to: {path}")
        return path


@contextmanager
def open_browser_session(
    storage_state: Optional[str] = None,
    headless: bool = config.HEADLESS,
) -> Iterator[BrowserSession]:
    """Launches Chromium and yields a BrowserSession, closing the browser on exit.

    Args:
        storage_state: Path of a persisted session to reuse, or None for a fresh context.
        headless: Whether to hide the browser window. Interactive login needs a visible window.
    """
    if storage_state:
        logger.info(f"Loading saved session from {storage_state}")
    else:
        logger.info("No saved session supplied, starting a fresh browser context")

    with sync_playwright() as p:
        browser = p.chromium.launch(
            headless=headless,
            slow_mo=config.BROWSER_SLOW_MO_MS,
            args=config.BROWSER_LAUNCH_ARGS,
        )
        try:
            context = browser.new_context(
                storage_state=storage_state,
                user_agent=config.BROWSER_USER_AGENT,
                no_viewport=True,
            )
            context.add_init_script(_HIDE_WEBDRIVER_SCRIPT)
            page = context.new_page()
            yield BrowserSession(context, page)
        finally:
            browser.close()
            logger.debug("Browser closed.")
