"""Login and session sharing across one or more runners."""

import os
import time
from typing import Any, Callable, Optional

from question_grader import config
from question_grader.services.page_driver import PageDriver
from question_grader.utils.logger import get_logger
from question_grader.utils.error_handler import AuthenticationError, NavigationError

logger = get_logger()


def _process_alive(pid: int) -> bool:
    if os.name == "nt":
        # Signal 0 would terminate the process on Windows; rely on the lock's age there
        return True
    try:
        os.kill(pid, 0)
    except ProcessLookupError:
        return False
    except PermissionError:
        return True
    return True


class SessionCoordinator:
    """Decides who logs in and hands the persisted session to everyone else.

    With several runners only the leader (lowest runner id, and holder of the
    lock file) may open the interactive login. Followers poll for the session
    file, which the leader publishes with an atomic rename.
    """

    def __init__(
        self,
        storage_path: str = config.AUTH_STATE_PATH,
        base_url: str = config.BASE_URL,
        runner_id: Optional[int] = None,
        runner_count: int = 1,
        login_timeout: float = config.LOGIN_TIMEOUT_SECONDS,
        login_poll: float = config.LOGIN_POLL_SECONDS,
        wait_timeout: float = config.SESSION_WAIT_TIMEOUT_SECONDS,
        wait_poll: float = config.SESSION_POLL_SECONDS,
        grace: float = config.SESSION_GRACE_SECONDS,
        sleep: Callable[[float], None] = time.sleep,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.storage_path = storage_path
        self.base_url = base_url.rstrip("/")
        self.runner_id = runner_id
        self.runner_count = max(1, runner_count)
        self.login_timeout = login_timeout
        self.login_poll = login_poll
        self.wait_timeout = wait_timeout
        self.wait_poll = wait_poll
        self.grace = grace
        self._sleep = sleep
        self._clock = clock
        self.lock_path = f"{storage_path}.lock"
        self._holds_lock = False

    @property
    def is_leader(self) -> bool:
        return self.runner_count == 1 or self.runner_id in (None, 1)

    def _lock_is_stale(self) -> bool:
        """A lock is stale once its owner has exited or it outlived the login window."""
        try:
            with open(self.lock_path, encoding="utf-8") as f:
                pid_text, _, stamp_text = f.read().strip().partition(" ")
            pid, stamp = int(pid_text), float(stamp_text)
        except FileNotFoundError:
            return True
        except ValueError:
            logger.warning(f"Login lock {self.lock_path} is unreadable, treating it as stale")
            return True
        if time.time() - stamp > self.login_timeout:
            return True
        return not _process_alive(pid)

    def _acquire_lock(self) -> bool:
        parent = os.path.dirname(self.lock_path)
        if parent:
            os.makedirs(parent, exist_ok=True)
        for _ in range(2):
            try:
                fd = os.open(self.lock_path, os.O_CREAT | os.O_EXCL | os.O_WRONLY)
            except FileExistsError:
                if not self._lock_is_stale():
                    return False
                logger.warning(f"Removing stale login lock {self.lock_path} left by an earlier run")
                try:
                    os.remove(self.lock_path)
                except FileNotFoundError:
                    logger.debug(f"Stale login lock {self.lock_path} already removed")
                continue
            with os.fdopen(fd, "w") as f:
                f.write(f"{os.getpid()} {time.time()}")
            self._holds_lock = True
            return True
        return False

    def release(self) -> None:
        """Drops the login lock if this coordinator holds it."""
        if not self._holds_lock:
            return
        self._holds_lock = False
        try:
            os.remove(self.lock_path)
        except FileNotFoundError:
            logger.debug(f"Login lock {self.lock_path} already removed")

    def prepare(self) -> Optional[str]:
        """Returns the session file to load, or None when this process must log in.

        Raises:
            AuthenticationError: If a follower times out waiting for the leader.
        """
        if os.path.exists(self.storage_path):
            logger.info(f"Found saved session at {self.storage_path}")
            return self.storage_path

        if self.runner_count == 1:
            logger.info("No saved session found, interactive login required")
            return None

        if self.is_leader and self._acquire_lock():
            logger.info(f"Runner {self.runner_id or 1} elected to perform the login")
            return None

        logger.info(f"Runner {self.runner_id} waiting for the leader to publish a session...")
        return self.wait_for_artifact()

    def wait_for_artifact(self) -> str:
        deadline = self._clock() + self.wait_timeout
        while not os.path.exists(self.storage_path):
            if self._clock() >= deadline:
                raise AuthenticationError(
                    f"Timed out after {self.wait_timeout:g}s waiting for session file {self.storage_path}"
                )
            self._sleep(self.wait_poll)
        # The file appears via rename; the grace delay lets the leader's browser settle
        if self.grace > 0:
            self._sleep(self.grace)
        logger.info(f"Session file {self.storage_path} is available")
        return self.storage_path

    def _on_dashboard(self, driver: PageDriver) -> bool:
        return config.DASHBOARD_URL_MARKER.lower() in (driver.current_url() or "").lower()

    def interactive_login(self, session: Any) -> str:
        """Opens the site and waits for the operator to reach the dashboard.

        Args:
            session: A BrowserSession (anything with ``driver`` and ``save_storage_state``).

        Returns:
            The path the session was saved to.

        Raises:
            AuthenticationError: If the dashboard is not reached in time or saving fails.
        """
        driver = session.driver
        try:
            driver.navigate(self.base_url)
            logger.info(f"Please log in within {self.login_timeout:g} seconds in the browser window...")
            deadline = self._clock() + self.login_timeout
            while not self._on_dashboard(driver):
                if self._clock() >= deadline:
                    raise AuthenticationError(
                        f"Login not completed within {self.login_timeout:g}s (dashboard never reached)"
                    )
                self._sleep(self.login_poll)
            logger.info("Login successful!")
            return session.save_storage_state(self.storage_path)
        except NavigationError as e:
            raise AuthenticationError(f"Could not open login page: {e}") from e
        finally:
            self.release()

    def ensure_logged_in(self, session: Any) -> None:
        """Checks a loaded session still reaches the dashboard; logs in again if not.

        Raises:
            AuthenticationError: If a follower's shared session has expired.
        """
        driver = session.driver
        try:
            driver.navigate(self.base_url)
        except NavigationError as e:
            raise AuthenticationError(f"Could not verify session: {e}") from e
        if self._on_dashboard(driver):
            logger.info("Already logged in (saved session is valid)")
            return

        logger.warning("Saved session expired or invalid")
        if self.runner_count > 1 and not self.is_leader:
            raise AuthenticationError("Shared session expired; rerun so the leader can log in again")
        self.interactive_login(session)

    def open_question_set(self, driver: PageDriver, target_path: str = config.TARGET_PATH) -> None:
        url = f"{self.base_url}{target_path}"
        logger.info(f"Navigating to question set: {url}")
        driver.navigate(url)
