"""Cancellation token polled by the traversal engine."""

import threading

from question_grader.utils.error_handler import RunCancelled


class CancellationToken:
    """Operator stop signal shared between the signal handler and the engine."""

    def __init__(self) -> None:
        self._event = threading.Event()
        self.reason = ""

    @property
    def cancelled(self) -> bool:
        return self._event.is_set()

    def cancel(self, reason: str = "Interrupted by operator") -> None:
        if not self._event.is_set():
            self.reason = reason
        self._event.set()

    def raise_if_cancelled(self) -> None:
        if self._event.is_set():
            raise RunCancelled(self.reason)

    def wait(self, seconds: float) -> None:
        """Sleeps up to ``seconds``, waking early and raising once cancelled."""
        if seconds > 0:
            self._event.wait(seconds)
        self.raise_if_cancelled()
