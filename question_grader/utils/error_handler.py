"""Custom exception classes for the application."""

from typing import Optional


class BaseGraderException(Exception):
    """Base exception for all application-specific errors."""
    pass

class ConfigError(BaseGraderException):
    """Error related to configuration loading or values."""
    pass

class AuthenticationError(BaseGraderException):
    """Error while establishing or reusing the LMS browser session."""
    pass

class ClassifierError(BaseGraderException):
    """Error returned by the external verdict classifier (Gemini)."""
    def __init__(self, message: str, status_code: Optional[int] = None, model: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.model = model

    def __str__(self) -> str:
        base = super().__str__()
        details = []
        if self.model:
            details.append(f"Model: {self.model}")
        if self.status_code:
            details.append(f"Status Code: {self.status_code}")
        if details:
            return f"{base} ({', '.join(details)})"
        return base

class NavigationError(BaseGraderException):
    """Error reaching a page of the target application."""
    pass

class ElementInteractionError(BaseGraderException):
    """Error clicking a located page element."""
    pass

class GradingError(BaseGraderException):
    """Error triggering the platform's run action or reading its verdict."""
    pass

class RunCancelled(BaseGraderException):
    """Raised when the operator interrupts a run."""
    pass
