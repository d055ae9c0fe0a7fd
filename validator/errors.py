"""
Validation error types

Only NavigationFailure is allowed to leave its component (after retries);
everything else is caught where it happens and logged.
"""
from dataclasses import dataclass
from typing import Optional


@dataclass(eq=False)
class ValidationError(Exception):
    """
    stage: where it happened (navigate/detect/interact/capture/analyze)
    reason: human readable message
    original: underlying exception, if any
    """
    stage: str
    reason: str
    original: Optional[Exception] = None

    def __str__(self) -> str:
        return f"[{self.stage}] {self.reason}"


class NavigationFailure(ValidationError):
    """Page could not be loaded after all attempts"""


class EvaluationTimeout(ValidationError):
    """In-page evaluation exceeded its bound"""


class ClassificationAmbiguous(ValidationError):
    """No detection tier produced a variant"""


class InteractionStepFailure(ValidationError):
    """A single click/wait/capture step failed"""


class ContextClosed(ValidationError):
    """Browsing context closed mid-flow"""


class ExternalServiceRateLimited(ValidationError):
    """Vision service asked us to slow down"""


class ExternalServiceFailure(ValidationError):
    """Vision service failed in a non-retriable way"""
