"""
Exception hierarchy for alert processing.

Each error type maps to one outcome of the webhook endpoint: validation
errors become 400 responses, everything else a 500.
"""


class AlertTicketerError(Exception):
    """Base class for all alert processing errors."""


class AlertValidationError(AlertTicketerError):
    """Inbound payload is incomplete or malformed."""


class PersistenceError(AlertTicketerError):
    """Identity store could not durably record an allocation."""


class UpstreamError(AlertTicketerError):
    """Email or work item tracker request failed."""

    def __init__(self, service: str, message: str):
        super().__init__(f"{service}: {message}")
        self.service = service
        self.message = message
