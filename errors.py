"""
errors.py — Failure taxonomy for the itinerary pipeline.

Every failure is caught at the HTTP boundary (see the exception handlers in
app.py) and turned into a { "error": "..." } response. None of these carry
HTTP semantics themselves, so the pure modules can raise them freely.
"""

from typing import Optional


class WanderwiseError(Exception):
    """Base class for all domain failures."""

    user_message = 'Something went wrong. Please try again.'


class ValidationError(WanderwiseError):
    """Missing or invalid user input. Raised before any network I/O."""

    def __init__(self, message: str, field: Optional[str] = None):
        super().__init__(message)
        self.field = field
        self.user_message = message


class CompletionServiceError(WanderwiseError):
    """The completion backend answered with a non-success status (or not at all)."""

    user_message = 'Failed to generate route. Please try again.'

    def __init__(self, status_code: Optional[int], body: str):
        super().__init__(f'Completion service error: {status_code}')
        self.status_code = status_code
        self.body = body


class MalformedCompletion(WanderwiseError):
    """
    The completion text could not be turned into an itinerary.

    raw_text is kept for logs only — it is never sent back to the client.
    """

    user_message = 'Failed to generate route. Please try again.'

    def __init__(self, raw_text: str, reason: str):
        super().__init__(f'Malformed completion: {reason}')
        self.raw_text = raw_text
        self.reason = reason


class StoreOperationError(WanderwiseError):
    """A create/update/delete against the database failed."""

    def __init__(self, operation: str, cause: Optional[Exception] = None):
        super().__init__(f'Store operation failed: {operation}')
        self.operation = operation
        self.cause = cause
        self.user_message = f'Failed to {operation}. Please try again.'
