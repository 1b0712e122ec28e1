"""
Canvas API error types.

Every error carries a short machine-readable ``code`` so the tool layer
can report it as ``Error [code]: message`` without inspecting the type.
Messages never contain the access token.
"""

from typing import Optional


class CanvasError(Exception):
    """Base class for failures talking to the Canvas API."""

    code = "canvas_error"

    def __init__(self, message: str, code: Optional[str] = None):
        super().__init__(message)
        if code is not None:
            self.code = code


class CanvasTimeoutError(CanvasError):
    """Raised when a single Canvas request exceeds its wall-clock budget."""

    code = "timeout"

    def __init__(self, timeout_ms: int):
        super().__init__(f"Canvas request timed out after {timeout_ms}ms")
        self.timeout_ms = timeout_ms


class CanvasAPIError(CanvasError):
    """Raised when Canvas answers with a non-2xx status."""

    code = "canvas_api_error"

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


class InvalidResponseError(CanvasError):
    """Raised when a Canvas response body is not the expected JSON shape."""

    code = "invalid_response"

    def __init__(self, message: str = "Invalid Canvas API response"):
        super().__init__(message)
