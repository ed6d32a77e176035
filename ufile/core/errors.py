"""Exception hierarchy for the UFile SDK.

Every failure raised by this package derives from UFileError, so callers can
catch the whole family at once or pick out the specific condition they care
about. Nothing in the SDK swallows these errors or retries on its own; the
only retrying code path is the explicit restore waiter.
"""

import json
from typing import Any, Dict, Optional


class UFileError(Exception):
    """Base class for all SDK errors."""


class ConfigurationError(UFileError, ValueError):
    """Raised when client configuration is missing or inconsistent."""


class RemoteError(UFileError):
    """Raised when the storage service rejects a request or is unreachable.

    Attributes:
        status_code: HTTP status code, or None when no response was received
        body: Raw response body text (empty for network failures)
        ret_code: Service ``RetCode`` from a JSON error body, if present
        message: Service ``ErrMsg`` from a JSON error body, if present
    """

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: str = "",
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.body = body
        self.ret_code: Optional[int] = None
        self.message: Optional[str] = None

        payload = _parse_error_body(body)
        if payload:
            self.ret_code = payload.get("RetCode")
            self.message = payload.get("ErrMsg")

    def __str__(self) -> str:
        text = super().__str__()
        if self.status_code is not None:
            text = f"{text} (status={self.status_code})"
        if self.message:
            text = f"{text}: {self.message}"
        return text


class ConflictError(RemoteError):
    """Raised when the service reports a key collision on multipart finish."""


class NotArchivedError(UFileError):
    """Raised when a restore wait targets an object outside the archive class."""


class WaitTimeoutError(UFileError, TimeoutError):
    """Raised when a polling budget is exhausted without reaching the goal.

    Attributes:
        attempts: Number of polls performed before giving up
    """

    def __init__(self, message: str, attempts: int) -> None:
        super().__init__(message)
        self.attempts = attempts


def _parse_error_body(body: str) -> Optional[Dict[str, Any]]:
    if not body:
        return None
    try:
        payload = json.loads(body)
    except ValueError:
        return None
    return payload if isinstance(payload, dict) else None
