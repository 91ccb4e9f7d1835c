"""
Error taxonomy for mindlink.

Transport errors carry the HTTP status (or an in-band error code) as data,
so retry decisions never depend on the wording of a message.
"""

from __future__ import annotations


class MindlinkError(Exception):
    """Base class for every error mindlink reports to the user."""


class MissingCredential(MindlinkError):
    """No API key is configured for the selected provider."""


class UnsupportedProvider(MindlinkError):
    """The configured provider has no backend in this build."""


class BackendError(MindlinkError):
    """A request to the completion endpoint failed."""

    retryable = False

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.status_code = status_code


class RateLimited(BackendError):
    """The endpoint asked us to slow down (HTTP 429 or an in-band rate-limit error)."""

    retryable = True

    def __init__(self, message: str = "rate limited", status_code: int | None = 429):
        super().__init__(message, status_code)


class TransportFailure(BackendError):
    """Any non rate-limit network or protocol failure. Never retried."""


class DecodeFailure(MindlinkError):
    """A stream payload could not be parsed. Handled locally by skipping it."""

    def __init__(self, payload: str):
        super().__init__(f"undecodable stream payload: {payload[:80]!r}")
        self.payload = payload


class StorageError(MindlinkError):
    """The conversation log could not be opened, read or written."""


class CommitError(StorageError):
    """
    The exchange finished but its turns could not be saved.
    The reply is kept so the caller can still show it.
    """

    def __init__(self, message: str, reply: str):
        super().__init__(message)
        self.reply = reply


def error_from_status(status_code: int, message: str = "") -> BackendError:
    """Map an HTTP status to the matching error kind."""
    detail = f"HTTP {status_code}" + (f": {message}" if message else "")
    if status_code == 429:
        return RateLimited(detail, status_code)
    return TransportFailure(detail, status_code)


def error_from_payload(error: dict) -> BackendError:
    """Map an in-band {"error": {...}} stream object to the matching error kind."""
    code = error.get("code")
    kind = str(error.get("type") or "")
    message = str(error.get("message") or "stream error")
    if code in (429, "429", "rate_limit_exceeded") or kind.startswith("rate_limit"):
        return RateLimited(message, 429)
    status = code if isinstance(code, int) else None
    return TransportFailure(message, status)
