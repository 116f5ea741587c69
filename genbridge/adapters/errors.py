"""
Error taxonomy shared by every adapter.

Only ConfigError, BackendError and AdapterTimeoutError leave an adapter.
FrameParseError is raised by frame decoders and recovered by the stream fold.
"""

import json
from typing import Optional


class AdapterError(Exception):
    """Base class for errors surfaced by genbridge adapters."""
    pass


class ConfigError(AdapterError):
    """Missing credential, host context, or unknown adapter/provider name."""
    pass


class BackendError(AdapterError):
    """Backend returned a non-success status or an unusable payload."""

    def __init__(self, message: str, status_code: Optional[int] = None, body: str = ""):
        super().__init__(message)
        self.status_code = status_code
        self.body = body


class AdapterTimeoutError(AdapterError, TimeoutError):
    """No response arrived inside the configured timeout."""
    pass


class FrameParseError(ValueError):
    """A single streaming frame could not be decoded."""
    pass


def backend_error_from_body(label: str, status_code: int, body: bytes) -> BackendError:
    """Build a BackendError that carries the backend's error body verbatim."""
    text = body.decode("utf-8", errors="replace")
    return BackendError(
        f"{label} API error (HTTP {status_code}): {text}",
        status_code=status_code,
        body=text,
    )


def describe_error_body(body: str) -> str:
    """
    Extract a short message from a JSON error body, for logs.

    Most backends return {"error": {"message": "..."}}; anything else
    is returned truncated.
    """
    try:
        data = json.loads(body)
        if isinstance(data, dict):
            error = data.get("error", {})
            if isinstance(error, dict) and error.get("message"):
                return error["message"]
            if isinstance(error, str):
                return error
    except ValueError:
        pass
    return body[:200]

