"""Exceptions raised by the EyeCare AI client.

All of them derive from :class:`RuntimeError`, so callers that only
``except RuntimeError`` keep working.
"""

from __future__ import annotations


class EyeCareError(RuntimeError):
    """Base class for errors reported by the AI client."""


class ConfigurationError(EyeCareError):
    """No API key was provided and none is available from the environment."""


class InvalidAPIKeyError(EyeCareError):
    """The upstream service rejected the API key (HTTP 401)."""


class RequestFailedError(EyeCareError):
    """The upstream service answered with a non-success status."""

    def __init__(self, status_code: int) -> None:
        self.status_code = int(status_code)
        super().__init__(f"API request failed: {self.status_code}")
