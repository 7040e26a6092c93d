from __future__ import annotations

from typing import Any, Dict, Optional


class PortfolioError(Exception):
    """Base error; ``status_code`` is the HTTP status the API answers with."""

    status_code = 500

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        details: Optional[Dict[str, Any]] = None,
    ):
        super().__init__(message)
        self.message = message
        self.details = details or {}
        if status_code is not None:
            self.status_code = status_code


class InvalidInput(PortfolioError):
    status_code = 400


class Unauthorized(PortfolioError):
    status_code = 401


class NotFound(PortfolioError):
    status_code = 404


class Conflict(PortfolioError):
    status_code = 409


class UpstreamServiceError(PortfolioError):
    """Dropbox or language-model call failed (network, auth, rate limit)."""

    status_code = 500


class ServiceNotConfigured(UpstreamServiceError):
    """A required token, key or secret is missing from the environment."""


class MalformedModelOutput(PortfolioError):
    """Model response could not be parsed as JSON even after repair."""

    status_code = 502

    def __init__(self, message: str, raw_text: str = ""):
        super().__init__(message)
        self.raw_text = raw_text[:300]


class PersistenceError(PortfolioError):
    status_code = 500
