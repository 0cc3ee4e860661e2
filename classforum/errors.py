"""
Error types rendered into the `{"error", "details"}` response envelope.
"""

from __future__ import annotations

from typing import Any, Optional


class ForumError(Exception):
    status_code = 500

    def __init__(self, message: str, details: Optional[Any] = None):
        super().__init__(message)
        self.message = message
        self.details = details

    def as_dict(self) -> dict:
        body: dict = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class BadRequest(ForumError):
    status_code = 400


class Unauthorized(ForumError):
    status_code = 401


class Forbidden(ForumError):
    status_code = 403


class NotFound(ForumError):
    status_code = 404


class Conflict(ForumError):
    status_code = 409


class UpstreamError(ForumError):
    """A hosted backend (database, auth or storage) call failed."""

    status_code = 500
