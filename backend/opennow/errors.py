from __future__ import annotations


class OpenNowError(Exception):
    """Base error for every failure surfaced at the request boundary."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationError(OpenNowError):
    """Missing or malformed input supplied by the caller."""

    status_code = 400


class UnauthorizedError(OpenNowError):
    status_code = 401


class ForbiddenError(OpenNowError):
    """Actor does not own the target record."""

    status_code = 403


class NotFoundError(OpenNowError):
    status_code = 404


class UpstreamError(OpenNowError):
    """An external provider (places, AI, payment) failed."""

    status_code = 502


class StoreError(OpenNowError):
    """The document store rejected or failed an operation."""

    status_code = 500
