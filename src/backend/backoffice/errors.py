"""Errors raised at the query boundary; the pure core never raises them."""

from __future__ import annotations

from enum import Enum


class ErrorCode(Enum):
    QUERY_FAILED = "QUERY_FAILED"
    NOT_CONFIGURED = "NOT_CONFIGURED"


class BackofficeError(Exception):
    """Base error with a code and an operator-safe message."""

    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    def __str__(self) -> str:
        return f"{self.code.value}: {self.message}"


class QueryError(BackofficeError):
    """Raised once when a read against the remote store fails."""

    def __init__(self, source: str, detail: str) -> None:
        super().__init__(code=ErrorCode.QUERY_FAILED, message=f"Failed to load {source}")
        self.source = source
        self.detail = detail


class RepositoryNotConfiguredError(BackofficeError):
    def __init__(self) -> None:
        super().__init__(
            code=ErrorCode.NOT_CONFIGURED,
            message="BACKOFFICE_DATABASE_URL is not configured",
        )
