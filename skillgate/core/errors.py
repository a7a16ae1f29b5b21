from __future__ import annotations

from enum import Enum
from typing import Any

from fastapi import HTTPException


class ErrorKind(str, Enum):
    VALIDATION = "VALIDATION"
    NOT_FOUND = "NOT_FOUND"
    FORBIDDEN = "FORBIDDEN"
    CONFLICT = "CONFLICT"
    PRECONDITION_FAILED = "PRECONDITION_FAILED"
    UPSTREAM_UNAVAILABLE = "UPSTREAM_UNAVAILABLE"
    RATE_LIMITED = "RATE_LIMITED"

    @property
    def status_code(self) -> int:
        return _STATUS_CODES[self]


_STATUS_CODES: dict[ErrorKind, int] = {
    ErrorKind.VALIDATION: 400,
    ErrorKind.NOT_FOUND: 404,
    ErrorKind.FORBIDDEN: 403,
    ErrorKind.CONFLICT: 409,
    ErrorKind.PRECONDITION_FAILED: 412,
    ErrorKind.UPSTREAM_UNAVAILABLE: 503,
    ErrorKind.RATE_LIMITED: 429,
}


class EngineError(RuntimeError):
    """Terminal failure of an engine operation.

    ``kind`` is the stable category callers branch on, ``code`` the specific
    reason (``ALREADY_SUBMITTED``, ``LOW_MATCH`` ...). Both are surfaced
    verbatim to the caller together with the human message.
    """

    def __init__(self, kind: ErrorKind, code: str, message: str):
        super().__init__(message)
        self.kind = kind
        self.code = code
        self.message = message

    @property
    def status_code(self) -> int:
        return self.kind.status_code

    def to_detail(self) -> dict[str, Any]:
        return {"kind": self.kind.value, "code": self.code, "message": self.message}


def validation_error(message: str, code: str = "VALIDATION") -> EngineError:
    return EngineError(ErrorKind.VALIDATION, code, message)


def not_found(code: str, message: str) -> EngineError:
    return EngineError(ErrorKind.NOT_FOUND, code, message)


def forbidden(message: str = "Not allowed") -> EngineError:
    return EngineError(ErrorKind.FORBIDDEN, "FORBIDDEN", message)


def conflict(code: str, message: str) -> EngineError:
    return EngineError(ErrorKind.CONFLICT, code, message)


def precondition_failed(code: str, message: str) -> EngineError:
    return EngineError(ErrorKind.PRECONDITION_FAILED, code, message)


def upstream_unavailable(code: str, message: str) -> EngineError:
    return EngineError(ErrorKind.UPSTREAM_UNAVAILABLE, code, message)


def raise_http_error(exc: EngineError) -> None:
    raise HTTPException(status_code=exc.status_code, detail=exc.to_detail()) from exc
