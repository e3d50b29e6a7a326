# backend/postgrest/errors.py
from __future__ import annotations

import json
from typing import Any, Dict, Optional


class QueryBuildError(ValueError):
    """Malformed local input (bad column, bad range bounds, missing payload)."""


class PostgrestError(Exception):
    """
    A remote rejection (non-2xx) or an unreadable success body.

    Never raised by the query layer: instances travel in ``QueryResult.error``.
    PostgREST error bodies look like
        {"code": "23505", "message": "...", "details": "...", "hint": null}
    and are unpacked when present; otherwise ``message`` is built from the raw text.
    """

    def __init__(
        self,
        message: str,
        *,
        status: Optional[int] = None,
        code: Optional[str] = None,
        details: Optional[str] = None,
        hint: Optional[str] = None,
        body: Optional[str] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.status = status
        self.code = code
        self.details = details
        self.hint = hint
        self.body = body

    @classmethod
    def from_response(cls, status: int, text: Optional[str]) -> "PostgrestError":
        body = text or ""
        err_obj: Dict[str, Any] = {}
        try:
            parsed = json.loads(body) if body.strip() else None
            if isinstance(parsed, dict):
                err_obj = parsed
        except ValueError:
            pass

        code = err_obj.get("code")
        return cls(
            f"HTTP {status}: {body}",
            status=status,
            code=str(code) if code is not None else str(status),
            details=err_obj.get("details"),
            hint=err_obj.get("hint"),
            body=body,
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "message": self.message,
            "code": self.code,
            "details": self.details,
            "hint": self.hint,
            "status": self.status,
        }

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, PostgrestError):
            return NotImplemented
        return self.to_dict() == other.to_dict() and self.body == other.body

    __hash__ = Exception.__hash__

    def __repr__(self) -> str:
        return f"PostgrestError(status={self.status!r}, code={self.code!r}, message={self.message!r})"
