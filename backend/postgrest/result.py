# backend/postgrest/result.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterator, Optional


@dataclass(frozen=True)
class QueryResult:
    """
    The only thing a query ever resolves to. Exactly one of data/error is
    meaningful: on failure ``data`` is None and ``error`` holds the cause.

    Unpacks like the JS shape callers are used to:
        data, error = await client.from_("products").select()
    """

    data: Any = None
    error: Optional[BaseException] = None
    count: Optional[int] = None
    status: Optional[int] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def __iter__(self) -> Iterator[Any]:
        yield self.data
        yield self.error

    def as_dict(self) -> Dict[str, Any]:
        return {"data": self.data, "error": self.error}

    @classmethod
    def failure(
        cls, error: BaseException, status: Optional[int] = None
    ) -> "QueryResult":
        return cls(data=None, error=error, status=status)
