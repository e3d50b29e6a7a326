# backend/postgrest/query_builder.py
from __future__ import annotations

import asyncio
import logging
import threading
from dataclasses import dataclass, field
from typing import Any, List, Optional, Sequence, Tuple, Union

from backend.postgrest import executor
from backend.postgrest.errors import QueryBuildError
from backend.postgrest.result import QueryResult

logger = logging.getLogger("postgrest.query")

OPERATIONS = ("select", "insert", "update", "delete")
COMPARISON_KINDS = ("eq", "neq", "gt", "gte", "lt", "lte", "like", "ilike")
COUNT_MODES = ("exact", "planned", "estimated")


@dataclass(frozen=True)
class Predicate:
    kind: str
    column: Optional[str]
    value: Any


@dataclass(frozen=True)
class Ordering:
    column: str
    ascending: bool = True
    nulls_first: Optional[bool] = None


@dataclass
class QueryDescriptor:
    """
    Everything needed to build one HTTP request against one resource.

    operation/resource are set once; the rest is mutated by the builder until
    the first execution. Range windows are kept as raw ``range`` predicates and
    only turned into offset/limit when the request is built.
    """

    operation: str
    resource: str
    projection: str = "*"
    payload: Any = None
    predicates: List[Predicate] = field(default_factory=list)
    ordering: Optional[Ordering] = None
    limit: Optional[int] = None
    count: Optional[str] = None
    single: bool = False
    build_errors: List[QueryBuildError] = field(default_factory=list)
    executed: bool = False

    def __post_init__(self) -> None:
        if self.operation not in OPERATIONS:
            raise ValueError(f"unsupported operation: {self.operation!r}")
        if not isinstance(self.resource, str) or not self.resource.strip():
            raise ValueError("resource name (str) is required")

    def __setattr__(self, name: str, value: Any) -> None:
        if name in ("operation", "resource") and name in self.__dict__:
            raise AttributeError(f"QueryDescriptor.{name} is immutable")
        super().__setattr__(name, value)

    @property
    def range_window(self) -> Optional[Tuple[Any, Any]]:
        # last range() call wins
        for p in reversed(self.predicates):
            if p.kind == "range":
                return p.value
        return None

    @property
    def is_write(self) -> bool:
        return self.operation != "select"


class QueryBuilder:
    """
    Fluent, lazily executed query against one resource.

    Nothing touches the network until ``execute()`` is called or the builder
    is awaited; after that the builder is frozen and every mutator is a no-op.
        res = client.from_("products").select("name,price").eq("shop_id", 6).execute()
        data, error = await client.from_("products").select().limit(10)
    """

    def __init__(
        self,
        connection: executor.Connection,
        resource: str,
        operation: str,
        payload: Any = None,
    ) -> None:
        self._connection = connection
        self._descriptor = QueryDescriptor(
            operation=operation, resource=resource, payload=payload
        )
        self._lock = threading.Lock()
        self._result: Optional[QueryResult] = None

    # ---- introspection ----

    @property
    def descriptor(self) -> QueryDescriptor:
        return self._descriptor

    @property
    def executed(self) -> bool:
        return self._descriptor.executed

    def __repr__(self) -> str:
        d = self._descriptor
        state = "executed" if d.executed else "building"
        return f"<QueryBuilder {d.operation} {d.resource} ({state})>"

    # ---- helpers ----

    def _frozen(self, method: str) -> bool:
        if self._descriptor.executed:
            logger.debug(
                "ignoring .%s() on executed %s query for %s",
                method,
                self._descriptor.operation,
                self._descriptor.resource,
            )
            return True
        return False

    def _reject(self, message: str) -> "QueryBuilder":
        self._descriptor.build_errors.append(QueryBuildError(message))
        return self

    def _filter(self, kind: str, column: str, value: Any) -> "QueryBuilder":
        if self._frozen(kind):
            return self
        if not isinstance(column, str) or not column.strip():
            return self._reject(f"{kind}(): column must be a non-empty string")
        self._descriptor.predicates.append(Predicate(kind, column, value))
        return self

    # ---- projection / payload ----

    def select(
        self,
        columns: Union[str, Sequence[str], None] = "*",
        count: Optional[str] = None,
    ) -> "QueryBuilder":
        if self._frozen("select"):
            return self
        if isinstance(columns, (list, tuple)):
            columns = ",".join(str(c).strip() for c in columns if c and str(c).strip())
        self._descriptor.projection = (columns or "*").strip() or "*"
        if count is not None:
            mode = str(count).strip().lower()
            if mode not in COUNT_MODES:
                return self._reject(
                    f"select(): count must be one of {', '.join(COUNT_MODES)}"
                )
            self._descriptor.count = mode
        return self

    def insert(self, payload: Any) -> "QueryBuilder":
        if self._frozen("insert") or payload is None:
            return self
        self._descriptor.payload = payload
        return self

    def update(self, payload: Any) -> "QueryBuilder":
        if self._frozen("update") or payload is None:
            return self
        self._descriptor.payload = payload
        return self

    def delete(self) -> "QueryBuilder":
        return self

    # ---- filters ----

    def eq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("eq", column, value)

    def neq(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("neq", column, value)

    def gt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("gt", column, value)

    def gte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("gte", column, value)

    def lt(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("lt", column, value)

    def lte(self, column: str, value: Any) -> "QueryBuilder":
        return self._filter("lte", column, value)

    def like(self, column: str, pattern: Any) -> "QueryBuilder":
        return self._filter("like", column, pattern)

    def ilike(self, column: str, pattern: Any) -> "QueryBuilder":
        return self._filter("ilike", column, pattern)

    def or_(self, expression: str) -> "QueryBuilder":
        """Raw PostgREST disjunction, e.g. ``(status.eq.active,status.eq.pending)``."""
        if self._frozen("or_"):
            return self
        if not isinstance(expression, str) or not expression.strip():
            return self._reject("or_(): expression must be a non-empty string")
        self._descriptor.predicates.append(Predicate("or", None, expression))
        return self

    # ---- ordering / pagination ----

    def order(
        self,
        column: str,
        ascending: Optional[bool] = True,
        nulls_first: Optional[bool] = None,
    ) -> "QueryBuilder":
        # one ordering clause only: the last call replaces the previous one
        if self._frozen("order"):
            return self
        if not isinstance(column, str) or not column.strip():
            return self._reject("order(): column must be a non-empty string")
        self._descriptor.ordering = Ordering(
            column=column,
            ascending=ascending is not False,
            nulls_first=nulls_first,
        )
        return self

    def limit(self, count: int) -> "QueryBuilder":
        if self._frozen("limit"):
            return self
        if isinstance(count, bool) or not isinstance(count, int) or count < 0:
            logger.debug("ignoring limit(%r): not a non-negative integer", count)
            return self
        self._descriptor.limit = count
        return self

    def range(self, start: int, end: int) -> "QueryBuilder":
        """Inclusive zero-based window; bounds are checked when the request is built."""
        if self._frozen("range"):
            return self
        self._descriptor.predicates.append(Predicate("range", None, (start, end)))
        return self

    def single(self) -> "QueryBuilder":
        if self._frozen("single"):
            return self
        self._descriptor.single = True
        return self

    # ---- execution ----

    def build_request(self) -> executor.PreparedRequest:
        """The request this builder would send. Raises QueryBuildError on bad input."""
        return executor.build_request(self._descriptor, self._connection)

    def execute(self) -> QueryResult:
        with self._lock:
            if self._result is None:
                self._descriptor.executed = True
                try:
                    self._result = executor.execute(self._descriptor, self._connection)
                except Exception as e:
                    # still settle the result: a builder never sends twice
                    logger.warning(
                        "!! %s %s failed while normalizing: %s",
                        self._descriptor.operation,
                        self._descriptor.resource,
                        e,
                    )
                    self._result = QueryResult.failure(e)
            return self._result

    async def execute_async(self) -> QueryResult:
        if self._result is not None:
            return self._result
        return await asyncio.to_thread(self.execute)

    def __await__(self):
        return self.execute_async().__await__()
