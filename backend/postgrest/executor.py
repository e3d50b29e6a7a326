# backend/postgrest/executor.py
from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Tuple

import requests

from backend.postgrest.encode import encode_component, encode_query, format_value
from backend.postgrest.errors import PostgrestError, QueryBuildError
from backend.postgrest.headers import decode_body, get_ci, parse_content_range_total
from backend.postgrest.result import QueryResult

if TYPE_CHECKING:
    from backend.postgrest.query_builder import QueryDescriptor

logger = logging.getLogger("postgrest.query")

_METHODS = {
    "select": "GET",
    "insert": "POST",
    "update": "PATCH",
    "delete": "DELETE",
}

# predicate kinds allowed into the URL per write verb; reads take everything
_WRITE_FILTER_KINDS = {
    "insert": (),
    "update": ("eq",),
    "delete": ("eq", "or"),
}

_ACCEPT_JSON = "application/json"
_ACCEPT_OBJECT = "application/vnd.pgrst.object+json"


# ---- connection + request model ----


@dataclass(frozen=True)
class Connection:
    """Fixed connection parameters shared (read-only) by every builder of a client."""

    rest_url: str
    api_key: str = field(repr=False)
    timeout: Optional[float] = None
    session: Optional[Any] = field(default=None, compare=False, repr=False)

    def resource_url(self, resource: str) -> str:
        return f"{self.rest_url}/{encode_component(resource)}"


@dataclass(frozen=True)
class PreparedRequest:
    method: str
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Optional[str] = None

    @property
    def path(self) -> str:
        # scheme://host stripped; used for log lines
        rest = self.url.split("://", 1)[-1]
        return "/" + rest.split("/", 1)[1] if "/" in rest else "/"


# ---- serialization ----


def _int_bound(v: Any, name: str) -> int:
    if isinstance(v, bool) or not isinstance(v, int):
        raise QueryBuildError(f"range(): {name} must be an integer, got {v!r}")
    return v


def _pagination(d: "QueryDescriptor") -> Tuple[Optional[int], Optional[int]]:
    """(limit, offset) with any range window folded in. A backwards window is empty."""
    limit = d.limit
    offset = None
    window = d.range_window
    if window is not None:
        start = _int_bound(window[0], "from")
        end = _int_bound(window[1], "to")
        if start < 0:
            raise QueryBuildError(f"range(): from must be >= 0, got {start}")
        # to < from (negative to included) is an empty window, not an error
        size = max(0, end - start + 1)
        offset = start
        limit = size if limit is None else min(limit, size)
    return limit, offset


def build_params(d: "QueryDescriptor") -> List[Tuple[str, str]]:
    """
    Ordered (key, value) pairs for the query string:
      select, filters in call order, order, limit, offset.
    Writes only carry their narrowed filter set (update: eq; delete: eq + or).
    """
    params: List[Tuple[str, str]] = []
    is_read = d.operation == "select"

    if is_read and d.projection != "*":
        params.append(("select", d.projection))

    allowed = None if is_read else _WRITE_FILTER_KINDS[d.operation]
    for p in d.predicates:
        if p.kind == "range":
            continue
        if allowed is not None and p.kind not in allowed:
            continue
        if p.kind == "or":
            params.append(("or", str(p.value)))
        else:
            params.append((p.column, f"{p.kind}.{format_value(p.value)}"))

    if not is_read:
        return params

    if d.ordering is not None:
        o = d.ordering
        token = f"{o.column}.{'asc' if o.ascending else 'desc'}"
        if o.nulls_first is not None:
            token += ".nullsfirst" if o.nulls_first else ".nullslast"
        params.append(("order", token))

    limit, offset = _pagination(d)
    if limit is not None:
        params.append(("limit", str(limit)))
    if offset is not None:
        params.append(("offset", str(offset)))
    return params


def build_headers(d: "QueryDescriptor", conn: Connection) -> Dict[str, str]:
    headers = {
        "apikey": conn.api_key,
        "Authorization": f"Bearer {conn.api_key}",
        "Content-Type": "application/json",
        "Accept": _ACCEPT_OBJECT if d.single else _ACCEPT_JSON,
    }
    prefer = []
    if d.is_write:
        prefer.append("return=representation")
    if d.count:
        prefer.append(f"count={d.count}")
    if prefer:
        headers["Prefer"] = ",".join(prefer)
    return headers


def build_request(d: "QueryDescriptor", conn: Connection) -> PreparedRequest:
    """
    Pure translation of a descriptor into one HTTP request; same input, same output.
    Raises QueryBuildError for input that cannot be turned into a URL.
    """
    if d.build_errors:
        raise d.build_errors[0]

    body = None
    if d.operation in ("insert", "update"):
        if d.payload is None:
            raise QueryBuildError(f"{d.operation} requires a payload")
        try:
            body = json.dumps(d.payload, separators=(",", ":"), ensure_ascii=False)
        except (TypeError, ValueError) as e:
            raise QueryBuildError(f"{d.operation} payload is not JSON-serializable: {e}")

    url = conn.resource_url(d.resource)
    query = encode_query(build_params(d))
    if query:
        url = f"{url}?{query}"

    return PreparedRequest(
        method=_METHODS[d.operation],
        url=url,
        headers=build_headers(d, conn),
        body=body,
    )


# ---- transport + normalization ----


def _send(req: PreparedRequest, conn: Connection) -> requests.Response:
    http = conn.session if conn.session is not None else requests
    return http.request(
        req.method,
        req.url,
        headers=dict(req.headers),
        data=req.body.encode("utf-8") if req.body is not None else None,
        timeout=conn.timeout,
    )


def normalize_response(status: int, raw: bytes, headers) -> QueryResult:
    text = decode_body(raw, headers)

    if not 200 <= status < 300:
        return QueryResult.failure(PostgrestError.from_response(status, text), status)

    count = parse_content_range_total(get_ci(headers, "Content-Range"))
    if not text.strip():
        # 204 / return=minimal
        return QueryResult(data=None, error=None, count=count, status=status)
    try:
        data = json.loads(text)
    except ValueError as e:
        err = PostgrestError(
            f"invalid JSON in {status} response: {e}",
            status=status,
            code="PARSE_ERROR",
            body=text,
        )
        return QueryResult.failure(err, status)
    return QueryResult(data=data, error=None, count=count, status=status)


def execute(d: "QueryDescriptor", conn: Connection) -> QueryResult:
    """
    Send the descriptor's request once and fold every outcome into a QueryResult.
    Nothing here raises: local input errors, transport failures and remote
    rejections all come back in ``error``.
    """
    try:
        req = build_request(d, conn)
    except Exception as e:
        logger.warning(
            "!! %s %s not sent: %s", d.operation, d.resource, e
        )
        return QueryResult.failure(e)

    logger.debug(">> %s %s", req.method, req.path)
    start = time.perf_counter()
    try:
        resp = _send(req, conn)
        status = int(resp.status_code)
        raw = resp.content
    except Exception as e:
        dur_ms = int((time.perf_counter() - start) * 1000)
        logger.warning(
            "!! %s %s transport error after %dms: %s", req.method, req.path, dur_ms, e
        )
        return QueryResult.failure(e)

    dur_ms = int((time.perf_counter() - start) * 1000)
    result = normalize_response(status, raw, resp.headers)
    if result.error is not None:
        logger.warning(
            "<< %s %s %d %dms: %s", req.method, req.path, status, dur_ms, result.error
        )
    else:
        logger.debug("<< %s %s %d %dms", req.method, req.path, status, dur_ms)
    return result
