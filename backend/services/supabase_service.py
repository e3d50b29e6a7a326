# backend/services/supabase_service.py
from __future__ import annotations

from typing import Any, Optional

from dotenv import load_dotenv, find_dotenv

from backend.config.settings import ClientSettings, get_settings
from backend.logging_utils import setup_logging
from backend.postgrest.executor import Connection
from backend.postgrest.query_builder import QueryBuilder


# --- Load .env from repo root even when the cwd varies ---
# We don't override existing env so container/CI secrets still win.
load_dotenv(find_dotenv(usecwd=True), override=False)


class ResourceHandle:
    """
    One named remote resource ("table"). Each verb starts a fresh builder:
        client.from_("campaigns").insert({"name": "X"})
        client.from_("products").select("name,price").eq("shop_id", 6)
    """

    __slots__ = ("_connection", "_resource")

    def __init__(self, connection: Connection, resource: str) -> None:
        object.__setattr__(self, "_connection", connection)
        object.__setattr__(self, "_resource", resource)

    def __setattr__(self, name: str, value: Any) -> None:
        raise AttributeError("ResourceHandle is immutable")

    @property
    def resource(self) -> str:
        return self._resource

    def __repr__(self) -> str:
        return f"<ResourceHandle {self._resource}>"

    def select(
        self, columns: Any = "*", count: Optional[str] = None
    ) -> QueryBuilder:
        return QueryBuilder(self._connection, self._resource, "select").select(
            columns, count=count
        )

    def insert(self, payload: Any) -> QueryBuilder:
        return QueryBuilder(self._connection, self._resource, "insert").insert(payload)

    def update(self, payload: Any) -> QueryBuilder:
        return QueryBuilder(self._connection, self._resource, "update").update(payload)

    def delete(self) -> QueryBuilder:
        return QueryBuilder(self._connection, self._resource, "delete")


class DataClient:
    """Entry point for the REST data API; connection parameters are fixed at creation."""

    def __init__(self, connection: Connection) -> None:
        self._connection = connection

    @property
    def rest_url(self) -> str:
        return self._connection.rest_url

    def resource_url(self, resource: str) -> str:
        return self._connection.resource_url(resource)

    def from_(self, resource: str) -> ResourceHandle:
        if not isinstance(resource, str) or not resource.strip():
            raise ValueError("resource name (str) is required")
        return ResourceHandle(self._connection, resource.strip())

    # supabase-py spelling
    table = from_

    def __repr__(self) -> str:
        return f"<DataClient {self._connection.rest_url}>"


def create_client(
    settings: Optional[ClientSettings] = None,
    *,
    url: Optional[str] = None,
    key: Optional[str] = None,
    session: Any = None,
) -> DataClient:
    """
    Build a client from explicit values, a ClientSettings, or the environment.
    ``session`` is anything with a requests-style ``request()`` (e.g. requests.Session);
    without one every query uses a one-shot ``requests.request``.
    Raises at call-time (not import-time) if credentials are missing.
    """
    if settings is None:
        settings = get_settings()
    # explicit values override only what they name; the rest stays from settings/env
    if url is not None or key is not None:
        settings = settings.model_copy(
            update={
                "supabase_url": (url or settings.supabase_url).rstrip("/"),
                "supabase_anon_key": key or settings.supabase_anon_key,
            }
        )

    if not settings.is_configured:
        raise RuntimeError(
            "Supabase credentials missing. Set SUPABASE_URL and SUPABASE_ANON_KEY "
            "(or SUPABASE_KEY) in environment or .env at the repo root."
        )

    conn = Connection(
        rest_url=settings.rest_base(),
        api_key=settings.supabase_anon_key,
        timeout=settings.request_timeout,
        session=session,
    )
    return DataClient(conn)


# Lazy client: created on first access so imports don't crash without env
_client: Optional[DataClient] = None


def _create_client() -> DataClient:
    """Create and cache the environment-configured client on first use."""
    global _client
    if _client is not None:
        return _client
    setup_logging()
    _client = create_client()
    return _client


class _SupabaseProxy:
    """
    Transparent proxy so call sites can keep doing:
        from backend.services.supabase_service import supabase
        data, error = await supabase.from_("products").select("*")
    The underlying client is initialized on first attribute access.
    """

    def __getattr__(self, name: str) -> Any:
        return getattr(_create_client(), name)


# Public handle used throughout the codebase
supabase = _SupabaseProxy()


# --- Optional helpers (useful for diagnostics) ---


def get_client() -> DataClient:
    """Return the real client (initializing it if needed)."""
    return _create_client()


def assert_client_ready() -> None:
    """
    Quick readiness check to fail fast at runtime (not import time).
    Call this from startup hooks or health checks if you want.
    """
    _ = _create_client()


def reset_client() -> None:
    """Drop the cached client and settings (tests, credential rotation)."""
    global _client
    _client = None
    get_settings.cache_clear()
