from __future__ import annotations
import logging
import os
from contextlib import contextmanager
from contextvars import ContextVar
from typing import Iterator, Optional

# Per-call correlation ID (set by callers around a batch of queries)
correlation_id_ctx: ContextVar[str] = ContextVar("correlation_id", default="-")

_FORMAT = "%(asctime)s %(levelname)s [%(correlation_id)s] %(name)s: %(message)s"


class CorrelationIdFilter(logging.Filter):
    def filter(self, record: logging.LogRecord) -> bool:
        # provide %(correlation_id)s to all formatters
        try:
            record.correlation_id = correlation_id_ctx.get()
        except LookupError:
            record.correlation_id = "-"
        return True


class _JsonFormatter(logging.Formatter):
    def format(self, record: logging.LogRecord) -> str:
        import json, time

        payload = {
            "ts": time.strftime("%Y-%m-%dT%H:%M:%S", time.gmtime(record.created)),
            "level": record.levelname,
            "logger": record.name,
            "msg": record.getMessage(),
            "correlation_id": getattr(record, "correlation_id", "-"),
        }
        return json.dumps(payload, ensure_ascii=True)


_CONFIGURED = False


def _env_truthy(name: str, default: str = "true") -> bool:
    val = os.getenv(name, default)
    return str(val).strip().lower() in {"true", "1", "t", "yes", "y", "on"}


def _env_level(name: str, default: int) -> int:
    raw = (os.getenv(name) or "").strip().upper()
    if not raw:
        return default
    level = logging.getLevelName(raw)
    return level if isinstance(level, int) else default


def setup_logging(level: Optional[int] = None) -> None:
    """
    Idempotent logging setup that ensures %(correlation_id)s is available in all log lines.
    LOG_LEVEL picks the root level when no explicit level is passed; LOG_JSON=1
    switches every root handler to one-JSON-object-per-line output.
    """
    global _CONFIGURED
    if _CONFIGURED:
        return

    filt = CorrelationIdFilter()
    root = logging.getLogger()
    root.addFilter(filt)

    if not root.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(_FORMAT))
        handler.addFilter(filt)
        root.addHandler(handler)
        root.setLevel(level or _env_level("LOG_LEVEL", logging.INFO))
    else:
        for h in list(root.handlers):
            # Ensure formatter includes correlation_id
            fmt = getattr(h.formatter, "_fmt", "") if h.formatter else ""
            if "%(correlation_id)" not in fmt:
                h.setFormatter(logging.Formatter(_FORMAT))
            h.addFilter(filt)

    if _env_truthy("LOG_JSON", "false"):
        for h in root.handlers:
            h.setFormatter(_JsonFormatter())

    # the query logger may have been created before setup ran
    logging.getLogger("postgrest.query").addFilter(filt)

    _CONFIGURED = True


@contextmanager
def use_correlation_id(cid: str) -> Iterator[str]:
    """Tag every log line emitted inside the block with ``cid``."""
    token = correlation_id_ctx.set(cid)
    try:
        yield cid
    finally:
        correlation_id_ctx.reset(token)
