from __future__ import annotations

from typing import Iterable, Tuple
from urllib.parse import quote

# PostgREST operator punctuation stays readable in the URL:
#   select=name,price  order=created_at.desc  or=(a.eq.1,b.eq.2)  ts=gte.2025-08-01T00:00:00
_SAFE = ",.:()*"


def format_value(val: object) -> str:
    """
    Stringify a filter value the way PostgREST expects to read it back.
    Dates and the like are the caller's job; only JSON-y primitives are normalized.
    """
    if val is None:
        return "null"
    if isinstance(val, bool):
        return "true" if val else "false"
    return str(val)


def encode_component(s: str) -> str:
    return quote(s, safe=_SAFE)


def encode_query(pairs: Iterable[Tuple[str, str]]) -> str:
    """Join (key, value) pairs into a query string, order preserved, keys may repeat."""
    return "&".join(f"{encode_component(k)}={encode_component(v)}" for k, v in pairs)
