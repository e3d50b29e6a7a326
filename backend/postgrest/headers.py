from __future__ import annotations

import re

_TEXT_CT_RE = re.compile(
    r"^(?:text/|application/(?:json|xml|x-www-form-urlencoded|vnd\.pgrst\.[\w.+-]+))(?:[;].*)?$",
    re.I,
)

# Content-Range: 0-24/3573  |  */0  |  0-24/*
_CONTENT_RANGE_RE = re.compile(r"^\s*(?:\d+-\d+|\*)\s*/\s*(\d+|\*)\s*$")


def detect_charset(content_type: str | None) -> str | None:
    """
    Best-effort charset detection from Content-Type header.
    Returns codec name (e.g., 'utf-8') or None if not clearly text.
    """
    if not content_type:
        return None
    m = re.search(r"charset=([^\s;]+)", content_type, flags=re.I)
    if m:
        return m.group(1).strip('"').strip("'")
    if _TEXT_CT_RE.match(content_type):
        return "utf-8"
    return None


def get_ci(headers, name: str):
    if not headers:
        return None
    ln = name.lower()
    for k, v in headers.items():
        if k.lower() == ln:
            return v
    return None


def decode_body(raw: bytes | None, headers) -> str:
    """
    Decode a response body to text. PostgREST always answers in UTF-8 but
    proxies in front of it sometimes label error pages differently.
    """
    if not raw:
        return ""
    cs = detect_charset(get_ci(headers, "Content-Type")) or "utf-8"
    try:
        return raw.decode(cs, errors="replace")
    except LookupError:
        # unknown codec label
        return raw.decode("utf-8", errors="replace")


def parse_content_range_total(value: str | None) -> int | None:
    """Total row count from a Content-Range header, or None when unknown ('*')."""
    if not value:
        return None
    m = _CONTENT_RANGE_RE.match(value)
    if not m or m.group(1) == "*":
        return None
    return int(m.group(1))
