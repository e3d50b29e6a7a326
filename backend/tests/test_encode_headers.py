import pytest

from backend.postgrest.encode import encode_query, format_value
from backend.postgrest.errors import PostgrestError
from backend.postgrest.headers import decode_body, get_ci, parse_content_range_total


@pytest.mark.parametrize(
    "value,expected",
    [(None, "null"), (True, "true"), (False, "false"), (6, "6"), (2.5, "2.5"), ("a b", "a b")],
)
def test_format_value(value, expected):
    assert format_value(value) == expected


def test_encode_query_keeps_operator_punctuation():
    q = encode_query([("or", "(a.eq.1,b.gt.2)"), ("ts", "gte.2025-08-01T10:00:00"), ("select", "*")])
    assert q == "or=(a.eq.1,b.gt.2)&ts=gte.2025-08-01T10:00:00&select=*"


def test_encode_query_escapes_reserved():
    assert encode_query([("q", "a&b=c#d%")]) == "q=a%26b%3Dc%23d%25"


@pytest.mark.parametrize(
    "value,expected",
    [("0-24/3573", 3573), ("*/0", 0), ("0-24/*", None), ("", None), (None, None), ("junk", None)],
)
def test_content_range_total(value, expected):
    assert parse_content_range_total(value) == expected


def test_get_ci_and_decode():
    headers = {"content-type": "text/plain; charset=latin-1"}
    assert get_ci(headers, "Content-Type") == "text/plain; charset=latin-1"
    assert decode_body("café".encode("latin-1"), headers) == "café"
    assert decode_body(b"x", {"Content-Type": "text/plain; charset=bogus"}) == "x"
    assert decode_body(None, {}) == ""


def test_error_from_plain_text_body():
    err = PostgrestError.from_response(502, "Bad Gateway")
    assert err.status == 502
    assert err.code == "502"
    assert err.message == "HTTP 502: Bad Gateway"
    assert err.to_dict()["details"] is None
