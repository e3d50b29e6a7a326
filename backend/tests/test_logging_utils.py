import logging

from backend.logging_utils import CorrelationIdFilter, correlation_id_ctx, use_correlation_id


def _record():
    return logging.LogRecord("postgrest.query", logging.INFO, __file__, 1, "msg", (), None)


def test_filter_defaults_to_dash():
    rec = _record()
    assert CorrelationIdFilter().filter(rec) is True
    assert rec.correlation_id == "-"


def test_use_correlation_id_scopes_the_value():
    with use_correlation_id("req-42") as cid:
        rec = _record()
        CorrelationIdFilter().filter(rec)
        assert cid == "req-42"
        assert rec.correlation_id == "req-42"
    assert correlation_id_ctx.get() == "-"
