import json

import pytest

from backend.postgrest.errors import QueryBuildError
from backend.tests.fakes import BASE, KEY

REST = f"{BASE}/rest/v1"


def test_select_chain_matches_postgrest_syntax(client):
    req = (
        client.from_("products")
        .select("name,price")
        .eq("shop_id", 6)
        .order("created_at", ascending=False)
        .limit(10)
        .build_request()
    )
    assert req.method == "GET"
    assert (
        req.url
        == f"{REST}/products?select=name,price&shop_id=eq.6&order=created_at.desc&limit=10"
    )
    assert req.body is None


def test_star_projection_is_not_sent(client):
    req = client.from_("products").select().build_request()
    assert req.url == f"{REST}/products"


def test_every_comparison_operator(client):
    req = (
        client.from_("sales")
        .select()
        .eq("a", 1)
        .neq("b", "x")
        .gt("c", 2)
        .gte("d", 3)
        .lt("e", 4)
        .lte("f", 5)
        .like("g", "ab%")
        .ilike("h", "%cd")
        .build_request()
    )
    assert req.url == (
        f"{REST}/sales?a=eq.1&b=neq.x&c=gt.2&d=gte.3&e=lt.4&f=lte.5"
        "&g=like.ab%25&h=ilike.%25cd"
    )


def test_one_pair_per_predicate_regardless_of_order(client):
    a = client.from_("t").select().eq("x", 1).gte("y", 2).or_("(z.eq.1,z.eq.2)")
    b = client.from_("t").select().or_("(z.eq.1,z.eq.2)").gte("y", 2).eq("x", 1)
    qa = a.build_request().url.split("?", 1)[1].split("&")
    qb = b.build_request().url.split("?", 1)[1].split("&")
    assert sorted(qa) == sorted(qb)
    assert len(qa) == 3
    assert "or=(z.eq.1,z.eq.2)" in qa


def test_repeated_column_filters_are_kept(client):
    req = (
        client.from_("visitor_checkins")
        .select()
        .gte("checkin_time", "2025-08-01T00:00:00")
        .lte("checkin_time", "2025-08-31T23:59:59")
        .build_request()
    )
    assert req.url == (
        f"{REST}/visitor_checkins?checkin_time=gte.2025-08-01T00:00:00"
        "&checkin_time=lte.2025-08-31T23:59:59"
    )


def test_value_formatting_for_json_primitives(client):
    req = (
        client.from_("t")
        .select()
        .eq("active", True)
        .neq("archived", False)
        .eq("deleted_at", None)
        .build_request()
    )
    assert req.url.endswith("?active=eq.true&archived=neq.false&deleted_at=eq.null")


def test_spaces_and_unicode_are_percent_encoded(client):
    req = client.from_("shops").select().eq("name", "Café Mall").build_request()
    assert req.url == f"{REST}/shops?name=eq.Caf%C3%A9%20Mall"


def test_order_last_call_wins(client):
    req = (
        client.from_("t")
        .select()
        .order("a")
        .order("b", ascending=False)
        .build_request()
    )
    assert req.url == f"{REST}/t?order=b.desc"


def test_order_defaults_to_ascending(client):
    assert client.from_("t").select().order("a").build_request().url.endswith(
        "order=a.asc"
    )
    assert client.from_("t").select().order(
        "a", ascending=None
    ).build_request().url.endswith("order=a.asc")


def test_order_nulls_suffix_only_when_given(client):
    first = client.from_("t").select().order("a", nulls_first=True).build_request()
    last = (
        client.from_("t")
        .select()
        .order("a", ascending=False, nulls_first=False)
        .build_request()
    )
    assert first.url.endswith("order=a.asc.nullsfirst")
    assert last.url.endswith("order=a.desc.nullslast")


def test_range_becomes_offset_and_limit(client):
    req = client.from_("t").select().range(20, 29).build_request()
    assert req.url == f"{REST}/t?limit=10&offset=20"


def test_backwards_range_is_empty_window(client):
    req = client.from_("t").select().range(10, 3).build_request()
    assert req.url == f"{REST}/t?limit=0&offset=10"


def test_range_and_limit_emit_one_limit(client):
    narrow = client.from_("t").select().range(0, 49).limit(5).build_request()
    wide = client.from_("t").select().limit(100).range(0, 9).build_request()
    assert narrow.url == f"{REST}/t?limit=5&offset=0"
    assert wide.url == f"{REST}/t?limit=10&offset=0"


def test_last_range_wins(client):
    req = client.from_("t").select().range(0, 9).range(10, 19).build_request()
    assert req.url == f"{REST}/t?limit=10&offset=10"


@pytest.mark.parametrize("bad", [-1, 1.5, True, "x", None])
def test_invalid_limit_is_ignored(client, bad):
    req = client.from_("t").select().limit(5).limit(bad).build_request()
    assert req.url == f"{REST}/t?limit=5"


def test_limit_zero_is_allowed(client):
    assert client.from_("t").select().limit(0).build_request().url == f"{REST}/t?limit=0"


@pytest.mark.parametrize("start,end", [("a", 5), (0, "9"), (1.0, 2), (None, 3)])
def test_non_integer_range_cannot_build(client, start, end):
    with pytest.raises(QueryBuildError):
        client.from_("t").select().range(start, end).build_request()


def test_negative_range_start_cannot_build(client):
    with pytest.raises(QueryBuildError, match="from must be >= 0"):
        client.from_("t").select().range(-1, 4).build_request()


@pytest.mark.parametrize(
    "start,end,expected", [(0, -1, "limit=0&offset=0"), (3, -1, "limit=0&offset=3")]
)
def test_negative_range_end_is_empty_window(client, start, end, expected):
    req = client.from_("t").select().range(start, end).build_request()
    assert req.url == f"{REST}/t?{expected}"


def test_standard_headers_on_read(client):
    req = client.from_("t").select().build_request()
    assert req.headers == {
        "apikey": KEY,
        "Authorization": f"Bearer {KEY}",
        "Content-Type": "application/json",
        "Accept": "application/json",
    }


def test_count_option_sets_prefer_header(client):
    req = client.from_("t").select("id", count="exact").build_request()
    assert req.headers["Prefer"] == "count=exact"
    assert req.url == f"{REST}/t?select=id"


def test_single_asks_for_object(client):
    req = client.from_("qr_campaigns").select().eq("id", 3).single().build_request()
    assert req.headers["Accept"] == "application/vnd.pgrst.object+json"


def test_insert_request(client):
    req = client.from_("campaigns").insert({"name": "X"}).build_request()
    assert req.method == "POST"
    assert req.url == f"{REST}/campaigns"
    assert req.headers["Prefer"] == "return=representation"
    assert req.body == '{"name":"X"}'


def test_insert_many_rows(client):
    rows = [{"name": "A"}, {"name": "B"}]
    req = client.from_("campaigns").insert(rows).build_request()
    assert json.loads(req.body) == rows


def test_insert_ignores_filters_and_pagination(client):
    req = client.from_("campaigns").insert({"a": 1}).eq("id", 1).limit(3).build_request()
    assert req.url == f"{REST}/campaigns"


def test_update_only_sends_eq_filters(client):
    req = (
        client.from_("campaigns")
        .update({"status": "paused"})
        .eq("id", 7)
        .neq("status", "done")
        .gte("scan_count", 3)
        .or_("(a.eq.1,b.eq.2)")
        .order("id")
        .limit(1)
        .build_request()
    )
    assert req.method == "PATCH"
    assert req.url == f"{REST}/campaigns?id=eq.7"
    assert req.body == '{"status":"paused"}'
    assert req.headers["Prefer"] == "return=representation"


def test_delete_sends_eq_and_or_filters_only(client):
    req = (
        client.from_("notifications")
        .delete()
        .eq("shop_id", 6)
        .lt("created_at", "2025-01-01")
        .or_("(read.eq.true,expired.eq.true)")
        .range(0, 5)
        .build_request()
    )
    assert req.method == "DELETE"
    assert req.url == f"{REST}/notifications?shop_id=eq.6&or=(read.eq.true,expired.eq.true)"
    assert req.body is None


def test_write_select_projection_not_sent(client):
    req = client.from_("campaigns").insert({"a": 1}).select("id").build_request()
    assert req.url == f"{REST}/campaigns"


def test_build_request_is_idempotent(client):
    q = client.from_("t").select("a,b").eq("a", 1).order("b").range(5, 9)
    assert q.build_request() == q.build_request()


def test_missing_write_payload_cannot_build(client):
    q = client.from_("campaigns").insert(None)
    assert q.descriptor.payload is None
    with pytest.raises(QueryBuildError, match="requires a payload"):
        q.build_request()


def test_insert_none_after_payload_keeps_payload(client):
    q = client.from_("campaigns").insert({"a": 1}).insert(None)
    assert q.descriptor.payload == {"a": 1}


def test_bad_column_cannot_build(client):
    q = client.from_("t").select().eq("", 1)
    assert q.descriptor.predicates == []
    with pytest.raises(QueryBuildError, match="column"):
        q.build_request()


def test_bad_count_mode_cannot_build(client):
    with pytest.raises(QueryBuildError, match="count"):
        client.from_("t").select("*", count="all").build_request()


def test_list_projection_joined(client):
    req = client.from_("t").select(["id", " name ", ""]).build_request()
    assert req.url == f"{REST}/t?select=id,name"


def test_no_network_while_building(client, session):
    (
        client.from_("t")
        .select("a")
        .eq("a", 1)
        .or_("(a.eq.1)")
        .order("a")
        .limit(1)
        .range(0, 1)
        .build_request()
    )
    session.request.assert_not_called()
