import logging

import pytest

from conftest import ORG_ID, SITE_ID, AllowAll, DenyAll, FakeCacheStore, FakeQueryEngine, FakeSites, gunzip_json
from paid_insights.config import Settings
from paid_insights.errors import BadRequest, Forbidden, InvalidWindow, NotFound, UpstreamFailure
from paid_insights.services.paid_traffic_service import PaidTrafficService, parse_traffic_request
from paid_insights.services.site_service import Site

ROWS = [
    {"utm_campaign": "summer", "pageviews": 600, "pct_pageviews": 0.6, "click_rate": 0.1,
     "engagement_rate": 0.4, "bounce_rate": 0.6, "p70_lcp": 3020, "p70_cls": 0.05, "p70_inp": 120},
    {"utm_campaign": "fall", "pageviews": 400, "pct_pageviews": 0.4, "click_rate": 0.2,
     "engagement_rate": 0.5, "bounce_rate": 0.5, "p70_lcp": 5000, "p70_cls": 0.05, "p70_inp": 120},
]

PARAMS = {"year": "2024", "week": "23"}


def _service(settings, engine, sites, store):
    return PaidTrafficService(settings, query_engine=engine, site_repository=sites, cache_store=store)


def test_miss_computes_scores_and_writes_cache(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)

    result = _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert result.cache_hit is False
    assert result.row_count == 2
    assert len(engine.calls) == 1
    assert store.writes == [result.cache_key]
    assert store.objects[result.cache_key] == result.body

    records = gunzip_json(result.body)
    assert [r["campaign"] for r in records] == ["summer", "fall"]
    assert records[0]["overall_cwv_score"] == "needs improvement"
    assert records[1]["overall_cwv_score"] == "poor"


def test_hit_returns_stored_bytes_without_querying(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)
    service = _service(settings, engine, sites, store)
    first = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    store.objects[first.cache_key] = b"stored-gzip-body"
    second = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert second.cache_hit is True
    assert second.body == b"stored-gzip-body"
    assert len(engine.calls) == 1
    assert len(store.writes) == 1


def test_same_request_is_idempotent(settings, sites) -> None:
    first = _service(settings, FakeQueryEngine(ROWS), sites, FakeCacheStore()).fetch(
        SITE_ID, "campaign", PARAMS, AllowAll())
    second = _service(settings, FakeQueryEngine(ROWS), sites, FakeCacheStore()).fetch(
        SITE_ID, "campaign", PARAMS, AllowAll())

    assert first.cache_key == second.cache_key
    assert first.body == second.body


def test_empty_result_is_cached(settings, sites, store) -> None:
    engine = FakeQueryEngine([])
    service = _service(settings, engine, sites, store)

    first = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())
    second = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert gunzip_json(first.body) == []
    assert second.cache_hit is True
    assert len(engine.calls) == 1


def test_write_failure_still_returns_result(settings, sites, store, caplog) -> None:
    store.fail_write = True
    engine = FakeQueryEngine(ROWS)

    with caplog.at_level(logging.WARNING):
        result = _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert result.cache_hit is False
    assert len(gunzip_json(result.body)) == 2
    assert store.objects == {}
    assert "write failed" in caplog.text


@pytest.mark.parametrize("flag", ["fail_exists", "fail_read"])
def test_cache_lookup_failure_falls_back_to_engine(settings, sites, store, flag, caplog) -> None:
    engine = FakeQueryEngine(ROWS)
    service = _service(settings, engine, sites, store)
    key = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll()).cache_key
    setattr(store, flag, True)

    with caplog.at_level(logging.WARNING):
        result = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert result.cache_hit is False
    assert result.cache_key == key
    assert len(engine.calls) == 2
    assert "computing instead" in caplog.text


def test_no_cache_recomputes_and_overwrites(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)
    service = _service(settings, engine, sites, store)
    first = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())
    store.objects[first.cache_key] = b"stale"

    result = service.fetch(SITE_ID, "campaign", dict(PARAMS, noCache="true"), AllowAll())

    assert result.cache_hit is False
    assert len(engine.calls) == 2
    assert store.objects[first.cache_key] == result.body


def test_no_threshold_changes_query_and_key(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)
    service = _service(settings, engine, sites, store)

    default = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())
    unbounded = service.fetch(SITE_ID, "campaign", dict(PARAMS, noThreshold=True), AllowAll())

    assert "HAVING SUM(pageviews) >= 1000" in engine.calls[0]
    assert "HAVING SUM(pageviews) >= 0" in engine.calls[1]
    assert default.cache_key != unbounded.cache_key


def test_type_dimension_has_no_default_filter(settings, sites, store) -> None:
    engine = FakeQueryEngine([])
    service = _service(settings, engine, sites, store)

    service.fetch(SITE_ID, "typeChannel", PARAMS, AllowAll())
    service.fetch(SITE_ID, "typeChannel", dict(PARAMS, trafficType="earned"), AllowAll())

    assert "AND TRUE" in engine.calls[0]
    assert "trf_type IN ('earned')" in engine.calls[1]


def test_engine_failure_is_upstream_failure(settings, sites, store) -> None:
    engine = FakeQueryEngine(error=RuntimeError("boom"))

    with pytest.raises(UpstreamFailure) as exc:
        _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert exc.value.message == "Failed to query paid traffic data"
    assert store.writes == []


def test_cache_disabled_always_queries(sites, store) -> None:
    engine = FakeQueryEngine(ROWS)
    service = _service(Settings(cache_bucket=None), engine, sites, store)

    result = service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())
    service.fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert result.cache_key is None
    assert len(engine.calls) == 2
    assert store.exists_calls == []


def test_unknown_site_is_not_found(settings, store) -> None:
    engine = FakeQueryEngine(ROWS)

    with pytest.raises(NotFound):
        _service(settings, engine, FakeSites(), store).fetch(SITE_ID, "campaign", PARAMS, AllowAll())
    assert engine.calls == []


def test_foreign_site_is_forbidden(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)

    with pytest.raises(Forbidden):
        _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", PARAMS, DenyAll())
    assert engine.calls == []
    assert store.exists_calls == []


@pytest.mark.parametrize("params, error", [
    ({}, BadRequest),
    ({"year": "2024"}, BadRequest),
    ({"year": "abc", "week": "1"}, BadRequest),
    ({"year": "2024", "week": "54"}, InvalidWindow),
    ({"year": "2024", "week": "0"}, InvalidWindow),
    ({"year": "2024", "week": "1", "trafficType": "stolen"}, BadRequest),
    ({"year": "2024", "week": "1", "limit": "-3"}, BadRequest),
    ({"year": 2024, "week": 23.9}, BadRequest),
    ({"year": True, "week": True}, BadRequest),
    ({"year": "9999", "week": "52"}, InvalidWindow),
    ({"year": "2024", "week": "1", "pageTypes": "[not-json"}, BadRequest),
])
def test_validation_happens_before_any_io(settings, sites, store, params, error) -> None:
    engine = FakeQueryEngine(ROWS)

    with pytest.raises(error):
        _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", params, AllowAll())

    assert sites.lookups == []
    assert store.exists_calls == []
    assert engine.calls == []


def test_parse_request_defaults() -> None:
    request = parse_traffic_request({"year": 2024, "week": "7"})

    assert (request.year, request.week) == (2024, 7)
    assert request.traffic_type is None
    assert request.limit is None
    assert request.no_cache is False
    assert request.no_threshold is False


def test_parse_request_missing_message() -> None:
    with pytest.raises(BadRequest) as exc:
        parse_traffic_request({"week": "7"})
    assert exc.value.message == "Year and week are required parameters"


def test_parse_request_rejects_json_booleans_and_fractions() -> None:
    for params in ({"year": 2024, "week": 23.5}, {"year": True, "week": 1}, {"year": 2024, "week": False}):
        with pytest.raises(BadRequest) as exc:
            parse_traffic_request(params)
        assert exc.value.message == "Year and week must be valid numbers"

    assert parse_traffic_request({"year": 2024.0, "week": 23.0}).week == 23


def test_parse_request_page_types() -> None:
    assert parse_traffic_request({"year": 2024, "week": 1, "pageTypes": "blog | Blog Articles,homepage | Homepage"}).page_types == (
        "blog | Blog Articles", "homepage | Homepage")
    assert parse_traffic_request({"year": 2024, "week": 1, "pageTypes": ["b", "a", "a"]}).page_types == ("a", "b")
    assert parse_traffic_request({"year": 2024, "week": 1, "pageTypes": '["x"]'}).page_types == ("x",)


def test_site_id_is_bound_as_parameter(settings, sites, store) -> None:
    engine = FakeQueryEngine(ROWS)

    _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", PARAMS, AllowAll())

    assert engine.params == [{"site_id": SITE_ID}]
    assert SITE_ID not in engine.calls[0]


def test_base_url_change_changes_cache_key(settings, store) -> None:
    engine = FakeQueryEngine([{"path": "/about", "pageviews": 2000}])
    old = FakeSites([Site(SITE_ID, "https://old.example.com", ORG_ID)])
    new = FakeSites([Site(SITE_ID, "https://new.example.com", ORG_ID)])

    first = _service(settings, engine, old, store).fetch(SITE_ID, "url", PARAMS, AllowAll())
    second = _service(settings, engine, new, store).fetch(SITE_ID, "url", PARAMS, AllowAll())

    assert first.cache_key != second.cache_key
    assert second.cache_hit is False
    assert gunzip_json(second.body)[0]["url"] == "https://new.example.com/about"


def test_temporal_series_scans_previous_weeks(settings, sites, store) -> None:
    engine = FakeQueryEngine([
        {"week": 22, "trf_channel": "search", "pageviews": 900, "p70_lcp": 1000},
        {"week": 23, "trf_channel": "search", "pageviews": 1100, "p70_lcp": 1000},
    ])

    result = _service(settings, engine, sites, store).fetch(SITE_ID, "temporalSeriesByChannel", PARAMS, AllowAll())

    query = engine.calls[0]
    for week in (20, 21, 22, 23):
        assert f"AND week = {week})" in query
    assert "GROUP BY week, trf_channel" in query
    records = gunzip_json(result.body)
    assert [(r["year"], r["week"], r["channel"]) for r in records] == [(2024, 22, "search"), (2024, 23, "search")]


def test_temporal_series_across_year_boundary(settings, sites, store) -> None:
    engine = FakeQueryEngine([{"week": 52, "trf_type": "paid", "pageviews": 10}, {"week": 1, "trf_type": "paid", "pageviews": 20}])

    result = _service(settings, engine, sites, store).fetch(
        SITE_ID, "temporalSeries", {"year": 2025, "week": 1}, AllowAll())

    assert "(year = 2024 AND month = 12) OR (year = 2025 AND month = 1)) AND week = 1" in engine.calls[0]
    assert "AND week = 50)" in engine.calls[0]
    assert [(r["year"], r["week"]) for r in gunzip_json(result.body)] == [(2024, 52), (2025, 1)]


def test_series_length_is_part_of_cache_key(sites, store) -> None:
    engine = FakeQueryEngine([])
    four = _service(Settings(cache_bucket="b", temporal_series_weeks=4), engine, sites, store).fetch(
        SITE_ID, "temporalSeries", PARAMS, AllowAll())
    eight = _service(Settings(cache_bucket="b", temporal_series_weeks=8), engine, sites, store).fetch(
        SITE_ID, "temporalSeries", PARAMS, AllowAll())

    assert four.cache_key != eight.cache_key
    assert "AND week = 16)" in engine.calls[1]
    assert "AND week = 16)" not in engine.calls[0]


def test_page_type_uses_site_rules_and_filter(settings, store) -> None:
    site = Site(SITE_ID, "https://www.sample.com", ORG_ID, page_types=(("blog | Blog", r"^/blog/"),))
    engine = FakeQueryEngine([{"page_type": "blog | Blog", "utm_campaign": "x", "pageviews": 3000}])
    service = _service(settings, engine, FakeSites([site]), store)

    result = service.fetch(SITE_ID, "pageTypeCampaign", PARAMS, AllowAll())
    filtered = service.fetch(SITE_ID, "pageTypeCampaign", dict(PARAMS, pageTypes="blog | Blog"), AllowAll())

    assert "REGEXP_CONTAINS(path, '^/blog/') THEN 'blog | Blog'" in engine.calls[0]
    assert "page_type IN ('blog | Blog')" in engine.calls[1]
    assert result.cache_key != filtered.cache_key
    assert gunzip_json(result.body)[0]["page_type"] == "blog | Blog"


def test_page_type_falls_back_to_domain_rules(settings, store) -> None:
    site = Site(SITE_ID, "https://www.wilson.com", ORG_ID)
    engine = FakeQueryEngine([])

    _service(settings, engine, FakeSites([site]), store).fetch(SITE_ID, "urlPageTypeDevice", PARAMS, AllowAll())

    assert "THEN 'productdetail | Product Detail Pages'" in engine.calls[0]
    assert "GROUP BY path, page_type, device" in engine.calls[0]


def test_page_types_filter_ignored_for_other_dimensions(settings, sites, store) -> None:
    engine = FakeQueryEngine([])

    _service(settings, engine, sites, store).fetch(SITE_ID, "campaign", dict(PARAMS, pageTypes="blog"), AllowAll())

    assert "page_type" not in engine.calls[0]


def test_platform_dimension_filters_channel(settings, sites, store) -> None:
    engine = FakeQueryEngine([{"trf_channel": "social", "trf_platform": "facebook", "pageviews": 1500}])

    result = _service(settings, engine, sites, store).fetch(SITE_ID, "socialPlatform", PARAMS, AllowAll())

    assert "AND trf_channel = 'social'" in engine.calls[0]
    assert "AND trf_type IN ('paid')" in engine.calls[0]
    assert gunzip_json(result.body)[0]["platform"] == "facebook"
