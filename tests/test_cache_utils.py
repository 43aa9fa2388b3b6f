import gzip
import json

from paid_insights.utils.cache_utils import decode_records, encode_records, generate_cache_key
from paid_insights.utils.week_utils import resolve_window

RECORDS = [
    {"campaign": "summer", "pageviews": 400, "p70_lcp": 3020.0, "overall_cwv_score": "needs improvement"},
    {"campaign": "fall", "pageviews": 100, "p70_lcp": None, "overall_cwv_score": None},
]


def _key(**overrides):
    params = {"traffic_type": "paid", "min_pageviews": 1000, "limit": None}
    params.update(overrides.pop("params", {}))
    args = {"prefix": "cache", "site_id": "site-id", "endpoint": "campaign", "window": resolve_window(2024, 23)}
    args.update(overrides)
    return generate_cache_key(params=params, **args)


def test_round_trip() -> None:
    assert decode_records(encode_records(RECORDS)) == RECORDS


def test_encoding_is_plain_gzip_json() -> None:
    assert json.loads(gzip.decompress(encode_records(RECORDS))) == RECORDS


def test_encoding_is_deterministic() -> None:
    assert encode_records(RECORDS) == encode_records([dict(r) for r in RECORDS])


def test_key_is_deterministic_and_readable() -> None:
    key = _key()
    assert key == _key()
    assert key.startswith("cache/site-id/campaign/2024-W23/")
    assert key.endswith(".json.gz")


def test_key_changes_with_every_parameter() -> None:
    keys = {
        _key(),
        _key(site_id="other-site"),
        _key(endpoint="campaignDevice"),
        _key(window=resolve_window(2024, 24)),
        _key(window=resolve_window(2023, 23)),
        _key(params={"traffic_type": "earned"}),
        _key(params={"min_pageviews": 0}),
        _key(params={"limit": 10}),
    }
    assert len(keys) == 8
