from decimal import Decimal

from paid_insights.queries.traffic_query import DIMENSIONS
from paid_insights.services.traffic_dto import build_url, to_traffic_dto


def test_columns_are_renamed_and_extra_fields_dropped() -> None:
    record = {"trf_type": "search", "trf_channel": "google", "unrelated": 1000, "pageviews": 10}

    dto = to_traffic_dto(record, DIMENSIONS["typeChannel"])

    assert dto["type"] == "search"
    assert dto["channel"] == "google"
    assert dto["pageviews"] == 10
    assert "unrelated" not in dto
    assert "trf_type" not in dto
    assert dto["overall_cwv_score"] is None


def test_path_dimension_adds_url() -> None:
    record = {"utm_campaign": "winter", "path": "/about"}

    dto = to_traffic_dto(record, DIMENSIONS["campaignUrl"], "https://www.sample.com/")

    assert dto["campaign"] == "winter"
    assert dto["path"] == "/about"
    assert dto["url"] == "https://www.sample.com/about"


def test_decimals_become_numbers() -> None:
    dto = to_traffic_dto({"utm_campaign": "x", "pageviews": Decimal("12"), "click_rate": Decimal("0.25")},
                         DIMENSIONS["campaign"])

    assert dto["pageviews"] == 12 and isinstance(dto["pageviews"], int)
    assert dto["click_rate"] == 0.25


def test_build_url_without_base() -> None:
    assert build_url(None, "/a") is None


def test_series_rows_lead_with_year_and_week() -> None:
    record = {"year": 2024, "week": 22, "trf_channel": "search", "pageviews": 5}

    dto = to_traffic_dto(record, DIMENSIONS["temporalSeriesByChannel"])

    assert list(dto)[:3] == ["year", "week", "channel"]
    assert dto["week"] == 22


def test_page_type_passes_through() -> None:
    dto = to_traffic_dto({"page_type": "blog | Blog", "device": "mobile"}, DIMENSIONS["pageTypeDevice"])

    assert dto["page_type"] == "blog | Blog"
    assert dto["device"] == "mobile"
    assert "year" not in dto
