"""Projection of scored query rows into the public response shape."""
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from ..queries.traffic_query import DimensionSpec

COLUMN_RENAMES = {
    "trf_type": "type",
    "trf_channel": "channel",
    "trf_platform": "platform",
    "utm_campaign": "campaign",
}

METRIC_FIELDS = (
    "pageviews",
    "pct_pageviews",
    "click_rate",
    "engagement_rate",
    "bounce_rate",
    "p70_lcp",
    "p70_cls",
    "p70_inp",
)

SCORE_FIELDS = ("lcp_score", "cls_score", "inp_score", "overall_cwv_score")

SERIES_FIELDS = ("year", "week")


def serialize_value(value: Any) -> Any:
    if isinstance(value, Decimal):
        return int(value) if value == value.to_integral_value() else float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


def build_url(base_url: Optional[str], path: Optional[str]) -> Optional[str]:
    if not base_url or not path:
        return None
    return f"{base_url.rstrip('/')}/{str(path).lstrip('/')}"


def to_traffic_dto(record: Dict[str, Any], spec: DimensionSpec, base_url: Optional[str] = None) -> Dict[str, Any]:
    dto = {}
    if spec.temporal_series:
        for name in SERIES_FIELDS:
            dto[name] = serialize_value(record.get(name))

    for column in spec.columns:
        dto[COLUMN_RENAMES.get(column, column)] = serialize_value(record.get(column))
        if column == "path":
            dto["url"] = build_url(base_url, record.get("path"))

    for name in METRIC_FIELDS:
        if name in record:
            dto[name] = serialize_value(record[name])

    for name in SCORE_FIELDS:
        dto[name] = record.get(name)
    return dto
