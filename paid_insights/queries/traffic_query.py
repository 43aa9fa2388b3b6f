"""
Paid traffic aggregate query builder.
Dimension specs are fixed per endpoint; only the window, thresholds and
traffic filter vary per request.
"""
import re
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from ..utils.week_utils import TimeWindow, series_windows
from .page_types import OTHER_PAGE_TYPE, PageTypeRule

TRAFFIC_TYPES = ("earned", "owned", "paid")
ALL_TRAFFIC = "all"

PAGE_TYPE_COLUMN = "page_type"
SERIES_COLUMN = "week"


@dataclass(frozen=True)
class DimensionSpec:
    name: str
    slug: str
    columns: Tuple[str, ...]
    default_traffic_type: Optional[str] = None
    channel: Optional[str] = None
    temporal_series: bool = False

    @property
    def dimension_columns(self) -> str:
        return ", ".join(self.columns)

    @property
    def uses_page_type(self) -> bool:
        return PAGE_TYPE_COLUMN in self.columns

    def prefixed_columns(self, alias: str = "a") -> str:
        return ", ".join(f"{alias}.{col}" for col in self.columns)


def to_slug(name: str) -> str:
    """campaignUrlDevice -> campaign-url-device"""
    return re.sub(r"(?<!^)(?=[A-Z])", "-", name).lower()


def _spec(name, columns, default_traffic_type=None, channel=None, temporal_series=False):
    return DimensionSpec(
        name=name,
        slug=to_slug(name),
        columns=tuple(columns),
        default_traffic_type=default_traffic_type,
        channel=channel,
        temporal_series=temporal_series,
    )


def _platform_specs(channel):
    return (
        _spec(f"{channel}Platform", ["trf_channel", "trf_platform"], "paid", channel=channel),
        _spec(f"{channel}PlatformDevice", ["trf_channel", "trf_platform", "device"], "paid", channel=channel),
    )


def _series_spec(name, columns, default_traffic_type="paid"):
    return _spec(name, columns, default_traffic_type, temporal_series=True)


DIMENSIONS: Dict[str, DimensionSpec] = {
    spec.name: spec for spec in (
        # traffic type breakdowns (no default filter)
        _spec("type", ["trf_type"]),
        _spec("typeChannel", ["trf_type", "trf_channel"]),
        _spec("typeCampaign", ["trf_type", "utm_campaign"]),
        _spec("typeChannelCampaign", ["trf_type", "trf_channel", "utm_campaign"]),
        _spec("typeDevice", ["trf_type", "device"]),
        _spec("typeDeviceChannel", ["trf_type", "device", "trf_channel"]),
        # channel / platform
        _spec("channel", ["trf_channel"], "paid"),
        _spec("channelDevice", ["trf_channel", "device"], "paid"),
        _spec("channelPlatform", ["trf_channel", "trf_platform"], "paid"),
        _spec("channelPlatformDevice", ["trf_channel", "trf_platform", "device"], "paid"),
        *_platform_specs("social"),
        *_platform_specs("search"),
        *_platform_specs("display"),
        *_platform_specs("video"),
        # campaign
        _spec("campaign", ["utm_campaign"], "paid"),
        _spec("campaignDevice", ["utm_campaign", "device"], "paid"),
        _spec("campaignUrl", ["utm_campaign", "path"], "paid"),
        _spec("campaignUrlDevice", ["utm_campaign", "path", "device"], "paid"),
        _spec("campaignChannelDevice", ["utm_campaign", "trf_channel", "device"], "paid"),
        _spec("campaignChannelPlatform", ["utm_campaign", "trf_channel", "trf_platform"], "paid"),
        _spec("campaignChannelPlatformDevice", ["utm_campaign", "trf_channel", "trf_platform", "device"], "paid"),
        # url
        _spec("url", ["path"], "paid"),
        _spec("urlDevice", ["path", "device"], "paid"),
        _spec("urlChannel", ["path", "trf_channel"], "paid"),
        _spec("urlChannelDevice", ["path", "trf_channel", "device"], "paid"),
        _spec("urlChannelPlatformDevice", ["path", "trf_channel", "trf_platform", "device"], "paid"),
        # page type
        _spec("pageType", ["page_type"], "paid"),
        _spec("pageTypeDevice", ["page_type", "device"], "paid"),
        _spec("pageTypeCampaign", ["page_type", "utm_campaign"], "paid"),
        _spec("pageTypeCampaignDevice", ["page_type", "utm_campaign", "device"], "paid"),
        _spec("pageTypePlatform", ["page_type", "trf_platform"], "paid"),
        _spec("pageTypePlatformDevice", ["page_type", "trf_platform", "device"], "paid"),
        _spec("pageTypePlatformCampaign", ["page_type", "trf_platform", "utm_campaign"], "paid"),
        _spec("pageTypePlatformCampaignDevice", ["page_type", "trf_platform", "utm_campaign", "device"], "paid"),
        _spec("urlPageType", ["path", "page_type"], "paid"),
        _spec("urlPageTypeDevice", ["path", "page_type", "device"], "paid"),
        _spec("urlPageTypeCampaign", ["path", "page_type", "utm_campaign"], "paid"),
        _spec("urlPageTypeCampaignDevice", ["path", "page_type", "utm_campaign", "device"], "paid"),
        _spec("urlPageTypePlatform", ["path", "page_type", "trf_platform"], "paid"),
        _spec("urlPageTypePlatformDevice", ["path", "page_type", "trf_platform", "device"], "paid"),
        _spec("urlPageTypeCampaignPlatform", ["path", "page_type", "utm_campaign", "trf_platform"], "paid"),
        _spec("urlPageTypePlatformCampaignDevice", ["path", "page_type", "trf_platform", "utm_campaign", "device"], "paid"),
        # week-over-week series
        _series_spec("temporalSeries", ["trf_type"], None),
        _series_spec("temporalSeriesByChannel", ["trf_channel"]),
        _series_spec("temporalSeriesByPlatform", ["trf_platform"]),
        _series_spec("temporalSeriesByChannelPlatform", ["trf_channel", "trf_platform"]),
        _series_spec("temporalSeriesByCampaignChannel", ["utm_campaign", "trf_channel"]),
        _series_spec("temporalSeriesByCampaignPlatform", ["utm_campaign", "trf_platform"]),
        _series_spec("temporalSeriesByCampaignChannelPlatform", ["utm_campaign", "trf_channel", "trf_platform"]),
        _series_spec("temporalSeriesByUrl", ["path"]),
        _series_spec("temporalSeriesByUrlChannel", ["path", "trf_channel"]),
        _series_spec("temporalSeriesByUrlPlatform", ["path", "trf_platform"]),
        _series_spec("temporalSeriesByUrlChannelPlatform", ["path", "trf_channel", "trf_platform"]),
    )
}

# ─────────────────────────────────────────────
# SQL spelling per engine
# ─────────────────────────────────────────────
DIALECTS = {
    "bigquery": {
        "table": "`{table}`",
        "float": "FLOAT64",
        "p70": "APPROX_QUANTILES({column}, 100)[OFFSET(70)]",
        "regex": "REGEXP_CONTAINS({column}, {pattern})",
    },
    "presto": {
        "table": "{table}",
        "float": "DOUBLE",
        "p70": "approx_percentile({column}, 0.70)",
        "regex": "REGEXP_LIKE({column}, {pattern})",
    },
}


def quote_literal(value) -> str:
    """ANSI string literal (Presto): quotes doubled, backslashes literal."""
    return "'" + str(value).replace("'", "''") + "'"


def sql_literal(value, dialect: str = "bigquery") -> str:
    if dialect == "bigquery":
        # backslash is an escape character inside BigQuery string literals
        escaped = str(value).replace("\\", "\\\\").replace("'", "\\'")
        return f"'{escaped}'"
    return quote_literal(value)


def query_parameters(site_id: str, dialect: str = "bigquery") -> Dict[str, str]:
    """Named parameters bound by the engine; presto renders the site id inline."""
    return {"site_id": site_id} if dialect == "bigquery" else {}


def get_temporal_condition(window: TimeWindow, num_series: int = 1) -> str:
    """
    ((year = 2024 AND month = 12) OR (year = 2025 AND month = 1)) AND week = 1

    With num_series > 1 the condition ORs the requested week with the weeks before it.
    """
    windows = series_windows(window, num_series)
    conditions = []
    for item in windows:
        months = " OR ".join(f"(year = {year} AND month = {month})" for year, month in item.months)
        conditions.append(f"({months}) AND week = {item.week}")
    if len(conditions) == 1:
        return conditions[0]
    return "(" + " OR ".join(f"({condition})" for condition in conditions) + ")"


def get_traffic_filter(traffic_type: Optional[str], dialect: str = "bigquery") -> str:
    if not traffic_type or traffic_type == ALL_TRAFFIC:
        return "TRUE"
    return f"trf_type IN ({sql_literal(traffic_type, dialect)})"


def build_page_type_case(rules: Sequence[PageTypeRule], column: str = "path", dialect: str = "bigquery") -> str:
    """CASE expression labelling each row with the first matching page type."""
    if not rules:
        return f"{sql_literal(OTHER_PAGE_TYPE, dialect)} AS {PAGE_TYPE_COLUMN}"

    regex = DIALECTS[dialect]["regex"]
    lines = ["CASE"]
    for name, pattern in rules:
        condition = regex.format(column=column, pattern=sql_literal(pattern, dialect))
        lines.append(f"            WHEN {condition} THEN {sql_literal(name, dialect)}")
    lines.append(f"            ELSE {sql_literal(OTHER_PAGE_TYPE, dialect)}")
    lines.append(f"        END AS {PAGE_TYPE_COLUMN}")
    return "\n".join(lines)


def build_traffic_query(
    site_id: str,
    window: TimeWindow,
    spec: DimensionSpec,
    table_name: str,
    min_pageviews: Optional[int] = None,
    limit: Optional[int] = None,
    traffic_type: Optional[str] = None,
    dialect: str = "bigquery",
    num_series: int = 1,
    page_type_rules: Sequence[PageTypeRule] = (),
    page_types: Sequence[str] = (),
) -> str:
    """
    Render the aggregate query for one site, window and dimension spec.

    Args:
        traffic_type: trf_type filter; None or "all" renders TRUE (no filter)
        min_pageviews: HAVING threshold on the min_totals stage; None drops it
        limit: LIMIT n; None omits the clause
        num_series: weeks scanned for temporal series specs, ending at window
        page_type_rules: (name, pattern) pairs for the page_type CASE column
        page_types: restrict page type specs to these page type names
    """
    sql = DIALECTS[dialect]
    table = sql["table"].format(table=table_name)
    float_type = sql["float"]
    series = num_series if spec.temporal_series else 1
    site = "@site_id" if dialect == "bigquery" else quote_literal(site_id)

    dims = spec.dimension_columns
    agg_dims = f"{SERIES_COLUMN}, {dims}" if spec.temporal_series else dims
    a_dims = f"a.{SERIES_COLUMN}, {spec.prefixed_columns('a')}" if spec.temporal_series else spec.prefixed_columns("a")
    join_on = " AND ".join(f"a.{col} IS NOT DISTINCT FROM m.{col}" for col in spec.columns)

    where = (
        f"siteid = {site}\n"
        f"      AND {get_temporal_condition(window, series)}\n"
        f"      AND consent IN ('show', 'hidden')\n"
        f"      AND {get_traffic_filter(traffic_type, dialect)}"
    )
    if spec.channel:
        where += f"\n      AND trf_channel = {sql_literal(spec.channel, dialect)}"

    ctes = []
    source, source_where = table, where
    if spec.uses_page_type:
        ctes.append(
            f"classified AS (\n"
            f"    SELECT\n"
            f"        *,\n"
            f"        {build_page_type_case(page_type_rules, dialect=dialect)}\n"
            f"    FROM {table}\n"
            f"    WHERE {where}\n"
            f")"
        )
        source, source_where = "classified", "TRUE"
        if page_types:
            names = ", ".join(sql_literal(name, dialect) for name in page_types)
            source_where = f"{PAGE_TYPE_COLUMN} IN ({names})"

    having = f"\n    HAVING SUM(pageviews) >= {int(min_pageviews)}" if min_pageviews is not None else ""
    ctes.append(f"""min_totals AS (
    SELECT {dims}
    FROM {source}
    WHERE {source_where}
    GROUP BY {dims}{having}
)""")
    ctes.append(f"""agg AS (
    SELECT
        {agg_dims},
        CAST(SUM(pageviews) AS BIGINT) AS pageviews,
        SUM(clicked) AS clicks,
        SUM(engaged) AS engagements,
        COUNT(*) AS row_count,
        {sql["p70"].format(column="lcp")} AS p70_lcp,
        {sql["p70"].format(column="cls")} AS p70_cls,
        {sql["p70"].format(column="inp")} AS p70_inp
    FROM {source}
    WHERE {source_where}
    GROUP BY {agg_dims}
)""")

    if spec.temporal_series:
        # pct_pageviews is relative to the week the row belongs to
        ctes.append(f"""grand_total AS (
    SELECT {SERIES_COLUMN}, SUM(pageviews) AS total_pageviews FROM agg GROUP BY {SERIES_COLUMN}
)""")
        total_join = f"JOIN grand_total t ON t.{SERIES_COLUMN} = a.{SERIES_COLUMN}"
        order_by = f"a.{SERIES_COLUMN}, a.pageviews DESC"
    else:
        ctes.append("""grand_total AS (
    SELECT SUM(pageviews) AS total_pageviews FROM agg
)""")
        total_join = "CROSS JOIN grand_total t"
        order_by = "a.pageviews DESC"

    query = "WITH " + ",\n".join(ctes) + f"""
SELECT
    {a_dims},
    a.pageviews,
    CAST(a.pageviews AS {float_type}) / NULLIF(t.total_pageviews, 0) AS pct_pageviews,
    CAST(a.clicks AS {float_type}) / NULLIF(a.row_count, 0) AS click_rate,
    CAST(a.engagements AS {float_type}) / NULLIF(a.row_count, 0) AS engagement_rate,
    1 - CAST(a.engagements AS {float_type}) / NULLIF(a.row_count, 0) AS bounce_rate,
    a.p70_lcp,
    a.p70_cls,
    a.p70_inp
FROM agg a
JOIN min_totals m ON {join_on}
{total_join}
ORDER BY {order_by}"""

    if limit is not None:
        query += f"\nLIMIT {int(limit)}"
    return query.strip() + "\n"
