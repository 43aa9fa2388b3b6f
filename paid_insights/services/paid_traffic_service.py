"""
Paid traffic cache-or-compute service.

Per request: validate -> resolve site -> check cache -> (hit: stream cached gzip)
or (miss: query engine -> CWV scoring -> gzip -> best-effort cache write).
Cache errors never reach the caller; query engine errors surface as UpstreamFailure.
"""
import json
import logging
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Tuple

from ..config import Settings
from ..errors import BadRequest, Forbidden, NotFound, UpstreamFailure
from ..queries.page_types import page_type_rules
from ..queries.traffic_query import (
    ALL_TRAFFIC,
    DIMENSIONS,
    TRAFFIC_TYPES,
    DimensionSpec,
    build_traffic_query,
    query_parameters,
)
from ..utils.cache_utils import encode_records, generate_cache_key
from ..utils.week_utils import TimeWindow, resolve_window, series_windows
from .cwv_scoring import score_record
from .traffic_dto import to_traffic_dto

logger = logging.getLogger(__name__)

TRUE_VALUES = ("1", "true", "yes", "on")


@dataclass(frozen=True)
class TrafficRequest:
    year: int
    week: int
    traffic_type: Optional[str] = None
    limit: Optional[int] = None
    no_cache: bool = False
    no_threshold: bool = False
    page_types: Tuple[str, ...] = ()


@dataclass(frozen=True)
class TrafficResult:
    body: bytes
    cache_key: Optional[str]
    cache_hit: bool
    row_count: Optional[int] = None


def _is_missing(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value.strip() == "")


def _as_flag(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() in TRUE_VALUES if value is not None else False


def _as_whole_number(value: Any) -> int:
    # JSON bodies can carry true/false or 23.5; neither is a week number
    if isinstance(value, bool):
        raise ValueError(value)
    if isinstance(value, float):
        if not value.is_integer():
            raise ValueError(value)
        return int(value)
    return int(value)


def _as_name_list(value: Any) -> Tuple[str, ...]:
    """"a,b" / '["a", "b"]' / ["a", "b"] -> ("a", "b")"""
    if _is_missing(value):
        return ()
    if isinstance(value, str):
        text = value.strip()
        if text.startswith("["):
            try:
                value = json.loads(text)
            except ValueError:
                raise BadRequest("pageTypes must be a list of page type names") from None
        else:
            value = text.split(",")
    if not isinstance(value, (list, tuple)):
        raise BadRequest("pageTypes must be a list of page type names")
    names = [str(item).strip() for item in value if not _is_missing(item)]
    return tuple(sorted(set(name for name in names if name)))


def parse_traffic_request(data: Mapping[str, Any]) -> TrafficRequest:
    """Validate raw query/body parameters. Raises BadRequest before any I/O happens."""
    year, week = data.get("year"), data.get("week")
    if _is_missing(year) or _is_missing(week):
        raise BadRequest("Year and week are required parameters")
    try:
        year_int, week_int = _as_whole_number(year), _as_whole_number(week)
    except (TypeError, ValueError):
        raise BadRequest("Year and week must be valid numbers") from None

    traffic_type = data.get("trafficType")
    if _is_missing(traffic_type):
        traffic_type = None
    else:
        traffic_type = str(traffic_type).strip().lower()
        if traffic_type not in TRAFFIC_TYPES + (ALL_TRAFFIC,):
            raise BadRequest(f"trafficType must be one of {', '.join(TRAFFIC_TYPES + (ALL_TRAFFIC,))}")

    limit = data.get("limit")
    if _is_missing(limit):
        limit = None
    else:
        try:
            limit = _as_whole_number(limit)
        except (TypeError, ValueError):
            raise BadRequest("limit must be a positive integer") from None
        if limit <= 0:
            raise BadRequest("limit must be a positive integer")

    return TrafficRequest(
        year=year_int,
        week=week_int,
        traffic_type=traffic_type,
        limit=limit,
        no_cache=_as_flag(data.get("noCache")),
        no_threshold=_as_flag(data.get("noThreshold")),
        page_types=_as_name_list(data.get("pageTypes")),
    )


class PaidTrafficService:
    def __init__(self, settings: Settings, query_engine, site_repository, cache_store=None):
        self.settings = settings
        self.query_engine = query_engine
        self.site_repository = site_repository
        self.cache_store = cache_store if settings.cache_enabled else None

    def fetch(self, site_id: str, dimension: str, data: Mapping[str, Any], access_control) -> TrafficResult:
        spec = DIMENSIONS[dimension]

        # 1) validate
        if _is_missing(site_id):
            raise BadRequest("Site ID is required")
        request = parse_traffic_request(data)
        window = resolve_window(request.year, request.week)
        num_series = self.settings.temporal_series_weeks if spec.temporal_series else 1
        windows = series_windows(window, num_series)

        # 2) site + access
        site = self.site_repository.find_by_id(site_id)
        if site is None:
            raise NotFound("Site not found")
        if not access_control.has_access(site):
            raise Forbidden("Only users belonging to the organization can view paid traffic metrics")

        traffic_type = request.traffic_type or spec.default_traffic_type
        min_pageviews = 0 if request.no_threshold else self.settings.paid_data_threshold
        rules = page_type_rules(site.base_url, site.page_types) if spec.uses_page_type else ()
        page_types = request.page_types if spec.uses_page_type else ()

        logger.info(
            f"Processing paid traffic | site: {site_id} | dimension: {spec.name} | "
            f"window: {window.describe()} | weeks: {num_series} | trafficType: {traffic_type} | "
            f"minPageviews: {min_pageviews}"
        )

        # 3) cache lookup
        cache_key = None
        if self.cache_store is not None:
            cache_key = generate_cache_key(
                self.settings.cache_prefix,
                site_id,
                spec.name,
                window,
                {
                    "columns": list(spec.columns),
                    "channel": spec.channel,
                    "num_series": num_series,
                    "traffic_type": traffic_type,
                    "min_pageviews": min_pageviews,
                    "limit": request.limit,
                    "page_type_rules": [list(rule) for rule in rules],
                    "page_types": list(page_types),
                    "base_url": site.base_url,
                    "cwv_thresholds": self.settings.cwv_thresholds.as_dict(),
                    "dialect": self.settings.query_dialect,
                },
            )
            cached = self._read_cache(cache_key, request.no_cache)
            if cached is not None:
                return TrafficResult(body=cached, cache_key=cache_key, cache_hit=True)

        # 4) compute + score
        query = build_traffic_query(
            site_id=site.site_id,
            window=window,
            spec=spec,
            table_name=self.settings.rum_metrics_table,
            min_pageviews=min_pageviews,
            limit=request.limit,
            traffic_type=traffic_type,
            dialect=self.settings.query_dialect,
            num_series=num_series,
            page_type_rules=rules,
            page_types=page_types,
        )
        records = self._compute(query, site, spec, window, windows)
        body = encode_records(records)

        # 5) best-effort write-through
        if cache_key is not None:
            self._write_cache(cache_key, body)

        return TrafficResult(body=body, cache_key=cache_key, cache_hit=False, row_count=len(records))

    def _read_cache(self, cache_key: str, no_cache: bool) -> Optional[bytes]:
        try:
            exists = self.cache_store.exists(cache_key)
        except Exception as e:
            logger.warning(f"[CACHE] existence check failed for {cache_key}, computing instead: {e}")
            return None

        if not exists:
            logger.info(f"[CACHE] MISS {cache_key}")
            return None
        if no_cache:
            logger.info(f"[CACHE] noCache requested, recomputing {cache_key}")
            return None

        try:
            body = self.cache_store.read(cache_key)
        except Exception as e:
            logger.warning(f"[CACHE] read failed for {cache_key}, computing instead: {e}")
            return None
        logger.info(f"[CACHE] HIT {cache_key}")
        return body

    def _write_cache(self, cache_key: str, body: bytes) -> None:
        try:
            self.cache_store.write(cache_key, body)
        except Exception as e:
            logger.warning(f"[CACHE] write failed for {cache_key}, returning computed result: {e}")

    def _compute(self, query: str, site, spec: DimensionSpec, window: TimeWindow, windows):
        description = f"paid traffic | site: {site.site_id} | {window.year}-W{window.week:02d} | groupBy: [{spec.dimension_columns}]"
        logger.debug(f"Query for {description}:\n{query}")

        try:
            rows = self.query_engine.query(
                query,
                description,
                params=query_parameters(site.site_id, self.settings.query_dialect),
            )
        except UpstreamFailure:
            raise
        except Exception as e:
            logger.error(f"Query engine failed for {description}: {e}")
            raise UpstreamFailure("Failed to query paid traffic data") from e

        logger.info(f"Query returned {len(rows)} rows for {description}")
        if spec.temporal_series:
            rows = label_series_rows(rows, windows)
        return build_records(rows, spec, self.settings, site.base_url)


def label_series_rows(rows, windows) -> list:
    """Attach the ISO year of each row's week; week numbers are unique within one series."""
    years = {item.week: item.year for item in windows}
    labelled = []
    for row in rows:
        row = dict(row)
        week = row.get("week")
        try:
            row["year"] = years.get(int(week)) if week is not None else None
        except (TypeError, ValueError):
            row["year"] = None
        labelled.append(row)
    return labelled


def build_records(rows, spec: DimensionSpec, settings: Settings, base_url: Optional[str] = None) -> list:
    """Score and project raw rows without touching cache or engine."""
    return [to_traffic_dto(score_record(row, settings.cwv_thresholds), spec, base_url) for row in rows]
