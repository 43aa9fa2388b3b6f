"""
Runtime configuration for the paid traffic service.
Built once at start-up from the environment (and config/paid.env when present)
and passed explicitly to the services that need it.
"""
import os
import json
import logging
from dataclasses import dataclass, field, asdict
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

BASE_DIR = Path(__file__).resolve().parents[1]
ENV_PATH = BASE_DIR / "config" / "paid.env"

# env key -> CwvThresholds field
THRESHOLD_KEYS = {
    "LCP_GOOD": "lcp_good",
    "LCP_NEEDS_IMPROVEMENT": "lcp_needs_improvement",
    "INP_GOOD": "inp_good",
    "INP_NEEDS_IMPROVEMENT": "inp_needs_improvement",
    "CLS_GOOD": "cls_good",
    "CLS_NEEDS_IMPROVEMENT": "cls_needs_improvement",
}

QUERY_DIALECTS = ("bigquery", "presto")


@dataclass(frozen=True)
class CwvThresholds:
    """Core Web Vitals boundaries. LCP and INP in milliseconds, CLS unitless."""
    lcp_good: float = 2500
    lcp_needs_improvement: float = 4000
    inp_good: float = 200
    inp_needs_improvement: float = 500
    cls_good: float = 0.1
    cls_needs_improvement: float = 0.25

    @classmethod
    def from_mapping(cls, overrides: Optional[Mapping[str, Any]]) -> "CwvThresholds":
        """Merge LCP_GOOD-style overrides over the defaults. Unknown keys are ignored."""
        if not overrides:
            return cls()

        values = {}
        for key, attr in THRESHOLD_KEYS.items():
            if key not in overrides:
                continue
            try:
                values[attr] = float(overrides[key])
            except (TypeError, ValueError):
                logger.warning(f"Invalid CWV threshold {key}={overrides[key]!r}. Keeping default.")
        return cls(**values)

    def as_dict(self) -> Dict[str, float]:
        return {key: getattr(self, attr) for key, attr in THRESHOLD_KEYS.items()}


def parse_cwv_thresholds(raw: Any) -> CwvThresholds:
    """
    CWV_THRESHOLDS may be a JSON string or an already decoded mapping.
    Invalid JSON falls back to the defaults with a warning.
    """
    if not raw:
        return CwvThresholds()

    if isinstance(raw, Mapping):
        return CwvThresholds.from_mapping(raw)

    try:
        parsed = json.loads(raw)
    except (TypeError, ValueError):
        logger.warning("Invalid CWV_THRESHOLDS JSON. Falling back to defaults.")
        return CwvThresholds()

    if not isinstance(parsed, dict):
        logger.warning("Invalid CWV_THRESHOLDS JSON. Falling back to defaults.")
        return CwvThresholds()
    return CwvThresholds.from_mapping(parsed)


@dataclass(frozen=True)
class Settings:
    project_id: Optional[str] = None
    rum_metrics_table: str = "rum_metrics.rum_metrics_compact"
    sites_table: str = "spacecat.sites"
    cache_bucket: Optional[str] = None
    cache_prefix: str = "rum-metrics-compact/cache"
    paid_data_threshold: int = 1000
    cwv_thresholds: CwvThresholds = field(default_factory=CwvThresholds)
    query_dialect: str = "bigquery"
    temporal_series_weeks: int = 4
    log_level: str = "INFO"
    secret_key: str = "dev-secret"

    @property
    def cache_enabled(self) -> bool:
        return bool(self.cache_bucket)

    def describe(self) -> Dict[str, Any]:
        """Loggable view of the settings (secret key masked)."""
        data = asdict(self)
        data["secret_key"] = "***"
        return data


def load_settings(environ: Optional[Mapping[str, str]] = None) -> Settings:
    """
    Build Settings from the environment.
    When no mapping is given, config/paid.env is loaded first (real env wins).
    """
    if environ is None:
        if ENV_PATH.exists():
            load_dotenv(ENV_PATH, override=False)
            logger.info(f"[ENV] loaded {ENV_PATH}")
        environ = os.environ

    dialect = (environ.get("QUERY_DIALECT") or "bigquery").strip().lower()
    if dialect not in QUERY_DIALECTS:
        raise ValueError(f"QUERY_DIALECT must be one of {', '.join(QUERY_DIALECTS)}, got {dialect!r}")

    threshold = environ.get("PAID_DATA_THRESHOLD")
    try:
        paid_data_threshold = int(threshold) if threshold not in (None, "") else 1000
    except ValueError:
        raise ValueError(f"PAID_DATA_THRESHOLD must be an integer, got {threshold!r}") from None

    series = environ.get("TEMPORAL_SERIES_WEEKS")
    try:
        temporal_series_weeks = int(series) if series not in (None, "") else 4
    except ValueError:
        raise ValueError(f"TEMPORAL_SERIES_WEEKS must be an integer, got {series!r}") from None
    if not 1 <= temporal_series_weeks <= 52:
        raise ValueError(f"TEMPORAL_SERIES_WEEKS must be between 1 and 52, got {temporal_series_weeks}")

    return Settings(
        project_id=environ.get("GOOGLE_CLOUD_PROJECT") or None,
        rum_metrics_table=environ.get("RUM_METRICS_TABLE") or Settings.rum_metrics_table,
        sites_table=environ.get("SITES_TABLE") or Settings.sites_table,
        cache_bucket=environ.get("PAID_TRAFFIC_CACHE_BUCKET") or None,
        cache_prefix=(environ.get("PAID_TRAFFIC_CACHE_PREFIX") or Settings.cache_prefix).strip("/"),
        paid_data_threshold=paid_data_threshold,
        cwv_thresholds=parse_cwv_thresholds(environ.get("CWV_THRESHOLDS")),
        query_dialect=dialect,
        temporal_series_weeks=temporal_series_weeks,
        log_level=(environ.get("LOG_LEVEL") or "INFO").upper(),
        secret_key=environ.get("FLASK_SECRET_KEY") or Settings.secret_key,
    )
