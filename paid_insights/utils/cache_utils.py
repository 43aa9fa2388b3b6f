"""
Cache codec for computed paid traffic results.
Keys are derived from every input that shapes the result; payloads are gzipped JSON.
"""
import gzip
import json
import hashlib
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, List

from .week_utils import TimeWindow


def _json_default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return str(value)


def generate_cache_key(prefix: str, site_id: str, endpoint: str, window: TimeWindow, params: Dict[str, Any]) -> str:
    """
    {prefix}/{site_id}/{endpoint}/{year}-W{week}/{sha256}.json.gz

    The digest covers site, endpoint, resolved months and all dimension parameters,
    so distinct requests never share a key and the same request always maps to one.
    """
    params_str = json.dumps({
        "site_id": site_id,
        "endpoint": endpoint,
        "year": window.year,
        "week": window.week,
        "months": [list(pair) for pair in window.months],
        "params": params,
    }, sort_keys=True, default=_json_default)

    digest = hashlib.sha256(params_str.encode("utf-8")).hexdigest()
    return f"{prefix}/{site_id}/{endpoint}/{window.year}-W{window.week:02d}/{digest}.json.gz"


def encode_records(records: List[Dict[str, Any]]) -> bytes:
    # mtime=0 keeps the bytes identical for identical payloads
    data = json.dumps(records, ensure_ascii=False, default=_json_default)
    return gzip.compress(data.encode("utf-8"), mtime=0)


def decode_records(data: bytes) -> List[Dict[str, Any]]:
    return json.loads(gzip.decompress(data).decode("utf-8"))
