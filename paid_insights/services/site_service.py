"""
Site lookup and access control.
Sites live in a BigQuery table; access comes from the organizations stored in the Flask session.
"""
import json
import logging
from dataclasses import dataclass
from typing import Optional, Tuple

from flask import session

from ..queries.page_types import PageTypeRule, normalize_rules
from .query_engine import BigQueryEngine

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Site:
    site_id: str
    base_url: Optional[str] = None
    organization_id: Optional[str] = None
    page_types: Tuple[PageTypeRule, ...] = ()


def parse_page_types(raw) -> Tuple[PageTypeRule, ...]:
    """page_types column: JSON text or a repeated record of {name, pattern}."""
    if not raw:
        return ()
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            logger.warning("Invalid page_types JSON on site record. Using domain defaults.")
            return ()
    if not isinstance(raw, (list, tuple)):
        return ()
    return normalize_rules(raw)


class SiteRepository:
    def __init__(self, engine: BigQueryEngine, table_name: str):
        self.engine = engine
        self.table_name = table_name

    def find_by_id(self, site_id: str) -> Optional[Site]:
        query = f"""
        SELECT site_id, base_url, organization_id, page_types
        FROM `{self.table_name}`
        WHERE site_id = @site_id
        LIMIT 1
        """
        rows = self.engine.query(query, description=f"site lookup {site_id}", params={"site_id": site_id})
        if not rows:
            return None
        row = rows[0]
        return Site(
            site_id=row["site_id"],
            base_url=row.get("base_url"),
            organization_id=row.get("organization_id"),
            page_types=parse_page_types(row.get("page_types")),
        )


class SessionAccessControl:
    """Admins see every site; other users only the sites of their organizations."""

    def has_access(self, site: Site) -> bool:
        if session.get("is_admin"):
            return True
        return site.organization_id is not None and site.organization_id in session.get("organization_ids", [])
