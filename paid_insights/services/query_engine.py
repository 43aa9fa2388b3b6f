"""BigQuery adapter used as the analytical query engine."""
import logging
from typing import Any, Dict, List, Mapping, Optional

from google.cloud import bigquery

from ..errors import UpstreamFailure

logger = logging.getLogger(__name__)


def build_job_config(params: Optional[Mapping[str, Any]]) -> Optional[bigquery.QueryJobConfig]:
    """{"site_id": "abc"} -> QueryJobConfig with @site_id bound as a STRING parameter."""
    if not params:
        return None
    return bigquery.QueryJobConfig(
        query_parameters=[
            bigquery.ScalarQueryParameter(name, "STRING", value)
            for name, value in params.items()
        ]
    )


class BigQueryEngine:
    def __init__(self, project_id: Optional[str] = None, client: Optional[bigquery.Client] = None):
        self.project_id = project_id
        self._client = client

    def get_client(self) -> bigquery.Client:
        if self._client is None:
            self._client = bigquery.Client(project=self.project_id)
        return self._client

    def query(self, sql: str, description: str = "", params: Optional[Mapping[str, Any]] = None) -> List[Dict[str, Any]]:
        """Run one query and return its rows as plain dicts, in result order."""
        try:
            rows = self.get_client().query(sql, job_config=build_job_config(params)).result()
            return [dict(row) for row in rows]
        except Exception as e:
            logger.error(f"BigQuery query failed ({description}): {e}")
            raise UpstreamFailure("Failed to query paid traffic data") from e
