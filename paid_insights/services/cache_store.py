"""
GCS-backed object store for cached results (HEAD / GET / PUT).
Any storage error is raised as CacheFailure; callers decide how to recover.
"""
import logging
from typing import Optional

from google.api_core import exceptions as gcp_exceptions
from google.cloud import storage

from ..errors import CacheFailure

logger = logging.getLogger(__name__)


class GcsCacheStore:
    def __init__(self, bucket_name: str, project_id: Optional[str] = None, client: Optional[storage.Client] = None):
        self.bucket_name = bucket_name
        self.project_id = project_id
        self._client = client
        self._bucket = None

    def _get_bucket(self):
        # lazy so importing the app never needs credentials
        if self._bucket is None:
            if self._client is None:
                self._client = storage.Client(project=self.project_id)
            self._bucket = self._client.bucket(self.bucket_name)
        return self._bucket

    def exists(self, key: str) -> bool:
        try:
            return self._get_bucket().blob(key).exists()
        except gcp_exceptions.NotFound:
            return False
        except Exception as e:
            raise CacheFailure(f"HEAD gs://{self.bucket_name}/{key} failed: {e}") from e

    def read(self, key: str) -> bytes:
        """Raw stored bytes. raw_download keeps GCS from transcoding the gzip body."""
        try:
            return self._get_bucket().blob(key).download_as_bytes(raw_download=True)
        except Exception as e:
            raise CacheFailure(f"GET gs://{self.bucket_name}/{key} failed: {e}") from e

    def write(self, key: str, data: bytes) -> None:
        try:
            blob = self._get_bucket().blob(key)
            blob.content_encoding = "gzip"
            blob.upload_from_string(data, content_type="application/json")
        except Exception as e:
            raise CacheFailure(f"PUT gs://{self.bucket_name}/{key} failed: {e}") from e
        logger.info(f"[CACHE] stored gs://{self.bucket_name}/{key} ({len(data)} bytes)")
