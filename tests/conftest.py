import gzip
import json

import pytest

from paid_insights.app import create_app
from paid_insights.config import Settings
from paid_insights.errors import CacheFailure
from paid_insights.services.site_service import Site

SITE_ID = "site-id"
ORG_ID = "org-1"


class FakeQueryEngine:
    def __init__(self, rows=None, error=None):
        self.rows = rows or []
        self.error = error
        self.calls = []
        self.params = []

    def query(self, sql, description="", params=None):
        self.calls.append(sql)
        self.params.append(params)
        if self.error is not None:
            raise self.error
        return [dict(row) for row in self.rows]


class FakeCacheStore:
    def __init__(self):
        self.objects = {}
        self.fail_exists = False
        self.fail_read = False
        self.fail_write = False
        self.exists_calls = []
        self.reads = []
        self.writes = []

    def exists(self, key):
        self.exists_calls.append(key)
        if self.fail_exists:
            raise CacheFailure("HEAD failed")
        return key in self.objects

    def read(self, key):
        self.reads.append(key)
        if self.fail_read:
            raise CacheFailure("GET failed")
        return self.objects[key]

    def write(self, key, data):
        self.writes.append(key)
        if self.fail_write:
            raise CacheFailure("PUT failed")
        self.objects[key] = data


class FakeSites:
    def __init__(self, sites=None):
        self.sites = {site.site_id: site for site in (sites or [])}
        self.lookups = []

    def find_by_id(self, site_id):
        self.lookups.append(site_id)
        return self.sites.get(site_id)


class AllowAll:
    def has_access(self, site):
        return True


class DenyAll:
    def has_access(self, site):
        return False


def gunzip_json(data):
    return json.loads(gzip.decompress(data).decode("utf-8"))


@pytest.fixture
def settings():
    return Settings(cache_bucket="test-bucket", paid_data_threshold=1000)


@pytest.fixture
def site():
    return Site(site_id=SITE_ID, base_url="https://www.sample.com", organization_id=ORG_ID)


@pytest.fixture
def engine():
    return FakeQueryEngine()


@pytest.fixture
def store():
    return FakeCacheStore()


@pytest.fixture
def sites(site):
    return FakeSites([site])


@pytest.fixture
def app(settings, engine, sites, store):
    app = create_app(settings, query_engine=engine, site_repository=sites, cache_store=store)
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    client = app.test_client()
    with client.session_transaction() as sess:
        sess["organization_ids"] = [ORG_ID]
    return client
