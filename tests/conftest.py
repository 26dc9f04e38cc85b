"""Shared fakes: a recording transport and a runtime on the in-memory host."""

import json

import pytest

from hyperscope import ManualScheduler, MemoryStorage, QueryStringStorage, Runtime, Stores
from hyperscope.dom import Document


class FakeResponse:
    """Matches the parts of requests.Response the engine reads."""

    def __init__(self, body="", status_code=200, reason="OK"):
        self.text = body
        self.content = body.encode()
        self.status_code = status_code
        self.reason = reason

    @property
    def ok(self):
        return 200 <= self.status_code < 300

    def json(self):
        return json.loads(self.text)


class FakeTransport:
    def __init__(self):
        self.routes = {}
        self.requests = []

    def add(self, url, body="", status_code=200, reason="OK"):
        self.routes[url] = FakeResponse(body, status_code, reason)

    def fetch(self, url, method="GET", **options):
        self.requests.append((method, url, options))
        return self.routes[url]


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def transport():
    return FakeTransport()


@pytest.fixture
def stores():
    return Stores(url=QueryStringStorage(), local=MemoryStorage(), session=MemoryStorage())


@pytest.fixture
def make_runtime(scheduler, transport, stores):
    def _make(body="", head=""):
        runtime = Runtime(Document(body, head), scheduler=scheduler, transport=transport, stores=stores)
        runtime.start()
        return runtime

    return _make
