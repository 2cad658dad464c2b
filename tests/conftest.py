"""Shared fixtures: an app bound to a fresh in-memory store."""

import pytest
import requests
from fastapi.testclient import TestClient

from ginkohub import create_app
from ginkohub.config import get_store
from ginkohub.store import MemoryStore


@pytest.fixture
def store():
    return MemoryStore()


@pytest.fixture
def app(store):
    application = create_app()
    application.dependency_overrides[get_store] = lambda: store
    return application


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def make_response():
    """Factory for canned ``requests.Response`` objects."""

    def _make(status=200, body=b"", headers=None, url="https://example.com/"):
        response = requests.Response()
        response.status_code = status
        response._content = body.encode("utf-8") if isinstance(body, str) else body
        response.headers.update(headers or {})
        response.url = url
        response.encoding = "utf-8"
        return response

    return _make
