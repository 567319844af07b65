from unittest import mock

import pytest
from fastapi.testclient import TestClient

from redirect_service.config import Settings
from redirect_service.main import app, get_settings


@pytest.fixture
def settings():
    return Settings(supabase_url="https://project.supabase.co", supabase_key="service-key")


@pytest.fixture
def client(settings):
    app.dependency_overrides[get_settings] = lambda: settings
    yield TestClient(app)
    app.dependency_overrides.clear()


def datastore_response(rows=None, status_code=200, text=""):
    """Builds a stand-in for the requests.Response returned by the Supabase REST API."""
    response = mock.Mock()
    response.status_code = status_code
    response.ok = 200 <= status_code < 300
    response.text = text
    response.json.return_value = rows
    return response


@pytest.fixture
def datastore():
    with mock.patch("redirect_service.links.requests.get") as get:
        get.return_value = datastore_response([])
        yield get


@pytest.fixture
def env_client():
    """Client without a settings override, so configuration comes from the environment."""
    return TestClient(app, raise_server_exceptions=False)
