import httpx
import pytest
from fastapi.testclient import TestClient

from mercury.main import create_app
from tests.fakes import FakeSlack, make_settings


@pytest.fixture
def fake_slack() -> FakeSlack:
    return FakeSlack()


@pytest.fixture
def make_client(fake_slack):
    def _make(**overrides) -> TestClient:
        http_client = httpx.AsyncClient(transport=fake_slack.transport())
        app = create_app(make_settings(**overrides), http_client=http_client)
        return TestClient(app)

    return _make


@pytest.fixture
def client(make_client):
    with make_client() as c:
        yield c
