"""Shared fixtures: relay settings and a stubbed APS upstream."""

import pytest
from fastapi.testclient import TestClient

from server.main import create_app
from src.config.settings import APSSettings
from tests.stubs import BASE_URL, StubUpstream


@pytest.fixture
def settings() -> APSSettings:
    """Fully configured relay settings pointing at the stub upstream."""
    return APSSettings(
        client_id="client-id",
        client_secret="client-secret",
        bucket_key="My-Bucket",
        region="EMEA",
        base_url=BASE_URL,
    )


@pytest.fixture
def upstream() -> StubUpstream:
    return StubUpstream()


@pytest.fixture
def make_client(upstream):
    """Build a TestClient for the relay with the given settings."""

    def _make(settings: APSSettings) -> TestClient:
        return TestClient(create_app(settings, transport=upstream.transport))

    return _make


@pytest.fixture
def client(make_client, settings) -> TestClient:
    return make_client(settings)
