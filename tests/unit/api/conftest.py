"""Fixtures for router tests.

Hey future me - TestClient is used WITHOUT `with`, so the lifespan never runs and no
HTTP pool gets built. Everything the routers need comes in via dependency_overrides.
"""

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from previewspot.api.dependencies import (
    get_diagnostics_service,
    get_token_broker,
    get_track_resolver,
)
from previewspot.application.services import PlaylistDiagnosticsService, TrackResolver
from previewspot.config import Settings
from previewspot.infrastructure.integrations import TokenBroker
from previewspot.main import create_app


@pytest.fixture
def resolver(mocker):
    return mocker.Mock(spec=TrackResolver)


@pytest.fixture
def broker(mocker):
    return mocker.Mock(spec=TokenBroker)


@pytest.fixture
def diagnostics(mocker):
    return mocker.Mock(spec=PlaylistDiagnosticsService)


@pytest.fixture
def app(settings: Settings, resolver, broker, diagnostics) -> FastAPI:
    app = create_app(settings)
    app.dependency_overrides[get_track_resolver] = lambda: resolver
    app.dependency_overrides[get_token_broker] = lambda: broker
    app.dependency_overrides[get_diagnostics_service] = lambda: diagnostics
    return app


@pytest.fixture
def client(app: FastAPI) -> TestClient:
    return TestClient(app, raise_server_exceptions=False)
