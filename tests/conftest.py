import os
from unittest.mock import MagicMock

import pytest

from esbootstrap.config import get_settings
from esbootstrap.events import EventRecorder
from esbootstrap.orchestrator import IndexBootstrapper
from esbootstrap.resource import LogicalResource
from esbootstrap.scripts import ScriptRepository
from tests.tools import RISK_SCORE, FakeGateway


@pytest.fixture(autouse=True)
def clean_settings(monkeypatch, tmp_path):
    """Make sure no local .env or environment variables leak into the tests"""
    for key in list(os.environ):
        if key.lower().startswith("esbootstrap_"):
            monkeypatch.delenv(key)
    monkeypatch.setenv("ESBOOTSTRAP_ENV_FILE", str(tmp_path / "test.env"))
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture()
def gateway() -> FakeGateway:
    return FakeGateway()


@pytest.fixture()
def events() -> EventRecorder:
    return EventRecorder()


@pytest.fixture()
def scripts(tmp_path) -> ScriptRepository:
    return ScriptRepository(tmp_path / "migrations")


@pytest.fixture()
def bootstrapper(gateway, events, scripts) -> IndexBootstrapper:
    return IndexBootstrapper(gateway, scripts=scripts, events=events)  # type: ignore[arg-type]


@pytest.fixture()
def deployed(gateway) -> LogicalResource:
    """The first version of RiskScore, deployed with 5 documents"""
    resource = LogicalResource.from_schema(RISK_SCORE)
    gateway.seed(resource.index_name, resource.mapping, alias=resource.alias, documents=5)
    return resource


@pytest.fixture()
def elastic() -> MagicMock:
    """A mock elasticsearch client; options() returns the same client"""
    es = MagicMock()
    es.options.return_value = es
    return es
