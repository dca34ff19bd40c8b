"""
Global pytest configuration and fixtures for all tests.

Provides common fixtures for the unit tests and keeps every test
isolated from the developer's environment (.env files, real Datadog
credentials).
"""

import os

import pytest

# Set testing environment variable as early as possible
os.environ["TESTING"] = "true"

from ferry.config.settings import get_settings  # noqa: E402
from ferry.utils.markers import Provider  # noqa: E402
from tests.utils import (  # noqa: E402
    DestinationFactory,
    FakeDatadogClient,
    MappingFactory,
    MonitorFactory,
)

_ENV_VARS = (
    "DATADOG_API_KEY",
    "DATADOG_APP_KEY",
    "DATADOG_SITE",
    "INCIDENTIO_WEBHOOK_TOKEN",
    "LOG_LEVEL",
    "HTTP_TIMEOUT",
    "MONITOR_PAGE_SIZE",
)


@pytest.fixture(autouse=True)
def isolated_environment(monkeypatch, tmp_path):
    """Run every test without real credentials and outside the repository's .env."""
    for name in _ENV_VARS:
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def standard_mappings():
    """api-critical / api-non-critical -> api-team, database -> platform-team."""
    return MappingFactory.standard()


@pytest.fixture
def single_destination():
    return DestinationFactory.single()


@pytest.fixture
def tagging_destination():
    return DestinationFactory.single(add_team_tags=True)


@pytest.fixture
def per_team_destination():
    return DestinationFactory.per_team()


@pytest.fixture
def sample_monitors():
    """A small organisation covering every marker combination."""
    return [
        MonitorFactory.create(monitor_id=1, message="High CPU @pagerduty-api-critical", name="API CPU",
                              tags=["env:prod", "service:api"]),
        MonitorFactory.create(monitor_id=2, message="DB down @pagerduty-database @webhook-incident-io",
                              name="DB", tags=["env:prod"]),
        MonitorFactory.create(monitor_id=3, message="Latency @webhook-incident-io-api-team", name="Latency",
                              tags=["env:staging"]),
        MonitorFactory.create(monitor_id=4, message="Disk usage is high", name="Disk", tags=[]),
    ]


@pytest.fixture
def fake_client(sample_monitors):
    return FakeDatadogClient(monitors=sample_monitors, existing_webhooks=["incident-io"])


@pytest.fixture
def pagerduty():
    return Provider.PAGERDUTY
