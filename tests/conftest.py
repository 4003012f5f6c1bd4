"""Shared fixtures for calproxy tests."""

import os
from collections.abc import Generator
from datetime import datetime, timezone
from typing import Any

import pytest

from calproxy.origin.models import Origin, Snapshot
from tests.fixtures.mock_ics_data import ICSDataFactory

ORIGIN_URL = "https://calendar.example.com/private/basic.ics"


def pytest_configure(config: Any) -> None:
    config.addinivalue_line("markers", "unit: Fast isolated unit tests")
    config.addinivalue_line("markers", "integration: Tests running several components together")


@pytest.fixture(autouse=True)
def clean_calproxy_environment() -> Generator[None, Any, None]:
    """Remove CALPROXY_* variables for the test and restore them afterwards.

    ConfigManager.load_env_file writes straight into os.environ, so the
    restore has to cover keys that did not exist before the test.
    """
    saved = {key: value for key, value in os.environ.items() if key.startswith("CALPROXY_")}
    for key in saved:
        del os.environ[key]
    yield
    for key in [key for key in os.environ if key.startswith("CALPROXY_")]:
        del os.environ[key]
    os.environ.update(saved)


@pytest.fixture
def private_ics() -> str:
    return ICSDataFactory.create_private_calendar_ics()


@pytest.fixture
def origin() -> Origin:
    return Origin(ORIGIN_URL)


@pytest.fixture
def published_origin(origin: Origin) -> Origin:
    """Origin with a snapshot already published."""
    origin.publish(
        Snapshot(
            raw="RAW CALENDAR",
            censored="CENSORED CALENDAR",
            fetched_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        )
    )
    return origin
