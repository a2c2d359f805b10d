"""Shared test fixtures and marker registration."""

from __future__ import annotations

from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import pytest

from szczk_store._config import SzczkConfig
from tests.fake_service import API_KEY, API_SECRET, AUTH_URL, BASE_URL, ROOT_ID, FakeSzczkService

if TYPE_CHECKING:
    from collections.abc import Iterator

    from szczk_store.backends._szczk import SzczkBackend


def pytest_configure(config: object) -> None:
    """Register custom markers."""
    if isinstance(config, pytest.Config):
        config.addinivalue_line("markers", "integration: requires a reachable Szczk Cloud account")


class FakeClock:
    """Manually advanced UTC clock."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 1, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def service() -> FakeSzczkService:
    return FakeSzczkService()


@pytest.fixture
def config() -> SzczkConfig:
    return SzczkConfig(
        api_key=API_KEY,
        api_secret=API_SECRET,
        auth_url=AUTH_URL,
        base_url=BASE_URL,
        root_folder_id=ROOT_ID,
    )


@pytest.fixture
def backend(service: FakeSzczkService, config: SzczkConfig) -> Iterator[SzczkBackend]:
    """An initialized backend talking to the fake service."""
    from szczk_store.backends._szczk import SzczkBackend

    b = SzczkBackend(config, client_options={"transport": service.transport})
    b.init()
    yield b
    b.close()
