from __future__ import annotations

from dataclasses import fields

import httpx
import pytest
import pytest_asyncio

from one_time_share.app.compose import compose
from one_time_share.app.server import create_app
from one_time_share.core.infrastructure.settings import Settings
from one_time_share.core.infrastructure.storage.facade import Storage
from one_time_share.utils import metrics


class FakeClock:
    """Manual epoch clock in whole seconds."""

    def __init__(self, now: int = 1_000) -> None:
        self.now = now

    def __call__(self) -> int:
        return self.now

    def advance(self, seconds: int) -> None:
        self.now += seconds


@pytest.fixture(autouse=True)
def _isolated_env(monkeypatch, tmp_path):
    # no app-config.json from the working tree, no settings leaking in from the shell
    monkeypatch.chdir(tmp_path)
    monkeypatch.delenv("APP_CONFIG_FILE", raising=False)
    for f in fields(Settings):
        monkeypatch.delenv(f.name, raising=False)
    metrics.reset_registry()
    yield


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def storage(tmp_path):
    s = Storage.connect(str(tmp_path / "store.sqlite3"))
    yield s
    s.disconnect()


@pytest.fixture
def settings(tmp_path) -> Settings:
    return Settings(
        DATABASE_PATH=str(tmp_path / "data" / "app.sqlite3"),
        FORCE_UNPROTECTED_HTTP=True,
        DEFAULT_IDENTITY_TOKEN="web-default",
        DEFAULT_RETENTION_LIMIT_MINUTES=60,
        DEFAULT_MAX_MESSAGE_SIZE_BYTES=32,
        DEFAULT_MESSAGE_CREATION_LIMIT_MINUTES=0,
        JANITOR_INTERVAL_SEC=3600.0,
    )


@pytest.fixture
def container(settings, clock):
    c = compose(settings, clock=clock)
    yield c
    c.storage.disconnect()


@pytest.fixture
def app(container):
    return create_app(container)


@pytest_asyncio.fixture
async def client(app):
    transport = httpx.ASGITransport(app=app)
    async with httpx.AsyncClient(transport=transport, base_url="http://testserver") as c:
        yield c
