"""
Dependency composition.
Assembly of all system components.
"""
from __future__ import annotations

import html
from collections.abc import Callable
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from string import Template
from typing import Optional

from one_time_share.core.application.janitor import ExpiryJanitor
from one_time_share.core.infrastructure.settings import Settings, get_settings
from one_time_share.core.infrastructure.storage.facade import Storage
from one_time_share.core.infrastructure.storage.migrations.runner import update_version
from one_time_share.core.infrastructure.storage.repositories import IdentityLimits
from one_time_share.utils.logging import get_logger
from one_time_share.utils.time import now_sec

logger = get_logger(__name__)


def _read_template(name: str) -> str:
    return resources.files("one_time_share.app").joinpath("templates", name).read_text(encoding="utf-8")


@dataclass(frozen=True)
class StaticPages:
    """Pre-rendered '/' page and the '/shared/' page template."""
    index_html: str
    shared_template: Template

    @classmethod
    def load(cls, identity_token: str, limits: IdentityLimits) -> "StaticPages":
        index = Template(_read_template("index.html")).safe_substitute(
            identity_token=html.escape(identity_token, quote=True),
            message_limit_bytes=limits.max_size_bytes,
            retention_limit_minutes=limits.retention_limit_minutes,
        )
        return cls(index_html=index, shared_template=Template(_read_template("shared.html")))

    def render_shared(self, message_token: str) -> str:
        return self.shared_template.safe_substitute(message_token=html.escape(message_token, quote=True))


@dataclass
class AppContainer:
    """
    Application dependency container.
    Holds all initialized components.
    """
    settings: Settings
    storage: Storage
    janitor: ExpiryJanitor
    pages: StaticPages
    default_limits: IdentityLimits
    clock: Callable[[], int] = field(default=now_sec)

    async def start(self) -> None:
        self.janitor.start()

    async def stop(self) -> None:
        await self.janitor.shutdown()
        self.storage.disconnect()


def apply_default_identity(storage: Storage, settings: Settings) -> IdentityLimits:
    """Upsert the identity behind the '/' page from configuration."""
    storage.set_limits(
        settings.DEFAULT_IDENTITY_TOKEN,
        settings.DEFAULT_RETENTION_LIMIT_MINUTES,
        settings.DEFAULT_MAX_MESSAGE_SIZE_BYTES,
        settings.DEFAULT_MESSAGE_CREATION_LIMIT_MINUTES,
    )
    return storage.get_limits(settings.DEFAULT_IDENTITY_TOKEN)


def compose(
    settings: Optional[Settings] = None,
    *,
    clock: Callable[[], int] = now_sec,
) -> AppContainer:
    """
    Build the container: connect the store, bring the schema up to date,
    configure the default identity and render static pages.

    StoreConnectionError / MigrationError propagate: the process must not start without a store.
    """
    settings = settings or get_settings()

    if settings.DATABASE_PATH != ":memory:":
        Path(settings.DATABASE_PATH).parent.mkdir(parents=True, exist_ok=True)
    storage = Storage.connect(settings.DATABASE_PATH)
    try:
        applied = update_version(storage)
        default_limits = apply_default_identity(storage, settings)
    except Exception:
        storage.disconnect()
        raise
    pages = StaticPages.load(settings.DEFAULT_IDENTITY_TOKEN, default_limits)
    janitor = ExpiryJanitor(storage, interval_sec=settings.JANITOR_INTERVAL_SEC, clock=clock)

    logger.info(
        "container_composed",
        extra={
            "database_path": settings.DATABASE_PATH,
            "schema_version": storage.get_version(),
            "schema_upgrades": applied,
            "default_retention_limit_minutes": default_limits.retention_limit_minutes,
            "default_max_message_size_bytes": default_limits.max_size_bytes,
        },
    )
    return AppContainer(
        settings=settings,
        storage=storage,
        janitor=janitor,
        pages=pages,
        default_limits=default_limits,
        clock=clock,
    )
