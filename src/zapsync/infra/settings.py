"""Runtime settings loaded from the environment.

Store:
- DATABASE_URL: Postgres URL or libpq DSN of the tenant database.
- DB_TOKEN: auth token, used as the connection password unless the URL
  already carries one.

Sync tuning:
- SYNC_CHUNK_SIZE: contacts per atomic batch unit (default 25).
- SYNC_PAUSE_EVERY: processed items between cooperative pauses (default 50).
- SYNC_PAUSE_SECONDS: length of each pause (default 0.01).

WhatsApp bridge:
- WPP_BASE_URL, WPP_SESSION, WPP_TOKEN, WPP_HTTP_TIMEOUT (default 30).
"""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from zapsync.observability.logging import get_logger

logger = get_logger(__name__)

DEFAULT_CHUNK_SIZE = 25
DEFAULT_PAUSE_EVERY = 50
DEFAULT_PAUSE_SECONDS = 0.01
DEFAULT_WPP_TIMEOUT = 30


@dataclass(frozen=True)
class SyncPolicy:
    """Chunking and cooperative-pause policy for bulk operations."""

    chunk_size: int = DEFAULT_CHUNK_SIZE
    pause_every: int = DEFAULT_PAUSE_EVERY
    pause_seconds: float = DEFAULT_PAUSE_SECONDS

    def __post_init__(self) -> None:
        if self.chunk_size < 1:
            raise ValueError("chunk_size must be >= 1")
        if self.pause_every < 1:
            raise ValueError("pause_every must be >= 1")
        if self.pause_seconds < 0:
            raise ValueError("pause_seconds must be >= 0")


@dataclass(frozen=True)
class WppConfig:
    """Connection settings for the WhatsApp bridge server."""

    base_url: str | None = None
    session: str | None = None
    token: str | None = None
    timeout: int = DEFAULT_WPP_TIMEOUT


@dataclass(frozen=True)
class Settings:
    database_url: str | None = None
    db_token: str | None = None
    sync: SyncPolicy = field(default_factory=SyncPolicy)
    wpp: WppConfig = field(default_factory=WppConfig)


def _int_env(name: str, default: int) -> int:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return int(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be an integer, got {raw!r}")


def _float_env(name: str, default: float) -> float:
    raw = os.environ.get(name, "").strip()
    if not raw:
        return default
    try:
        return float(raw)
    except ValueError:
        raise RuntimeError(f"{name} must be a number, got {raw!r}")


def load_settings() -> Settings:
    """Read settings from the environment.

    A missing DATABASE_URL or DB_TOKEN is not raised here: it is logged and
    the resulting Store reports itself as not configured, so every
    operation is refused instead of connecting to an invalid endpoint.
    """
    database_url = os.environ.get("DATABASE_URL") or None
    db_token = os.environ.get("DB_TOKEN") or None

    if not database_url or not db_token:
        logger.error(
            "store not configured",
            extra={
                "extra_fields": {
                    "has_database_url": bool(database_url),
                    "has_db_token": bool(db_token),
                }
            },
        )

    return Settings(
        database_url=database_url,
        db_token=db_token,
        sync=SyncPolicy(
            chunk_size=_int_env("SYNC_CHUNK_SIZE", DEFAULT_CHUNK_SIZE),
            pause_every=_int_env("SYNC_PAUSE_EVERY", DEFAULT_PAUSE_EVERY),
            pause_seconds=_float_env("SYNC_PAUSE_SECONDS", DEFAULT_PAUSE_SECONDS),
        ),
        wpp=WppConfig(
            base_url=os.environ.get("WPP_BASE_URL") or None,
            session=os.environ.get("WPP_SESSION") or None,
            token=os.environ.get("WPP_TOKEN") or None,
            timeout=_int_env("WPP_HTTP_TIMEOUT", DEFAULT_WPP_TIMEOUT),
        ),
    )
