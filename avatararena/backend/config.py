"""Configuration helpers for backend runtime."""

from __future__ import annotations

import os
from dataclasses import dataclass


@dataclass(frozen=True)
class BackendSettings:
    database_url: str | None
    redis_url: str | None
    host: str
    port: int
    admin_usernames: tuple[str, ...]
    leaderboard_size: int
    log_level: str


def _split_usernames(raw: str) -> tuple[str, ...]:
    return tuple(name.strip() for name in raw.split(",") if name.strip())


def load_settings() -> BackendSettings:
    port_raw = os.getenv("AVATARARENA_PORT", "8000")
    leaderboard_size_raw = os.getenv("AVATARARENA_LEADERBOARD_SIZE", "25")
    return BackendSettings(
        database_url=os.getenv("AVATARARENA_DATABASE_URL"),
        redis_url=os.getenv("AVATARARENA_REDIS_URL"),
        host=os.getenv("AVATARARENA_HOST", "127.0.0.1"),
        port=int(port_raw),
        admin_usernames=_split_usernames(os.getenv("AVATARARENA_ADMIN_USERNAMES", "")),
        leaderboard_size=int(leaderboard_size_raw),
        log_level=os.getenv("AVATARARENA_LOG_LEVEL", "INFO").upper(),
    )
