"""Backend package for Avatar Arena."""

from .config import BackendSettings, load_settings
from .errors import ArenaError, Forbidden, GenerationFailure, InvalidState, NotFound, StorageUnavailable, Unauthenticated
from .security import AdminPolicy, generate_battle_id
from .state import build_initial_battle, build_new_player
from .store import (
    InMemoryKeyValueStore,
    KeyValueStore,
    PostgresKeyValueStore,
    RedisKeyValueStore,
    create_store,
    transactional_update,
)

__all__ = [
    "AdminPolicy",
    "ArenaError",
    "BackendSettings",
    "build_initial_battle",
    "build_new_player",
    "create_store",
    "Forbidden",
    "generate_battle_id",
    "GenerationFailure",
    "InMemoryKeyValueStore",
    "InvalidState",
    "KeyValueStore",
    "load_settings",
    "NotFound",
    "PostgresKeyValueStore",
    "RedisKeyValueStore",
    "StorageUnavailable",
    "transactional_update",
    "Unauthenticated",
]
