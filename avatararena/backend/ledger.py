"""Player ledger: canonical character records keyed by username."""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import replace
from typing import Any

from . import formulas
from .avatars import AvatarResolver
from .errors import NotFound
from .models import Player, Rewards
from .state import build_new_player, default_stats, utc_now_iso
from .store import KeyValueStore, read_json, transactional_update, write_json

logger = logging.getLogger(__name__)


def player_key(username: str) -> str:
    return f"player:{username}"


class PlayerLedger:
    def __init__(
        self,
        store: KeyValueStore,
        avatars: AvatarResolver,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._store = store
        self._avatars = avatars
        self._clock = clock

    def get(self, username: str) -> Player | None:
        payload = read_json(self._store, player_key(username))
        if payload is None:
            return None
        return Player.from_dict(payload)

    def get_or_create(self, username: str) -> Player:
        now = self._clock()

        def mutate(current: dict[str, Any] | None) -> dict[str, Any]:
            if current is None:
                logger.info("Creating player record for %s", username)
                return build_new_player(username, self._avatars.avatar_for(username), now=now).to_dict()
            return replace(Player.from_dict(current), lastPlayed=now).to_dict()

        return Player.from_dict(transactional_update(self._store, player_key(username), mutate))

    def update(self, username: str, partial_stats: dict[str, Any]) -> Player:
        now = self._clock()

        def mutate(current: dict[str, Any] | None) -> dict[str, Any]:
            if current is None:
                raise NotFound(f"Player {username} not found")
            player = Player.from_dict(current)
            return replace(player, stats=player.stats.merged(partial_stats), lastPlayed=now).to_dict()

        return Player.from_dict(transactional_update(self._store, player_key(username), mutate))

    def reset(self, username: str, preserve_avatar: bool = True) -> Player:
        now = self._clock()

        def mutate(current: dict[str, Any] | None) -> dict[str, Any]:
            if current is None:
                return build_new_player(username, self._avatars.avatar_for(username), now=now).to_dict()
            player = Player.from_dict(current)
            avatar_url = player.avatarUrl if preserve_avatar else self._avatars.avatar_for(username)
            return replace(player, avatarUrl=avatar_url, stats=default_stats(), lastPlayed=now).to_dict()

        logger.info("Resetting player %s", username)
        return Player.from_dict(transactional_update(self._store, player_key(username), mutate))

    def apply_victory(self, username: str, enemy_level: int) -> tuple[Player, Rewards]:
        """Grant victory rewards inside a single read-modify-write of the record."""
        now = self._clock()
        granted: list[Rewards] = []

        def mutate(current: dict[str, Any] | None) -> dict[str, Any]:
            if current is None:
                player = build_new_player(username, self._avatars.avatar_for(username), now=now)
            else:
                player = Player.from_dict(current)
            stats, rewards = formulas.apply_victory(player.stats, enemy_level)
            granted.append(rewards)
            return replace(player, stats=stats, lastPlayed=now).to_dict()

        player = Player.from_dict(transactional_update(self._store, player_key(username), mutate))
        return player, granted[0]

    def save(self, player: Player) -> Player:
        write_json(self._store, player_key(player.username), player.to_dict())
        return player

    def delete(self, username: str) -> None:
        self._store.delete(player_key(username))
