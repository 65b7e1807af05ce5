"""Administrative operations on shared leaderboard and player state.

These bypass gameplay invariants, so each one checks the caller against the
admin policy before touching the store.
"""

from __future__ import annotations

import logging
import random
from dataclasses import replace
from typing import Any

from . import formulas
from .avatars import AvatarResolver
from .formulas import EXPERIENCE_PER_LEVEL, leaderboard_score
from .leaderboard import LEADERBOARD_KEY, LeaderboardService, read_index, wins_key
from .ledger import PlayerLedger
from .models import Player
from .security import AdminPolicy
from .state import build_new_player, utc_now_iso
from .store import KeyValueStore

logger = logging.getLogger(__name__)

TEST_USERNAME_PREFIX = "test_player_"


class AdminService:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: PlayerLedger,
        leaderboard: LeaderboardService,
        avatars: AvatarResolver,
        policy: AdminPolicy,
        rng: random.Random | None = None,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._leaderboard = leaderboard
        self._avatars = avatars
        self._policy = policy
        self._rng = rng or random.Random()

    def seed_test_entries(self, caller: str | None, count: int = 10) -> list[str]:
        self._policy.require(caller)
        now = utc_now_iso()
        created: list[str] = []
        for number in range(1, count + 1):
            username = f"{TEST_USERNAME_PREFIX}{number:02d}"
            fresh = build_new_player(username, self._avatars.avatar_for(username), now=now)
            player = _synthetic_player(fresh, self._rng)
            self._ledger.save(player)
            self._store.hash_set(LEADERBOARD_KEY, username, str(leaderboard_score(player.stats)))
            self._store.set(wins_key(username), str(self._rng.randint(0, 5 * player.stats.level)))
            created.append(username)
        logger.info("%s seeded %d synthetic leaderboard entries", caller, len(created))
        return created

    def remove_test_entries(self, caller: str | None) -> list[str]:
        self._policy.require(caller)
        removed = [username for username in read_index(self._store) if username.startswith(TEST_USERNAME_PREFIX)]
        for username in removed:
            self._ledger.delete(username)
            self._store.delete(wins_key(username))
        self._store.hash_delete(LEADERBOARD_KEY, removed)
        logger.info("%s removed %d synthetic leaderboard entries", caller, len(removed))
        return removed

    def wipe_leaderboard(self, caller: str | None) -> int:
        self._policy.require(caller)
        count = len(read_index(self._store))
        self._store.delete(LEADERBOARD_KEY)
        logger.warning("%s wiped the leaderboard index (%d entries)", caller, count)
        return count

    def reset_player(self, caller: str | None, username: str) -> Player:
        self._policy.require(caller)
        return self._reset_one(username)

    def reset_all_players(self, caller: str | None) -> list[str]:
        self._policy.require(caller)
        usernames = list(read_index(self._store))
        for username in usernames:
            self._reset_one(username)
        logger.warning("%s reset %d players", caller, len(usernames))
        return usernames

    def list_leaderboard(self, caller: str | None) -> list[dict[str, Any]]:
        self._policy.require(caller)
        listing: list[dict[str, Any]] = []
        for username, raw_score in read_index(self._store).items():
            player = self._ledger.get(username)
            listing.append(
                {
                    "username": username,
                    "score": raw_score,
                    "battlesWon": self._leaderboard.battles_won(username),
                    "hasPlayerRecord": player is not None,
                    "level": player.stats.level if player is not None else None,
                }
            )
        return listing

    def _reset_one(self, username: str) -> Player:
        player = self._ledger.reset(username, preserve_avatar=True)
        self._store.set(wins_key(username), "0")
        if username in read_index(self._store):
            self._store.hash_set(LEADERBOARD_KEY, username, "0")
        return player


def _synthetic_player(player: Player, rng: random.Random) -> Player:
    level = rng.randint(1, 10)
    gained = level - 1
    max_hp = player.stats.maxHitPoints + formulas.LEVEL_UP_HP * gained
    max_sp = player.stats.maxSpecialPoints + formulas.LEVEL_UP_SP * gained
    stats = replace(
        player.stats,
        level=level,
        experience=rng.randrange(level * EXPERIENCE_PER_LEVEL),
        experienceToNext=level * EXPERIENCE_PER_LEVEL,
        maxHitPoints=max_hp,
        hitPoints=max_hp,
        maxSpecialPoints=max_sp,
        specialPoints=max_sp,
        attack=player.stats.attack + formulas.LEVEL_UP_ATTACK * gained,
        defense=player.stats.defense + formulas.LEVEL_UP_DEFENSE * gained,
        skillPoints=gained,
    )
    return replace(player, stats=stats)
