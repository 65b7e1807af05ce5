"""Battle lifecycle: start, turn submission, persistence and rewards."""

from __future__ import annotations

import logging
import random
from collections.abc import Callable
from typing import Any

from .engine import ActionResult, apply_enemy_turn, apply_player_action
from .errors import NotFound
from .leaderboard import LeaderboardService
from .ledger import PlayerLedger
from .models import PLAYER, Battle, BattleResult, Rewards
from .opponents import OpponentGenerator
from .security import generate_battle_id
from .state import build_initial_battle, utc_now_iso
from .store import KeyValueStore, read_json, transactional_update, write_json

logger = logging.getLogger(__name__)


def battle_key(battle_id: str) -> str:
    return f"battle:{battle_id}"


class BattleService:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: PlayerLedger,
        opponents: OpponentGenerator,
        leaderboard: LeaderboardService,
        rng: random.Random | None = None,
        id_factory: Callable[[], str] = generate_battle_id,
        clock: Callable[[], str] = utc_now_iso,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._opponents = opponents
        self._leaderboard = leaderboard
        self._rng = rng or random.Random()
        self._id_factory = id_factory
        self._clock = clock

    def start(self, username: str, difficulty: str) -> Battle:
        player = self._ledger.get_or_create(username)
        enemy = self._opponents.generate(player, difficulty)
        battle = build_initial_battle(
            battle_id=self._id_factory(),
            player=player.as_combatant(),
            enemy=enemy,
            difficulty=difficulty,
            now=self._clock(),
        )
        write_json(self._store, battle_key(battle.battleId), battle.to_dict())
        logger.info(
            "Battle %s started: %s vs %s (level %d, %s)",
            battle.battleId,
            username,
            enemy.username,
            enemy.stats.level,
            difficulty,
        )
        return battle

    def get(self, battle_id: str, username: str | None = None) -> Battle:
        payload = read_json(self._store, battle_key(battle_id))
        if payload is None:
            raise NotFound(f"Battle {battle_id} not found")
        battle = Battle.from_dict(payload)
        _check_owner(battle, username)
        return battle

    def submit_player_action(self, battle_id: str, action: str, username: str | None = None) -> BattleResult:
        result = self._apply(battle_id, username, lambda battle: apply_player_action(battle, action, self._rng))
        rewards = self._conclude(result.battle)
        return BattleResult(battle=result.battle, playerTurn=result.turn, rewards=rewards)

    def submit_enemy_turn(self, battle_id: str, username: str | None = None) -> BattleResult:
        result = self._apply(battle_id, username, lambda battle: apply_enemy_turn(battle, self._rng))
        self._conclude(result.battle)
        return BattleResult(battle=result.battle, enemyTurn=result.turn)

    def submit_round(self, battle_id: str, action: str, username: str | None = None) -> BattleResult:
        """Resolve the player's action and, if the battle goes on, the enemy's reply."""
        player_result = self.submit_player_action(battle_id, action, username)
        if player_result.battleEnded:
            return player_result
        enemy_result = self.submit_enemy_turn(battle_id, username)
        return BattleResult(
            battle=enemy_result.battle,
            playerTurn=player_result.playerTurn,
            enemyTurn=enemy_result.enemyTurn,
        )

    def _apply(
        self,
        battle_id: str,
        username: str | None,
        reducer: Callable[[Battle], ActionResult],
    ) -> ActionResult:
        outcome: list[ActionResult] = []

        def mutate(current: dict[str, Any] | None) -> dict[str, Any]:
            if current is None:
                raise NotFound(f"Battle {battle_id} not found")
            battle = Battle.from_dict(current)
            _check_owner(battle, username)
            result = reducer(battle)
            outcome.append(result)
            return result.battle.to_dict()

        transactional_update(self._store, battle_key(battle_id), mutate)
        return outcome[0]

    def _conclude(self, battle: Battle) -> Rewards | None:
        if battle.isActive:
            return None
        logger.info("Battle %s ended, winner=%s", battle.battleId, battle.winner)
        if battle.winner != PLAYER:
            return None

        username = battle.player.username
        _, rewards = self._ledger.apply_victory(username, battle.enemy.stats.level)
        self._leaderboard.record_victory(username)
        return rewards


def _check_owner(battle: Battle, username: str | None) -> None:
    if username is not None and battle.player.username != username:
        raise NotFound(f"Battle {battle.battleId} not found")
