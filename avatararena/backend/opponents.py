"""Opponent generation and matchmaking.

Enemies are built fresh for every preview or battle. When a real player is
sampled, the enemy borrows that player's name, avatar and saved stats from a
read-only snapshot of the ledger, re-leveled to the rolled enemy level. The
snapshot may already be stale by the time the battle is fought.
"""

from __future__ import annotations

import logging
import random

from . import formulas
from .avatars import AvatarResolver
from .errors import GenerationFailure
from .leaderboard import read_index
from .ledger import PlayerLedger
from .models import DIFFICULTIES, Character, EnemyPreview, Player
from .store import KeyValueStore

logger = logging.getLogger(__name__)

REAL_OPPONENT_CHANCE = 0.6
CLOSEST_CANDIDATES = 5

NPC_NAMES = (
    "Goblin Scout",
    "Cave Troll",
    "Shadow Wolf",
    "Skeleton Knight",
    "Fire Imp",
    "Bog Witch",
    "Iron Golem",
    "Dune Raider",
    "Frost Wraith",
    "Rogue Mercenary",
    "Vampire Bat",
    "Orc Berserker",
)


class OpponentGenerator:
    def __init__(
        self,
        store: KeyValueStore,
        ledger: PlayerLedger,
        avatars: AvatarResolver,
        rng: random.Random | None = None,
        npc_names: tuple[str, ...] = NPC_NAMES,
    ) -> None:
        self._store = store
        self._ledger = ledger
        self._avatars = avatars
        self._rng = rng or random.Random()
        self._npc_names = npc_names

    def generate(self, player: Player, difficulty: str, reroll: bool = False) -> Character:
        """Build an enemy for ``player``.

        ``reroll`` only signals a fresh draw; every call draws anew.
        """
        if difficulty not in DIFFICULTIES:
            raise ValueError(f"Unknown difficulty: {difficulty}")

        level = formulas.roll_enemy_level(player.stats.level, difficulty, self._rng)

        source = None
        if self._rng.random() < REAL_OPPONENT_CHANCE:
            source = self._pick_real_player(player)

        if source is not None:
            username, avatar_url = source.username, source.avatarUrl
            stats = formulas.snapshot_enemy_stats(source.stats, level)
        else:
            username = self._pick_npc_name()
            avatar_url = self._avatars.avatar_for(username)
            stats = formulas.build_enemy_stats(level, difficulty, self._rng)

        logger.debug(
            "Generated %s enemy %s (level %d) for %s, reroll=%s",
            difficulty,
            username,
            level,
            player.username,
            reroll,
        )
        return Character(username=username, avatarUrl=avatar_url, stats=stats, isNPC=True)

    def preview(self, player: Player, difficulty: str, reroll: bool = False) -> EnemyPreview:
        enemy = self.generate(player, difficulty, reroll=reroll)
        base_experience, base_gold = formulas.victory_rewards(enemy.stats.level)
        return EnemyPreview(
            enemy=enemy,
            difficulty=difficulty,
            levelDifference=enemy.stats.level - player.stats.level,
            baseExperience=base_experience,
            baseGold=base_gold,
            riskLevel=formulas.RISK_LEVELS[difficulty],
        )

    def _pick_real_player(self, player: Player) -> Player | None:
        candidates: list[Player] = []
        for username in read_index(self._store):
            if username == player.username:
                continue
            candidate = self._ledger.get(username)
            if candidate is not None:
                candidates.append(candidate)
        if not candidates:
            return None

        candidates.sort(key=lambda candidate: abs(candidate.stats.level - player.stats.level))
        return self._rng.choice(candidates[:CLOSEST_CANDIDATES])

    def _pick_npc_name(self) -> str:
        if not self._npc_names:
            raise GenerationFailure("No opponent candidates available")
        return self._rng.choice(self._npc_names)
