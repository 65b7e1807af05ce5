"""State builders for new player records and battle snapshots."""

from __future__ import annotations

from dataclasses import replace
from datetime import datetime, timezone

from .models import PLAYER, Battle, Character, CharacterStats, Player


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def default_stats() -> CharacterStats:
    """Return the stats every new or reset player starts from."""
    return CharacterStats(
        level=1,
        experience=0,
        experienceToNext=100,
        hitPoints=100,
        maxHitPoints=100,
        specialPoints=20,
        maxSpecialPoints=20,
        attack=10,
        defense=5,
        skillPoints=0,
        gold=100,
    )


def build_new_player(username: str, avatar_url: str, now: str | None = None) -> Player:
    timestamp = now or utc_now_iso()
    return Player(
        username=username,
        avatarUrl=avatar_url,
        stats=default_stats(),
        isNPC=False,
        purchasedItems=frozenset(),
        createdAt=timestamp,
        lastPlayed=timestamp,
    )


def battle_ready(character: Character) -> Character:
    """Copy a combatant with full hit points and an empty special gauge."""
    stats = replace(character.stats, hitPoints=character.stats.maxHitPoints, specialPoints=0)
    return replace(character, stats=stats)


def build_initial_battle(
    battle_id: str,
    player: Character,
    enemy: Character,
    difficulty: str,
    now: str | None = None,
) -> Battle:
    return Battle(
        battleId=battle_id,
        player=battle_ready(player),
        enemy=battle_ready(enemy),
        difficulty=difficulty,
        createdAt=now or utc_now_iso(),
        currentTurn=PLAYER,
        turnNumber=1,
        isActive=True,
        battleLog=(),
    )
