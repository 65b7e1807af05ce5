"""Numeric rules for enemy scaling, combat resources and progression."""

from __future__ import annotations

import math
import random
from dataclasses import replace

from .models import EASY, HARD, MEDIUM, CharacterStats, Rewards

# Hit point pacing per difficulty: (base, per-level low, per-level high).
# A fresh player at the mean damage roll needs 3-4 / 4-6 / 6-8 turns.
HP_SCALING = {
    EASY: (30, 5, 14),
    MEDIUM: (50, 10, 20),
    HARD: (44, 3, 5),
}

ENEMY_ATTACK_BASE = 5
ENEMY_ATTACK_PER_LEVEL = 3
ENEMY_DEFENSE_PER_LEVEL = 1
ENEMY_SP_BASE = 15
ENEMY_SP_PER_LEVEL = 5

RISK_LEVELS = {EASY: "low", MEDIUM: "balanced", HARD: "high"}

PLAYER_SP_GAIN = 0.45
ENEMY_SP_GAIN = 0.20
SPECIAL_COST_FRACTION = 0.8
SPECIAL_MULTIPLIER = 1.8
WEAK_SPECIAL_MULTIPLIER = 0.7
ATTACK_MULTIPLIER = 1.0
DAMAGE_VARIANCE = (0.8, 1.2)
PLAYER_HEAL_FRACTION = 0.30
ENEMY_HEAL_FRACTION = 0.20

EXPERIENCE_PER_ENEMY_LEVEL = 25
GOLD_PER_ENEMY_LEVEL = 15
EXPERIENCE_PER_LEVEL = 100
LEVEL_UP_HP = 20
LEVEL_UP_SP = 5
LEVEL_UP_ATTACK = 3
LEVEL_UP_DEFENSE = 2
LEVEL_UP_SKILL_POINTS = 1


def roll_enemy_level(player_level: int, difficulty: str, rng: random.Random) -> int:
    if difficulty == EASY:
        return max(1, player_level - (1 + rng.randrange(3)))
    if difficulty == MEDIUM:
        return max(1, player_level - rng.randrange(2))
    if difficulty == HARD:
        return player_level + 1 + rng.randrange(3)
    raise ValueError(f"Unknown difficulty: {difficulty}")


def level_bounds(player_level: int, difficulty: str) -> tuple[int, int]:
    """Inclusive range of enemy levels ``roll_enemy_level`` can produce."""
    if difficulty == EASY:
        return max(1, player_level - 3), max(1, player_level - 1)
    if difficulty == MEDIUM:
        return max(1, player_level - 1), max(1, player_level)
    if difficulty == HARD:
        return player_level + 1, player_level + 3
    raise ValueError(f"Unknown difficulty: {difficulty}")


def build_enemy_stats(level: int, difficulty: str, rng: random.Random) -> CharacterStats:
    base_hp, per_level_low, per_level_high = HP_SCALING[difficulty]
    max_hp = base_hp + level * rng.randint(per_level_low, per_level_high)
    max_sp = ENEMY_SP_BASE + level * ENEMY_SP_PER_LEVEL
    return CharacterStats(
        level=level,
        experience=0,
        experienceToNext=level * EXPERIENCE_PER_LEVEL,
        hitPoints=max_hp,
        maxHitPoints=max_hp,
        specialPoints=max_sp,
        maxSpecialPoints=max_sp,
        attack=ENEMY_ATTACK_BASE + level * ENEMY_ATTACK_PER_LEVEL,
        defense=level * ENEMY_DEFENSE_PER_LEVEL,
        skillPoints=0,
        gold=0,
    )


def snapshot_enemy_stats(source: CharacterStats, level: int) -> CharacterStats:
    """Re-level a saved player's stats to ``level`` for use as an enemy.

    Combat stats scale by ``level / source.level``; resources start full.
    """
    ratio = level / max(1, source.level)
    max_hp = max(1, math.floor(source.maxHitPoints * ratio))
    max_sp = math.floor(source.maxSpecialPoints * ratio)
    return CharacterStats(
        level=level,
        experience=0,
        experienceToNext=level * EXPERIENCE_PER_LEVEL,
        hitPoints=max_hp,
        maxHitPoints=max_hp,
        specialPoints=max_sp,
        maxSpecialPoints=max_sp,
        attack=max(1, math.floor(source.attack * ratio)),
        defense=math.floor(source.defense * ratio),
        skillPoints=0,
        gold=0,
    )


def special_point_gain(max_special_points: int, gain_fraction: float) -> int:
    return max(1, math.floor(max_special_points * gain_fraction))


def special_cost(max_special_points: int) -> int:
    return math.floor(max_special_points * SPECIAL_COST_FRACTION)


def roll_damage(attack: int, defense: int, multiplier: float, rng: random.Random) -> int:
    low, high = DAMAGE_VARIANCE
    raw = math.floor(attack * multiplier * rng.uniform(low, high))
    return max(1, raw - defense)


def weaken_damage(normal_damage: int) -> int:
    return max(1, math.floor(normal_damage * WEAK_SPECIAL_MULTIPLIER))


def heal_amount(max_hit_points: int, heal_fraction: float) -> int:
    return math.floor(max_hit_points * heal_fraction)


def victory_rewards(enemy_level: int) -> tuple[int, int]:
    return enemy_level * EXPERIENCE_PER_ENEMY_LEVEL, enemy_level * GOLD_PER_ENEMY_LEVEL


def apply_victory(stats: CharacterStats, enemy_level: int) -> tuple[CharacterStats, Rewards]:
    """Grant experience and gold for a win.

    At most one level is gained per victory, even when the carried remainder
    would already cover the next threshold.
    """
    experience_gain, gold_gain = victory_rewards(enemy_level)
    experience = stats.experience + experience_gain
    gold = stats.gold + gold_gain

    if experience < stats.experienceToNext:
        updated = replace(stats, experience=experience, gold=gold)
        return updated, Rewards(experience=experience_gain, gold=gold_gain, levelUp=False)

    level = stats.level + 1
    max_hp = stats.maxHitPoints + LEVEL_UP_HP
    max_sp = stats.maxSpecialPoints + LEVEL_UP_SP
    updated = replace(
        stats,
        level=level,
        experience=experience - stats.experienceToNext,
        experienceToNext=level * EXPERIENCE_PER_LEVEL,
        maxHitPoints=max_hp,
        hitPoints=max_hp,
        maxSpecialPoints=max_sp,
        specialPoints=max_sp,
        attack=stats.attack + LEVEL_UP_ATTACK,
        defense=stats.defense + LEVEL_UP_DEFENSE,
        skillPoints=stats.skillPoints + LEVEL_UP_SKILL_POINTS,
        gold=gold,
    )
    return updated, Rewards(experience=experience_gain, gold=gold_gain, levelUp=True)


def leaderboard_score(stats: CharacterStats) -> int:
    """Total experience earned to reach the current level and progress."""
    return 50 * stats.level * (stats.level - 1) + stats.experience
