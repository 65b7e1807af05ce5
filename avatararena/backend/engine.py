"""Reducer for battle turns.

Each function takes a battle snapshot and returns a new one; persistence and
rewards live in ``battles.py``.
"""

from __future__ import annotations

import random
from dataclasses import dataclass, replace

from . import formulas
from .errors import InvalidState
from .models import (
    ACTIONS,
    ATTACK,
    DEFEND,
    ENEMY,
    HEAL,
    NONE,
    PLAYER,
    SPECIAL,
    WEAK_SPECIAL,
    Battle,
    Character,
    TurnRecord,
)


@dataclass(frozen=True)
class ActionResult:
    battle: Battle
    turn: TurnRecord


@dataclass(frozen=True)
class _Resolution:
    actor: Character
    target: Character
    resolved_action: str
    damage: int
    healing: int
    sp_gained: int
    message: str


def apply_player_action(battle: Battle, action: str, rng: random.Random) -> ActionResult:
    if action not in ACTIONS:
        raise ValueError(f"Unknown action: {action}")
    _require_turn(battle, PLAYER)
    resolution = _resolve(
        actor=battle.player,
        target=battle.enemy,
        action=action,
        gain_fraction=formulas.PLAYER_SP_GAIN,
        heal_fraction=formulas.PLAYER_HEAL_FRACTION,
        rng=rng,
    )
    return _advance(battle, side=PLAYER, action=action, resolution=resolution)


def apply_enemy_turn(battle: Battle, rng: random.Random) -> ActionResult:
    _require_turn(battle, ENEMY)
    action = choose_enemy_action(battle.enemy, rng)
    resolution = _resolve(
        actor=battle.enemy,
        target=battle.player,
        action=action,
        gain_fraction=formulas.ENEMY_SP_GAIN,
        heal_fraction=formulas.ENEMY_HEAL_FRACTION,
        rng=rng,
    )
    return _advance(battle, side=ENEMY, action=action, resolution=resolution)


def choose_enemy_action(enemy: Character, rng: random.Random) -> str:
    stats = enemy.stats
    hp_ratio = stats.hitPoints / stats.maxHitPoints if stats.maxHitPoints else 1.0

    weights = {
        ATTACK: 60,
        DEFEND: 15,
        SPECIAL: 0,
        HEAL: 5,
    }
    if stats.specialPoints >= formulas.special_cost(stats.maxSpecialPoints):
        weights[SPECIAL] += 45
    if hp_ratio < 0.35:
        weights[HEAL] += 30
    if stats.hitPoints >= stats.maxHitPoints:
        weights[HEAL] = 0

    choices, probs = zip(*weights.items())
    return rng.choices(choices, weights=probs, k=1)[0]


def _require_turn(battle: Battle, side: str) -> None:
    if not battle.isActive:
        raise InvalidState(f"Battle {battle.battleId} has already ended")
    if battle.currentTurn != side:
        raise InvalidState(f"It is not the {side}'s turn in battle {battle.battleId}")


def _resolve(
    actor: Character,
    target: Character,
    action: str,
    gain_fraction: float,
    heal_fraction: float,
    rng: random.Random,
) -> _Resolution:
    actor_stats = actor.stats
    target_stats = target.stats

    if action == SPECIAL:
        cost = formulas.special_cost(actor_stats.maxSpecialPoints)
        if actor_stats.specialPoints >= cost:
            damage = formulas.roll_damage(
                actor_stats.attack, target_stats.defense, formulas.SPECIAL_MULTIPLIER, rng
            )
            resolved = SPECIAL
            remaining_sp = actor_stats.specialPoints - cost
            message = f"{actor.username} unleashes a special attack on {target.username} for {damage} damage!"
        else:
            normal = formulas.roll_damage(actor_stats.attack, target_stats.defense, formulas.ATTACK_MULTIPLIER, rng)
            damage = formulas.weaken_damage(normal)
            resolved = WEAK_SPECIAL
            remaining_sp = 0
            message = (
                f"{actor.username} lacks the energy for a special attack and strikes "
                f"{target.username} weakly for {damage} damage."
            )
        target_hp = max(0, target_stats.hitPoints - damage)
        return _Resolution(
            actor=replace(actor, stats=replace(actor_stats, specialPoints=remaining_sp).clamped()),
            target=replace(target, stats=replace(target_stats, hitPoints=target_hp).clamped()),
            resolved_action=resolved,
            damage=damage,
            healing=0,
            sp_gained=0,
            message=message,
        )

    gained = formulas.special_point_gain(actor_stats.maxSpecialPoints, gain_fraction)
    next_sp = min(actor_stats.maxSpecialPoints, actor_stats.specialPoints + gained)
    damage = 0
    healing = 0
    actor_hp = actor_stats.hitPoints
    target_hp = target_stats.hitPoints

    if action == ATTACK:
        damage = formulas.roll_damage(actor_stats.attack, target_stats.defense, formulas.ATTACK_MULTIPLIER, rng)
        target_hp = max(0, target_hp - damage)
        message = f"{actor.username} attacks {target.username} for {damage} damage!"
    elif action == HEAL:
        amount = formulas.heal_amount(actor_stats.maxHitPoints, heal_fraction)
        actor_hp = min(actor_stats.maxHitPoints, actor_hp + amount)
        healing = actor_hp - actor_stats.hitPoints
        message = f"{actor.username} heals for {healing} HP."
    else:
        message = f"{actor.username} takes a defensive stance and gathers energy."

    return _Resolution(
        actor=replace(actor, stats=replace(actor_stats, hitPoints=actor_hp, specialPoints=next_sp).clamped()),
        target=replace(target, stats=replace(target_stats, hitPoints=target_hp).clamped()),
        resolved_action=action,
        damage=damage,
        healing=healing,
        sp_gained=next_sp - actor_stats.specialPoints,
        message=message,
    )


def _advance(battle: Battle, side: str, action: str, resolution: _Resolution) -> ActionResult:
    turn = TurnRecord(
        turnNumber=battle.turnNumber,
        actor=side,
        attacker=resolution.actor.username,
        defender=resolution.target.username,
        action=action,
        resolvedAction=resolution.resolved_action,
        damage=resolution.damage,
        healing=resolution.healing,
        specialPointsGained=resolution.sp_gained,
        message=resolution.message,
        attackerHpAfter=resolution.actor.stats.hitPoints,
        defenderHpAfter=resolution.target.stats.hitPoints,
        attackerSpAfter=resolution.actor.stats.specialPoints,
    )

    if side == PLAYER:
        player, enemy, opponent = resolution.actor, resolution.target, ENEMY
    else:
        player, enemy, opponent = resolution.target, resolution.actor, PLAYER

    next_battle = replace(battle, player=player, enemy=enemy, battleLog=battle.battleLog + (turn,))
    if resolution.target.stats.hitPoints <= 0:
        next_battle = replace(next_battle, isActive=False, currentTurn=NONE, winner=side)
    else:
        next_battle = replace(next_battle, currentTurn=opponent, turnNumber=battle.turnNumber + 1)
    return ActionResult(battle=next_battle, turn=turn)
