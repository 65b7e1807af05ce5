import random
from dataclasses import replace

import pytest

from avatararena.backend import formulas
from avatararena.backend.engine import apply_enemy_turn, apply_player_action, choose_enemy_action
from avatararena.backend.errors import InvalidState
from avatararena.backend.models import Character, CharacterStats
from avatararena.backend.state import build_initial_battle, default_stats


class _FixedRandom(random.Random):
    """Pins the damage roll and the enemy's action choice."""

    def __init__(self, factor: float = 1.0, enemy_action: str | None = None) -> None:
        super().__init__(0)
        self.factor = factor
        self.enemy_action = enemy_action

    def uniform(self, a, b):
        return self.factor

    def choices(self, population, weights=None, *, cum_weights=None, k=1):
        if self.enemy_action is None:
            return super().choices(population, weights=weights, cum_weights=cum_weights, k=k)
        return [self.enemy_action]


def _battle():
    player = Character(username="alice", avatarUrl="", stats=CharacterStats())
    enemy = Character(
        username="Goblin Scout",
        avatarUrl="",
        stats=CharacterStats(level=1, hitPoints=40, maxHitPoints=40, maxSpecialPoints=20, attack=8, defense=1),
        isNPC=True,
    )
    return build_initial_battle("battle_1_test", player, enemy, "easy", now="2024-01-01T00:00:00+00:00")


def _with_player(battle, **stats):
    return replace(battle, player=replace(battle.player, stats=replace(battle.player.stats, **stats)))


def _with_enemy(battle, **stats):
    return replace(battle, enemy=replace(battle.enemy, stats=replace(battle.enemy.stats, **stats)))


def test_attack_deals_damage_grants_special_points_and_passes_turn() -> None:
    battle = _battle()

    result = apply_player_action(battle, "attack", _FixedRandom(1.0))

    assert result.turn.damage == 9
    assert result.turn.specialPointsGained == 9
    assert result.battle.enemy.stats.hitPoints == 31
    assert result.battle.player.stats.specialPoints == 9
    assert result.battle.currentTurn == "enemy"
    assert result.battle.turnNumber == 2
    assert result.battle.battleLog == (result.turn,)
    assert battle.enemy.stats.hitPoints == 40


def test_special_without_enough_points_is_downgraded() -> None:
    battle = _battle()
    assert battle.player.stats.specialPoints == 0

    result = apply_player_action(battle, "special", _FixedRandom(1.2))

    # normal damage would be floor(10 * 1.0 * 1.2) - 1 = 11, weakened to floor(11 * 0.7)
    assert result.turn.resolvedAction == "weak_special"
    assert result.turn.damage == 7
    assert result.turn.specialPointsGained == 0
    assert result.battle.player.stats.specialPoints == 0
    assert result.battle.enemy.stats.hitPoints == 33


def test_special_with_enough_points_uses_multiplier_and_costs_points() -> None:
    battle = _with_player(_battle(), specialPoints=18)

    result = apply_player_action(battle, "special", _FixedRandom(1.0))

    assert result.turn.resolvedAction == "special"
    assert result.turn.damage == 17
    assert result.battle.player.stats.specialPoints == 2


def test_defend_deals_no_damage_and_only_gains_points() -> None:
    result = apply_player_action(_battle(), "defend", _FixedRandom())

    assert result.turn.damage == 0
    assert result.turn.healing == 0
    assert result.battle.enemy.stats.hitPoints == 40
    assert result.battle.player.stats.specialPoints == 9


def test_heal_restores_thirty_percent_clamped_to_max() -> None:
    result = apply_player_action(_with_player(_battle(), hitPoints=50), "heal", _FixedRandom())

    assert result.turn.healing == 30
    assert result.turn.specialPointsGained == 9
    assert result.battle.player.stats.hitPoints == 80

    topped = apply_player_action(_with_player(_battle(), hitPoints=95), "heal", _FixedRandom())

    assert topped.turn.healing == 5
    assert topped.battle.player.stats.hitPoints == 100


def test_defeating_enemy_ends_battle_immediately() -> None:
    battle = _with_enemy(_battle(), hitPoints=3)

    result = apply_player_action(battle, "attack", _FixedRandom())

    assert result.battle.enemy.stats.hitPoints == 0
    assert result.turn.defenderHpAfter == 0
    assert result.battle.isActive is False
    assert result.battle.winner == "player"
    assert result.battle.currentTurn == "none"
    assert result.battle.turnNumber == 1


def test_player_cannot_act_on_enemy_turn_or_ended_battle() -> None:
    after_player = apply_player_action(_battle(), "attack", _FixedRandom()).battle

    with pytest.raises(InvalidState):
        apply_player_action(after_player, "attack", _FixedRandom())

    ended = apply_player_action(_with_enemy(_battle(), hitPoints=1), "attack", _FixedRandom()).battle
    with pytest.raises(InvalidState):
        apply_player_action(ended, "attack", _FixedRandom())
    with pytest.raises(InvalidState):
        apply_enemy_turn(ended, _FixedRandom())


def test_enemy_cannot_act_on_player_turn() -> None:
    with pytest.raises(InvalidState):
        apply_enemy_turn(_battle(), _FixedRandom())


def test_enemy_turn_uses_enemy_gain_and_returns_turn_to_player() -> None:
    after_player = apply_player_action(_battle(), "defend", _FixedRandom()).battle

    result = apply_enemy_turn(after_player, _FixedRandom(1.0, enemy_action="attack"))

    assert result.turn.actor == "enemy"
    assert result.turn.attacker == "Goblin Scout"
    assert result.turn.damage == 3
    assert result.turn.specialPointsGained == 4
    assert result.battle.player.stats.hitPoints == 97
    assert result.battle.currentTurn == "player"
    assert result.battle.turnNumber == 3


def test_enemy_defeating_player_ends_battle_for_enemy() -> None:
    after_player = apply_player_action(_with_player(_battle(), hitPoints=2), "defend", _FixedRandom()).battle

    result = apply_enemy_turn(after_player, _FixedRandom(enemy_action="attack"))

    assert result.battle.player.stats.hitPoints == 0
    assert result.battle.winner == "enemy"
    assert result.battle.isActive is False
    assert result.battle.currentTurn == "none"


def test_enemy_heal_restores_twenty_percent() -> None:
    after_player = apply_player_action(_with_enemy(_battle(), hitPoints=10), "defend", _FixedRandom()).battle

    result = apply_enemy_turn(after_player, _FixedRandom(enemy_action="heal"))

    assert result.turn.healing == 8
    assert result.battle.enemy.stats.hitPoints == 18


def test_unknown_action_is_rejected() -> None:
    with pytest.raises(ValueError):
        apply_player_action(_battle(), "flee", _FixedRandom())


def test_choose_enemy_action_never_heals_at_full_health() -> None:
    enemy = Character("Goblin Scout", "", CharacterStats(hitPoints=40, maxHitPoints=40, specialPoints=0), isNPC=True)
    rng = random.Random(11)

    actions = {choose_enemy_action(enemy, rng) for _ in range(300)}

    assert "heal" not in actions
    assert "special" not in actions
    assert "attack" in actions


def test_choose_enemy_action_uses_special_when_affordable() -> None:
    enemy = Character("Goblin Scout", "", CharacterStats(specialPoints=20, maxSpecialPoints=20), isNPC=True)
    rng = random.Random(5)

    actions = [choose_enemy_action(enemy, rng) for _ in range(300)]

    assert "special" in actions


def test_resources_stay_in_bounds_and_turns_alternate_over_random_battles() -> None:
    rng = random.Random(2024)
    for _ in range(50):
        battle = _battle()
        while battle.isActive and battle.turnNumber < 400:
            side = battle.currentTurn
            if side == "player":
                battle = apply_player_action(battle, rng.choice(["attack", "defend", "special", "heal"]), rng).battle
            else:
                battle = apply_enemy_turn(battle, rng).battle
            for character in (battle.player, battle.enemy):
                assert 0 <= character.stats.hitPoints <= character.stats.maxHitPoints
                assert 0 <= character.stats.specialPoints <= character.stats.maxSpecialPoints
            assert (battle.currentTurn == "none") == (not battle.isActive)
            if battle.isActive:
                assert battle.currentTurn != side
            for turn in battle.battleLog:
                if turn.action in ("attack", "special"):
                    assert turn.damage >= 1


class _BandEdgeRandom(random.Random):
    """Mean damage roll; per-level HP pinned to the low or high end of the band."""

    def __init__(self, high: bool) -> None:
        super().__init__(0)
        self.high = high

    def uniform(self, a, b):
        return 1.0

    def randint(self, a, b):
        return b if self.high else a


def _turns_to_win(enemy_stats: CharacterStats, rng: random.Random) -> int:
    player = Character(username="alice", avatarUrl="", stats=default_stats())
    enemy = Character(username="Goblin Scout", avatarUrl="", stats=enemy_stats, isNPC=True)
    battle = build_initial_battle("battle_1_pace", player, enemy, "easy", now="2024-01-01T00:00:00+00:00")
    turns = 0
    while battle.isActive:
        stats = battle.player.stats
        action = "special" if stats.specialPoints >= formulas.special_cost(stats.maxSpecialPoints) else "attack"
        battle = apply_player_action(battle, action, rng).battle
        turns += 1
        if battle.isActive:
            battle = replace(battle, currentTurn="player")
    return turns


@pytest.mark.parametrize(
    ("difficulty", "fewest", "most"),
    [("easy", 3, 4), ("medium", 4, 6), ("hard", 6, 8)],
)
@pytest.mark.parametrize("high", [False, True])
def test_fresh_player_needs_difficulty_turn_band(difficulty: str, fewest: int, most: int, high: bool) -> None:
    rng = _BandEdgeRandom(high)
    low_level, high_level = formulas.level_bounds(1, difficulty)

    for level in range(low_level, high_level + 1):
        turns = _turns_to_win(formulas.build_enemy_stats(level, difficulty, rng), rng)
        assert fewest <= turns <= most, (difficulty, level, turns)
