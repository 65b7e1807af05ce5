import pytest

from avatararena.backend.models import Battle, BattleResult, CharacterStats, Player, TurnRecord


def test_stats_merge_applies_fields_and_clamps_resources() -> None:
    stats = CharacterStats()

    merged = stats.merged({"gold": 500, "hitPoints": 250, "specialPoints": -3, "attack": None})

    assert merged.gold == 500
    assert merged.hitPoints == 100
    assert merged.specialPoints == 0
    assert merged.attack == 10


def test_stats_merge_rejects_unknown_fields() -> None:
    with pytest.raises(ValueError, match="luck"):
        CharacterStats().merged({"luck": 3})


def test_player_round_trips_through_dict_with_sorted_items() -> None:
    payload = {
        "username": "alice",
        "avatarUrl": "https://avatars/alice.png",
        "stats": {"level": 3, "gold": 7},
        "isNPC": True,
        "purchasedItems": ["sword", "amulet"],
        "createdAt": "2024-01-01T00:00:00+00:00",
        "lastPlayed": "2024-01-02T00:00:00+00:00",
    }

    player = Player.from_dict(payload)
    serialized = player.to_dict()

    assert player.isNPC is False
    assert player.stats.level == 3
    assert player.stats.attack == 10
    assert serialized["purchasedItems"] == ["amulet", "sword"]
    assert serialized["lastPlayed"] == "2024-01-02T00:00:00+00:00"


def test_battle_result_reports_winner_only_when_ended() -> None:
    turn = TurnRecord(
        turnNumber=1,
        actor="player",
        attacker="alice",
        defender="Goblin Scout",
        action="attack",
        resolvedAction="attack",
        damage=9,
        healing=0,
        specialPointsGained=9,
        message="alice attacks Goblin Scout for 9 damage!",
        attackerHpAfter=100,
        defenderHpAfter=0,
        attackerSpAfter=9,
    )
    battle = Battle.from_dict(
        {
            "battleId": "battle_1_x",
            "player": {"username": "alice", "stats": {}},
            "enemy": {"username": "Goblin Scout", "stats": {}, "isNPC": True},
            "difficulty": "easy",
            "createdAt": "2024-01-01T00:00:00+00:00",
            "currentTurn": "none",
            "isActive": False,
            "winner": "player",
            "battleLog": [turn.to_dict()],
        }
    )

    body = BattleResult(battle=battle, playerTurn=turn).to_dict()

    assert body["battleEnded"] is True
    assert body["winner"] == "player"
    assert body["battleState"]["battleLog"][0]["damage"] == 9
    assert body["enemyTurn"] is None
    assert body["rewards"] is None
