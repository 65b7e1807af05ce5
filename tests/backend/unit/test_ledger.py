import pytest

from avatararena.backend import ledger as ledger_module
from avatararena.backend.avatars import DefaultAvatarResolver
from avatararena.backend.errors import NotFound
from avatararena.backend.ledger import PlayerLedger, player_key
from avatararena.backend.store import InMemoryKeyValueStore


class _StaticAvatars:
    def __init__(self) -> None:
        self.calls = 0

    def avatar_for(self, username: str) -> str:
        self.calls += 1
        return f"https://avatars/{username}/{self.calls}.png"


class _Clock:
    def __init__(self) -> None:
        self.ticks = 0

    def __call__(self) -> str:
        self.ticks += 1
        return f"2024-01-01T00:00:{self.ticks:02d}+00:00"


def _ledger() -> tuple[PlayerLedger, InMemoryKeyValueStore]:
    store = InMemoryKeyValueStore()
    return PlayerLedger(store=store, avatars=_StaticAvatars(), clock=_Clock()), store


def test_get_or_create_creates_default_player_once() -> None:
    ledger, store = _ledger()

    created = ledger.get_or_create("alice")
    loaded = ledger.get_or_create("alice")

    assert created.stats.level == 1
    assert created.avatarUrl == "https://avatars/alice/1.png"
    assert loaded.createdAt == created.createdAt
    assert loaded.lastPlayed != created.lastPlayed
    assert loaded.avatarUrl == created.avatarUrl
    assert store.get(player_key("alice")) is not None


def test_get_returns_none_for_unknown_player() -> None:
    ledger, _ = _ledger()

    assert ledger.get("ghost") is None


def test_update_merges_partial_stats() -> None:
    ledger, _ = _ledger()
    ledger.get_or_create("alice")

    updated = ledger.update("alice", {"gold": 250, "hitPoints": 40})

    assert updated.stats.gold == 250
    assert updated.stats.hitPoints == 40
    assert updated.stats.attack == 10
    assert ledger.get("alice").stats.gold == 250


def test_update_missing_player_raises_not_found() -> None:
    ledger, store = _ledger()

    with pytest.raises(NotFound):
        ledger.update("ghost", {"gold": 1})
    assert store.get(player_key("ghost")) is None


def test_update_rejects_unknown_fields_without_writing() -> None:
    ledger, _ = _ledger()
    ledger.get_or_create("alice")

    with pytest.raises(ValueError):
        ledger.update("alice", {"mana": 10})

    assert ledger.get("alice").stats.gold == 100


def test_reset_restores_defaults_and_optionally_keeps_avatar() -> None:
    ledger, _ = _ledger()
    original = ledger.get_or_create("alice")
    ledger.update("alice", {"level": 7, "gold": 900})

    kept = ledger.reset("alice", preserve_avatar=True)
    assert kept.stats.level == 1
    assert kept.stats.gold == 100
    assert kept.avatarUrl == original.avatarUrl
    assert kept.createdAt == original.createdAt

    refreshed = ledger.reset("alice", preserve_avatar=False)
    assert refreshed.avatarUrl != original.avatarUrl


def test_reset_creates_missing_player() -> None:
    ledger, _ = _ledger()

    player = ledger.reset("newcomer")

    assert player.stats.level == 1
    assert ledger.get("newcomer") is not None


def test_delete_removes_record() -> None:
    ledger, _ = _ledger()
    ledger.get_or_create("alice")

    ledger.delete("alice")

    assert ledger.get("alice") is None


def test_default_avatar_resolver_is_stable_per_username() -> None:
    resolver = DefaultAvatarResolver()

    first = resolver.avatar_for("alice")

    assert first == resolver.avatar_for("alice")
    assert first.startswith("https://www.redditstatic.com/avatars/avatar_default_")
    assert first.endswith(".png")


def test_apply_victory_grants_rewards_on_latest_record() -> None:
    ledger, _ = _ledger()
    ledger.get_or_create("alice")
    ledger.update("alice", {"gold": 500, "experience": 50})

    player, rewards = ledger.apply_victory("alice", enemy_level=3)

    assert rewards.to_dict() == {"experience": 75, "gold": 45, "levelUp": True}
    assert player.stats.gold == 545
    assert player.stats.level == 2
    assert player.stats.experience == 25
    assert ledger.get("alice") == player


def test_apply_victory_uses_one_read_modify_write(monkeypatch) -> None:
    ledger, _ = _ledger()
    ledger.get_or_create("alice")
    keys: list[str] = []
    original_update = ledger_module.transactional_update

    def recording_update(store, key, mutate):
        keys.append(key)
        return original_update(store, key, mutate)

    monkeypatch.setattr(ledger_module, "transactional_update", recording_update)

    ledger.apply_victory("alice", enemy_level=1)

    assert keys == [player_key("alice")]
