"""Domain models for characters, battles and leaderboard responses.

Records are persisted as JSON documents, so every model converts to and from a
plain ``dict`` with the camelCase keys the renderer consumes.
"""

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from typing import Any


PLAYER = "player"
ENEMY = "enemy"
NONE = "none"

ATTACK = "attack"
DEFEND = "defend"
SPECIAL = "special"
HEAL = "heal"
WEAK_SPECIAL = "weak_special"

ACTIONS = (ATTACK, DEFEND, SPECIAL, HEAL)

EASY = "easy"
MEDIUM = "medium"
HARD = "hard"

DIFFICULTIES = (EASY, MEDIUM, HARD)


@dataclass(frozen=True)
class CharacterStats:
    level: int = 1
    experience: int = 0
    experienceToNext: int = 100
    hitPoints: int = 100
    maxHitPoints: int = 100
    specialPoints: int = 20
    maxSpecialPoints: int = 20
    attack: int = 10
    defense: int = 5
    skillPoints: int = 0
    gold: int = 100

    @classmethod
    def field_names(cls) -> tuple[str, ...]:
        return tuple(item.name for item in fields(cls))

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> CharacterStats:
        known = {name: int(payload[name]) for name in cls.field_names() if name in payload}
        return cls(**known)

    def to_dict(self) -> dict[str, int]:
        return {name: getattr(self, name) for name in self.field_names()}

    def merged(self, partial: dict[str, Any]) -> CharacterStats:
        """Return a copy with ``partial`` applied and resources clamped to their maxima."""
        unknown = sorted(set(partial) - set(self.field_names()))
        if unknown:
            raise ValueError(f"Unknown stat fields: {', '.join(unknown)}")
        updates = {name: max(0, int(value)) for name, value in partial.items() if value is not None}
        return replace(self, **updates).clamped()

    def clamped(self) -> CharacterStats:
        return replace(
            self,
            hitPoints=max(0, min(self.hitPoints, self.maxHitPoints)),
            specialPoints=max(0, min(self.specialPoints, self.maxSpecialPoints)),
        )


@dataclass(frozen=True)
class Character:
    username: str
    avatarUrl: str
    stats: CharacterStats
    isNPC: bool = False

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Character:
        return cls(
            username=str(payload["username"]),
            avatarUrl=str(payload.get("avatarUrl", "")),
            stats=CharacterStats.from_dict(payload.get("stats", {})),
            isNPC=bool(payload.get("isNPC", False)),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "username": self.username,
            "avatarUrl": self.avatarUrl,
            "stats": self.stats.to_dict(),
            "isNPC": self.isNPC,
        }


@dataclass(frozen=True)
class Player(Character):
    purchasedItems: frozenset[str] = frozenset()
    createdAt: str = ""
    lastPlayed: str = ""

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Player:
        return cls(
            username=str(payload["username"]),
            avatarUrl=str(payload.get("avatarUrl", "")),
            stats=CharacterStats.from_dict(payload.get("stats", {})),
            isNPC=False,
            purchasedItems=frozenset(payload.get("purchasedItems", [])),
            createdAt=str(payload.get("createdAt", "")),
            lastPlayed=str(payload.get("lastPlayed", "")),
        )

    def to_dict(self) -> dict[str, Any]:
        payload = super().to_dict()
        payload["purchasedItems"] = sorted(self.purchasedItems)
        payload["createdAt"] = self.createdAt
        payload["lastPlayed"] = self.lastPlayed
        return payload

    def as_combatant(self) -> Character:
        return Character(username=self.username, avatarUrl=self.avatarUrl, stats=self.stats, isNPC=False)


@dataclass(frozen=True)
class TurnRecord:
    turnNumber: int
    actor: str
    attacker: str
    defender: str
    action: str
    resolvedAction: str
    damage: int
    healing: int
    specialPointsGained: int
    message: str
    attackerHpAfter: int
    defenderHpAfter: int
    attackerSpAfter: int

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> TurnRecord:
        return cls(**{item.name: payload[item.name] for item in fields(cls)})

    def to_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class Battle:
    battleId: str
    player: Character
    enemy: Character
    difficulty: str
    createdAt: str
    currentTurn: str = PLAYER
    turnNumber: int = 1
    isActive: bool = True
    winner: str = NONE
    battleLog: tuple[TurnRecord, ...] = ()

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> Battle:
        return cls(
            battleId=str(payload["battleId"]),
            player=Character.from_dict(payload["player"]),
            enemy=Character.from_dict(payload["enemy"]),
            difficulty=str(payload.get("difficulty", MEDIUM)),
            createdAt=str(payload.get("createdAt", "")),
            currentTurn=str(payload.get("currentTurn", PLAYER)),
            turnNumber=int(payload.get("turnNumber", 1)),
            isActive=bool(payload.get("isActive", True)),
            winner=str(payload.get("winner", NONE)),
            battleLog=tuple(TurnRecord.from_dict(entry) for entry in payload.get("battleLog", [])),
        )

    def to_dict(self) -> dict[str, Any]:
        return {
            "battleId": self.battleId,
            "player": self.player.to_dict(),
            "enemy": self.enemy.to_dict(),
            "difficulty": self.difficulty,
            "createdAt": self.createdAt,
            "currentTurn": self.currentTurn,
            "turnNumber": self.turnNumber,
            "isActive": self.isActive,
            "winner": self.winner,
            "battleLog": [entry.to_dict() for entry in self.battleLog],
        }


@dataclass(frozen=True)
class Rewards:
    experience: int
    gold: int
    levelUp: bool

    def to_dict(self) -> dict[str, Any]:
        return {"experience": self.experience, "gold": self.gold, "levelUp": self.levelUp}


@dataclass(frozen=True)
class BattleResult:
    battle: Battle
    playerTurn: TurnRecord | None = None
    enemyTurn: TurnRecord | None = None
    rewards: Rewards | None = None

    @property
    def battleEnded(self) -> bool:
        return not self.battle.isActive

    def to_dict(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "battleState": self.battle.to_dict(),
            "playerTurn": self.playerTurn.to_dict() if self.playerTurn else None,
            "enemyTurn": self.enemyTurn.to_dict() if self.enemyTurn else None,
            "battleEnded": self.battleEnded,
            "winner": self.battle.winner if self.battleEnded else None,
            "rewards": self.rewards.to_dict() if self.rewards else None,
        }
        return payload


@dataclass(frozen=True)
class EnemyPreview:
    enemy: Character
    difficulty: str
    levelDifference: int
    baseExperience: int
    baseGold: int
    riskLevel: str

    def to_dict(self) -> dict[str, Any]:
        return {
            "enemy": self.enemy.to_dict(),
            "difficulty": self.difficulty,
            "levelDifference": self.levelDifference,
            "expectedRewards": {
                "baseExperience": self.baseExperience,
                "baseGold": self.baseGold,
                "riskLevel": self.riskLevel,
            },
        }


@dataclass(frozen=True)
class LeaderboardEntry:
    rank: int | None
    username: str
    score: int
    level: int
    avatarUrl: str
    battlesWon: int
    lastPlayed: str
    isCurrentPlayer: bool = False
    isPlaceholder: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {item.name: getattr(self, item.name) for item in fields(self)}


@dataclass(frozen=True)
class RankedList:
    entries: list[LeaderboardEntry] = field(default_factory=list)
    playerRank: int = -1
    totalPlayers: int = 0

    @property
    def isCurrentPlayerIncluded(self) -> bool:
        return any(entry.isCurrentPlayer for entry in self.entries)

    def to_dict(self) -> dict[str, Any]:
        return {
            "leaderboard": [entry.to_dict() for entry in self.entries],
            "playerRank": self.playerRank,
            "totalPlayers": self.totalPlayers,
            "isCurrentPlayerIncluded": self.isCurrentPlayerIncluded,
        }
