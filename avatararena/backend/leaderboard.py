"""Leaderboard index maintenance and ranked queries.

The index hash only tells us *who* is ranked. Display order is derived at
query time from each player's live record: level first, then battles won,
then the raw score stored in the index.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from .formulas import leaderboard_score
from .ledger import PlayerLedger
from .models import LeaderboardEntry, Player, RankedList
from .store import KeyValueStore

logger = logging.getLogger(__name__)

LEADERBOARD_KEY = "leaderboard"
DEFAULT_LEADERBOARD_SIZE = 25
GAP_USERNAME = "..."


def wins_key(username: str) -> str:
    return f"battles_won:{username}"


def read_index(store: KeyValueStore) -> dict[str, int]:
    """Return ``username -> raw score`` in index insertion order."""
    index: dict[str, int] = {}
    for username, raw_score in store.hash_get_all(LEADERBOARD_KEY).items():
        try:
            index[username] = int(raw_score)
        except ValueError:
            logger.warning("Ignoring non-numeric leaderboard score for %s: %r", username, raw_score)
            index[username] = 0
    return index


@dataclass(frozen=True)
class _Candidate:
    player: Player
    battles_won: int
    raw_score: int


class LeaderboardService:
    def __init__(self, store: KeyValueStore, ledger: PlayerLedger, size: int = DEFAULT_LEADERBOARD_SIZE) -> None:
        if size < 2:
            raise ValueError("Leaderboard size must leave room for the caller's entry")
        self._store = store
        self._ledger = ledger
        self._size = size

    def battles_won(self, username: str) -> int:
        raw = self._store.get(wins_key(username))
        return int(raw) if raw else 0

    def record_result(self, username: str, battles_won: int) -> None:
        """Store the win counter and make sure ``username`` is indexed."""
        self._store.set(wins_key(username), str(battles_won))
        player = self._ledger.get(username)
        current_score = leaderboard_score(player.stats) if player is not None else 0
        stored = read_index(self._store).get(username)
        score = current_score if stored is None else max(stored, current_score)
        self._store.hash_set(LEADERBOARD_KEY, username, str(score))

    def record_victory(self, username: str) -> int:
        battles_won = self.battles_won(username) + 1
        self.record_result(username, battles_won)
        return battles_won

    def query(self, caller_username: str | None) -> RankedList:
        candidates = self._resolve_candidates()
        ranked = sorted(
            candidates,
            key=lambda candidate: (candidate.player.stats.level, candidate.battles_won, candidate.raw_score),
            reverse=True,
        )
        entries = [
            LeaderboardEntry(
                rank=position,
                username=candidate.player.username,
                score=candidate.raw_score,
                level=candidate.player.stats.level,
                avatarUrl=candidate.player.avatarUrl,
                battlesWon=candidate.battles_won,
                lastPlayed=candidate.player.lastPlayed,
                isCurrentPlayer=candidate.player.username == caller_username,
            )
            for position, candidate in enumerate(ranked, start=1)
        ]
        player_rank = next((entry.rank for entry in entries if entry.isCurrentPlayer), -1)
        return RankedList(
            entries=self._bounded(entries, player_rank),
            playerRank=player_rank,
            totalPlayers=len(entries),
        )

    def _resolve_candidates(self) -> list[_Candidate]:
        candidates: list[_Candidate] = []
        stale: list[str] = []
        for username, raw_score in read_index(self._store).items():
            player = self._ledger.get(username)
            if player is None:
                logger.warning("Skipping leaderboard entry without player record: %s", username)
                stale.append(username)
                continue
            candidates.append(_Candidate(player=player, battles_won=self.battles_won(username), raw_score=raw_score))
        if stale:
            self._store.hash_delete(LEADERBOARD_KEY, stale)
        return candidates

    def _bounded(self, entries: list[LeaderboardEntry], player_rank: int) -> list[LeaderboardEntry]:
        if len(entries) <= self._size or player_rank == -1 or player_rank <= self._size:
            return entries[: self._size]

        # The caller sits below rank N here, so rank N itself is always hidden.
        gap = LeaderboardEntry(
            rank=None,
            username=GAP_USERNAME,
            score=0,
            level=0,
            avatarUrl="",
            battlesWon=0,
            lastPlayed="",
            isPlaceholder=True,
        )
        return entries[: self._size - 1] + [gap, entries[player_rank - 1]]
