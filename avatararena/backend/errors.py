"""Error taxonomy shared by the battle engine, ledger and leaderboard."""

from __future__ import annotations


class ArenaError(Exception):
    """Base class for failures surfaced to API callers.

    ``status_code`` is the HTTP status the API layer answers with.
    """

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class Unauthenticated(ArenaError):
    status_code = 401


class Forbidden(ArenaError):
    status_code = 403


class NotFound(ArenaError):
    status_code = 404


class InvalidState(ArenaError):
    """An action was submitted out of turn or against an ended battle."""

    status_code = 409


class GenerationFailure(ArenaError):
    status_code = 500


class StorageUnavailable(ArenaError):
    """The key-value backend failed; callers retry the whole request."""

    status_code = 503
