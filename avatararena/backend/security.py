"""Caller identity, admin allow-listing and battle id generation."""

from __future__ import annotations

import logging
import secrets
import time
from dataclasses import dataclass
from typing import Protocol

from fastapi.requests import HTTPConnection

from .errors import Forbidden, Unauthenticated

logger = logging.getLogger(__name__)

USERNAME_HEADER = "X-Arena-Username"
BATTLE_ID_SUFFIX_BYTES = 4


class IdentityProvider(Protocol):
    def current_username(self, connection: HTTPConnection) -> str | None:
        """Return the authenticated username for a request or websocket."""


@dataclass(frozen=True)
class HeaderIdentityProvider:
    """Trusts a username header set by the hosting platform's proxy."""

    header_name: str = USERNAME_HEADER

    def current_username(self, connection: HTTPConnection) -> str | None:
        username = connection.headers.get(self.header_name, "").strip()
        return username or None


def require_username(identity: IdentityProvider, connection: HTTPConnection) -> str:
    username = identity.current_username(connection)
    if username is None:
        raise Unauthenticated("No authenticated user for this request")
    return username


@dataclass(frozen=True)
class AdminPolicy:
    allowed_usernames: frozenset[str] = frozenset()

    @classmethod
    def from_usernames(cls, usernames: tuple[str, ...] | list[str]) -> AdminPolicy:
        return cls(allowed_usernames=frozenset(usernames))

    def is_admin(self, username: str | None) -> bool:
        return username is not None and username in self.allowed_usernames

    def require(self, username: str | None) -> str:
        """Return ``username`` when it is allow-listed, otherwise raise."""
        if username is None:
            raise Unauthenticated("No authenticated user for this request")
        if not self.is_admin(username):
            logger.warning("Denied administrative call for %s", username)
            raise Forbidden("Administrative access required")
        return username


def generate_battle_id() -> str:
    """Generate a battle id from the creation time plus a random suffix."""
    millis = int(time.time() * 1000)
    return f"battle_{millis}_{secrets.token_hex(BATTLE_ID_SUFFIX_BYTES)}"
