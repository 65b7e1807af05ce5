"""Avatar resolution boundary.

Avatar URLs are opaque to the core: they are stored on creation and forwarded
to the renderer unchanged.
"""

from __future__ import annotations

import hashlib
from dataclasses import dataclass
from typing import Protocol

DEFAULT_AVATAR_COLORS = ("0DD3BB", "24A0ED", "46D160", "FF4500", "FF8717", "FFB000", "A5A4A4", "C18D42")
DEFAULT_AVATAR_TEMPLATE = "https://www.redditstatic.com/avatars/avatar_default_{index:02d}_{color}.png"


class AvatarResolver(Protocol):
    def avatar_for(self, username: str) -> str:
        """Return an avatar URL for ``username``."""


@dataclass(frozen=True)
class DefaultAvatarResolver:
    """Picks one of the stock default avatars, stable per username."""

    def avatar_for(self, username: str) -> str:
        digest = hashlib.sha256(username.encode("utf-8")).digest()
        index = digest[0] % len(DEFAULT_AVATAR_COLORS)
        color = DEFAULT_AVATAR_COLORS[digest[1] % len(DEFAULT_AVATAR_COLORS)]
        return DEFAULT_AVATAR_TEMPLATE.format(index=index + 1, color=color)
