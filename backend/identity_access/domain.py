"""
Identity domain types and constants.

Why:
- Centralize the role vocabulary and the identity/roster DTOs so the OAuth
  client, roster lookup, session layer and web adapter agree on one shape.
- Keep terms aligned with the front-end contract (`employeeName`, `grade`, ...).
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Optional

DISCORD_CDN = "https://cdn.discordapp.com"
DEFAULT_AVATAR_URL = f"{DISCORD_CDN}/embed/avatars/0.png"


class Role(str, Enum):
    ADMIN = "admin"
    RH = "rh"
    EMPLOYEE = "employee"
    VISITOR = "visitor"


@dataclass(frozen=True)
class ProviderIdentity:
    id: str
    username: str
    discriminator: str = "0"
    avatar: Optional[str] = None

    @property
    def avatar_url(self) -> str:
        if self.avatar:
            return f"{DISCORD_CDN}/avatars/{self.id}/{self.avatar}.png"
        return DEFAULT_AVATAR_URL


@dataclass(frozen=True)
class RosterRecord:
    discord_id: str
    name: str = "Inconnu"
    grade: str = "Aucun"
    employee_id: str = ""
    rib: str = ""
    tel: str = ""
    gmail: str = ""


__all__ = [
    "DEFAULT_AVATAR_URL",
    "ProviderIdentity",
    "Role",
    "RosterRecord",
]
