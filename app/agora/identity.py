from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from app.agora.models import Role, User


@dataclass(frozen=True)
class SessionIdentity:
    """
    Request-scoped snapshot of an account, taken at login.
    Non-authoritative: it is not refreshed when the account row changes.
    """

    id: int
    name: str
    email: str
    role: Role
    profile_picture: str | None = None

    @classmethod
    def from_user(cls, user: User) -> "SessionIdentity":
        return cls(
            id=user.id,
            name=user.name,
            email=user.email,
            role=Role(user.role),
            profile_picture=user.profile_picture,
        )

    def to_session(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "role": self.role.value,
            "profile_picture": self.profile_picture,
        }

    @classmethod
    def from_session(cls, data: Any) -> "SessionIdentity | None":
        """Rebuild from the cookie payload; anything malformed counts as logged out."""
        if not isinstance(data, dict):
            return None
        role = Role.parse(data.get("role"))
        try:
            user_id = int(data["id"])
        except (KeyError, TypeError, ValueError):
            return None
        if role is None or not data.get("email"):
            return None
        return cls(
            id=user_id,
            name=str(data.get("name") or ""),
            email=str(data["email"]),
            role=role,
            profile_picture=data.get("profile_picture") or None,
        )
