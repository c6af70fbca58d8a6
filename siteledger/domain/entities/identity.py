"""Domain entity describing the identity behind a client session."""

from collections.abc import Iterable
from dataclasses import dataclass


@dataclass(frozen=True)
class SessionIdentity:
    """Authenticated user and role of a client session."""

    user_id: str
    role: str

    def has_any_role(self, roles: Iterable[str]) -> bool:
        """Return ``True`` when the session role is one of ``roles``."""

        return self.role.lower() in {role.lower() for role in roles}
