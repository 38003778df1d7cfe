"""Authenticated caller identity passed from the HTTP layer into services."""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Role(str, Enum):
    """Role claim carried in the bearer token."""
    CLIENT = "client"
    RECEPTION = "reception"
    ADMIN = "admin"


STAFF_ROLES = frozenset({Role.RECEPTION, Role.ADMIN})


@dataclass(frozen=True)
class Caller:
    """The user on whose behalf a service operation runs."""

    user_id: int
    role: Role
    email: Optional[str] = None

    @property
    def is_staff(self) -> bool:
        return self.role in STAFF_ROLES

    @property
    def is_admin(self) -> bool:
        return self.role == Role.ADMIN

    def owns(self, client_id: int) -> bool:
        return self.user_id == client_id

    def can_access(self, client_id: int) -> bool:
        """Staff see everything; clients only what they own."""
        return self.is_staff or self.owns(client_id)
