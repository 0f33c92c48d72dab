"""Caller identity supplied by the identity provider."""

from __future__ import annotations

import uuid
from dataclasses import dataclass


@dataclass(frozen=True)
class Identity:
    """``(user_id, is_admin)`` for the current request, passed explicitly into every service call."""

    user_id: uuid.UUID
    is_admin: bool = False

    def can_see(self, owner_id: uuid.UUID) -> bool:
        """Owners and admins may read an entity; everyone else is told it does not exist."""
        return self.is_admin or owner_id == self.user_id
