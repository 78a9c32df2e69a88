from __future__ import annotations

from enum import Enum


class Role(str, Enum):
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    STAFF = "STAFF"
    VIEWER = "VIEWER"

    @property
    def is_owner(self) -> bool:
        return self is Role.OWNER

    @property
    def is_admin(self) -> bool:
        return self is Role.ADMIN
