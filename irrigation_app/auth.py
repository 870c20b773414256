"""Current actor and role gates.

Sign-in itself belongs to the external identity service; this module only
resolves who the signed-in user is (profile + role rows) and which mutations
they may perform. Pages hide controls with the same gates the state handlers
enforce.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal, Optional

from irrigation_app.store import RemoteStore
from irrigation_app.sync.errors import StoreError
from irrigation_app.utils.logger import get_logger

logger = get_logger(__name__)

Role = Literal["admin", "petugas", "kadis"]

ROLES = ("admin", "petugas", "kadis")
DEFAULT_ROLE: Role = "petugas"

ROLE_LABELS = {
    "admin": "Administrator",
    "petugas": "Field Officer",
    "kadis": "Head of Department",
}

# roles that see create/edit/delete controls on the infrastructure pages
MANAGER_ROLES = frozenset({"admin", "kadis"})


@dataclass(frozen=True)
class Actor:
    id: str
    name: str
    role: Role = DEFAULT_ROLE
    username: str = ""

    @property
    def role_label(self) -> str:
        return ROLE_LABELS.get(self.role, self.role)


def can_manage(actor: Optional[Actor]) -> bool:
    return actor is not None and actor.role in MANAGER_ROLES


def can_record(actor: Optional[Actor]) -> bool:
    """Any signed-in actor may submit monitoring readings"""
    return actor is not None


def can_manage_users(actor: Optional[Actor]) -> bool:
    return actor is not None and actor.role == "admin"


# (entity, operation) pairs any signed-in actor may perform; all other writes need a manager
RECORDER_WRITES = frozenset({("monitoring", "create"), ("alerts", "update")})


def may_write(actor: Optional[Actor], entity_name: str, operation: str) -> bool:
    """Server-side gate checked by every mutation handler"""
    if (entity_name, operation) in RECORDER_WRITES:
        return can_record(actor)
    return can_manage(actor)


class RoleDirectory:
    """Resolve a user id from the identity service into an Actor"""

    def __init__(self, store: RemoteStore):
        self.store = store

    async def resolve(self, user_id: str) -> Optional[Actor]:
        """Actor for user_id, or None when the user has no profile"""
        try:
            profiles = await self.store.select("profiles", filters={"user_id": user_id}, limit=1)
            roles = await self.store.select("user_roles", filters={"user_id": user_id}, limit=1)
        except StoreError as exc:
            logger.error(f"Role lookup for {user_id} failed: {exc}")
            raise

        if not profiles:
            logger.warning(f"No profile for user {user_id}")
            return None

        profile = profiles[0]
        role = roles[0]["role"] if roles else DEFAULT_ROLE
        if role not in ROLES:
            logger.warning(f"Unknown role {role!r} for {user_id}, using {DEFAULT_ROLE}")
            role = DEFAULT_ROLE

        return Actor(
            id=str(user_id),
            name=profile.get("name") or profile.get("username") or "",
            role=role,
            username=profile.get("username") or "",
        )
