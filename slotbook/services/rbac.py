"""Role-based permissions for appointment operations.

Roles come from the auth provider's token; this table decides what each
role may do. Ownership checks (a user acting on their own appointment)
happen in the scheduling service on top of these permissions.
"""

from enum import Enum

from slotbook.schemas.actor import Actor, ActorRole


class Permission(str, Enum):
    """Available permissions in the system."""

    # Own appointments
    APPOINTMENTS_READ_OWN = "appointments:read:own"
    APPOINTMENTS_WRITE_OWN = "appointments:write:own"

    # Any appointment
    APPOINTMENTS_READ_ALL = "appointments:read:all"
    APPOINTMENTS_WRITE_ALL = "appointments:write:all"
    # Complete before end_time has passed
    APPOINTMENTS_FORCE_COMPLETE = "appointments:force_complete"

    # Audit access
    AUDIT_READ = "audit:read"


ROLE_PERMISSIONS: dict[ActorRole, set[Permission]] = {
    ActorRole.ADMIN: {
        Permission.APPOINTMENTS_READ_OWN,
        Permission.APPOINTMENTS_WRITE_OWN,
        Permission.APPOINTMENTS_READ_ALL,
        Permission.APPOINTMENTS_WRITE_ALL,
        Permission.APPOINTMENTS_FORCE_COMPLETE,
        Permission.AUDIT_READ,
    },
    ActorRole.USER: {
        Permission.APPOINTMENTS_READ_OWN,
        Permission.APPOINTMENTS_WRITE_OWN,
    },
    ActorRole.SYSTEM: {
        Permission.APPOINTMENTS_READ_ALL,
        Permission.APPOINTMENTS_WRITE_ALL,
        Permission.APPOINTMENTS_FORCE_COMPLETE,
    },
}


class RBACService:
    """Service for checking role-based permissions."""

    @staticmethod
    def has_permission(role: ActorRole, permission: Permission) -> bool:
        """Check if a role has a specific permission.

        Args:
            role: Actor role to check
            permission: Permission to verify

        Returns:
            True if role has permission
        """
        return permission in ROLE_PERMISSIONS.get(role, set())

    @staticmethod
    def has_all_permissions(role: ActorRole, permissions: list[Permission]) -> bool:
        """Check if a role has all of the specified permissions."""
        granted = ROLE_PERMISSIONS.get(role, set())
        return all(p in granted for p in permissions)

    @classmethod
    def can_read(cls, actor: Actor, owner_id: str) -> bool:
        """Whether ``actor`` may see an appointment owned by ``owner_id``."""
        if cls.has_permission(actor.role, Permission.APPOINTMENTS_READ_ALL):
            return True
        return actor.actor_id == owner_id and cls.has_permission(
            actor.role, Permission.APPOINTMENTS_READ_OWN
        )

    @classmethod
    def can_write(cls, actor: Actor, owner_id: str) -> bool:
        """Whether ``actor`` may change an appointment owned by ``owner_id``."""
        if cls.has_permission(actor.role, Permission.APPOINTMENTS_WRITE_ALL):
            return True
        return actor.actor_id == owner_id and cls.has_permission(
            actor.role, Permission.APPOINTMENTS_WRITE_OWN
        )
