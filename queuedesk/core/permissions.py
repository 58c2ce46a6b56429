"""
RBAC (Role-Based Access Control) permission system

Staff operations receive an explicit StaffCapability instead of reading
session flags, so every check here is a pure function of its inputs.
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional, Set
import uuid

from queuedesk.core.errors import PermissionDeniedError


class Role(str, Enum):
    """Staff roles"""
    SUPER_ADMIN = "super_admin"     # Manages every branch
    BRANCH_STAFF = "branch_staff"   # Runs one branch's queue


class Permission(str, Enum):
    """Permission definitions"""
    # Queue permissions
    QUEUE_VIEW = "queue:view"
    QUEUE_TRANSITION = "queue:transition"

    # Room permissions
    ROOMS_VIEW = "rooms:view"

    # Booking permissions
    BOOKINGS_VIEW = "bookings:view"
    BOOKINGS_MANAGE = "bookings:manage"

    # Branch permissions
    BRANCH_SETTINGS_EDIT = "branch:settings_edit"
    BRANCH_MANAGE = "branch:manage"


# Role permission mapping
ROLE_PERMISSIONS = {
    Role.SUPER_ADMIN: set(Permission),
    Role.BRANCH_STAFF: {
        Permission.QUEUE_VIEW,
        Permission.QUEUE_TRANSITION,
        Permission.ROOMS_VIEW,
        Permission.BOOKINGS_VIEW,
        Permission.BOOKINGS_MANAGE,
        Permission.BRANCH_SETTINGS_EDIT,
    },
}


@dataclass(frozen=True)
class StaffCapability:
    """Who is acting, decoded from the bearer token"""
    role: Role
    branch_id: Optional[uuid.UUID] = None
    subject: Optional[str] = None

    @property
    def permissions(self) -> Set[Permission]:
        return get_permissions_for_role(self.role)


def get_permissions_for_role(role: str) -> Set[Permission]:
    """Get permissions for a given role"""
    try:
        return ROLE_PERMISSIONS[Role(role)]
    except ValueError:
        return set()


def has_permission(required_permission: Permission, user_permissions: Set[Permission]) -> bool:
    """Check if user has required permission"""
    return required_permission in user_permissions


def can_act_on_branch(capability: StaffCapability, branch_id: Optional[uuid.UUID]) -> bool:
    """Super-admins act anywhere; branch staff only on their own branch"""
    if capability.role == Role.SUPER_ADMIN:
        return True
    return branch_id is not None and capability.branch_id == branch_id


def authorize(
    capability: StaffCapability,
    required_permission: Permission,
    branch_id: Optional[uuid.UUID] = None,
) -> None:
    """Raise PermissionDeniedError unless the capability allows the action"""
    if not has_permission(required_permission, capability.permissions):
        raise PermissionDeniedError(
            f"Permission required: {required_permission.value}",
            role=capability.role.value,
        )
    if branch_id is not None and not can_act_on_branch(capability, branch_id):
        raise PermissionDeniedError(
            "Not allowed to act on this branch",
            role=capability.role.value,
            branch_id=str(branch_id),
        )
