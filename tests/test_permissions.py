"""
Unit tests for RBAC permission system
"""

import pytest
import uuid

from queuedesk.core.errors import PermissionDeniedError
from queuedesk.core.permissions import (
    Permission,
    Role,
    StaffCapability,
    authorize,
    can_act_on_branch,
    get_permissions_for_role,
    has_permission,
)


def test_get_permissions_for_role():
    """Test permission retrieval for all roles"""
    admin_perms = get_permissions_for_role("super_admin")
    assert Permission.BRANCH_MANAGE in admin_perms
    assert Permission.QUEUE_TRANSITION in admin_perms

    staff_perms = get_permissions_for_role("branch_staff")
    assert Permission.QUEUE_TRANSITION in staff_perms
    assert Permission.BRANCH_SETTINGS_EDIT in staff_perms
    assert Permission.BRANCH_MANAGE not in staff_perms

    assert get_permissions_for_role("guest") == set()


def test_has_permission():
    staff_perms = get_permissions_for_role("branch_staff")
    assert has_permission(Permission.ROOMS_VIEW, staff_perms)
    assert not has_permission(Permission.BRANCH_MANAGE, staff_perms)


def test_branch_scope():
    branch_id = uuid.uuid4()
    staff = StaffCapability(role=Role.BRANCH_STAFF, branch_id=branch_id)
    admin = StaffCapability(role=Role.SUPER_ADMIN)

    assert can_act_on_branch(staff, branch_id)
    assert not can_act_on_branch(staff, uuid.uuid4())
    assert not can_act_on_branch(staff, None)
    assert can_act_on_branch(admin, uuid.uuid4())


def test_authorize_raises_for_missing_permission():
    staff = StaffCapability(role=Role.BRANCH_STAFF, branch_id=uuid.uuid4())
    with pytest.raises(PermissionDeniedError) as exc_info:
        authorize(staff, Permission.BRANCH_MANAGE)
    assert exc_info.value.status_code == 403


def test_authorize_raises_for_foreign_branch():
    staff = StaffCapability(role=Role.BRANCH_STAFF, branch_id=uuid.uuid4())
    with pytest.raises(PermissionDeniedError):
        authorize(staff, Permission.QUEUE_VIEW, uuid.uuid4())

    authorize(staff, Permission.QUEUE_VIEW, staff.branch_id)
