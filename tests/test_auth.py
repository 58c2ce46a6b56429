"""
Unit tests for JWT authentication and password hashing
"""

import pytest
from datetime import timedelta
import uuid
from jose import jwt

from queuedesk.core.auth import (
    capability_from_token,
    create_access_token,
    decode_access_token,
    hash_password,
    verify_password,
)
from queuedesk.core.config import get_settings
from queuedesk.core.permissions import Role

settings = get_settings()


def test_branch_staff_token_round_trip():
    """Test JWT token creation for branch staff"""
    branch_id = uuid.uuid4()

    token = create_access_token(Role.BRANCH_STAFF, branch_id=branch_id, expires_delta=timedelta(hours=1))

    payload = decode_access_token(token)
    assert payload["role"] == "branch_staff"
    assert payload["branch_id"] == str(branch_id)
    assert payload["sub"] == str(branch_id)
    assert "exp" in payload

    capability = capability_from_token(token)
    assert capability.role == Role.BRANCH_STAFF
    assert capability.branch_id == branch_id


def test_super_admin_token_has_no_branch():
    token = create_access_token(Role.SUPER_ADMIN, subject="super_admin")
    capability = capability_from_token(token)
    assert capability.role == Role.SUPER_ADMIN
    assert capability.branch_id is None


def test_expired_token_is_rejected():
    token = create_access_token(Role.SUPER_ADMIN, expires_delta=timedelta(seconds=-1))
    assert decode_access_token(token) is None
    assert capability_from_token(token) is None


def test_token_signed_with_other_key_is_rejected():
    token = jwt.encode({"role": "super_admin"}, "wrong-secret", algorithm=settings.JWT_ALGORITHM)
    assert capability_from_token(token) is None


@pytest.mark.parametrize("claims", [
    {"role": "branch_staff"},
    {"role": "owner"},
    {"role": "branch_staff", "branch_id": "not-a-uuid"},
])
def test_malformed_claims_are_rejected(claims):
    token = jwt.encode(claims, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)
    assert capability_from_token(token) is None


def test_password_hashing():
    password_hash = hash_password("branch-pass")
    assert password_hash != "branch-pass"
    assert verify_password("branch-pass", password_hash)
    assert not verify_password("wrong", password_hash)
    assert not verify_password("branch-pass", None)
