"""
Tests for the store-backed phone verifier
"""

from datetime import datetime, timedelta

import pytest
from sqlmodel import select

from queuedesk.models.otp_verification import OtpVerification
from queuedesk.services.verification import StoredCodeVerifier, generate_code

PHONE = "+966512345678"


@pytest.fixture
def stored_verifier(db, notifications):
    return StoredCodeVerifier(db, notifications, code_factory=lambda length: "654321")


async def all_codes(db):
    result = await db.exec(select(OtpVerification))
    return result.all()


def test_generate_code_is_numeric():
    code = generate_code(6)
    assert len(code) == 6
    assert code.isdigit()


async def test_send_code_stores_and_dispatches(stored_verifier, db, dispatcher):
    await stored_verifier.send_code(PHONE)

    codes = await all_codes(db)
    assert len(codes) == 1
    assert codes[0].code == "654321"
    assert codes[0].expires_at - codes[0].created_at == timedelta(minutes=5)
    assert dispatcher.sent == [(PHONE, "Your Test Grill verification code is: 654321")]


async def test_pending_code_is_reused(stored_verifier, db, dispatcher):
    await stored_verifier.send_code(PHONE)
    await stored_verifier.send_code(PHONE)

    assert len(await all_codes(db)) == 1
    assert len(dispatcher.sent) == 1


async def test_verify_accepts_matching_code_once(stored_verifier):
    await stored_verifier.send_code(PHONE)

    assert not await stored_verifier.verify(PHONE, "111111")
    assert await stored_verifier.verify(PHONE, "654321")
    assert not await stored_verifier.verify(PHONE, "654321")


async def test_verify_gives_up_after_max_attempts(stored_verifier):
    await stored_verifier.send_code(PHONE)
    for _ in range(5):
        assert not await stored_verifier.verify(PHONE, "000000")

    assert not await stored_verifier.verify(PHONE, "654321")


async def test_expired_code_is_rejected(stored_verifier, db):
    db.add(OtpVerification(
        phone=PHONE,
        code="654321",
        expires_at=datetime.utcnow() - timedelta(seconds=1),
    ))
    await db.commit()

    assert not await stored_verifier.verify(PHONE, "654321")
