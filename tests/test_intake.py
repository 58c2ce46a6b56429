"""
Tests for customer intake: validation, duplicate rule, verification, admission
"""

from datetime import timedelta
import uuid

import pytest
from sqlmodel import select

from queuedesk.core.errors import (
    DuplicateActiveRequestError,
    NotFoundError,
    ValidationError,
    VerificationError,
)
from queuedesk.models.customer import Customer
from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus
from queuedesk.schemas.queue import IntakeRequest
from queuedesk.services.intake import IntakeValidator
from queuedesk.services.phone import format_e164, normalize_phone

from tests.conftest import NOW, VALID_CODE, make_entry


def request(**overrides):
    data = {"name": "Sara", "country_code": "966", "local_number": "512345678", "guests": 4}
    data.update(overrides)
    return IntakeRequest(**data)


@pytest.fixture
def intake(db, verifier, notifications, bus):
    return IntakeValidator(db, verifier, notifications, bus=bus)


async def count_entries(db):
    result = await db.exec(select(QueueEntry))
    return len(result.all())


def test_normalize_phone_regions():
    assert normalize_phone("966", "512345678") == "+966512345678"
    assert normalize_phone("+971", "5012 3456") == "+97150123456"
    assert normalize_phone("965", "9876-5432") == "+96598765432"


@pytest.mark.parametrize("code,local,field", [
    ("966", "412345678", "local_number"),
    ("966", "51234567", "local_number"),
    ("974", "1234567", "local_number"),
    ("20", "1012345678", "country_code"),
])
def test_normalize_phone_rejects(code, local, field):
    with pytest.raises(ValidationError) as exc_info:
        normalize_phone(code, local)
    assert exc_info.value.field == field


def test_format_e164():
    assert format_e164("0512345678") == "+966512345678"
    assert format_e164("+966 51 234 5678") == "+966512345678"


@pytest.mark.parametrize("overrides,field", [
    ({"name": "   "}, "name"),
    ({"guests": 0}, "guests"),
    ({"guests": 21}, "guests"),
    ({"local_number": "12345"}, "local_number"),
])
def test_validate_rejects_bad_fields(intake, overrides, field):
    with pytest.raises(ValidationError) as exc_info:
        intake.validate(request(**overrides))
    assert exc_info.value.field == field


async def test_admit_creates_waiting_entry(intake, db, branch, dispatcher, bus):
    created = []

    async def record(event):
        created.append(event)

    bus.subscribe("QueueEntryCreated", record)

    entry = await intake.validate_and_admit(branch.id, request(), VALID_CODE, now=NOW)

    assert entry.status == QueueEntryStatus.WAITING
    assert entry.guests == 4
    assert entry.wait_time == 15
    assert entry.customer.phone == "+966512345678"
    assert entry.customer.name == "Sara"
    assert len(created) == 1 and created[0].entry_id == entry.id
    assert len(dispatcher.sent) == 1
    assert "Olaya" in dispatcher.sent[0][1]


async def test_returning_customer_reuses_record(intake, db, branch):
    first = await intake.validate_and_admit(branch.id, request(name="Sara"), VALID_CODE, now=NOW)
    first.status = QueueEntryStatus.COMPLETED
    db.add(first)
    await db.commit()

    second = await intake.validate_and_admit(
        branch.id, request(name="Sara A."), VALID_CODE, now=NOW + timedelta(hours=1)
    )

    assert second.customer_id == first.customer_id
    result = await db.exec(select(Customer))
    customers = result.all()
    assert len(customers) == 1
    assert customers[0].name == "Sara A."


async def test_duplicate_active_request_names_branch(intake, db, branch, other_branch):
    await make_entry(db, other_branch, QueueEntryStatus.CALLED, phone="+966512345678")

    with pytest.raises(DuplicateActiveRequestError) as exc_info:
        await intake.validate_and_admit(branch.id, request(), VALID_CODE, now=NOW)

    assert exc_info.value.status == "called"
    assert exc_info.value.branch_name == "Malqa"
    assert await count_entries(db) == 1


async def test_cancelled_request_does_not_block(intake, db, branch):
    await make_entry(db, branch, QueueEntryStatus.CANCELLED, phone="+966512345678")
    entry = await intake.validate_and_admit(branch.id, request(), VALID_CODE, now=NOW)
    assert entry.status == QueueEntryStatus.WAITING


async def test_wrong_code_leaves_no_entry(intake, db, branch, dispatcher):
    with pytest.raises(VerificationError):
        await intake.validate_and_admit(branch.id, request(), "000000", now=NOW)

    assert await count_entries(db) == 0
    assert dispatcher.sent == []


async def test_unknown_branch(intake, db):
    with pytest.raises(NotFoundError):
        await intake.validate_and_admit(uuid.uuid4(), request(), VALID_CODE, now=NOW)


async def test_request_verification_sends_code(intake, branch, verifier):
    phone = await intake.request_verification(branch.id, request())
    assert phone == "+966512345678"
    assert verifier.requested == ["+966512345678"]


async def test_request_verification_checks_duplicates_first(intake, db, branch, verifier):
    await make_entry(db, branch, phone="+966512345678")

    with pytest.raises(DuplicateActiveRequestError):
        await intake.request_verification(branch.id, request())
    assert verifier.requested == []


async def test_estimate_is_frozen_on_creation(intake, db, branch):
    await make_entry(db, branch, wait_time=30, created_at=NOW - timedelta(minutes=40))
    entry = await intake.validate_and_admit(branch.id, request(), VALID_CODE, now=NOW)
    assert entry.wait_time == 30

    await make_entry(db, branch, wait_time=60, created_at=NOW + timedelta(minutes=1))
    refreshed = await db.get(QueueEntry, entry.id, populate_existing=True)
    assert refreshed.wait_time == 30
