"""
Tests for branch settings mutation and super-admin branch management
"""

import pytest

from queuedesk.core.errors import PermissionDeniedError, ValidationError
from queuedesk.models.branch import Branch
from queuedesk.models.queue_entry import QueueEntryStatus
from queuedesk.services.branch_settings import BranchSettingsService, normalize_expected_wait
from queuedesk.services.queue_engine import fetch_entry
from queuedesk.services.rooms import RoomAllocator

from tests.conftest import NOW, make_entry


@pytest.mark.parametrize("minutes,expected", [
    (15, 15),
    (17, 15),
    (18, 20),
    (0, 5),
    (2, 5),
    (90, 60),
])
def test_normalize_expected_wait(minutes, expected):
    assert normalize_expected_wait(minutes) == expected


async def test_update_settings_persists_and_publishes(db, branch, staff, bus):
    events = []

    async def record(event):
        events.append(event)

    bus.subscribe("BranchSettingsUpdated", record)
    service = BranchSettingsService(db, bus)

    updated = await service.update_settings(branch.id, staff, rooms_count=6, expected_wait_time=33)

    assert updated.rooms_count == 6
    assert updated.expected_wait_time == 35
    assert events[0].rooms_count == 6
    assert events[0].expected_wait_time == 35


async def test_rooms_count_must_be_positive(db, branch, staff):
    with pytest.raises(ValidationError) as exc_info:
        await BranchSettingsService(db).update_settings(branch.id, staff, rooms_count=0)
    assert exc_info.value.field == "rooms_count"


async def test_cannot_shrink_below_occupied_room(db, branch, staff):
    await make_entry(db, branch, QueueEntryStatus.SEATED, room_number=3)
    service = BranchSettingsService(db)
    branch_id = branch.id

    with pytest.raises(ValidationError) as exc_info:
        await service.update_settings(branch_id, staff, rooms_count=2)
    assert exc_info.value.context["room_number"] == 3

    grown = await service.increment_rooms(branch_id, staff)
    assert grown.rooms_count == 4
    shrunk = await service.decrement_rooms(branch_id, staff)
    assert shrunk.rooms_count == 3


async def test_decrement_stops_at_one(db, branch, staff):
    service = BranchSettingsService(db)
    await service.update_settings(branch.id, staff, rooms_count=1)
    with pytest.raises(ValidationError):
        await service.decrement_rooms(branch.id, staff)


async def test_staff_cannot_edit_other_branch(db, branch, other_branch, staff):
    with pytest.raises(PermissionDeniedError):
        await BranchSettingsService(db).update_settings(other_branch.id, staff, rooms_count=4)


async def test_admin_manages_branches(db, admin):
    service = BranchSettingsService(db)

    branch = await service.create_branch(admin, name=" Hittin ", password="secret-1", expected_wait_time=12)
    assert branch.name == "Hittin"
    assert branch.rooms_count == 10
    assert branch.expected_wait_time == 10
    assert await service.authenticate(branch.id, "secret-1") is not None
    assert await service.authenticate(branch.id, "wrong") is None

    await service.set_password(branch.id, admin, "secret-2")
    assert await service.authenticate(branch.id, "secret-2") is not None

    renamed = await service.update_profile(branch.id, admin, name="Hittin Mall", address="Riyadh")
    assert renamed.name == "Hittin Mall"
    assert renamed.address == "Riyadh"

    await service.deactivate(branch.id, admin)
    assert await service.authenticate(branch.id, "secret-2") is None
    assert [b.name for b in await service.list_branches(include_inactive=False)] == []


async def test_staff_cannot_create_branches(db, staff):
    with pytest.raises(PermissionDeniedError):
        await BranchSettingsService(db).create_branch(staff, name="Rogue", password="x")


def run_after_branch_read(service, action):
    """Make ``action`` commit from another session right after the service reads the branch"""
    read_branch = service.get_branch

    async def read_then_act(branch_id, refresh=False):
        loaded = await read_branch(branch_id, refresh)
        if not refresh:
            await action()
        return loaded

    service.get_branch = read_then_act


async def test_seat_committed_during_shrink_blocks_it(db, session_maker, branch, staff):
    called = await make_entry(db, branch, QueueEntryStatus.CALLED)
    branch_id, entry_id = branch.id, called.id
    service = BranchSettingsService(db)

    async def seat_in_room_three():
        async with session_maker() as other:
            entry = await fetch_entry(other, entry_id)
            await RoomAllocator(other).assign_room(entry, 3, NOW)
            await other.commit()

    run_after_branch_read(service, seat_in_room_three)

    with pytest.raises(ValidationError) as exc_info:
        await service.update_settings(branch_id, staff, rooms_count=2)
    assert exc_info.value.context["room_number"] == 3

    stored = await db.get(Branch, branch_id, populate_existing=True)
    assert stored.rooms_count == 3
    seated = await fetch_entry(db, entry_id)
    assert seated.room_number == 3


async def test_concurrent_increments_are_not_lost(db, session_maker, branch, staff):
    service = BranchSettingsService(db)

    async def increment_elsewhere():
        async with session_maker() as other:
            await BranchSettingsService(other).increment_rooms(branch.id, staff)

    run_after_branch_read(service, increment_elsewhere)

    updated = await service.increment_rooms(branch.id, staff)
    assert updated.rooms_count == 5
