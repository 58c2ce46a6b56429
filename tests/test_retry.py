"""
Tests for bounded retry of store reads
"""

import sqlite3
from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import event
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.ext.asyncio import create_async_engine
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

from queuedesk.core.errors import TransientStoreError
from queuedesk.core.retry import is_transient, retry_read
from queuedesk.models.branch import Branch
from queuedesk.schemas.queue import IntakeRequest
from queuedesk.services.intake import IntakeValidator
from queuedesk.services.notifications import NotificationService
from queuedesk.services.wait_time import WaitTimeEstimator

from tests.conftest import NOW, VALID_CODE, FakeVerifier, RecordingDispatcher

WAIT_TIME_READ = "SELECT queue_entries.wait_time"


def operational_error():
    return OperationalError("SELECT 1", {}, Exception("database is locked"))


def test_is_transient():
    assert is_transient(operational_error())
    assert is_transient(TimeoutError())
    assert is_transient(ConnectionError())
    assert not is_transient(ValueError())
    assert not is_transient(IntegrityError("INSERT", {}, Exception("unique")))


async def test_retry_recovers_from_transient_failure():
    operation = AsyncMock(side_effect=[operational_error(), "rows"])

    with patch("queuedesk.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        assert await retry_read(operation, attempts=3, base_delay=1.0) == "rows"

    assert operation.await_count == 2
    sleep.assert_awaited_once_with(1.0)


async def test_retry_gives_up_after_three_attempts():
    operation = AsyncMock(side_effect=operational_error())

    with patch("queuedesk.core.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        with pytest.raises(TransientStoreError) as exc_info:
            await retry_read(operation, attempts=3, base_delay=1.0)

    assert operation.await_count == 3
    assert [call.args[0] for call in sleep.await_args_list] == [1.0, 2.0]
    assert exc_info.value.status_code == 503
    assert isinstance(exc_info.value.__cause__, OperationalError)


async def test_non_transient_errors_are_not_retried():
    operation = AsyncMock(side_effect=ValueError("bad query"))

    with pytest.raises(ValueError):
        await retry_read(operation, attempts=3, base_delay=0)

    assert operation.await_count == 1


@pytest.fixture
async def file_engine(tmp_path):
    """File-backed SQLite, so a dropped connection reconnects to the same data"""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'queue.db'}")
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    yield engine
    await engine.dispose()


def drop_connection(engine, statement_prefix, times=1):
    """Fail matching statements as if the database connection was lost"""
    remaining = [times]

    def fail_statement(cursor, statement, parameters, context):
        if remaining[0] and statement.startswith(statement_prefix):
            remaining[0] -= 1
            raise sqlite3.OperationalError("server closed the connection unexpectedly")

    def mark_disconnect(context):
        if "closed the connection" in str(context.original_exception):
            context.is_disconnect = True

    event.listen(engine.sync_engine, "do_execute", fail_statement)
    event.listen(engine.sync_engine, "handle_error", mark_disconnect)


async def add_branch(session: AsyncSession) -> Branch:
    branch = Branch(name="Olaya", rooms_count=3, password_hash="unused")
    session.add(branch)
    await session.commit()
    return branch


async def test_session_read_recovers_after_lost_connection(file_engine):
    async with AsyncSession(file_engine, expire_on_commit=False) as session:
        branch = await add_branch(session)
        drop_connection(file_engine, WAIT_TIME_READ)

        estimate = await WaitTimeEstimator(session, fallback_minutes=15).estimate(branch.id, NOW)

        assert estimate == 15
        # Instances loaded before the failure are usable again
        assert branch.name == "Olaya"


async def test_session_read_gives_up_as_transient_store_error(file_engine):
    async with AsyncSession(file_engine, expire_on_commit=False) as session:
        branch = await add_branch(session)
        branch_id = branch.id
        drop_connection(file_engine, WAIT_TIME_READ, times=3)

        with pytest.raises(TransientStoreError):
            await WaitTimeEstimator(session).estimate(branch_id, NOW)

        # The session was rolled back and still works
        assert (await session.get(Branch, branch_id)).name == "Olaya"


async def test_admission_survives_lost_connection_during_estimate(file_engine):
    async with AsyncSession(file_engine, expire_on_commit=False) as session:
        branch = await add_branch(session)
        dispatcher = RecordingDispatcher()
        intake = IntakeValidator(session, FakeVerifier(), NotificationService(dispatcher))
        drop_connection(file_engine, WAIT_TIME_READ)

        entry = await intake.validate_and_admit(
            branch.id,
            IntakeRequest(name="Sara", local_number="512345678", guests=2),
            VALID_CODE,
            now=NOW,
        )

        assert entry.customer is not None
        assert entry.customer.phone == "+966512345678"
        assert entry.wait_time == 15
        assert len(dispatcher.sent) == 1
