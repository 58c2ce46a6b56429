"""
Test configuration for pytest
"""

import os

# Test environment variables (read once when settings are first built)
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["ENVIRONMENT"] = "test"
os.environ["SECRET_KEY"] = "test-secret-key"
os.environ["JWT_SECRET_KEY"] = "test-jwt-secret"
os.environ["ADMIN_PASSWORD"] = "test-admin-password"
os.environ["NOTIFICATIONS_BACKEND"] = "log"
os.environ["STORE_RETRY_BASE_DELAY"] = "0"

from datetime import datetime, timedelta
from typing import List, Optional, Tuple
import uuid

import pytest
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool
from sqlmodel import SQLModel
from sqlmodel.ext.asyncio.session import AsyncSession

import queuedesk.models  # noqa: F401
from queuedesk.core.auth import hash_password
from queuedesk.core.events import EventBus
from queuedesk.core.permissions import Role, StaffCapability
from queuedesk.models.branch import Branch
from queuedesk.models.customer import Customer
from queuedesk.models.queue_entry import QueueEntry, QueueEntryStatus
from queuedesk.services.notifications import NotificationService

# Midday in Riyadh on a fixed business day
NOW = datetime(2026, 10, 18, 9, 0, 0)
VALID_CODE = "123456"


@pytest.fixture
async def engine():
    """In-memory SQLite shared by every session of one test"""
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def session_maker(engine):
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
async def db(session_maker):
    """Create a clean database session for each test"""
    async with session_maker() as session:
        yield session


@pytest.fixture
def bus() -> EventBus:
    return EventBus()


class RecordingDispatcher:
    """Dispatcher that keeps messages in memory"""

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.sent: List[Tuple[str, str]] = []

    async def send(self, phone: str, message: str) -> bool:
        if self.fail:
            raise ConnectionError("gateway unreachable")
        self.sent.append((phone, message))
        return True


class FakeVerifier:
    """Accepts a single fixed code"""

    def __init__(self, code: str = VALID_CODE):
        self.code = code
        self.requested: List[str] = []

    async def send_code(self, phone: str) -> None:
        self.requested.append(phone)

    async def verify(self, phone: str, code: str) -> bool:
        return code == self.code


@pytest.fixture
def dispatcher() -> RecordingDispatcher:
    return RecordingDispatcher()


@pytest.fixture
def notifications(dispatcher) -> NotificationService:
    return NotificationService(dispatcher, restaurant_name="Test Grill")


@pytest.fixture
def verifier() -> FakeVerifier:
    return FakeVerifier()


@pytest.fixture
async def branch(db) -> Branch:
    """Create a test branch with three rooms"""
    branch = Branch(
        name="Olaya",
        address="King Fahd Rd",
        rooms_count=3,
        expected_wait_time=15,
        password_hash=hash_password("branch-pass"),
    )
    db.add(branch)
    await db.commit()
    await db.refresh(branch)
    return branch


@pytest.fixture
async def other_branch(db) -> Branch:
    branch = Branch(name="Malqa", rooms_count=5, password_hash=hash_password("other-pass"))
    db.add(branch)
    await db.commit()
    await db.refresh(branch)
    return branch


@pytest.fixture
def staff(branch) -> StaffCapability:
    return StaffCapability(role=Role.BRANCH_STAFF, branch_id=branch.id)


@pytest.fixture
def admin() -> StaffCapability:
    return StaffCapability(role=Role.SUPER_ADMIN, subject="super_admin")


async def make_entry(
    db: AsyncSession,
    branch: Branch,
    status: QueueEntryStatus = QueueEntryStatus.WAITING,
    room_number: Optional[int] = None,
    wait_time: int = 15,
    created_at: Optional[datetime] = None,
    updated_at: Optional[datetime] = None,
    phone: Optional[str] = None,
    name: str = "Guest",
) -> QueueEntry:
    """Insert a customer and an entry directly, bypassing intake"""
    created_at = created_at or NOW - timedelta(minutes=10)
    customer = Customer(name=name, phone=phone or f"+9665{uuid.uuid4().int % 10**8:08d}")
    db.add(customer)
    await db.flush()

    entry = QueueEntry(
        customer_id=customer.id,
        branch_id=branch.id,
        guests=2,
        wait_time=wait_time,
        status=status,
        room_number=room_number,
        created_at=created_at,
        updated_at=updated_at or created_at,
    )
    db.add(entry)
    await db.commit()
    await db.refresh(entry)
    return entry
