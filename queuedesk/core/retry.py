"""
Bounded retry with exponential backoff for store reads

Only reads go through here, and only reads issued before the request has
pending writes: a failed attempt rolls the session back, which discards
anything not yet committed. A write that may have partially succeeded is
never retried.
"""

import asyncio
from typing import Awaitable, Callable, List, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.errors import TransientStoreError

logger = structlog.get_logger(__name__)
settings = get_settings()

T = TypeVar("T")

TRANSIENT_ERRORS = (OperationalError, TimeoutError, ConnectionError)


def is_transient(exc: BaseException) -> bool:
    """Check if a store exception is worth another attempt"""
    if isinstance(exc, TRANSIENT_ERRORS):
        return True
    if isinstance(exc, DBAPIError) and exc.connection_invalidated:
        return True
    return False


async def reset_session(session: AsyncSession) -> List[object]:
    """Roll back a session whose connection failed

    An invalidated connection leaves the session unusable until rollback.
    Rollback expires every loaded instance; they are returned so the next
    attempt can reload them before the caller touches them again.
    """
    held = list(session.identity_map.values())
    await session.rollback()
    return held


async def retry_read(
    operation: Callable[[], Awaitable[T]],
    attempts: Optional[int] = None,
    base_delay: Optional[float] = None,
    description: str = "store read",
    session: Optional[AsyncSession] = None,
) -> T:
    """Run a read operation, retrying transient failures

    Delays double from ``base_delay`` (1s, 2s, ...). After the last attempt
    the failure surfaces as TransientStoreError. When ``session`` is given it
    is rolled back after each failure and its instances reloaded before the
    next attempt.
    """
    attempts = attempts or settings.STORE_RETRY_ATTEMPTS
    base_delay = settings.STORE_RETRY_BASE_DELAY if base_delay is None else base_delay
    expired: List[object] = []

    for attempt in range(attempts):
        try:
            for instance in expired:
                await session.refresh(instance)
            expired = []
            return await operation()
        except Exception as e:
            if not is_transient(e):
                raise
            if session is not None:
                expired = await reset_session(session)
            if attempt == attempts - 1:
                logger.error(f"{description} failed after {attempts} attempts: {e}")
                raise TransientStoreError(attempts=attempts) from e

            delay = base_delay * (2 ** attempt)
            logger.warning(
                f"{description} failed, retrying in {delay}s (attempt {attempt + 1}/{attempts}): {e}"
            )
            await asyncio.sleep(delay)

    raise TransientStoreError(attempts=attempts)
