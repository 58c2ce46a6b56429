"""
Phone verification before a customer may join a queue
"""

from datetime import datetime, timedelta
import secrets
from typing import Callable, Optional, Protocol

from sqlmodel import select
from sqlmodel.ext.asyncio.session import AsyncSession
import structlog

from queuedesk.core.config import get_settings
from queuedesk.core.retry import retry_read
from queuedesk.models.otp_verification import OtpVerification
from queuedesk.services.notifications import NotificationService

logger = structlog.get_logger(__name__)
settings = get_settings()


class Verifier(Protocol):
    """Proves the requester controls a phone number"""

    async def send_code(self, phone: str) -> None:
        ...

    async def verify(self, phone: str, code: str) -> bool:
        ...


def generate_code(length: int) -> str:
    return "".join(secrets.choice("0123456789") for _ in range(length))


class StoredCodeVerifier:
    """One-time numeric codes kept in the otp_verifications table

    While an unexpired, unverified code exists for a phone it is reused
    instead of issuing a new one.
    """

    def __init__(
        self,
        session: AsyncSession,
        notifications: NotificationService,
        code_factory: Optional[Callable[[int], str]] = None,
    ):
        self.session = session
        self.notifications = notifications
        self.code_factory = code_factory or generate_code
        self.ttl = timedelta(minutes=settings.OTP_TTL_MINUTES)
        self.max_attempts = settings.OTP_MAX_ATTEMPTS

    async def latest_code(self, phone: str, now: Optional[datetime] = None) -> Optional[OtpVerification]:
        now = now or datetime.utcnow()

        async def _load():
            result = await self.session.exec(
                select(OtpVerification)
                .where(
                    OtpVerification.phone == phone,
                    OtpVerification.verified == False,  # noqa: E712
                    OtpVerification.expires_at > now,
                    OtpVerification.attempts < self.max_attempts,
                )
                .order_by(OtpVerification.created_at.desc())
                .limit(1)
            )
            return result.first()

        return await retry_read(_load, description="verification code read", session=self.session)

    async def send_code(self, phone: str) -> None:
        existing = await self.latest_code(phone)
        if existing is not None:
            logger.info(f"Reusing pending verification code for {phone}")
            return

        now = datetime.utcnow()
        otp = OtpVerification(
            phone=phone,
            code=self.code_factory(settings.OTP_LENGTH),
            expires_at=now + self.ttl,
            created_at=now,
        )
        self.session.add(otp)
        await self.session.commit()

        logger.info(f"Verification code issued for {phone}")
        await self.notifications.verification_code(phone, otp.code)

    async def verify(self, phone: str, code: str) -> bool:
        otp = await self.latest_code(phone)
        if otp is None:
            logger.info(f"No pending verification code for {phone}")
            return False

        otp.attempts += 1
        matched = secrets.compare_digest(otp.code, (code or "").strip())
        if matched:
            otp.verified = True
        self.session.add(otp)
        await self.session.commit()

        if not matched:
            logger.info(f"Wrong verification code for {phone} (attempt {otp.attempts})")
        return matched
