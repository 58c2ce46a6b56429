"""
Out-of-band customer notifications

Messages are best effort: a failed send is logged and reported as False,
it never reverses a committed queue change.
"""

import asyncio
from typing import Callable, Optional, Protocol

from sqlmodel.ext.asyncio.session import AsyncSession
from twilio.base.exceptions import TwilioRestException
from twilio.rest import Client
import structlog

from queuedesk.core.config import Settings, get_settings
from queuedesk.core.database import async_session_maker
from queuedesk.core.errors import NotificationDeliveryFailure
from queuedesk.models.notification import NotificationLog
from queuedesk.services.phone import format_e164

logger = structlog.get_logger(__name__)
settings = get_settings()

SessionFactory = Callable[[], AsyncSession]


class NotificationDispatcher(Protocol):
    """Sends one text message to one phone"""

    async def send(self, phone: str, message: str) -> bool:
        ...


async def record_notification(
    session_factory: SessionFactory,
    phone: str,
    message: str,
    status: str = "sent",
    message_id: Optional[str] = None,
    error: Optional[str] = None,
) -> None:
    async with session_factory() as session:
        session.add(NotificationLog(
            phone=phone,
            message=message[:1000],
            status=status,
            message_id=message_id,
            error=error[:500] if error else None,
        ))
        await session.commit()


class LoggingDispatcher:
    """Records messages in the notifications table without sending them"""

    def __init__(self, session_factory: SessionFactory = async_session_maker):
        self.session_factory = session_factory

    async def send(self, phone: str, message: str) -> bool:
        await record_notification(self.session_factory, phone, message)
        logger.info(f"Notification recorded for {phone}")
        return True


class TwilioDispatcher:
    """Sends messages through the Twilio REST API (SMS or WhatsApp)"""

    def __init__(
        self,
        account_sid: str,
        auth_token: str,
        from_number: str,
        channel: str = "whatsapp",
        session_factory: SessionFactory = async_session_maker,
        client: Optional[Client] = None,
    ):
        self.client = client or Client(account_sid, auth_token)
        self.from_number = from_number
        self.channel = channel
        self.session_factory = session_factory

    def _address(self, number: str) -> str:
        if self.channel == "whatsapp" and not number.startswith("whatsapp:"):
            return f"whatsapp:{number}"
        return number

    async def send(self, phone: str, message: str) -> bool:
        try:
            # The Twilio client is blocking
            sent = await asyncio.to_thread(
                self.client.messages.create,
                from_=self._address(self.from_number),
                to=self._address(phone),
                body=message,
            )
        except TwilioRestException as e:
            logger.warning(f"Twilio rejected message to {phone}: {e.msg}")
            await record_notification(self.session_factory, phone, message, status="failed", error=str(e.msg))
            return False

        logger.info(f"Twilio message {sent.sid} sent to {phone}")
        await record_notification(self.session_factory, phone, message, message_id=sent.sid)
        return True


def get_dispatcher(config: Optional[Settings] = None) -> NotificationDispatcher:
    """Dispatcher selected by NOTIFICATIONS_BACKEND"""
    config = config or settings
    if config.NOTIFICATIONS_BACKEND == "twilio":
        return TwilioDispatcher(
            account_sid=config.TWILIO_ACCOUNT_SID,
            auth_token=config.TWILIO_AUTH_TOKEN,
            from_number=config.TWILIO_FROM_NUMBER,
            channel=config.TWILIO_CHANNEL,
        )
    return LoggingDispatcher()


class NotificationService:
    """Composes customer messages and hands them to a dispatcher"""

    def __init__(self, dispatcher: Optional[NotificationDispatcher] = None, restaurant_name: Optional[str] = None):
        self.dispatcher = dispatcher or get_dispatcher()
        self.restaurant_name = restaurant_name or settings.RESTAURANT_NAME

    async def notify(self, phone: str, message: str) -> bool:
        """Send a message; failures are logged and reported as False"""
        to = format_e164(phone)
        try:
            delivered = await self.dispatcher.send(to, message)
        except Exception as e:
            failure = NotificationDeliveryFailure(to, str(e))
            logger.warning(failure.message, exc_info=True)
            return False

        if not delivered:
            logger.warning(NotificationDeliveryFailure(to, "dispatcher reported failure").message)
        return delivered

    async def queue_joined(self, phone: str, branch_name: str, wait_time: int) -> bool:
        return await self.notify(
            phone,
            f"You have joined the waiting list at {self.restaurant_name} {branch_name}. "
            f"Expected wait is about {wait_time} minutes. "
            "We will message you when your table is ready.",
        )

    async def table_ready(self, phone: str, room_number: int) -> bool:
        return await self.notify(
            phone,
            f"Your table is ready in room {room_number}. Please come in and take your seat.",
        )

    async def request_cancelled(self, phone: str) -> bool:
        return await self.notify(
            phone,
            f"Sorry, your request at {self.restaurant_name} has been cancelled. "
            "We hope to see you another time.",
        )

    async def visit_completed(self, phone: str) -> bool:
        return await self.notify(
            phone,
            f"Thank you for visiting {self.restaurant_name}. We look forward to serving you again.",
        )

    async def verification_code(self, phone: str, code: str) -> bool:
        return await self.notify(phone, f"Your {self.restaurant_name} verification code is: {code}")
