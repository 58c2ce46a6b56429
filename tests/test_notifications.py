"""
Tests for notification composition and dispatchers
"""

from unittest.mock import AsyncMock, Mock

from sqlmodel import select
from twilio.base.exceptions import TwilioRestException

from queuedesk.models.notification import NotificationLog
from queuedesk.services.notifications import (
    LoggingDispatcher,
    NotificationService,
    TwilioDispatcher,
    get_dispatcher,
)

from tests.conftest import RecordingDispatcher


async def logged(session_maker):
    async with session_maker() as session:
        result = await session.exec(select(NotificationLog))
        return result.all()


async def test_messages_are_formatted_to_e164(notifications, dispatcher):
    assert await notifications.table_ready("0512345678", 4)
    assert dispatcher.sent[0][0] == "+966512345678"
    assert "room 4" in dispatcher.sent[0][1]


async def test_failed_dispatch_never_raises():
    service = NotificationService(RecordingDispatcher(fail=True))
    assert await service.visit_completed("+966512345678") is False


async def test_dispatcher_reporting_failure():
    dispatcher = Mock()
    dispatcher.send = AsyncMock(return_value=False)
    service = NotificationService(dispatcher)

    assert await service.request_cancelled("+966512345678") is False
    dispatcher.send.assert_awaited_once()


async def test_logging_dispatcher_records_row(session_maker):
    dispatcher = LoggingDispatcher(session_factory=session_maker)

    assert await dispatcher.send("+966512345678", "hello")

    rows = await logged(session_maker)
    assert len(rows) == 1
    assert rows[0].status == "sent"
    assert rows[0].message == "hello"


async def test_twilio_dispatcher_sends_whatsapp(session_maker):
    client = Mock()
    client.messages.create.return_value = Mock(sid="SM123")
    dispatcher = TwilioDispatcher(
        account_sid="AC123",
        auth_token="token",
        from_number="+14155238886",
        session_factory=session_maker,
        client=client,
    )

    assert await dispatcher.send("+966512345678", "Your table is ready")

    client.messages.create.assert_called_once_with(
        from_="whatsapp:+14155238886",
        to="whatsapp:+966512345678",
        body="Your table is ready",
    )
    rows = await logged(session_maker)
    assert rows[0].message_id == "SM123"


async def test_twilio_dispatcher_sms_channel(session_maker):
    client = Mock()
    client.messages.create.return_value = Mock(sid="SM9")
    dispatcher = TwilioDispatcher("AC", "token", "+15005550006", channel="sms",
                                  session_factory=session_maker, client=client)

    await dispatcher.send("+966512345678", "hi")
    assert client.messages.create.call_args.kwargs["to"] == "+966512345678"


async def test_twilio_rejection_is_logged(session_maker):
    client = Mock()
    client.messages.create.side_effect = TwilioRestException(400, "/Messages", msg="invalid number")
    dispatcher = TwilioDispatcher("AC", "token", "+14155238886", session_factory=session_maker, client=client)

    assert await dispatcher.send("+966512345678", "hi") is False

    rows = await logged(session_maker)
    assert rows[0].status == "failed"
    assert rows[0].error == "invalid number"


def test_default_dispatcher_is_logging():
    assert isinstance(get_dispatcher(), LoggingDispatcher)
