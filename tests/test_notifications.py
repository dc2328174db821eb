import smtplib

import pytest
from sqlalchemy import func, select
from twilio.base.exceptions import TwilioException

from civicconnect.core.config import NotificationConfig
from civicconnect.core.exceptions import DeliveryError
from civicconnect.crud.notification import (
    count_unread,
    get_user_notifications,
    mark_all_notifications_as_read,
    mark_notification_as_read,
)
from civicconnect.models import Issue, IssueCategory, Notification, NotificationType, User
from civicconnect.services.notifications import (
    EmailChannel,
    NotificationDispatcher,
    SmsChannel,
)

from tests.conftest import RecordingChannel, create_user


async def count_notifications(db):
    result = await db.execute(select(func.count(Notification.id)))
    return result.scalar_one()


async def test_dispatch_stores_and_sends_on_both_channels(db, dispatcher, citizen, email_channel, sms_channel):
    notification = await dispatcher.dispatch(
        db,
        user_id=citizen.id,
        type=NotificationType.STATUS_UPDATE,
        title="Issue status updated",
        message="Your issue is now resolved.",
    )

    assert notification is not None
    assert notification.user_id == citizen.id
    assert notification.is_read is False
    assert email_channel.sent == [("jane@example.com", "Issue status updated", "Your issue is now resolved.")]
    assert sms_channel.sent == [("+15550000001", "Issue status updated", "Your issue is now resolved.")]


async def test_dispatch_without_phone_skips_sms(db, dispatcher, other_citizen, email_channel, sms_channel):
    await dispatcher.dispatch(
        db, user_id=other_citizen.id, type=NotificationType.COMMENT, title="t", message="m"
    )

    assert len(email_channel.sent) == 1
    assert sms_channel.sent == []


async def test_dispatch_to_unreachable_user_still_stores_notification(db, dispatcher, email_channel, sms_channel):
    # A user row with neither email nor phone (email is blanked after creation)
    user = User(full_name="No Contact", email="tmp@example.com", hashed_password="x")
    db.add(user)
    await db.commit()
    user.email = ""
    await db.commit()

    notification = await dispatcher.dispatch(
        db, user_id=user.id, type=NotificationType.COMMENT, title="t", message="m"
    )

    assert notification is not None
    assert await count_notifications(db) == 1
    assert email_channel.sent == []
    assert sms_channel.sent == []


async def test_dispatch_unknown_user_is_not_an_error(db, dispatcher, email_channel):
    result = await dispatcher.dispatch(
        db, user_id=9999, type=NotificationType.NEW_ISSUE, title="t", message="m"
    )

    assert result is None
    assert await count_notifications(db) == 0
    assert email_channel.sent == []


async def test_failed_email_does_not_block_sms_or_undo_notification(db, citizen):
    failing_email = RecordingChannel("email", "email", fail=True)
    sms = RecordingChannel("sms", "phone")
    dispatcher = NotificationDispatcher(NotificationConfig(), channels=[failing_email, sms])

    notification = await dispatcher.dispatch(
        db, user_id=citizen.id, type=NotificationType.ASSIGNMENT, title="t", message="m"
    )

    assert notification is not None
    assert len(sms.sent) == 1
    assert await count_notifications(db) == 1


async def test_failed_sms_is_swallowed(db, citizen):
    email = RecordingChannel("email", "email")
    failing_sms = RecordingChannel("sms", "phone", fail=True)
    dispatcher = NotificationDispatcher(NotificationConfig(), channels=[email, failing_sms])

    notification = await dispatcher.dispatch(
        db, user_id=citizen.id, type=NotificationType.COMMENT, title="t", message="m"
    )

    assert notification is not None
    assert len(email.sent) == 1


async def test_list_for_user_newest_first_with_issue_title(db, dispatcher, citizen, other_citizen):
    issue = Issue(
        title="Broken streetlight",
        description="Dark corner",
        category=IssueCategory.STREETLIGHTS,
        latitude=10.0,
        longitude=20.0,
        reporter_id=citizen.id,
    )
    db.add(issue)
    await db.commit()

    await dispatcher.dispatch(db, user_id=citizen.id, type=NotificationType.COMMENT, title="first", message="m")
    await dispatcher.dispatch(
        db, user_id=citizen.id, issue_id=issue.id, type=NotificationType.STATUS_UPDATE, title="second", message="m"
    )
    await dispatcher.dispatch(db, user_id=other_citizen.id, type=NotificationType.COMMENT, title="other", message="m")

    notifications = await get_user_notifications(db, user_id=citizen.id, limit=10)

    assert [n.title for n in notifications] == ["second", "first"]
    assert notifications[0].issue_title == "Broken streetlight"
    assert notifications[1].issue_title is None

    limited = await get_user_notifications(db, user_id=citizen.id, limit=1)
    assert [n.title for n in limited] == ["second"]


async def test_mark_read_only_for_owner(db, dispatcher, citizen, other_citizen):
    notification = await dispatcher.dispatch(
        db, user_id=citizen.id, type=NotificationType.COMMENT, title="t", message="m"
    )

    assert await mark_notification_as_read(db, notification_id=notification.id, user_id=other_citizen.id) is None
    assert await count_unread(db, user_id=citizen.id) == 1

    updated = await mark_notification_as_read(db, notification_id=notification.id, user_id=citizen.id)
    assert updated.is_read is True
    assert await count_unread(db, user_id=citizen.id) == 0


async def test_mark_all_read_is_idempotent(db, dispatcher, citizen, other_citizen):
    for title in ("a", "b"):
        await dispatcher.dispatch(db, user_id=citizen.id, type=NotificationType.COMMENT, title=title, message="m")
    await dispatcher.dispatch(db, user_id=other_citizen.id, type=NotificationType.COMMENT, title="c", message="m")

    assert await mark_all_notifications_as_read(db, user_id=citizen.id) == 2
    assert await mark_all_notifications_as_read(db, user_id=citizen.id) == 0
    assert await count_unread(db, user_id=citizen.id) == 0
    assert await count_unread(db, user_id=other_citizen.id) == 1


async def test_unread_only_filter(db, dispatcher, citizen):
    first = await dispatcher.dispatch(db, user_id=citizen.id, type=NotificationType.COMMENT, title="a", message="m")
    await dispatcher.dispatch(db, user_id=citizen.id, type=NotificationType.COMMENT, title="b", message="m")
    await mark_notification_as_read(db, notification_id=first.id, user_id=citizen.id)

    unread = await get_user_notifications(db, user_id=citizen.id, unread_only=True)
    assert [n.title for n in unread] == ["b"]


MAIL_CONFIG = NotificationConfig(
    mail_server="smtp.example.com",
    mail_port=587,
    mail_username="mailer",
    mail_password="secret",
    mail_from_address="noreply@example.com",
)


class FakeSMTP:
    sent = []

    def __init__(self, host, port, timeout=None):
        self.host = host

    def __enter__(self):
        return self

    def __exit__(self, *args):
        return False

    def ehlo(self):
        pass

    def starttls(self):
        pass

    def login(self, username, password):
        pass

    def sendmail(self, from_addr, to_addr, body):
        FakeSMTP.sent.append((from_addr, to_addr))


class RefusingSMTP(FakeSMTP):
    def __init__(self, host, port, timeout=None):
        raise ConnectionRefusedError("connection refused")


async def test_email_channel_disabled_without_settings():
    channel = EmailChannel(NotificationConfig())
    assert await channel.send("a@example.com", "Subject", "Body") is False


async def test_email_channel_sends_over_smtp(monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", FakeSMTP)

    channel = EmailChannel(MAIL_CONFIG)
    assert await channel.send("a@example.com", "Subject", "Body") is True
    assert FakeSMTP.sent == [("noreply@example.com", "a@example.com")]


async def test_email_channel_connection_error_raises_delivery_error(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)

    channel = EmailChannel(MAIL_CONFIG)
    with pytest.raises(DeliveryError) as exc_info:
        await channel.send("a@example.com", "Subject", "Body")
    assert exc_info.value.channel == "email"


def test_email_message_escapes_html():
    channel = EmailChannel(MAIL_CONFIG)
    msg = channel.build_message("a@example.com", "Update", "<script>alert(1)</script>")

    assert msg["To"] == "a@example.com"
    assert msg["From"] == "CivicConnect <noreply@example.com>"
    html_part = msg.get_payload()[1].get_payload(decode=True).decode()
    assert "<script>" not in html_part
    assert "&lt;script&gt;" in html_part


SMS_CONFIG = NotificationConfig(
    twilio_account_sid="AC123",
    twilio_auth_token="token",
    twilio_phone_number="+15559999999",
)


class FakeMessages:
    def __init__(self, error=None):
        self.error = error
        self.created = []

    def create(self, body, from_, to):
        if self.error:
            raise self.error
        self.created.append({"body": body, "from_": from_, "to": to})

        class Result:
            sid = "SM123"

        return Result()


class FakeTwilioClient:
    def __init__(self, error=None):
        self.messages = FakeMessages(error)


async def test_sms_channel_sends_title_and_message():
    client = FakeTwilioClient()
    channel = SmsChannel(SMS_CONFIG, client=client)

    assert await channel.send("+15550000001", "Issue assigned", "Fix it") is True
    assert client.messages.created == [
        {"body": "Issue assigned: Fix it", "from_": "+15559999999", "to": "+15550000001"}
    ]


async def test_sms_channel_provider_error_raises_delivery_error():
    channel = SmsChannel(SMS_CONFIG, client=FakeTwilioClient(error=TwilioException("rejected")))

    with pytest.raises(DeliveryError):
        await channel.send("+15550000001", "t", "m")


async def test_sms_channel_disabled_without_credentials():
    channel = SmsChannel(NotificationConfig(), client=FakeTwilioClient())
    assert await channel.send("+15550000001", "t", "m") is False


async def test_dispatcher_with_real_channels_survives_provider_outage(db, session_factory, monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", RefusingSMTP)
    user = await create_user(session_factory, "Pat Phone", "pat@example.com", phone="+15550000002")
    config = NotificationConfig(**{**MAIL_CONFIG.model_dump(), **SMS_CONFIG.model_dump(exclude_unset=True)})
    sms = SmsChannel(config, client=FakeTwilioClient(error=TwilioException("down")))
    dispatcher = NotificationDispatcher(config, channels=[EmailChannel(config), sms])

    notification = await dispatcher.dispatch(
        db, user_id=user.id, type=NotificationType.NEW_ISSUE, title="t", message="m"
    )

    assert notification is not None
    assert await count_notifications(db) == 1


class AsciiOnlySMTP(FakeSMTP):
    def sendmail(self, from_addr, to_addr, body):
        # smtplib encodes the RCPT command as ASCII
        f"rcpt TO:<{to_addr}>\r\n".encode("ascii")
        super().sendmail(from_addr, to_addr, body)


async def test_email_channel_non_ascii_recipient_raises_delivery_error(monkeypatch):
    monkeypatch.setattr(smtplib, "SMTP", AsciiOnlySMTP)

    channel = EmailChannel(MAIL_CONFIG)
    with pytest.raises(DeliveryError):
        await channel.send("jörg@example.com", "Subject", "Body")


async def test_dispatch_to_non_ascii_address_does_not_raise(db, session_factory, monkeypatch):
    FakeSMTP.sent = []
    monkeypatch.setattr(smtplib, "SMTP", AsciiOnlySMTP)
    user = await create_user(session_factory, "Jörg Umlaut", "jörg@example.com", phone="+15550000003")
    sms = RecordingChannel("sms", "phone")
    dispatcher = NotificationDispatcher(MAIL_CONFIG, channels=[EmailChannel(MAIL_CONFIG), sms])

    notification = await dispatcher.dispatch(
        db, user_id=user.id, type=NotificationType.COMMENT, title="t", message="m"
    )

    assert notification is not None
    assert FakeSMTP.sent == []
    assert sms.sent == [("+15550000003", "t", "m")]


class BrokenChannel(RecordingChannel):
    async def send(self, recipient, subject, message):
        raise RuntimeError("unexpected provider response")


async def test_unexpected_channel_error_is_contained(db, citizen):
    sms = RecordingChannel("sms", "phone")
    dispatcher = NotificationDispatcher(
        NotificationConfig(), channels=[BrokenChannel("email", "email"), sms]
    )

    notification = await dispatcher.dispatch(
        db, user_id=citizen.id, type=NotificationType.STATUS_UPDATE, title="t", message="m"
    )

    assert notification is not None
    assert len(sms.sent) == 1
    assert await count_notifications(db) == 1
