"""
Notification dispatch.

A notification is stored for the recipient first and then pushed out over
every delivery channel the recipient can be reached on (email, SMS).
Delivery is best-effort: a channel failure is logged and never reaches the
caller, and it never undoes the stored notification.
"""

import html
import logging
import smtplib
import traceback
from abc import ABC, abstractmethod
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession
from starlette.concurrency import run_in_threadpool
from twilio.base.exceptions import TwilioException
from twilio.rest import Client

from civicconnect.core.config import NotificationConfig
from civicconnect.core.exceptions import DeliveryError
from civicconnect.crud.notification import create_notification
from civicconnect.crud.user import get_user
from civicconnect.models import Notification, NotificationType, User

logger = logging.getLogger("civicconnect.notifications")


class NotificationChannel(ABC):
    """
    A way of reaching a user outside the application.

    Contract:
    - recipient_for() returns the address for this channel, or None if the
      user cannot be reached on it.
    - send() returns True when the provider accepted the message and False
      when the channel is not configured.
    - Provider failures MUST be raised as DeliveryError.
    """

    name = "channel"

    @abstractmethod
    def recipient_for(self, user: User) -> Optional[str]:
        raise NotImplementedError

    @abstractmethod
    async def send(self, recipient: str, subject: str, message: str) -> bool:
        raise NotImplementedError


class EmailChannel(NotificationChannel):
    """Sends multipart (plain text + HTML) email over SMTP."""

    name = "email"

    def __init__(self, config: NotificationConfig):
        self.config = config

    def recipient_for(self, user: User) -> Optional[str]:
        return user.email

    def build_message(self, recipient: str, subject: str, message: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["Subject"] = subject
        msg["From"] = (
            f"{self.config.mail_from_name} <{self.config.mail_from_address}>"
            if self.config.mail_from_name
            else str(self.config.mail_from_address)
        )
        msg["To"] = recipient

        msg.attach(MIMEText(message, "plain"))
        msg.attach(MIMEText(self._render_html(subject, message), "html"))
        return msg

    def _render_html(self, subject: str, message: str) -> str:
        return f"""
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #4f46e5; padding: 20px; text-align: center;">
    <h1 style="color: white; margin: 0;">{html.escape(self.config.mail_from_name)}</h1>
  </div>
  <div style="padding: 30px; background: #f9fafb;">
    <h2 style="color: #1f2937; margin-top: 0;">{html.escape(subject)}</h2>
    <p style="color: #4b5563; line-height: 1.6;">{html.escape(message)}</p>
    <div style="margin-top: 30px; padding-top: 20px; border-top: 1px solid #e5e7eb;">
      <p style="color: #9ca3af; font-size: 12px; margin: 0;">
        This is an automated notification. Please do not reply to this email.
      </p>
    </div>
  </div>
</div>
"""

    def _deliver(self, recipient: str, msg: MIMEMultipart) -> None:
        with smtplib.SMTP(
            str(self.config.mail_server), self.config.mail_port, timeout=self.config.mail_timeout
        ) as server:
            server.ehlo()
            if self.config.mail_use_tls:
                server.starttls()
                server.ehlo()
            server.login(str(self.config.mail_username), str(self.config.mail_password))
            server.sendmail(str(self.config.mail_from_address), recipient, msg.as_string())

    async def send(self, recipient: str, subject: str, message: str) -> bool:
        if not self.config.email_enabled:
            logger.warning("Email settings not configured. Email notifications are disabled.")
            return False

        msg = self.build_message(recipient, subject, message)
        try:
            await run_in_threadpool(self._deliver, recipient, msg)
        except smtplib.SMTPAuthenticationError as e:
            raise DeliveryError(self.name, f"SMTP authentication failed: {e}") from e
        except (smtplib.SMTPException, OSError, UnicodeError) as e:
            raise DeliveryError(self.name, f"Error sending email to {recipient}: {e}") from e

        logger.info(f"Email sent successfully to {recipient}")
        return True


class SmsChannel(NotificationChannel):
    """Sends text messages through the Twilio REST API."""

    name = "sms"

    def __init__(self, config: NotificationConfig, client: Optional[Client] = None):
        self.config = config
        self._client = client

    @property
    def client(self) -> Client:
        if self._client is None:
            self._client = Client(self.config.twilio_account_sid, self.config.twilio_auth_token)
        return self._client

    def recipient_for(self, user: User) -> Optional[str]:
        return user.phone

    async def send(self, recipient: str, subject: str, message: str) -> bool:
        if not self.config.sms_enabled:
            logger.warning("Twilio credentials not configured. SMS notifications are disabled.")
            return False

        try:
            result = await run_in_threadpool(
                self.client.messages.create,
                body=f"{subject}: {message}",
                from_=self.config.twilio_phone_number,
                to=recipient,
            )
        except (TwilioException, OSError) as e:
            raise DeliveryError(self.name, f"Error sending SMS to {recipient}: {e}") from e

        logger.info(f"SMS sent successfully to {recipient} (sid={result.sid})")
        return True


class NotificationDispatcher:
    """
    Stores notifications and fans them out over the delivery channels.
    """

    def __init__(
        self,
        config: NotificationConfig,
        channels: Optional[List[NotificationChannel]] = None,
    ):
        self.config = config
        if channels is None:
            channels = [EmailChannel(config), SmsChannel(config)]
        self.channels = channels

    async def dispatch(
        self,
        db: AsyncSession,
        user_id: int,
        type: NotificationType,
        title: str,
        message: str,
        issue_id: Optional[int] = None,
    ) -> Optional[Notification]:
        """
        Notify a user. Never raises: an unknown recipient, a failed insert or a
        failed delivery is logged and dispatch returns normally.

        Returns the stored notification, or None if nothing was stored.
        """
        user = await get_user(db, id=user_id)
        if not user:
            logger.warning(f"User {user_id} not found for notification: type={type.value}")
            return None

        try:
            notification = await create_notification(
                db,
                user_id=user.id,
                issue_id=issue_id,
                type=type,
                title=title,
                message=message,
            )
        except SQLAlchemyError as e:
            await db.rollback()
            logger.error(f"Could not store notification for user {user_id}: {e}")
            return None

        logger.info(
            f"Notification stored: id={notification.id}, user_id={user.id}, "
            f"type={type.value}, issue_id={issue_id}"
        )

        for channel in self.channels:
            recipient = channel.recipient_for(user)
            if not recipient:
                continue
            try:
                sent = await channel.send(recipient, title, message)
            except DeliveryError as e:
                logger.error(
                    f"{channel.name} delivery failed: notification_id={notification.id}, "
                    f"user_id={user.id}, error={e.detail}"
                )
                continue
            except Exception as e:
                logger.error(
                    f"{channel.name} delivery crashed: notification_id={notification.id}, "
                    f"user_id={user.id}, error={e}\n{traceback.format_exc()}"
                )
                continue
            if sent:
                logger.info(f"{channel.name} delivered: notification_id={notification.id}")

        return notification
