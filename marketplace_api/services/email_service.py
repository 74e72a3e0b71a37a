"""
Outbound email delivery.

The auth flows only need "send (recipient, subject, body)". Two senders
implement it:

  - SendGridEmailSender: production delivery via the SendGrid API. The
    client is blocking, so each send runs in a worker thread.
  - LoggingEmailSender: used when SendGrid isn't configured. It logs the
    recipient and subject only; bodies can carry reset links and are never
    written to the log.

Either sender raises EmailDeliveryError on failure. There is no retry here:
the calling flow makes exactly one attempt and surfaces the error.
"""

import asyncio
import logging
from typing import Protocol

from sendgrid import SendGridAPIClient
from sendgrid.helpers.mail import Mail

from marketplace_api.config import settings
from marketplace_api.exceptions import EmailDeliveryError

logger = logging.getLogger(__name__)


class EmailSender(Protocol):
    async def send(self, recipient: str, subject: str, body: str) -> None: ...


class SendGridEmailSender:
    def __init__(self, api_key: str, from_email: str):
        self._client = SendGridAPIClient(api_key)
        self.from_email = from_email

    async def send(self, recipient: str, subject: str, body: str) -> None:
        message = Mail(
            from_email=self.from_email,
            to_emails=recipient,
            subject=subject,
            plain_text_content=body,
        )
        try:
            response = await asyncio.to_thread(self._client.send, message)
        except Exception as exc:
            logger.error("SendGrid delivery to %s failed: %s", recipient, type(exc).__name__)
            raise EmailDeliveryError() from exc

        if response.status_code >= 400:
            logger.error("SendGrid rejected email to %s (status %s)", recipient, response.status_code)
            raise EmailDeliveryError()

        logger.info("Email sent to %s, status: %s", recipient, response.status_code)


class LoggingEmailSender:
    async def send(self, recipient: str, subject: str, body: str) -> None:
        logger.warning(
            "SendGrid not configured; email to %s (%r) was not delivered", recipient, subject
        )


def build_email_sender() -> EmailSender:
    if settings.SENDGRID_API_KEY and settings.MAIL_FROM_EMAIL:
        return SendGridEmailSender(settings.SENDGRID_API_KEY, settings.MAIL_FROM_EMAIL)
    return LoggingEmailSender()
