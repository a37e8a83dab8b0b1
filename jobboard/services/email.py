"""Outbound email.

Delivery is an external collaborator; ``LoggingEmailSender`` only records what
would be sent, which is what development and tests need.
"""

import logging
from abc import ABC, abstractmethod
from urllib.parse import urlencode

logger = logging.getLogger(__name__)


class EmailDeliveryError(Exception):
    """A message could not be handed to the mail transport."""

    pass


class EmailSender(ABC):
    """Messages the job board sends."""

    def __init__(self, client_url: str):
        self.client_url = client_url.rstrip("/")

    def link(self, path: str, token: str) -> str:
        return f"{self.client_url}/{path.lstrip('/')}?{urlencode({'token': token})}"

    @abstractmethod
    async def send(self, to: str, subject: str, body: str) -> None:
        """Deliver one message. Raises EmailDeliveryError on failure."""

    async def send_password_reset(self, to: str, name: str, token: str) -> None:
        await self.send(
            to,
            "Reset your password",
            f"Hi {name},\n\nUse this link to choose a new password:\n"
            f"{self.link('reset-password', token)}\n\n"
            "If you did not ask for a reset you can ignore this message.",
        )

    async def send_email_verification(self, to: str, name: str, token: str) -> None:
        await self.send(
            to,
            "Confirm your email address",
            f"Hi {name},\n\nConfirm your address with this link:\n"
            f"{self.link('verify-email', token)}",
        )

    async def send_job_posted(self, to: str, name: str, job_title: str, job_id: str) -> None:
        await self.send(
            to,
            f"Your job posting '{job_title}' was received",
            f"Hi {name},\n\nYour posting '{job_title}' is awaiting review.\n"
            f"{self.client_url}/jobs/{job_id}",
        )


class LoggingEmailSender(EmailSender):
    async def send(self, to: str, subject: str, body: str) -> None:
        logger.info(f"Email to {to}: {subject}")
        logger.debug(body)
