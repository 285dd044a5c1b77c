"""
Outbound email.

Delivery is an external collaborator: UserService builds the message and
hands it to an EmailSender. LoggingEmailSender records the hand-off without
delivering anything; deployments plug in a provider-backed sender.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass

from src.observability.logging import get_logger


logger = get_logger("task_manager.email")


@dataclass(frozen=True)
class EmailMessage:
    to: str
    subject: str
    body: str


class EmailSender(ABC):
    """Hand an email to a delivery provider."""

    @abstractmethod
    async def send(self, message: EmailMessage) -> None:
        """
        Send one message.

        Raises:
            EmailDeliveryError: The provider did not accept the message
        """


class LoggingEmailSender(EmailSender):
    """Log recipient and subject; the body carries tokens and is not logged."""

    async def send(self, message: EmailMessage) -> None:
        logger.info("email handed off", to=message.to, subject=message.subject)
