# listing_api/services/email_service.py
import html
import logging
from abc import ABC, abstractmethod
from typing import List

from fastapi_mail import ConnectionConfig, FastMail, MessageSchema, MessageType

from listing_api.config import Settings
from listing_api.schemas.email import InterestEmailRequest

logger = logging.getLogger(__name__)


class Mailer(ABC):
    @abstractmethod
    async def send(self, message: MessageSchema):
        pass


class SmtpMailer(Mailer):
    """Delivers through the configured SMTP server"""

    def __init__(self, config: ConnectionConfig):
        self.config = config
        self.client = FastMail(config)

    async def send(self, message: MessageSchema):
        await self.client.send_message(message)


class MemoryMailer(Mailer):
    """Keeps messages instead of sending them"""

    def __init__(self):
        self.outbox: List[MessageSchema] = []

    async def send(self, message: MessageSchema):
        self.outbox.append(message)


def build_mailer(settings: Settings) -> Mailer:
    config = ConnectionConfig(
        MAIL_USERNAME=settings.SMTP_USERNAME or "",
        MAIL_PASSWORD=settings.SMTP_PASSWORD or "",
        MAIL_FROM=settings.MAIL_FROM,
        MAIL_PORT=settings.SMTP_PORT,
        MAIL_SERVER=settings.SMTP_HOST,
        MAIL_STARTTLS=settings.SMTP_USE_TLS,
        MAIL_SSL_TLS=False,
        USE_CREDENTIALS=bool(settings.SMTP_USERNAME),
        VALIDATE_CERTS=True,
    )
    return SmtpMailer(config)


class EmailService:
    def __init__(self, mailer: Mailer, recipient: str):
        self.mailer = mailer
        self.recipient = recipient

    def interest_message(self, request: InterestEmailRequest) -> MessageSchema:
        body = (
            f"<h1> Interesado en la propiedad {html.escape(request.property)} </h1>"
            "<hr />"
            "<ul>"
            f"<li> Quiere ser contactado con {html.escape(request.type)} </li>"
            f"<li> Su contacto {html.escape(request.contact)} </li>"
            f"<li> Descripción de lo que pide: {html.escape(request.description)} </li>"
            "</ul>"
        )
        return MessageSchema(
            subject=f"Interesados en {request.property}",
            recipients=[self.recipient],
            body=body,
            subtype=MessageType.html,
        )

    async def send_interest(self, request: InterestEmailRequest):
        """Runs after the response; a delivery failure is only logged"""
        try:
            await self.mailer.send(self.interest_message(request))
            logger.info(f"Interest email sent for {request.property}")
        except Exception as e:
            logger.error(f"Failed to send interest email for {request.property}: {e}", exc_info=True)
