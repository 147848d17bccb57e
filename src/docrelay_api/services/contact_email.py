from __future__ import annotations

from dataclasses import dataclass, field
from email.message import EmailMessage
import logging
import smtplib
from typing import Protocol

from starlette.concurrency import run_in_threadpool

from docrelay_api.errors import EmailDeliveryError, InvalidInputError
from docrelay_api.schemas import UploadedFile

LOGGER = logging.getLogger(__name__)


@dataclass(frozen=True)
class ContactMessage:
    email: str
    subject_reason: str
    description: str
    attachments: tuple[UploadedFile, ...] = field(default_factory=tuple)


class EmailSender(Protocol):
    def send(self, message: EmailMessage) -> None:
        ...


@dataclass
class SmtpEmailSender:
    host: str
    port: int = 587
    username: str | None = None
    password: str | None = None
    use_tls: bool = True
    timeout_seconds: float = 30.0

    def send(self, message: EmailMessage) -> None:
        with smtplib.SMTP(self.host, self.port, timeout=self.timeout_seconds) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username and self.password:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


class ContactEmailService:
    def __init__(
        self,
        *,
        sender: EmailSender | None,
        recipient: str | None,
        from_address: str | None = None,
        max_attachments: int = 5,
        attachment_max_bytes: int = 10 * 1024 * 1024,
    ) -> None:
        self.sender = sender
        self.recipient = recipient
        self.from_address = from_address or recipient
        self.max_attachments = max_attachments
        self.attachment_max_bytes = attachment_max_bytes

    def validate(self, contact: ContactMessage) -> ContactMessage:
        email = contact.email.strip()
        subject_reason = contact.subject_reason.strip()
        description = contact.description.strip()
        if not email or "@" not in email:
            raise InvalidInputError("A valid email address is required")
        if not subject_reason:
            raise InvalidInputError("subject-reason is required")
        if not description:
            raise InvalidInputError("description is required")
        attachments = tuple(item for item in contact.attachments if item.payload)
        if len(attachments) > self.max_attachments:
            raise InvalidInputError("Too many attachments submitted in one request")
        if any(len(item.payload) > self.attachment_max_bytes for item in attachments):
            raise InvalidInputError("Attachment exceeds configured maximum size")
        return ContactMessage(
            email=email,
            subject_reason=subject_reason,
            description=description,
            attachments=attachments,
        )

    def build_message(self, contact: ContactMessage) -> EmailMessage:
        message = EmailMessage()
        message["Subject"] = f"[Contact] {contact.subject_reason}"
        message["From"] = self.from_address or contact.email
        message["To"] = self.recipient or ""
        message["Reply-To"] = contact.email
        message.set_content(
            f"From: {contact.email}\n"
            f"Reason: {contact.subject_reason}\n\n"
            f"{contact.description}\n"
        )
        for attachment in contact.attachments:
            maintype, _, subtype = (attachment.mime_type or "").partition("/")
            if not maintype or not subtype:
                maintype, subtype = "application", "octet-stream"
            message.add_attachment(
                attachment.payload,
                maintype=maintype,
                subtype=subtype,
                filename=attachment.name or "attachment",
            )
        return message

    async def send(self, contact: ContactMessage) -> None:
        contact = self.validate(contact)
        if self.sender is None or not self.recipient:
            raise EmailDeliveryError("email delivery is not configured")

        message = self.build_message(contact)
        try:
            await run_in_threadpool(self.sender.send, message)
        except (smtplib.SMTPException, OSError) as exc:
            LOGGER.error("Contact email delivery failed", exc_info=exc)
            raise EmailDeliveryError(f"email delivery failed: {exc}") from exc
        LOGGER.info(
            "Contact email sent reason=%s attachments=%s",
            contact.subject_reason,
            len(contact.attachments),
        )
