from docrelay_api.services.contact_email import (
    ContactEmailService,
    ContactMessage,
    EmailSender,
    SmtpEmailSender,
)
from docrelay_api.services.document_service import DocumentService
from docrelay_api.services.request_translator import RequestTranslator
from docrelay_api.services.stream_relay import RelayedArtifact, StreamRelay

__all__ = [
    "ContactEmailService",
    "ContactMessage",
    "DocumentService",
    "EmailSender",
    "RelayedArtifact",
    "RequestTranslator",
    "SmtpEmailSender",
    "StreamRelay",
]
