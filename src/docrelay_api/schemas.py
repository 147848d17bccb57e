from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field


ResultStatus = Literal["Ok", "Error"]
ReplyKind = Literal["WellFormedJson", "HtmlErrorPage", "PlainTextStatus", "Unparseable"]


class DocumentType(str, Enum):
    INVOICE_A = "InvoiceA"
    INVOICE_B = "InvoiceB"

    @property
    def upstream_flag(self) -> str:
        return _UPSTREAM_DOCUMENT_FLAGS[self]

    @classmethod
    def parse(cls, value: str | None) -> "DocumentType":
        normalized = (value or "").strip().lower()
        if not normalized:
            return cls.INVOICE_A
        for member in cls:
            if normalized in {member.value.lower(), member.upstream_flag}:
                return member
        raise ValueError(f"Unsupported document type: {value!r}")


_UPSTREAM_DOCUMENT_FLAGS = {
    DocumentType.INVOICE_A: "nfe",
    DocumentType.INVOICE_B: "cte",
}


@dataclass(frozen=True)
class UploadedFile:
    name: str
    mime_type: str
    payload: bytes


@dataclass(frozen=True)
class LookupRequest:
    access_key: str
    document_type: DocumentType
    challenge_token: str


@dataclass(frozen=True)
class DownloadRequest:
    id: str
    artifact_name: str


class Operation(str, Enum):
    SUBMIT_FILE = "submit_file"
    LOOKUP_BY_KEY = "lookup_by_key"


@dataclass(frozen=True)
class UpstreamRequest:
    operation: Operation
    method: str
    url: str
    params: dict[str, str] = field(default_factory=dict)
    data: dict[str, str] = field(default_factory=dict)
    files: dict[str, tuple[str, bytes, str]] = field(default_factory=dict)
    multipart: bool = False


@dataclass(frozen=True)
class UpstreamReply:
    status_code: int
    body: str
    reason_phrase: str = ""

    @property
    def is_success(self) -> bool:
        return 200 <= self.status_code < 300


class NormalizedResult(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    status: ResultStatus
    pdf_link: str | None = Field(default=None, alias="pdfLink")
    xml_link: str | None = Field(default=None, alias="xmlLink")
    message: str | None = None

    def to_payload(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


class ContactEmailResponse(BaseModel):
    status: ResultStatus
    message: str


class ErrorEnvelope(BaseModel):
    status: Literal["Error"] = "Error"
    code: Literal[
        "INVALID_INPUT",
        "UPSTREAM_HTML_ERROR",
        "UPSTREAM_ERROR",
        "UPSTREAM_MALFORMED",
        "UPSTREAM_UNREACHABLE",
        "CHALLENGE_UNSOLVED",
        "EMAIL_DELIVERY_FAILED",
        "INTERNAL_ERROR",
    ]
    error: str
    details: Any = None
    trace_id: str
