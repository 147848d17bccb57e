from __future__ import annotations

import random
from typing import Callable

from docrelay_api.errors import InvalidInputError
from docrelay_api.schemas import (
    LookupRequest,
    Operation,
    UploadedFile,
    UpstreamRequest,
)

ACCESS_KEY_LENGTH = 44
UPLOAD_FIELD_NAME = "arquivo"
_CACHE_BUSTER_MAX = 9999
_SUBMIT_FILE_COMMAND = "gerarpdf"


def _default_cache_buster() -> int:
    return random.randint(0, _CACHE_BUSTER_MAX)


def validate_access_key(access_key: str | None) -> str:
    normalized = (access_key or "").strip()
    if len(normalized) != ACCESS_KEY_LENGTH:
        raise InvalidInputError(
            f"Access key must have exactly {ACCESS_KEY_LENGTH} characters",
            details={"length": len(normalized)},
        )
    if not normalized.isdigit():
        raise InvalidInputError("Access key must contain only digits")
    return normalized


class RequestTranslator:
    """Builds the exact Document Provider request for each client operation."""

    def __init__(
        self,
        *,
        provider_url: str,
        lookup_command: str = "consultarchave",
        lookup_method: str = "POST",
        upload_max_bytes: int = 10 * 1024 * 1024,
        cache_buster: Callable[[], int] | None = None,
    ) -> None:
        if lookup_method not in {"GET", "POST"}:
            raise ValueError("lookup_method must be GET or POST")
        self.provider_url = provider_url
        self.lookup_command = lookup_command
        self.lookup_method = lookup_method
        self.upload_max_bytes = upload_max_bytes
        self._cache_buster = cache_buster or _default_cache_buster

    def build(self, operation: Operation, payload: UploadedFile | LookupRequest) -> UpstreamRequest:
        if operation is Operation.SUBMIT_FILE and isinstance(payload, UploadedFile):
            return self.build_submit_file(payload)
        if operation is Operation.LOOKUP_BY_KEY and isinstance(payload, LookupRequest):
            return self.build_lookup(payload)
        raise TypeError(f"{type(payload).__name__} is not a valid input for {operation.value}")

    def build_submit_file(self, upload: UploadedFile | None) -> UpstreamRequest:
        if upload is None or not upload.payload:
            raise InvalidInputError("No file was uploaded or the uploaded file is empty")
        if len(upload.payload) > self.upload_max_bytes:
            raise InvalidInputError("Uploaded file exceeds configured maximum size")

        return UpstreamRequest(
            operation=Operation.SUBMIT_FILE,
            method="POST",
            url=self.provider_url,
            params={
                "t": _SUBMIT_FILE_COMMAND,
                "arquivos": "1",
                "nomedoarquivo": "",
                "r": str(self._cache_buster()),
            },
            files={
                UPLOAD_FIELD_NAME: (
                    upload.name or "upload.xml",
                    upload.payload,
                    upload.mime_type or "application/octet-stream",
                )
            },
        )

    def build_lookup(self, lookup: LookupRequest) -> UpstreamRequest:
        access_key = validate_access_key(lookup.access_key)
        challenge_token = (lookup.challenge_token or "").strip()
        if not challenge_token:
            raise InvalidInputError("Challenge token is required")

        fields = {
            "chave": access_key,
            "captcha": challenge_token,
            "tipo": lookup.document_type.upstream_flag,
        }
        params = {"t": self.lookup_command, "r": str(self._cache_buster())}
        if self.lookup_method == "GET":
            return UpstreamRequest(
                operation=Operation.LOOKUP_BY_KEY,
                method="GET",
                url=self.provider_url,
                params={**params, **fields},
            )
        return UpstreamRequest(
            operation=Operation.LOOKUP_BY_KEY,
            method="POST",
            url=self.provider_url,
            params=params,
            data=fields,
            multipart=True,
        )
