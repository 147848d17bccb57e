from __future__ import annotations

from collections.abc import Awaitable, Callable
from typing import Any, TypeVar

from fastapi import APIRouter, File, Form, Query, Request, UploadFile
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask

from docrelay_api.errors import ApiError, InvalidInputError
from docrelay_api.schemas import (
    DocumentType,
    DownloadRequest,
    LookupRequest,
    NormalizedResult,
    Operation,
    UploadedFile,
)
from docrelay_api.services import DocumentService, StreamRelay
from docrelay_api.telemetry import RequestMetrics

T = TypeVar("T")


async def read_upload(upload: UploadFile | None) -> UploadedFile | None:
    if upload is None:
        return None
    payload = await upload.read()
    return UploadedFile(
        name=upload.filename or "",
        mime_type=upload.content_type or "",
        payload=payload,
    )


def _lookup_request(
    *,
    access_key: str | None,
    challenge_token: str | None,
    document_type: str | None,
) -> LookupRequest:
    try:
        parsed_document_type = DocumentType.parse(document_type)
    except ValueError as exc:
        raise InvalidInputError(str(exc)) from exc
    return LookupRequest(
        access_key=access_key or "",
        document_type=parsed_document_type,
        challenge_token=challenge_token or "",
    )


def build_documents_router(
    *,
    document_service: DocumentService,
    stream_relay: StreamRelay,
    request_metrics: RequestMetrics | None = None,
) -> APIRouter:
    router = APIRouter(tags=["documents"])

    async def _tracked(
        request: Request,
        operation: str,
        call: Callable[[], Awaitable[T]],
    ) -> T:
        trace_id = getattr(request.state, "trace_id", "")
        try:
            result = await call()
        except ApiError as exc:
            if request_metrics is not None:
                request_metrics.record_operation(
                    trace_id=trace_id,
                    operation=operation,
                    outcome="failed",
                    error_code=exc.code,
                )
            raise
        if request_metrics is not None:
            outcome = "ok"
            if isinstance(result, NormalizedResult) and result.status == "Error":
                outcome = "rejected"
            request_metrics.record_operation(
                trace_id=trace_id,
                operation=operation,
                outcome=outcome,
            )
        return result

    @router.post("/generate-document", response_model=None)
    async def generate_document(
        request: Request,
        file: UploadFile | None = File(default=None),
        arquivo: UploadFile | None = File(default=None),
        access_key: str | None = Form(default=None, alias="accessKey"),
        challenge_token: str | None = Form(default=None, alias="challengeToken"),
        document_type: str | None = Form(default=None, alias="documentType"),
    ) -> dict[str, Any]:
        upload = await read_upload(file or arquivo)
        if upload is None and (access_key or "").strip():
            lookup = _lookup_request(
                access_key=access_key,
                challenge_token=challenge_token,
                document_type=document_type,
            )
            result = await _tracked(
                request,
                Operation.LOOKUP_BY_KEY.value,
                lambda: document_service.lookup_by_key(lookup),
            )
        else:
            result = await _tracked(
                request,
                Operation.SUBMIT_FILE.value,
                lambda: document_service.submit_file(upload),
            )
        return result.to_payload()

    @router.post("/verify-lookup", response_model=None)
    async def verify_lookup(
        request: Request,
        access_key: str | None = Form(default=None, alias="accessKey"),
        challenge_token: str | None = Form(default=None, alias="challengeToken"),
        document_type: str | None = Form(default=None, alias="documentType"),
    ) -> dict[str, Any]:
        lookup = _lookup_request(
            access_key=access_key,
            challenge_token=challenge_token,
            document_type=document_type,
        )
        result = await _tracked(
            request,
            "verify_lookup",
            lambda: document_service.confirm_lookup(lookup),
        )
        return result.to_payload()

    @router.get("/download-artifact", response_model=None)
    async def download_artifact(
        request: Request,
        artifact_id: str | None = Query(default=None, alias="id"),
        artifact_name: str | None = Query(default=None, alias="artifactName"),
        arq: str | None = Query(default=None),
    ) -> StreamingResponse:
        download = DownloadRequest(
            id=artifact_id or "",
            artifact_name=artifact_name or arq or "",
        )
        artifact = await _tracked(
            request,
            "download_artifact",
            lambda: stream_relay.open(download),
        )
        return StreamingResponse(
            artifact.iter_bytes(),
            media_type=artifact.media_type,
            headers={
                "content-disposition": artifact.content_disposition,
                "x-trace-id": getattr(request.state, "trace_id", ""),
            },
            background=BackgroundTask(artifact.aclose),
        )

    return router


__all__ = ["build_documents_router", "read_upload"]
