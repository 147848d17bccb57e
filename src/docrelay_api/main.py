from __future__ import annotations

import logging
import time

import httpx
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from docrelay_api import __version__
from docrelay_api.api.routes import build_contact_router, build_documents_router
from docrelay_api.errors import ApiError
from docrelay_api.logging_setup import configure_logging
from docrelay_api.schemas import ErrorEnvelope
from docrelay_api.services import (
    ContactEmailService,
    DocumentService,
    EmailSender,
    RequestTranslator,
    SmtpEmailSender,
    StreamRelay,
)
from docrelay_api.settings import Settings, is_hardened_environment, load_settings
from docrelay_api.telemetry import RequestMetrics, generate_trace_id
from docrelay_api.upstream import ChallengeSolver, ChallengeVerifier, UpstreamClient

LOGGER = logging.getLogger(__name__)


def _error_response(
    *,
    status_code: int,
    trace_id: str,
    code: str,
    message: str,
    details: object = None,
) -> JSONResponse:
    payload = ErrorEnvelope(
        code=code,
        error=message,
        details=details,
        trace_id=trace_id,
    )
    return JSONResponse(
        status_code=status_code,
        content=payload.model_dump(mode="json"),
        headers={"x-trace-id": trace_id},
    )


def _build_email_sender(settings: Settings) -> EmailSender | None:
    if not settings.smtp_host:
        return None
    return SmtpEmailSender(
        host=settings.smtp_host,
        port=settings.smtp_port,
        username=settings.smtp_username,
        password=settings.smtp_password,
        use_tls=settings.smtp_use_tls,
        timeout_seconds=settings.upstream_timeout_seconds,
    )


def create_app(
    settings: Settings | None = None,
    *,
    upstream_transport: httpx.AsyncBaseTransport | None = None,
    email_sender: EmailSender | None = None,
    challenge_solver: ChallengeSolver | None = None,
) -> FastAPI:
    configure_logging()
    settings = settings or load_settings()

    upstream_client = UpstreamClient(
        timeout_seconds=settings.upstream_timeout_seconds,
        transport=upstream_transport,
    )
    translator = RequestTranslator(
        provider_url=settings.document_provider_url,
        lookup_command=settings.document_provider_lookup_command,
        lookup_method=settings.lookup_request_method,
        upload_max_bytes=settings.upload_max_bytes,
    )
    challenge_verifier = ChallengeVerifier(
        upstream_client=upstream_client,
        verify_url=settings.challenge_verify_url,
        secret=settings.challenge_secret,
    )
    if not challenge_verifier.enabled:
        LOGGER.warning(
            "CHALLENGE_SECRET not configured; challenge tokens are passed through unverified"
        )
    document_service = DocumentService(
        translator=translator,
        upstream_client=upstream_client,
        relay_base_path=settings.relay_base_path,
        challenge_verifier=challenge_verifier,
        challenge_solver=challenge_solver,
        challenge_page_url=settings.challenge_page_url,
    )
    stream_relay = StreamRelay(
        upstream_client=upstream_client,
        provider_url=settings.document_provider_url,
    )
    contact_service = ContactEmailService(
        sender=email_sender or _build_email_sender(settings),
        recipient=settings.contact_recipient,
        from_address=settings.contact_sender,
        max_attachments=settings.contact_max_attachments,
        attachment_max_bytes=settings.upload_max_bytes,
    )
    request_metrics = RequestMetrics()

    app = FastAPI(title=settings.app_name, version=__version__)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allowed_origins),
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Accept"],
        expose_headers=["x-trace-id", "content-disposition"],
        max_age=600,
    )

    @app.middleware("http")
    async def trace_middleware(request: Request, call_next):
        request.state.trace_id = generate_trace_id()
        start_time = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            response.headers["x-trace-id"] = request.state.trace_id
            return response
        finally:
            request_metrics.record_response(
                status_code=status_code,
                duration_seconds=time.perf_counter() - start_time,
            )

    @app.exception_handler(ApiError)
    async def api_error_handler(request: Request, exc: ApiError):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        log = LOGGER.warning if exc.status_code < 500 else LOGGER.error
        log(
            "Request failed path=%s code=%s status=%s message=%s",
            request.url.path,
            exc.code,
            exc.status_code,
            exc.message,
        )
        return _error_response(
            status_code=exc.status_code,
            trace_id=trace_id,
            code=exc.code,
            message=exc.message,
            details=exc.details,
        )

    @app.exception_handler(RequestValidationError)
    async def request_validation_exception_handler(
        request: Request, exc: RequestValidationError
    ):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        return _error_response(
            status_code=400,
            trace_id=trace_id,
            code="INVALID_INPUT",
            message="Request validation failed",
            details=[
                {"loc": list(error.get("loc", ())), "msg": error.get("msg")}
                for error in exc.errors()
            ],
        )

    @app.exception_handler(Exception)
    async def unhandled_exception_handler(request: Request, exc: Exception):
        trace_id = getattr(request.state, "trace_id", generate_trace_id())
        LOGGER.exception("Unhandled API exception", exc_info=exc)
        message = "Unexpected server error"
        if not is_hardened_environment(settings.environment):
            message = str(exc) or message
        return _error_response(
            status_code=500,
            trace_id=trace_id,
            code="INTERNAL_ERROR",
            message=message,
        )

    app.include_router(
        build_documents_router(
            document_service=document_service,
            stream_relay=stream_relay,
            request_metrics=request_metrics,
        )
    )
    app.include_router(
        build_contact_router(contact_service, request_metrics=request_metrics)
    )

    @app.get("/healthz", tags=["health"])
    async def healthz() -> dict[str, str]:
        return {"status": "ok", "service": settings.app_name}

    @app.get("/ops/metrics", tags=["ops"])
    async def ops_metrics() -> dict[str, object]:
        return {"request_metrics": request_metrics.snapshot()}

    return app
