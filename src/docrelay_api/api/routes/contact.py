from __future__ import annotations

from fastapi import APIRouter, File, Form, Request, UploadFile

from docrelay_api.api.routes.documents import read_upload
from docrelay_api.errors import ApiError
from docrelay_api.schemas import ContactEmailResponse
from docrelay_api.services import ContactEmailService, ContactMessage
from docrelay_api.telemetry import RequestMetrics


def build_contact_router(
    contact_service: ContactEmailService,
    *,
    request_metrics: RequestMetrics | None = None,
) -> APIRouter:
    router = APIRouter(tags=["contact"])

    @router.post("/send-contact-email", response_model=ContactEmailResponse)
    async def send_contact_email(
        request: Request,
        email: str = Form(default=""),
        subject_reason: str = Form(default="", alias="subject-reason"),
        description: str = Form(default=""),
        attachments: list[UploadFile] | None = File(default=None),
    ) -> ContactEmailResponse:
        uploads = []
        for upload in attachments or []:
            uploaded = await read_upload(upload)
            if uploaded is not None:
                uploads.append(uploaded)

        trace_id = getattr(request.state, "trace_id", "")
        try:
            await contact_service.send(
                ContactMessage(
                    email=email,
                    subject_reason=subject_reason,
                    description=description,
                    attachments=tuple(uploads),
                )
            )
        except ApiError as exc:
            if request_metrics is not None:
                request_metrics.record_operation(
                    trace_id=trace_id,
                    operation="send_contact_email",
                    outcome="failed",
                    error_code=exc.code,
                )
            raise
        if request_metrics is not None:
            request_metrics.record_operation(
                trace_id=trace_id,
                operation="send_contact_email",
                outcome="ok",
            )
        return ContactEmailResponse(status="Ok", message="email sent")

    return router
