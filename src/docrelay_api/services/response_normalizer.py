"""Interpretation of Document Provider replies.

The provider answers with JSON, JSON wrapped in arbitrary text, plain status
text, or an HTML error page depending on the operation and on how it failed.
Everything here is a pure function of the reply so it can be exercised without
network calls.
"""

from __future__ import annotations

import json
from typing import Any
from urllib.parse import quote

from docrelay_api.errors import (
    ApiError,
    UpstreamError,
    UpstreamHtmlError,
    UpstreamMalformedError,
)
from docrelay_api.schemas import NormalizedResult, ReplyKind, UpstreamReply

HTML_DETAIL_PREVIEW_CHARS = 500
_HTML_MARKERS = ("<!doctype html", "<html")
_CONFIRMATION_OK = "OK"
_ARTIFACT_NAME_KEYS = ("artifactName", "arq")


def is_html_document(body: str) -> bool:
    return body.lstrip().lower().startswith(_HTML_MARKERS)


def extract_json_object(body: str) -> Any | None:
    """Strict parse first, then the first decodable top-level ``{...}`` span."""
    try:
        return json.loads(body)
    except ValueError:
        pass

    decoder = json.JSONDecoder()
    start = body.find("{")
    while start != -1:
        try:
            parsed, _ = decoder.raw_decode(body, start)
        except ValueError:
            start = body.find("{", start + 1)
            continue
        return parsed
    return None


def classify_reply(reply: UpstreamReply) -> ReplyKind:
    if is_html_document(reply.body):
        return "HtmlErrorPage"
    if extract_json_object(reply.body) is not None:
        return "WellFormedJson"
    if reply.body.strip():
        return "PlainTextStatus"
    return "Unparseable"


def reply_error(reply: UpstreamReply) -> ApiError | None:
    """The error a reply represents before its body is interpreted, if any."""
    html = is_html_document(reply.body)
    if not reply.is_success:
        if html:
            return UpstreamHtmlError(
                "upstream returned an HTML error page",
                details=reply.body[:HTML_DETAIL_PREVIEW_CHARS],
            )
        status_text = f"{reply.status_code} {reply.reason_phrase}".strip()
        return UpstreamError(
            f"upstream error: {status_text}",
            upstream_status=reply.status_code,
            details=reply.body,
        )
    if html:
        return UpstreamHtmlError(
            "unexpected HTML from upstream",
            details=reply.body[:HTML_DETAIL_PREVIEW_CHARS],
        )
    return None


def build_artifact_link(relay_base_path: str, artifact_id: str, artifact_name: str) -> str:
    return (
        f"{relay_base_path}?id={quote(str(artifact_id), safe='')}"
        f"&artifactName={quote(artifact_name, safe='')}"
    )


def normalize_document_reply(reply: UpstreamReply, *, relay_base_path: str) -> NormalizedResult:
    error = reply_error(reply)
    if error is not None:
        raise error

    parsed = extract_json_object(reply.body)
    if parsed is None:
        raise UpstreamMalformedError("upstream response is not valid JSON")
    if not isinstance(parsed, dict):
        raise UpstreamMalformedError(
            "unrecognized upstream response shape", details=parsed
        )

    pdf_link = parsed.get("pdfLink")
    xml_link = parsed.get("xmlLink")
    if isinstance(pdf_link, str) or isinstance(xml_link, str):
        return NormalizedResult(
            status="Ok",
            pdf_link=pdf_link if isinstance(pdf_link, str) else None,
            xml_link=xml_link if isinstance(xml_link, str) else None,
        )

    artifact_id = parsed.get("id")
    artifact_name = next(
        (
            parsed[key]
            for key in _ARTIFACT_NAME_KEYS
            if isinstance(parsed.get(key), str) and parsed[key]
        ),
        None,
    )
    if artifact_id not in (None, "") and artifact_name:
        return NormalizedResult(
            status="Ok",
            pdf_link=build_artifact_link(
                relay_base_path, str(artifact_id), f"{artifact_name}.pdf"
            ),
            xml_link=build_artifact_link(
                relay_base_path, str(artifact_id), f"{artifact_name}.xml"
            ),
        )

    raise UpstreamMalformedError("unrecognized upstream response shape", details=parsed)


def normalize_confirmation_reply(reply: UpstreamReply) -> NormalizedResult:
    error = reply_error(reply)
    if error is not None:
        raise error

    text = reply.body.strip()
    if text == _CONFIRMATION_OK:
        return NormalizedResult(status="Ok")
    return NormalizedResult(status="Error", message=text or "empty upstream response")
