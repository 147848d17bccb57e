from __future__ import annotations

import asyncio
from collections.abc import AsyncIterator

import httpx
import pytest

from docrelay_api.errors import InvalidInputError, UpstreamError, UpstreamHtmlError
from docrelay_api.schemas import DownloadRequest
from docrelay_api.services.stream_relay import (
    DEFAULT_ARTIFACT_MEDIA_TYPE,
    StreamRelay,
    attachment_disposition,
)
from docrelay_api.upstream.client import UpstreamClient

PROVIDER_URL = "https://provider.test/comandos.aspx"


class _TrackingStream(httpx.AsyncByteStream):
    def __init__(self, chunks: list[bytes]) -> None:
        self.chunks = chunks
        self.closed = False

    async def __aiter__(self) -> AsyncIterator[bytes]:
        for chunk in self.chunks:
            yield chunk

    async def aclose(self) -> None:
        self.closed = True


def _relay(handler) -> StreamRelay:
    client = UpstreamClient(transport=httpx.MockTransport(handler))
    return StreamRelay(upstream_client=client, provider_url=PROVIDER_URL)


def test_artifact_url_percent_encodes_values() -> None:
    relay = _relay(lambda request: httpx.Response(200))

    url = relay.artifact_url(DownloadRequest(id="abc 1", artifact_name="nota fiscal&x.pdf"))

    assert url == (
        f"{PROVIDER_URL}?t=gerarpdfdownload&id=abc%201&arq=nota%20fiscal%26x.pdf"
    )


def test_artifact_url_appends_to_existing_query() -> None:
    client = UpstreamClient(transport=httpx.MockTransport(lambda request: httpx.Response(200)))
    relay = StreamRelay(upstream_client=client, provider_url=f"{PROVIDER_URL}?site=1")

    url = relay.artifact_url(DownloadRequest(id="1", artifact_name="a.pdf"))

    assert url.startswith(f"{PROVIDER_URL}?site=1&t=gerarpdfdownload")


def test_open_streams_bytes_in_order_and_releases_upstream() -> None:
    body = _TrackingStream([b"PK", b"\x03\x04", b"rest"])
    seen: dict[str, httpx.URL] = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = request.url
        return httpx.Response(
            200,
            headers={"content-type": "application/pdf", "content-disposition": 'inline; filename="x.pdf"'},
            stream=body,
        )

    relay = _relay(handler)

    async def run():
        artifact = await relay.open(DownloadRequest(id="123", artifact_name="x.pdf"))
        chunks = [chunk async for chunk in artifact.iter_bytes()]
        await artifact.aclose()
        return artifact, chunks

    artifact, chunks = asyncio.run(run())

    assert chunks == [b"PK", b"\x03\x04", b"rest"]
    assert artifact.media_type == "application/pdf"
    assert artifact.content_disposition == 'inline; filename="x.pdf"'
    assert seen["url"].params["t"] == "gerarpdfdownload"
    assert seen["url"].params["arq"] == "x.pdf"
    assert body.closed is True


def test_open_falls_back_to_zip_and_attachment_disposition() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=b"data")

    relay = _relay(handler)

    async def run():
        artifact = await relay.open(DownloadRequest(id="123", artifact_name="nota.pdf"))
        await artifact.aclose()
        return artifact

    artifact = asyncio.run(run())

    assert artifact.media_type == DEFAULT_ARTIFACT_MEDIA_TYPE
    assert artifact.content_disposition == 'attachment; filename="nota.pdf"'


def test_aclose_before_iteration_releases_upstream() -> None:
    body = _TrackingStream([b"never read"])
    relay = _relay(lambda request: httpx.Response(200, stream=body))

    async def run() -> None:
        artifact = await relay.open(DownloadRequest(id="1", artifact_name="a.zip"))
        await artifact.aclose()
        await artifact.aclose()

    asyncio.run(run())

    assert body.closed is True


def test_upstream_error_is_mapped_and_stream_released() -> None:
    body = _TrackingStream([b"not found"])
    relay = _relay(lambda request: httpx.Response(404, stream=body))

    with pytest.raises(UpstreamError) as exc_info:
        asyncio.run(relay.open(DownloadRequest(id="1", artifact_name="a.zip")))

    assert exc_info.value.status_code == 404
    assert exc_info.value.details == "not found"
    assert body.closed is True


def test_upstream_html_error_page_is_bad_gateway() -> None:
    relay = _relay(
        lambda request: httpx.Response(500, text="<!DOCTYPE html><html>boom</html>")
    )

    with pytest.raises(UpstreamHtmlError):
        asyncio.run(relay.open(DownloadRequest(id="1", artifact_name="a.zip")))


@pytest.mark.parametrize(
    ("artifact_id", "artifact_name"),
    [("", "a.zip"), ("1", ""), (None, "a.zip"), ("1", None), ("  ", "a.zip")],
)
def test_missing_parameters_are_rejected_without_upstream_call(artifact_id, artifact_name) -> None:
    calls: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return httpx.Response(200)

    relay = _relay(handler)

    with pytest.raises(InvalidInputError, match='"id" and "artifactName"'):
        asyncio.run(relay.open(DownloadRequest(id=artifact_id, artifact_name=artifact_name)))

    assert calls == []


def test_attachment_disposition_handles_non_ascii_names() -> None:
    assert attachment_disposition('bad"name.pdf') == 'attachment; filename="badname.pdf"'
    assert attachment_disposition("ção.pdf") == "attachment; filename*=UTF-8''%C3%A7%C3%A3o.pdf"
