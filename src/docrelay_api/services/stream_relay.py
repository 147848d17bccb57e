from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass
import logging
from urllib.parse import quote, urlencode

from docrelay_api.errors import InvalidInputError
from docrelay_api.schemas import DownloadRequest
from docrelay_api.services.response_normalizer import reply_error
from docrelay_api.upstream.client import UpstreamClient, UpstreamStream

LOGGER = logging.getLogger(__name__)
DEFAULT_ARTIFACT_MEDIA_TYPE = "application/zip"
_DOWNLOAD_COMMAND = "gerarpdfdownload"


@dataclass
class RelayedArtifact:
    media_type: str
    content_disposition: str
    stream: UpstreamStream

    def iter_bytes(self) -> AsyncIterator[bytes]:
        return self.stream.iter_bytes()

    async def aclose(self) -> None:
        await self.stream.aclose()


def attachment_disposition(artifact_name: str) -> str:
    cleaned = artifact_name.replace('"', "").replace("\r", "").replace("\n", "")
    if cleaned.isascii():
        return f'attachment; filename="{cleaned}"'
    return f"attachment; filename*=UTF-8''{quote(cleaned, safe='')}"


class StreamRelay:
    def __init__(self, *, upstream_client: UpstreamClient, provider_url: str) -> None:
        self.upstream_client = upstream_client
        self.provider_url = provider_url

    def artifact_url(self, download: DownloadRequest) -> str:
        query = urlencode(
            {"t": _DOWNLOAD_COMMAND, "id": download.id, "arq": download.artifact_name},
            quote_via=quote,
        )
        separator = "&" if "?" in self.provider_url else "?"
        return f"{self.provider_url}{separator}{query}"

    async def open(self, download: DownloadRequest) -> RelayedArtifact:
        if not (download.id or "").strip() or not (download.artifact_name or "").strip():
            raise InvalidInputError(
                'Parameters "id" and "artifactName" are required to download an artifact'
            )

        url = self.artifact_url(download)
        LOGGER.info("Relaying artifact id=%s name=%s", download.id, download.artifact_name)
        stream = await self.upstream_client.open_stream(url)
        LOGGER.info("Artifact download upstream status=%s", stream.status_code)

        if not stream.is_success:
            reply = await stream.read_reply()
            LOGGER.error(
                "Artifact download failed status=%s body=%s",
                reply.status_code,
                reply.body[:500],
            )
            error = reply_error(reply)
            if error is not None:
                raise error

        media_type = stream.headers.get("content-type") or DEFAULT_ARTIFACT_MEDIA_TYPE
        content_disposition = stream.headers.get(
            "content-disposition"
        ) or attachment_disposition(download.artifact_name)
        return RelayedArtifact(
            media_type=media_type,
            content_disposition=content_disposition,
            stream=stream,
        )
