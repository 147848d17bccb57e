from __future__ import annotations

from collections.abc import AsyncIterator
from dataclasses import dataclass, field
import logging
from typing import Any

import httpx

from docrelay_api.errors import UpstreamUnreachableError
from docrelay_api.schemas import UpstreamReply, UpstreamRequest

LOGGER = logging.getLogger(__name__)


def _encode_body(prepared: UpstreamRequest) -> tuple[dict[str, str] | None, dict[str, Any] | None]:
    if not prepared.multipart:
        return prepared.data or None, prepared.files or None
    # A None filename makes httpx emit a plain multipart form field.
    files: dict[str, Any] = {name: (None, value) for name, value in prepared.data.items()}
    files.update(prepared.files)
    return None, files


@dataclass
class UpstreamStream:
    """An upstream response whose body has not been read yet."""

    client: httpx.AsyncClient
    response: httpx.Response
    _closed: bool = field(default=False, init=False)

    @property
    def status_code(self) -> int:
        return self.response.status_code

    @property
    def reason_phrase(self) -> str:
        return self.response.reason_phrase

    @property
    def headers(self) -> httpx.Headers:
        return self.response.headers

    @property
    def is_success(self) -> bool:
        return self.response.is_success

    async def read_reply(self) -> UpstreamReply:
        try:
            await self.response.aread()
        finally:
            await self.aclose()
        return UpstreamReply(
            status_code=self.status_code,
            body=self.response.text,
            reason_phrase=self.reason_phrase,
        )

    async def iter_bytes(self) -> AsyncIterator[bytes]:
        try:
            async for chunk in self.response.aiter_bytes():
                yield chunk
        finally:
            await self.aclose()

    async def aclose(self) -> None:
        if self._closed:
            return
        self._closed = True
        try:
            await self.response.aclose()
        finally:
            await self.client.aclose()


class UpstreamClient:
    """Executes prepared requests; non-2xx replies are returned, not raised."""

    def __init__(
        self,
        *,
        timeout_seconds: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.timeout_seconds = timeout_seconds
        self._transport = transport

    def _build_client(self) -> httpx.AsyncClient:
        kwargs: dict[str, Any] = {
            "timeout": self.timeout_seconds,
            "follow_redirects": True,
        }
        if self._transport is not None:
            kwargs["transport"] = self._transport
        return httpx.AsyncClient(**kwargs)

    async def send(self, prepared: UpstreamRequest) -> UpstreamReply:
        async with self._build_client() as client:
            data, files = _encode_body(prepared)
            try:
                response = await client.request(
                    prepared.method,
                    prepared.url,
                    params=prepared.params,
                    data=data,
                    files=files,
                )
            except httpx.TransportError as exc:
                LOGGER.warning(
                    "Upstream call failed operation=%s url=%s",
                    prepared.operation.value,
                    prepared.url,
                    exc_info=exc,
                )
                raise UpstreamUnreachableError(
                    f"Document provider is unreachable: {exc}"
                ) from exc
        return UpstreamReply(
            status_code=response.status_code,
            body=response.text,
            reason_phrase=response.reason_phrase,
        )

    async def open_stream(self, url: str) -> UpstreamStream:
        client = self._build_client()
        try:
            request = client.build_request("GET", url)
            response = await client.send(request, stream=True)
        except httpx.TransportError as exc:
            await client.aclose()
            LOGGER.warning("Upstream stream failed url=%s", url, exc_info=exc)
            raise UpstreamUnreachableError(
                f"Document provider is unreachable: {exc}"
            ) from exc
        except BaseException:
            await client.aclose()
            raise
        return UpstreamStream(client=client, response=response)

    async def post_form(self, url: str, data: dict[str, str]) -> httpx.Response:
        async with self._build_client() as client:
            try:
                response = await client.post(url, data=data)
            except httpx.TransportError as exc:
                LOGGER.warning("Upstream form post failed url=%s", url, exc_info=exc)
                raise UpstreamUnreachableError(
                    f"Verification service is unreachable: {exc}"
                ) from exc
        return response
