from __future__ import annotations

import logging

from docrelay_api.errors import InvalidInputError
from docrelay_api.schemas import LookupRequest, NormalizedResult, UploadedFile, UpstreamReply
from docrelay_api.services.request_translator import RequestTranslator, validate_access_key
from docrelay_api.services.response_normalizer import (
    normalize_confirmation_reply,
    normalize_document_reply,
)
from docrelay_api.upstream.challenge import ChallengeSolver, ChallengeVerifier
from docrelay_api.upstream.client import UpstreamClient

LOGGER = logging.getLogger(__name__)
_BODY_PREVIEW_CHARS = 500


class DocumentService:
    def __init__(
        self,
        *,
        translator: RequestTranslator,
        upstream_client: UpstreamClient,
        relay_base_path: str = "/download-artifact",
        challenge_verifier: ChallengeVerifier | None = None,
        challenge_solver: ChallengeSolver | None = None,
        challenge_page_url: str | None = None,
    ) -> None:
        self.translator = translator
        self.upstream_client = upstream_client
        self.relay_base_path = relay_base_path
        self.challenge_verifier = challenge_verifier
        self.challenge_solver = challenge_solver
        self.challenge_page_url = challenge_page_url or translator.provider_url

    async def submit_file(self, upload: UploadedFile | None) -> NormalizedResult:
        prepared = self.translator.build_submit_file(upload)
        LOGGER.info(
            "Submitting file to document provider name=%s size=%s",
            upload.name if upload else None,
            len(upload.payload) if upload else 0,
        )
        reply = await self._send(prepared)
        return normalize_document_reply(reply, relay_base_path=self.relay_base_path)

    async def lookup_by_key(self, lookup: LookupRequest) -> NormalizedResult:
        reply = await self._lookup(lookup)
        return normalize_document_reply(reply, relay_base_path=self.relay_base_path)

    async def confirm_lookup(self, lookup: LookupRequest) -> NormalizedResult:
        reply = await self._lookup(lookup)
        return normalize_confirmation_reply(reply)

    async def _lookup(self, lookup: LookupRequest) -> UpstreamReply:
        lookup = await self._ensure_challenge_token(lookup)
        prepared = self.translator.build_lookup(lookup)
        if self.challenge_verifier is not None:
            await self.challenge_verifier.verify(lookup.challenge_token.strip())
        LOGGER.info(
            "Looking up document by key type=%s method=%s",
            lookup.document_type.value,
            prepared.method,
        )
        return await self._send(prepared)

    async def _ensure_challenge_token(self, lookup: LookupRequest) -> LookupRequest:
        if (lookup.challenge_token or "").strip() or self.challenge_solver is None:
            return lookup
        access_key = validate_access_key(lookup.access_key)
        token = await self.challenge_solver.solve(self.challenge_page_url, access_key)
        if not token:
            raise InvalidInputError("Challenge token is required")
        return LookupRequest(
            access_key=access_key,
            document_type=lookup.document_type,
            challenge_token=token,
        )

    async def _send(self, prepared) -> UpstreamReply:
        reply = await self.upstream_client.send(prepared)
        LOGGER.info(
            "Document provider replied operation=%s status=%s body=%s",
            prepared.operation.value,
            reply.status_code,
            reply.body[:_BODY_PREVIEW_CHARS],
        )
        if not reply.is_success:
            LOGGER.error(
                "Document provider error operation=%s status=%s",
                prepared.operation.value,
                reply.status_code,
            )
        return reply
