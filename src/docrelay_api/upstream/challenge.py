from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Protocol

from docrelay_api.errors import (
    InvalidInputError,
    UpstreamError,
    UpstreamMalformedError,
)
from docrelay_api.upstream.client import UpstreamClient

LOGGER = logging.getLogger(__name__)


class ChallengeSolver(Protocol):
    """Obtains a challenge token without the user, e.g. by driving a browser.

    Implementations raise ``ChallengeUnsolvedError`` when no token can be produced.
    """

    async def solve(self, page_url: str, access_key: str) -> str:
        ...


@dataclass
class ChallengeVerifier:
    upstream_client: UpstreamClient
    verify_url: str
    secret: str | None = None

    @property
    def enabled(self) -> bool:
        return bool(self.secret)

    async def verify(self, token: str) -> None:
        if not self.enabled:
            return

        response = await self.upstream_client.post_form(
            self.verify_url,
            data={"secret": self.secret or "", "response": token},
        )
        try:
            payload = response.json()
        except ValueError:
            payload = None

        if not response.is_success:
            LOGGER.warning(
                "Challenge verification returned status=%s", response.status_code
            )
            raise UpstreamError(
                f"challenge verification failed: {response.status_code} {response.reason_phrase}",
                upstream_status=response.status_code,
                details=response.text,
            )
        if not isinstance(payload, dict):
            raise UpstreamMalformedError(
                "challenge verification response is not valid JSON"
            )
        if payload.get("success") is not True:
            raise InvalidInputError(
                "challenge token was rejected",
                details=payload.get("error-codes"),
            )
