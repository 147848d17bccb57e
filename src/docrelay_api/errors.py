from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any


@dataclass
class ApiError(Exception):
    code: str
    message: str
    status_code: int
    details: Any = field(default=None)

    def __post_init__(self) -> None:
        Exception.__init__(self, self.message)


class InvalidInputError(ApiError):
    def __init__(self, message: str = "Invalid request", details: Any = None) -> None:
        super().__init__(
            code="INVALID_INPUT", message=message, status_code=400, details=details
        )


class UpstreamHtmlError(ApiError):
    def __init__(
        self,
        message: str = "upstream returned an HTML error page",
        details: Any = None,
    ) -> None:
        super().__init__(
            code="UPSTREAM_HTML_ERROR",
            message=message,
            status_code=502,
            details=details,
        )


class UpstreamError(ApiError):
    """Non-2xx, non-HTML reply; the upstream status is relayed verbatim."""

    def __init__(self, message: str, *, upstream_status: int, details: Any = None) -> None:
        super().__init__(
            code="UPSTREAM_ERROR",
            message=message,
            status_code=upstream_status if 400 <= upstream_status < 600 else 502,
            details=details,
        )
        self.upstream_status = upstream_status


class UpstreamMalformedError(ApiError):
    def __init__(
        self,
        message: str = "upstream response is not valid JSON",
        details: Any = None,
    ) -> None:
        super().__init__(
            code="UPSTREAM_MALFORMED", message=message, status_code=500, details=details
        )


class UpstreamUnreachableError(ApiError):
    def __init__(self, message: str = "upstream is unreachable", details: Any = None) -> None:
        super().__init__(
            code="UPSTREAM_UNREACHABLE",
            message=message,
            status_code=500,
            details=details,
        )


class ChallengeUnsolvedError(ApiError):
    def __init__(self, message: str = "challenge could not be solved") -> None:
        super().__init__(code="CHALLENGE_UNSOLVED", message=message, status_code=502)


class EmailDeliveryError(ApiError):
    def __init__(self, message: str = "email delivery failed", details: Any = None) -> None:
        super().__init__(
            code="EMAIL_DELIVERY_FAILED",
            message=message,
            status_code=500,
            details=details,
        )


class InternalError(ApiError):
    def __init__(self, message: str = "Unexpected server error") -> None:
        super().__init__(code="INTERNAL_ERROR", message=message, status_code=500)
