from __future__ import annotations

from dataclasses import dataclass
import os
import re

_HARDENED_ENVIRONMENT_PATTERN = re.compile(r"^(production|prod|ci)(?:[-_].+)?$")
_DEFAULT_DOCUMENT_PROVIDER_URL = "https://www.fsist.com.br/comandos.aspx"
_DEFAULT_CHALLENGE_VERIFY_URL = "https://www.google.com/recaptcha/api/siteverify"
_LOOKUP_REQUEST_METHODS = {"GET", "POST"}


@dataclass(frozen=True)
class Settings:
    app_name: str
    environment: str
    host: str
    port: int
    cors_allowed_origins: tuple[str, ...]
    document_provider_url: str
    document_provider_lookup_command: str
    lookup_request_method: str
    upstream_timeout_seconds: float
    upload_max_bytes: int
    relay_base_path: str
    challenge_verify_url: str
    challenge_secret: str | None
    challenge_page_url: str
    smtp_host: str | None
    smtp_port: int
    smtp_username: str | None
    smtp_password: str | None
    smtp_use_tls: bool
    contact_recipient: str | None
    contact_sender: str | None
    contact_max_attachments: int


def parse_str_env(name: str, default: str | None = None) -> str | None:
    raw = os.getenv(name)
    if raw is None:
        return default
    normalized = raw.strip()
    if not normalized:
        return default
    return normalized


def parse_float_env(name: str, default: float) -> float:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return float(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be a numeric value, got {raw!r}") from exc


def parse_int_env(name: str, default: int) -> int:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    try:
        return int(raw)
    except ValueError as exc:
        raise ValueError(f"{name} must be an integer value, got {raw!r}") from exc


def parse_bool_env(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def parse_csv_env(name: str, default: tuple[str, ...]) -> tuple[str, ...]:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    values = tuple(item.strip() for item in raw.split(",") if item.strip())
    if not values:
        return default
    return values


def is_hardened_environment(environment: str) -> bool:
    normalized = environment.strip().lower()
    if not normalized:
        return False
    return _HARDENED_ENVIRONMENT_PATTERN.fullmatch(normalized) is not None


def load_settings() -> Settings:
    environment = parse_str_env("ENVIRONMENT", "development") or "development"
    hardened_environment = is_hardened_environment(environment)

    # ALLOWED_ORIGIN is the single-origin name older deployments used.
    raw_origins_name = (
        "CORS_ALLOWED_ORIGINS"
        if parse_str_env("CORS_ALLOWED_ORIGINS")
        else "ALLOWED_ORIGIN"
    )
    origins_explicit = parse_str_env(raw_origins_name) is not None
    cors_allowed_origins = parse_csv_env(raw_origins_name, ("http://localhost:3000",))

    challenge_secret = parse_str_env("CHALLENGE_SECRET")
    if hardened_environment and not origins_explicit:
        raise ValueError(
            "CORS_ALLOWED_ORIGINS must be explicitly set when ENVIRONMENT is production/prod/ci"
        )
    if hardened_environment and not challenge_secret:
        raise ValueError(
            "CHALLENGE_SECRET is required when ENVIRONMENT is production/prod/ci"
        )

    port = parse_int_env("PORT", 3001)
    if not 0 < port < 65536:
        raise ValueError(f"PORT must be between 1 and 65535, got {port}")

    lookup_request_method = (
        parse_str_env("LOOKUP_REQUEST_METHOD", "POST") or "POST"
    ).upper()
    if lookup_request_method not in _LOOKUP_REQUEST_METHODS:
        raise ValueError("LOOKUP_REQUEST_METHOD must be one of: GET, POST")

    upstream_timeout_seconds = parse_float_env("UPSTREAM_TIMEOUT_SECONDS", 30.0)
    if upstream_timeout_seconds <= 0:
        raise ValueError("UPSTREAM_TIMEOUT_SECONDS must be > 0")
    upload_max_bytes = parse_int_env("UPLOAD_MAX_BYTES", 10 * 1024 * 1024)
    if upload_max_bytes < 1:
        raise ValueError("UPLOAD_MAX_BYTES must be >= 1")
    contact_max_attachments = parse_int_env("CONTACT_MAX_ATTACHMENTS", 5)
    if contact_max_attachments < 0:
        raise ValueError("CONTACT_MAX_ATTACHMENTS must be >= 0")

    document_provider_url = (
        parse_str_env("DOCUMENT_PROVIDER_URL", _DEFAULT_DOCUMENT_PROVIDER_URL)
        or _DEFAULT_DOCUMENT_PROVIDER_URL
    )
    smtp_username = parse_str_env("SMTP_USERNAME")

    return Settings(
        app_name=parse_str_env("API_APP_NAME", "docrelay API") or "docrelay API",
        environment=environment,
        host=parse_str_env("HOST", "0.0.0.0") or "0.0.0.0",
        port=port,
        cors_allowed_origins=cors_allowed_origins,
        document_provider_url=document_provider_url,
        document_provider_lookup_command=parse_str_env(
            "DOCUMENT_PROVIDER_LOOKUP_COMMAND", "consultarchave"
        )
        or "consultarchave",
        lookup_request_method=lookup_request_method,
        upstream_timeout_seconds=upstream_timeout_seconds,
        upload_max_bytes=upload_max_bytes,
        relay_base_path=parse_str_env("RELAY_BASE_PATH", "/download-artifact")
        or "/download-artifact",
        challenge_verify_url=parse_str_env(
            "CHALLENGE_VERIFY_URL", _DEFAULT_CHALLENGE_VERIFY_URL
        )
        or _DEFAULT_CHALLENGE_VERIFY_URL,
        challenge_secret=challenge_secret,
        challenge_page_url=parse_str_env("CHALLENGE_PAGE_URL", document_provider_url)
        or document_provider_url,
        smtp_host=parse_str_env("SMTP_HOST"),
        smtp_port=parse_int_env("SMTP_PORT", 587),
        smtp_username=smtp_username,
        smtp_password=parse_str_env("SMTP_PASSWORD"),
        smtp_use_tls=parse_bool_env("SMTP_USE_TLS", True),
        contact_recipient=parse_str_env("CONTACT_RECIPIENT"),
        contact_sender=parse_str_env("CONTACT_SENDER", smtp_username),
        contact_max_attachments=contact_max_attachments,
    )
