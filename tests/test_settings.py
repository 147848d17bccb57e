from __future__ import annotations

import pytest

from docrelay_api.settings import is_hardened_environment, load_settings

_MANAGED_ENV = (
    "ENVIRONMENT",
    "API_APP_NAME",
    "CORS_ALLOWED_ORIGINS",
    "ALLOWED_ORIGIN",
    "HOST",
    "PORT",
    "DOCUMENT_PROVIDER_URL",
    "DOCUMENT_PROVIDER_LOOKUP_COMMAND",
    "LOOKUP_REQUEST_METHOD",
    "UPSTREAM_TIMEOUT_SECONDS",
    "UPLOAD_MAX_BYTES",
    "RELAY_BASE_PATH",
    "CHALLENGE_VERIFY_URL",
    "CHALLENGE_SECRET",
    "CHALLENGE_PAGE_URL",
    "SMTP_HOST",
    "SMTP_PORT",
    "SMTP_USERNAME",
    "SMTP_PASSWORD",
    "SMTP_USE_TLS",
    "CONTACT_RECIPIENT",
    "CONTACT_SENDER",
    "CONTACT_MAX_ATTACHMENTS",
)


@pytest.fixture(autouse=True)
def _clean_env(monkeypatch: pytest.MonkeyPatch) -> None:
    for name in _MANAGED_ENV:
        monkeypatch.delenv(name, raising=False)


def _set_hardened_env(monkeypatch: pytest.MonkeyPatch, environment: str) -> None:
    monkeypatch.setenv("ENVIRONMENT", environment)
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://app.example.test")
    monkeypatch.setenv("CHALLENGE_SECRET", "secret")


def test_load_settings_defaults() -> None:
    settings = load_settings()

    assert settings.environment == "development"
    assert settings.host == "0.0.0.0"
    assert settings.port == 3001
    assert settings.cors_allowed_origins == ("http://localhost:3000",)
    assert settings.document_provider_url == "https://www.fsist.com.br/comandos.aspx"
    assert settings.challenge_page_url == settings.document_provider_url
    assert settings.lookup_request_method == "POST"
    assert settings.upstream_timeout_seconds == pytest.approx(30.0)
    assert settings.upload_max_bytes == 10 * 1024 * 1024
    assert settings.relay_base_path == "/download-artifact"
    assert settings.challenge_secret is None
    assert settings.smtp_host is None
    assert settings.smtp_use_tls is True
    assert settings.contact_max_attachments == 5


def test_load_settings_reads_overrides(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PORT", "8080")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://a.test, https://b.test ,")
    monkeypatch.setenv("LOOKUP_REQUEST_METHOD", "get")
    monkeypatch.setenv("UPSTREAM_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("SMTP_USERNAME", "mailer@example.test")
    monkeypatch.setenv("SMTP_USE_TLS", "false")

    settings = load_settings()

    assert settings.port == 8080
    assert settings.cors_allowed_origins == ("https://a.test", "https://b.test")
    assert settings.lookup_request_method == "GET"
    assert settings.upstream_timeout_seconds == pytest.approx(12.5)
    assert settings.contact_sender == "mailer@example.test"
    assert settings.smtp_use_tls is False


def test_load_settings_accepts_single_origin_alias(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGIN", "https://legacy.example.test")

    assert load_settings().cors_allowed_origins == ("https://legacy.example.test",)


def test_cors_allowed_origins_takes_precedence_over_alias(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("ALLOWED_ORIGIN", "https://legacy.example.test")
    monkeypatch.setenv("CORS_ALLOWED_ORIGINS", "https://new.example.test")

    assert load_settings().cors_allowed_origins == ("https://new.example.test",)


@pytest.mark.parametrize(
    ("name", "value", "message"),
    [
        ("PORT", "abc", "PORT must be an integer"),
        ("PORT", "70000", "PORT must be between 1 and 65535"),
        ("PORT", "0", "PORT must be between 1 and 65535"),
        ("LOOKUP_REQUEST_METHOD", "PUT", "LOOKUP_REQUEST_METHOD must be one of"),
        ("UPSTREAM_TIMEOUT_SECONDS", "0", "UPSTREAM_TIMEOUT_SECONDS must be > 0"),
        ("UPSTREAM_TIMEOUT_SECONDS", "soon", "must be a numeric value"),
        ("UPLOAD_MAX_BYTES", "0", "UPLOAD_MAX_BYTES must be >= 1"),
        ("CONTACT_MAX_ATTACHMENTS", "-1", "CONTACT_MAX_ATTACHMENTS must be >= 0"),
    ],
)
def test_load_settings_rejects_invalid_values(
    monkeypatch: pytest.MonkeyPatch,
    name: str,
    value: str,
    message: str,
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ValueError, match=message):
        load_settings()


@pytest.mark.parametrize("environment", ["production", "prod", "ci", "prod-eu"])
def test_hardened_environment_requires_explicit_origins(
    monkeypatch: pytest.MonkeyPatch,
    environment: str,
) -> None:
    _set_hardened_env(monkeypatch, environment)
    monkeypatch.delenv("CORS_ALLOWED_ORIGINS", raising=False)

    with pytest.raises(ValueError, match="CORS_ALLOWED_ORIGINS must be explicitly set"):
        load_settings()


@pytest.mark.parametrize("environment", ["production", "ci"])
def test_hardened_environment_requires_challenge_secret(
    monkeypatch: pytest.MonkeyPatch,
    environment: str,
) -> None:
    _set_hardened_env(monkeypatch, environment)
    monkeypatch.delenv("CHALLENGE_SECRET", raising=False)

    with pytest.raises(ValueError, match="CHALLENGE_SECRET is required"):
        load_settings()


def test_hardened_environment_loads_when_configured(monkeypatch: pytest.MonkeyPatch) -> None:
    _set_hardened_env(monkeypatch, "production")

    settings = load_settings()

    assert settings.cors_allowed_origins == ("https://app.example.test",)
    assert settings.challenge_secret == "secret"


@pytest.mark.parametrize(
    ("environment", "expected"),
    [
        ("production", True),
        ("PROD", True),
        ("ci_nightly", True),
        ("development", False),
        ("staging", False),
        ("preprod", False),
        ("", False),
    ],
)
def test_is_hardened_environment(environment: str, expected: bool) -> None:
    assert is_hardened_environment(environment) is expected
