from __future__ import annotations

from collections.abc import Callable
from dataclasses import replace

import pytest

from docrelay_api.settings import Settings

PROVIDER_URL = "https://provider.test/comandos.aspx"

_BASE_SETTINGS = Settings(
    app_name="docrelay API",
    environment="test",
    host="127.0.0.1",
    port=3001,
    cors_allowed_origins=("http://localhost:3000",),
    document_provider_url=PROVIDER_URL,
    document_provider_lookup_command="consultarchave",
    lookup_request_method="POST",
    upstream_timeout_seconds=5.0,
    upload_max_bytes=1024,
    relay_base_path="/download-artifact",
    challenge_verify_url="https://verify.test/siteverify",
    challenge_secret=None,
    challenge_page_url=PROVIDER_URL,
    smtp_host=None,
    smtp_port=587,
    smtp_username=None,
    smtp_password=None,
    smtp_use_tls=True,
    contact_recipient="support@example.test",
    contact_sender="noreply@example.test",
    contact_max_attachments=2,
)


@pytest.fixture
def make_settings() -> Callable[..., Settings]:
    def _make(**overrides) -> Settings:
        return replace(_BASE_SETTINGS, **overrides)

    return _make
