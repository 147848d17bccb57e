from __future__ import annotations

import uvicorn

from docrelay_api.logging_setup import configure_logging
from docrelay_api.settings import load_settings


def main() -> None:
    configure_logging()
    settings = load_settings()
    uvicorn.run(
        "docrelay_api.main:create_app",
        factory=True,
        host=settings.host,
        port=settings.port,
        log_config=None,
    )


if __name__ == "__main__":
    main()
