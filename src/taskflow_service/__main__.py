"""Entry point for the TaskFlow service.

Usage::

    CONFIG_PATH=config.yaml python -m taskflow_service
"""

from __future__ import annotations

import uvicorn

from taskflow_service.app import create_app
from taskflow_service.config import get_settings


def main() -> None:
    """Run the service with uvicorn."""
    settings = get_settings()
    uvicorn.run(
        create_app(),
        host=settings.server.host,
        port=settings.server.port,
        log_level=settings.server.log_level,
    )


if __name__ == "__main__":
    main()
