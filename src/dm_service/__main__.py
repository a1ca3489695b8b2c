"""Entrypoint: python -m dm_service"""
from __future__ import annotations

import uvicorn

from dm_service.config import settings


def main() -> None:
    uvicorn.run(
        "dm_service.app:create_app",
        factory=True,
        host=settings.API_HOST,
        port=settings.API_PORT,
        log_level=settings.LOG_LEVEL.lower(),
        proxy_headers=True,
    )


if __name__ == "__main__":
    main()
