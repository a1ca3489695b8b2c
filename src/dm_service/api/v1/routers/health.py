from __future__ import annotations

import asyncio
import logging
from typing import Awaitable, Callable

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from sqlalchemy import text

from dm_service.infrastructure.db.session import AsyncSessionLocal

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])

PROBE_TIMEOUT_SECONDS = 2.0


@router.get("/healthz")
async def healthz() -> dict[str, str]:
    return {"status": "ok"}


@router.get("/readyz")
async def readyz(request: Request) -> JSONResponse:
    """Ready when the message store and the presence cache both answer in time."""

    async def _postgres() -> None:
        async with AsyncSessionLocal() as session:
            await session.execute(text("SELECT 1"))

    async def _redis() -> None:
        await request.app.state.redis.ping()

    checks = {
        "postgres": await _probe("postgres", _postgres),
        "redis": await _probe("redis", _redis),
    }
    ready = all(v == "ok" for v in checks.values())
    return JSONResponse(
        status_code=200 if ready else 503,
        content={"status": "ready" if ready else "unavailable", "checks": checks},
    )


async def _probe(name: str, check: Callable[[], Awaitable[None]]) -> str:
    try:
        async with asyncio.timeout(PROBE_TIMEOUT_SECONDS):
            await check()
    except Exception as exc:  # noqa: BLE001
        logger.warning("Readiness probe %s failed: %s", name, exc)
        return f"error: {str(exc) or type(exc).__name__}"
    return "ok"
