from __future__ import annotations

from typing import Protocol

from dm_service.application.dto.principal import Principal


class TokenVerifier(Protocol):
    async def verify(self, token: str) -> Principal:
        """Resolve a bearer token to the participant it was issued to; raise if invalid."""
        ...
