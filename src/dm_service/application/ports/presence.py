from __future__ import annotations

from typing import Protocol


class PresenceTracker(Protocol):
    async def touch(self, participant_id: str) -> None:
        """Mark the participant as online for the configured TTL."""
        ...

    async def is_online(self, participant_id: str) -> bool: ...
