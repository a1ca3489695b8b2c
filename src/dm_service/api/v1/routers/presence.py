from __future__ import annotations

import logging

from fastapi import APIRouter, Response, status

from dm_service.api.deps import CurrentPrincipal, PresenceDep

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/dm/presence", tags=["presence"])


@router.post("/heartbeat", status_code=status.HTTP_204_NO_CONTENT)
async def heartbeat(principal: CurrentPrincipal, presence: PresenceDep) -> Response:
    """Refresh the caller's online marker; offline recipients get e-mail notifications."""
    try:
        await presence.touch(principal.participant_id)
    except Exception:
        # Presence is advisory; a Redis outage only means more e-mails.
        logger.warning("Presence update failed for %s", principal.participant_id, exc_info=True)
    return Response(status_code=status.HTTP_204_NO_CONTENT)
