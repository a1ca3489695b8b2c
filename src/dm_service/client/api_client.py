"""HTTP client for the direct-messaging API."""
from __future__ import annotations

import logging
import uuid
from typing import Any
from uuid import UUID

import httpx

from dm_service.api.v1.schemas.conversation import (
    ConversationResponse,
    ConversationViewResponse,
)
from dm_service.api.v1.schemas.message import MessageResponse
from dm_service.client.staging import SendFailure, SendStaging

logger = logging.getLogger(__name__)

API_PREFIX = "/api/v1/dm"


class MessagingApiError(Exception):
    def __init__(self, status_code: int, detail: Any) -> None:
        self.status_code = status_code
        self.detail = detail
        super().__init__(f"Messaging API error ({status_code}): {detail}")


class MessagingClient:
    """Thin async wrapper over the messaging endpoints for one signed-in participant."""

    def __init__(
        self,
        base_url: str,
        token: str,
        *,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self._http = httpx.AsyncClient(
            base_url=base_url.rstrip("/") + API_PREFIX,
            headers={"Authorization": f"Bearer {token}"},
            timeout=timeout,
            transport=transport,
        )

    async def __aenter__(self) -> MessagingClient:
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._http.aclose()

    async def find_or_create_conversation(
        self,
        other_participant_id: str,
        context_ref: str | None = None,
    ) -> ConversationResponse:
        data = await self._request(
            "POST",
            "/conversations",
            json={"other_participant_id": other_participant_id, "context_ref": context_ref},
        )
        return ConversationResponse.model_validate(data)

    async def list_conversations(self, search: str | None = None) -> list[ConversationViewResponse]:
        params = {"search": search} if search else None
        data = await self._request("GET", "/conversations", params=params)
        return [ConversationViewResponse.model_validate(item) for item in data]

    async def list_messages(self, conversation_id: UUID) -> list[MessageResponse]:
        data = await self._request("GET", f"/conversations/{conversation_id}/messages")
        return [MessageResponse.model_validate(item) for item in data]

    async def send_message(
        self,
        conversation_id: UUID,
        content: str,
        staging: SendStaging | None = None,
        *,
        client_msg_id: UUID | None = None,
    ) -> MessageResponse:
        """Send a message, optionally staging it for optimistic rendering.

        If the send ends any other way than with a confirmed message, the
        staged entry is moved to ``staging.failures`` and the error is
        re-raised to the caller.
        """
        if staging is None:
            return await self._post_message(conversation_id, content, client_msg_id or uuid.uuid4())

        staged = staging.stage(content, temp_id=client_msg_id)
        try:
            message = await self._post_message(conversation_id, content, staged.client_msg_id)
        except BaseException as exc:
            # Any outcome other than a confirmed message, cancellation included.
            staging.fail(staged.temp_id, str(exc) or type(exc).__name__)
            logger.warning("Send %s failed: %s", staged.temp_id, exc)
            raise
        return staging.confirm(staged.temp_id, message)

    async def retry_send(self, failure: SendFailure, staging: SendStaging) -> MessageResponse:
        staging.restage(failure)
        try:
            message = await self._post_message(
                failure.conversation_id, failure.content, failure.temp_id,
            )
        except BaseException as exc:
            staging.fail(failure.temp_id, str(exc) or type(exc).__name__)
            raise
        return staging.confirm(failure.temp_id, message)

    async def refresh(self, staging: SendStaging) -> None:
        staging.replace_history(await self.list_messages(staging.conversation_id))

    async def mark_read(self, conversation_id: UUID) -> None:
        await self._request("POST", f"/conversations/{conversation_id}/read")

    async def unread_count(self, conversation_id: UUID) -> int:
        data = await self._request("GET", f"/conversations/{conversation_id}/unread")
        return int(data["unread_count"])

    async def heartbeat(self) -> None:
        await self._request("POST", "/presence/heartbeat")

    async def _post_message(
        self,
        conversation_id: UUID,
        content: str,
        client_msg_id: UUID,
    ) -> MessageResponse:
        data = await self._request(
            "POST",
            f"/conversations/{conversation_id}/messages",
            json={"client_msg_id": str(client_msg_id), "content": content},
        )
        return MessageResponse.model_validate(data)

    async def _request(self, method: str, path: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, path, **kwargs)
        if response.status_code >= 400:
            detail: Any = response.text
            try:
                detail = response.json().get("detail", detail)
            except (ValueError, AttributeError):
                pass
            raise MessagingApiError(response.status_code, detail)
        if response.status_code == 204 or not response.content:
            return None
        return response.json()
