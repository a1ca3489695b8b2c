from __future__ import annotations

from typing import Protocol


class NotificationTransport(Protocol):
    """Out-of-band delivery channel (e-mail).

    Implementations raise ``NotificationDeliveryError`` on failure.
    """

    async def send(self, recipient_contact: str, subject: str, body: str) -> None: ...
