from __future__ import annotations


class AppError(Exception):
    """Base application error."""

    def __init__(self, detail: str = "") -> None:
        self.detail = detail
        super().__init__(detail)


class NotFoundError(AppError):
    pass


class NotAParticipantError(AppError):
    pass


class ValidationError(AppError):
    pass


class PersistenceError(AppError):
    """Store unavailable, timed out, or a write could not be completed."""


class NotificationDeliveryError(AppError):
    """Raised by notification transports; never propagated to senders."""
