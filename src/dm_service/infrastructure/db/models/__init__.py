"""Import all models so ``Base.metadata`` sees every table."""
from dm_service.infrastructure.db.models.conversation import ConversationModel
from dm_service.infrastructure.db.models.directory import ContextTitleModel, ParticipantProfileModel
from dm_service.infrastructure.db.models.message import MessageModel
from dm_service.infrastructure.db.models.outbox import OutboxMessageModel
from dm_service.infrastructure.db.models.read_state import ReadStateModel

__all__ = [
    "ContextTitleModel",
    "ConversationModel",
    "MessageModel",
    "OutboxMessageModel",
    "ParticipantProfileModel",
    "ReadStateModel",
]
