from __future__ import annotations

from typing import Callable

from dm_service.application.uow import UnitOfWork

# Opens a fresh unit of work with its own session. A session serves one query
# at a time, so fan-out work opens one unit of work per task.
UoWFactory = Callable[[], UnitOfWork]
