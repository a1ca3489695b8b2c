"""Translate driver/ORM failures into ``PersistenceError`` at the repository boundary."""
from __future__ import annotations

import functools
import logging
from typing import Awaitable, Callable, ParamSpec, TypeVar

from sqlalchemy.exc import SQLAlchemyError

from dm_service.application.exceptions import PersistenceError

logger = logging.getLogger(__name__)

P = ParamSpec("P")
R = TypeVar("R")


def db_errors(func: Callable[P, Awaitable[R]]) -> Callable[P, Awaitable[R]]:
    @functools.wraps(func)
    async def wrapper(*args: P.args, **kwargs: P.kwargs) -> R:
        try:
            return await func(*args, **kwargs)
        except (SQLAlchemyError, OSError, TimeoutError) as exc:
            logger.warning("Store call %s failed: %s", func.__qualname__, exc)
            raise PersistenceError("Store unavailable, try again later") from exc

    return wrapper
