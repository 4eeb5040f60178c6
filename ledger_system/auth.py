# ledger_system/auth.py
"""
Caller context - the verified identity every service call carries.
"""
import functools
import logging
from dataclasses import dataclass
from typing import Callable

from ledger_system.config.statuses import Role
from ledger_system.errors import PermissionDenied

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallerContext:
    userId: str
    role: Role = Role.USER

    @property
    def isAdmin(self) -> bool:
        return self.role == Role.ADMIN


def admin_only(handler: Callable = None, *, action: str = None):
    """
    Декоратор для методов сервисов, доступных только администратору.

    The decorated coroutine must take the CallerContext as its first
    argument after self. Raises PermissionDenied before any database access.
    """

    def decorator(handler):
        actionName = action or handler.__name__

        @functools.wraps(handler)
        async def wrapper(self, caller: CallerContext, *args, **kwargs):
            if caller is None or not caller.isAdmin:
                userId = caller.userId if caller else None
                logger.warning(f"Denied {actionName} for user {userId}")
                raise PermissionDenied(userId, actionName)
            return await handler(self, caller, *args, **kwargs)

        return wrapper

    # Позволяет использовать декоратор как с параметрами, так и без
    if handler is None:
        return decorator
    return decorator(handler)
