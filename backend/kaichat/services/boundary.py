"""
Error boundary for externally callable operations.
"""

import functools
from typing import Awaitable, Callable, TypeVar

from kaichat.core.exceptions import InternalError, KaiError
from kaichat.core.logger import logger

T = TypeVar("T")


def callable_boundary(
    operation: str, failure_message: str
) -> Callable[[Callable[..., Awaitable[T]]], Callable[..., Awaitable[T]]]:
    """
    Wrap an async operation so only KaiError subclasses escape it.

    Already classified errors pass through unchanged; anything else is logged
    and replaced by an InternalError with ``failure_message``.
    """

    def decorator(func: Callable[..., Awaitable[T]]) -> Callable[..., Awaitable[T]]:
        @functools.wraps(func)
        async def wrapper(*args, **kwargs) -> T:
            try:
                return await func(*args, **kwargs)
            except KaiError:
                raise
            except Exception as e:
                logger.exception(f"Error in {operation}: {e}")
                raise InternalError(failure_message) from e

        return wrapper

    return decorator
