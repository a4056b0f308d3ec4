"""Command registration and timing.

Every command is a plain async function taking the ``Hivemind`` core as
its first argument. ``command`` records it in ``COMMANDS`` under its name
and logs each call with its duration, never its arguments or result.
"""

from __future__ import annotations

import functools
import logging
import time
from typing import Any, Awaitable, Callable, TypeVar

from hivemind.security import sanitize_log_entry

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Awaitable[Any]])

COMMANDS: dict[str, Callable[..., Awaitable[Any]]] = {}


def command(func: F) -> F:
    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> Any:
        started = time.perf_counter()
        success = False
        try:
            result = await func(*args, **kwargs)
            success = True
            return result
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            logger.info(sanitize_log_entry(func.__name__, elapsed_ms, success))

    COMMANDS[func.__name__] = wrapper
    return wrapper  # type: ignore[return-value]
