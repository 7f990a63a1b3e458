"""
Async Utilities
===============

Bridge from synchronous Flask views into the async gateway. Every call gets
its own event loop, so no loop (and no aiohttp session) outlives a request.
"""

import asyncio
import logging
import threading
from typing import Any, Coroutine, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar('T')


def run_async_safely(coro: Coroutine[Any, Any, T]) -> T:
    """Run ``coro`` to completion from synchronous code.

    Uses a fresh event loop in the current thread, or in a helper thread
    when a loop is already running here (e.g. under an async test runner).

    Raises:
        Any exception raised by the coroutine
    """
    if not is_event_loop_running():
        return asyncio.run(coro)

    logger.debug("Running async code via separate thread (event loop already running)")
    return _run_in_new_thread(coro)


def _run_in_new_thread(coro: Coroutine[Any, Any, T]) -> T:
    result = None
    exception = None

    def _thread_runner():
        nonlocal result, exception
        try:
            result = asyncio.run(coro)
        except Exception as e:
            exception = e

    thread = threading.Thread(target=_thread_runner, daemon=True)
    thread.start()
    thread.join()

    if exception is not None:
        raise exception
    return result


def is_event_loop_running() -> bool:
    try:
        asyncio.get_running_loop()
        return True
    except RuntimeError:
        return False


__all__ = [
    'run_async_safely',
    'is_event_loop_running',
]
