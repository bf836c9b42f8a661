"""Notifiers without external dependencies.

* ``LogNotifier`` - writes alerts to the log (the default backend).
* ``CallbackNotifier`` - hands alerts to a user-provided callable.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable
from typing import Any

from greenhouse_bridge.notify.base import NotificationResult, Notifier

__all__ = ["CallbackNotifier", "LogNotifier"]

logger = logging.getLogger("greenhouse_bridge.notify")


class LogNotifier(Notifier):
    """Log every alert at ``WARNING`` level."""

    async def send_notification(self, title: str, body: str) -> NotificationResult:
        logger.warning("ALERT %s: %s", title, body)
        return NotificationResult(success_count=1)


class CallbackNotifier(Notifier):
    """Wraps a user-supplied function as a notifier.

    The callable receives ``(title, body)``.  It can be a regular function,
    a coroutine function, or a lambda.
    """

    def __init__(self, callback: Callable[[str, str], Any]) -> None:
        self._callback = callback
        self._is_async = inspect.iscoroutinefunction(callback)

    async def send_notification(self, title: str, body: str) -> NotificationResult:
        if self._is_async:
            await self._callback(title, body)
        else:
            # Run sync callback in executor to avoid blocking the event loop
            loop = asyncio.get_running_loop()
            await loop.run_in_executor(None, self._callback, title, body)
        return NotificationResult(success_count=1)
