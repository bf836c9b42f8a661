"""Notification abstraction.

A ``Notifier`` fans an alert out to every registered mobile device.  The
delivery mechanics belong to the backend; the bridge only needs
``send_notification(title, body)``.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from pydantic import BaseModel

__all__ = ["NotificationResult", "Notifier"]


class NotificationResult(BaseModel):
    """Outcome of one fan-out.

    Attributes:
        success_count: Devices the alert was handed to.
        failure_count: Devices whose delivery failed.
    """

    success_count: int = 0
    failure_count: int = 0

    @property
    def total(self) -> int:
        return self.success_count + self.failure_count


class Notifier(ABC):
    """Abstract base class for notification backends."""

    async def connect(self) -> None:
        """Open resources.  Most backends need none."""

    @abstractmethod
    async def send_notification(self, title: str, body: str) -> NotificationResult:
        """Deliver *title* / *body* to every registered device.

        A failure for one device must not stop delivery to the others.
        """

    async def close(self) -> None:
        """Release resources."""
