"""Webhook notifier - POSTs one JSON message per registered device token
to a push gateway.

Requires the ``notify`` extra::

    pip install greenhouse-bridge[notify]
"""

from __future__ import annotations

import json
import logging

from greenhouse_bridge.errors import NotificationError
from greenhouse_bridge.notify.base import NotificationResult, Notifier

__all__ = ["WebhookNotifier"]

logger = logging.getLogger("greenhouse_bridge.notify.webhook")

try:
    import httpx

    HTTPX_AVAILABLE = True
except ImportError:
    HTTPX_AVAILABLE = False


class WebhookNotifier(Notifier):
    """Send alerts to a push gateway over HTTP.

    Each device token gets its own request body::

        {"token": "...", "notification": {"title": "...", "body": "..."},
         "android": {"priority": "high"}, "apns": {"headers": {"apns-priority": "10"}}}

    Parameters:
        url: Gateway endpoint (must accept ``POST``).
        tokens: Registered device tokens.
        headers: Extra HTTP headers (e.g. ``{"Authorization": "Bearer …"}``).
        timeout_s: Per-request timeout in seconds.
    """

    def __init__(
        self,
        *,
        url: str,
        tokens: list[str] | None = None,
        headers: dict[str, str] | None = None,
        timeout_s: float = 10.0,
    ) -> None:
        if not HTTPX_AVAILABLE:
            raise ImportError(
                "httpx is required for WebhookNotifier.  Install with: pip install greenhouse-bridge[notify]"
            )
        self._url = url
        self._tokens = list(tokens or [])
        self._headers = {"Content-Type": "application/json", **(headers or {})}
        self._timeout = timeout_s
        self._client: httpx.AsyncClient | None = None

    @property
    def tokens(self) -> list[str]:
        return list(self._tokens)

    def register_token(self, token: str) -> None:
        if token not in self._tokens:
            self._tokens.append(token)

    async def connect(self) -> None:
        self._client = httpx.AsyncClient(
            timeout=httpx.Timeout(self._timeout),
            headers=self._headers,
        )
        logger.info("WebhookNotifier ready - target: %s (%d devices)", self._url, len(self._tokens))

    async def send_notification(self, title: str, body: str) -> NotificationResult:
        if self._client is None:
            raise NotificationError("WebhookNotifier is not connected")

        result = NotificationResult()
        if not self._tokens:
            logger.info("No registered devices - notification '%s' not sent", title)
            return result

        for token in self._tokens:
            payload = json.dumps(
                {
                    "token": token,
                    "notification": {"title": title, "body": body},
                    "android": {"priority": "high", "notification": {"sound": "default", "channelId": "default"}},
                    "apns": {"headers": {"apns-priority": "10"}, "payload": {"aps": {"sound": "default"}}},
                }
            )
            try:
                resp = await self._client.post(self._url, content=payload)
                resp.raise_for_status()
            except Exception as exc:
                result.failure_count += 1
                logger.warning("Notification to device %s… failed: %s", token[:8], exc)
                continue
            result.success_count += 1

        logger.debug("POST %s - %d sent, %d failed", self._url, result.success_count, result.failure_count)
        return result

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None
            logger.info("WebhookNotifier closed")
