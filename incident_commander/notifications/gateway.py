"""Outbound messaging gateway: delivers channel posts and direct messages."""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Optional

import httpx

from ..utils.logging import get_logger

logger = get_logger("notifications.gateway")


class DeliveryKind(str, Enum):
    CHANNEL_POST = "channel_post"
    DIRECT_MESSAGE = "direct_message"


@dataclass(frozen=True)
class DeliveryResult:
    success: bool
    reason: Optional[str] = None

    @classmethod
    def ok(cls) -> "DeliveryResult":
        return cls(success=True)

    @classmethod
    def failure(cls, reason: str) -> "DeliveryResult":
        return cls(success=False, reason=reason)


class MessagingGateway(ABC):
    """Transport-agnostic delivery interface used by the notification router."""

    @abstractmethod
    async def send(self, recipient: str, content: str, kind: DeliveryKind) -> DeliveryResult:
        """Deliver ``content`` to ``recipient``. Reports failure instead of raising."""


class SlackGateway(MessagingGateway):
    """Delivers messages through the Slack Web API.

    Channel posts go straight to ``chat.postMessage``. Direct messages first
    open (or reuse) the IM conversation with ``conversations.open`` and then
    post into it. Retries are left to the caller.
    """

    def __init__(self, bot_token: str, base_url: str = "https://slack.com/api", timeout: float = 30.0):
        self._bot_token = bot_token
        self._base_url = base_url.rstrip("/")
        self._timeout = timeout

    async def send(self, recipient: str, content: str, kind: DeliveryKind) -> DeliveryResult:
        try:
            async with httpx.AsyncClient(timeout=self._timeout) as client:
                channel = recipient
                if kind == DeliveryKind.DIRECT_MESSAGE:
                    opened = await self._call(client, "conversations.open", {"users": recipient})
                    if not opened.get("ok"):
                        return DeliveryResult.failure(opened.get("error", "conversations.open failed"))
                    channel = opened["channel"]["id"]

                posted = await self._call(client, "chat.postMessage", {"channel": channel, "text": content})
                if not posted.get("ok"):
                    return DeliveryResult.failure(posted.get("error", "chat.postMessage failed"))

                logger.info("slack_message_sent", recipient=recipient, kind=kind.value)
                return DeliveryResult.ok()
        except httpx.HTTPStatusError as exc:
            logger.error(
                "slack_http_error",
                recipient=recipient,
                status=exc.response.status_code,
                body=exc.response.text[:500],
            )
            return DeliveryResult.failure(f"HTTP {exc.response.status_code}")
        except (httpx.HTTPError, ValueError, KeyError) as exc:
            logger.error("slack_send_error", recipient=recipient, error=str(exc))
            return DeliveryResult.failure(str(exc) or type(exc).__name__)

    async def _call(self, client: httpx.AsyncClient, method: str, body: dict) -> dict:
        response = await client.post(
            f"{self._base_url}/{method}",
            json=body,
            headers={
                "Authorization": f"Bearer {self._bot_token}",
                "Content-Type": "application/json; charset=utf-8",
            },
        )
        response.raise_for_status()
        return response.json()
