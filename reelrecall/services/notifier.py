"""
User Notification Service

Delivers text and video replies to the user's chat client through the
messaging relay's webhooks.

Webhook payloads:
- message: {"user_ns": ..., "message": ..., "type": "text"}
- video:   {"user_ns": ..., "url": ..., "type": "video"}

Messages longer than MESSAGE_MAX_LENGTH (950) are split on word
boundaries and sent in order.
"""

import logging
from abc import ABC, abstractmethod
from typing import List, Optional

import httpx

from reelrecall.core.config import settings
from reelrecall.core.exceptions import NotificationError

logger = logging.getLogger(__name__)


# ========================================
# Message Templates
# ========================================

MESSAGES = {
    "VIDEO_RECEIVED": (
        "I've received your video and I'm starting to process it. "
        "This may take a few moments."
    ),
    "VIDEO_PROCESSED": (
        "I've finished processing your video. "
        "You can now search for it using keywords or descriptions."
    ),
    "VIDEO_ALREADY_PROCESSED": (
        "I already have this video saved in my memory. "
        "You can search for it using keywords or descriptions."
    ),
    "VIDEO_PROCESSING_ERROR": (
        "I encountered an error while processing your video. Please try again later."
    ),
    "VIDEO_NOT_FOUND": (
        "I couldn't find any videos that match your description. "
        "Try using different keywords or send me the video you're looking for."
    ),
    "VIDEO_FOUND": "I found a video that matches your description. Let me send it to you.",
    "GENERAL_ERROR": (
        "I encountered an error while processing your request. Please try again later."
    ),
}


def split_message(text: str, max_length: int) -> List[str]:
    """
    Split ``text`` into parts of at most ``max_length`` characters.

    Splits on whitespace; a single word longer than the limit is cut.
    """
    text = text.strip()
    if len(text) <= max_length:
        return [text] if text else []

    parts = []
    current = ""
    for word in text.split():
        while len(word) > max_length:
            if current:
                parts.append(current)
                current = ""
            parts.append(word[:max_length])
            word = word[max_length:]
        candidate = f"{current} {word}" if current else word
        if len(candidate) > max_length:
            parts.append(current)
            current = word
        else:
            current = candidate
    if current:
        parts.append(current)
    return parts


class Notifier(ABC):
    """Outbound channel to the end user."""

    @abstractmethod
    async def send_message(self, user_id: str, text: str) -> None:
        ...

    @abstractmethod
    async def send_video(self, user_id: str, video_url: str) -> None:
        ...

    async def close(self) -> None:
        """Release client resources."""


class LoggingNotifier(Notifier):
    """Notifier for deployments without a messaging relay."""

    async def send_message(self, user_id: str, text: str) -> None:
        logger.info(f"[notify {user_id}] {text}")

    async def send_video(self, user_id: str, video_url: str) -> None:
        logger.info(f"[notify {user_id}] video {video_url}")


class WebhookNotifier(Notifier):
    """
    Posts replies to the messaging relay webhooks.

    Usage:
    ------
    notifier = WebhookNotifier(message_url=settings.MESSAGE_WEBHOOK_URL)
    await notifier.send_message("user_123", MESSAGES["VIDEO_PROCESSED"])
    """

    def __init__(
        self,
        message_url: Optional[str] = None,
        video_url: Optional[str] = None,
        max_length: int = None,
        timeout: float = None,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.message_url = message_url or settings.MESSAGE_WEBHOOK_URL
        self.video_url = video_url or settings.VIDEO_WEBHOOK_URL
        self.max_length = max_length or settings.MESSAGE_MAX_LENGTH
        self.client = client or httpx.AsyncClient(timeout=timeout or settings.WEBHOOK_TIMEOUT)

        if not self.message_url:
            raise ValueError("message_url is required for WebhookNotifier")

    async def _post(self, url: str, payload: dict) -> None:
        try:
            response = await self.client.post(url, json=payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Webhook delivery to {url} failed: {e}")
            raise NotificationError(f"Webhook delivery failed: {e}") from e

    async def send_message(self, user_id: str, text: str) -> None:
        parts = split_message(text, self.max_length)
        for part in parts:
            await self._post(
                self.message_url,
                {"user_ns": user_id, "message": part, "type": "text"},
            )
        logger.debug(f"Sent {len(parts)} message part(s) to {user_id}")

    async def send_video(self, user_id: str, video_url: str) -> None:
        if not self.video_url:
            # Relay without a video hook still gets the link as text
            await self.send_message(user_id, video_url)
            return
        await self._post(
            self.video_url,
            {"user_ns": user_id, "url": video_url, "type": "video"},
        )

    async def close(self) -> None:
        await self.client.aclose()
