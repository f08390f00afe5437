"""
Signal sinks: where accepted scanner messages are delivered.

Any object with an async `send(text)` method can act as a sink.
"""

import asyncio
import logging
import sys
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, TextIO

import aiohttp

from ..display.formatters import CHAT_MESSAGE_LIMIT, chunk_message
from ..utils.retry import RetryError, retry_async

logger = logging.getLogger(__name__)


@dataclass
class DeliveryReport:
    """Outcome of one broadcast."""

    success: int = 0
    failed: int = 0
    removed: int = 0


class SignalSink(Protocol):
    async def send(self, text: str) -> Optional[DeliveryReport]:
        ...


class ConsoleSink:
    """Writes messages to a text stream (stdout by default)."""

    def __init__(self, stream: Optional[TextIO] = None):
        self.stream = stream

    async def send(self, text: str) -> None:
        stream = self.stream or sys.stdout
        print(text, file=stream)
        print(file=stream)


# =============================================================================
# TELEGRAM
# =============================================================================


class TelegramError(Exception):
    """Base exception for Telegram delivery failures."""


class TelegramDeliveryError(TelegramError):
    """Non-success response that is worth retrying."""

    def __init__(self, status_code: int, description: str = ""):
        self.status_code = status_code
        self.description = description
        super().__init__(f"Telegram API error {status_code}: {description}")


class ChatUnavailableError(TelegramError):
    """The bot was blocked or the chat no longer exists (HTTP 403/410)."""

    def __init__(self, chat_id: str, status_code: int):
        self.chat_id = chat_id
        self.status_code = status_code
        super().__init__(f"Chat {chat_id} unavailable (HTTP {status_code})")


class TelegramSink:
    """
    Broadcasts messages to a list of Telegram chats through the Bot API.

    Texts longer than chunk_size are split and posted in order. Each post gets
    up to three attempts with exponential backoff. A chat that answers 403 or
    410 is dropped from the list for the rest of the run.

    Args:
        token: Telegram Bot API token
        chat_ids: Target chat/channel IDs
        session: Optional shared aiohttp session
        message_delay: Pause between chats in seconds
        chunk_size: Longest text sent in one sendMessage call
    """

    API_URL = "https://api.telegram.org/bot{token}/sendMessage"
    UNAVAILABLE_STATUSES = (403, 410)

    def __init__(
        self,
        token: str,
        chat_ids: Iterable[str],
        session: Optional[aiohttp.ClientSession] = None,
        message_delay: float = 0.08,
        chunk_size: int = CHAT_MESSAGE_LIMIT,
    ):
        self.token = token
        self.chat_ids: List[str] = [str(c) for c in chat_ids if str(c).strip()]
        self.message_delay = message_delay
        self.chunk_size = chunk_size
        self._session = session
        self._owns_session = session is None

        if not token or not self.chat_ids:
            logger.warning("Telegram sink not fully configured, messages will not be delivered")
        else:
            logger.info(f"TelegramSink initialized for {len(self.chat_ids)} chat(s)")

    async def __aenter__(self):
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=aiohttp.ClientTimeout(total=15))
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        if self._owns_session and self._session:
            await self._session.close()
            self._session = None

    @retry_async(
        max_attempts=3,
        exceptions=(TelegramDeliveryError, aiohttp.ClientError, asyncio.TimeoutError),
        base_delay=1.0,
    )
    async def _post(self, chat_id: str, text: str) -> None:
        if self._session is None:
            raise RuntimeError("Session not initialized. Use 'async with TelegramSink(...)'.")

        url = self.API_URL.format(token=self.token)
        payload = {"chat_id": chat_id, "text": text, "disable_web_page_preview": True}
        async with self._session.post(url, json=payload) as response:
            if response.status in self.UNAVAILABLE_STATUSES:
                raise ChatUnavailableError(chat_id, response.status)
            if response.status != 200:
                raise TelegramDeliveryError(response.status, await response.text())

    async def send(self, text: str) -> DeliveryReport:
        """Send text to every chat; returns per-broadcast counters."""
        report = DeliveryReport()
        if not self.token:
            return report

        parts = chunk_message(text, self.chunk_size)
        for chat_id in list(self.chat_ids):
            try:
                for part in parts:
                    await self._post(chat_id, part)
            except ChatUnavailableError as e:
                self.chat_ids.remove(chat_id)
                report.failed += 1
                report.removed += 1
                logger.info(f"Removed chat {chat_id}: {e}")
                continue
            except RetryError as e:
                report.failed += 1
                logger.warning(f"Giving up on chat {chat_id}: {e.last_exception}")
                continue

            report.success += 1
            await asyncio.sleep(self.message_delay)

        logger.debug("Telegram broadcast: %s", report)
        return report
