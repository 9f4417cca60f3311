"""
Notifier adapters.

The engine only calls ``await notifier.notify(title, body)``. Returning normally
means delivered; raising means not delivered (the dedup key is then not
recorded and the reminder is retried on its next eligible cycle).
"""

import asyncio
import html
import logging
from typing import Awaitable, Callable, Optional, Protocol, Union

from app.services.notifications.exceptions import NotifierDeliveryError
from app.utils.telegram_safe import safe_send_message

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def notify(self, title: str, body: str) -> None:
        ...


class TelegramNotifier:
    """Delivers reminders to one Telegram chat through an aiogram Bot."""

    def __init__(self, bot, chat_id: Union[int, str]):
        self.bot = bot
        self.chat_id = chat_id

    @staticmethod
    def format_text(title: str, body: str) -> str:
        return f"⏰ <b>{html.escape(title)}</b>\n{html.escape(body)}"

    async def notify(self, title: str, body: str) -> None:
        message = await safe_send_message(
            self.bot,
            self.chat_id,
            self.format_text(title, body),
            parse_mode="HTML",
        )
        if message is None:
            raise NotifierDeliveryError(f"Telegram delivery to chat {self.chat_id} failed")


class LogNotifier:
    """Writes reminders to the log. Used when no delivery channel is configured."""

    def __init__(self, log: Optional[logging.Logger] = None):
        self.log = log or logger

    async def notify(self, title: str, body: str) -> None:
        self.log.info(f"DATE_REMINDER title={title!r} body={body!r}")


class CallbackNotifier:
    """Adapts a host-supplied callable(title, body), sync or async."""

    def __init__(self, callback: Callable[[str, str], Union[None, Awaitable[None]]]):
        self.callback = callback

    async def notify(self, title: str, body: str) -> None:
        result = self.callback(title, body)
        if asyncio.iscoroutine(result) or isinstance(result, asyncio.Future):
            await result
