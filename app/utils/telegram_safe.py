"""
Safe wrapper around bot.send_message for reminder delivery.

Never raises. Returns the sent Message, or None when the chat is unreachable
(not found, bot removed), the request is rejected, or the network fails.
Flood control (TelegramRetryAfter) is honoured once when the requested wait
is short enough; otherwise the send is given up.
"""
import asyncio
import logging
from typing import Union

from aiogram.exceptions import (
    TelegramBadRequest,
    TelegramForbiddenError,
    TelegramRetryAfter,
)

logger = logging.getLogger(__name__)

MAX_RETRY_AFTER_SECONDS = 30


async def safe_send_message(bot, chat_id: Union[int, str], text: str, **kwargs):
    try:
        return await bot.send_message(chat_id, text, **kwargs)

    except TelegramRetryAfter as e:
        if e.retry_after > MAX_RETRY_AFTER_SECONDS:
            logger.warning(f"SAFE_SEND_FLOOD_GIVE_UP chat={chat_id} retry_after={e.retry_after}")
            return None
        logger.warning(f"SAFE_SEND_FLOOD_WAIT chat={chat_id} retry_after={e.retry_after}")
        await asyncio.sleep(e.retry_after)
        try:
            return await bot.send_message(chat_id, text, **kwargs)
        except Exception:
            logger.exception(f"SAFE_SEND_RETRY_FAILED chat={chat_id}")
            return None

    except TelegramBadRequest as e:
        if "chat not found" in str(e).lower():
            logger.warning(f"SAFE_SEND_CHAT_NOT_FOUND chat={chat_id}")
        else:
            logger.exception(f"SAFE_SEND_BAD_REQUEST chat={chat_id}")
        return None

    except TelegramForbiddenError:
        logger.warning(f"SAFE_SEND_FORBIDDEN chat={chat_id}")
        return None

    except Exception:
        logger.exception(f"SAFE_SEND_UNKNOWN_ERROR chat={chat_id}")
        return None
