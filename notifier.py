"""Telegram delivery of batched change notifications."""

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from telegram import Bot, LinkPreviewOptions
from telegram.constants import ParseMode
from telegram.error import BadRequest, Forbidden, NetworkError, TelegramError

from config import MAX_MESSAGE_LENGTH, MESSAGE_DELAY, TELEGRAM_BOT_TOKEN
from errors import DeliveryError
from formatter import batch_messages
from models import ChangeRecord

logger = logging.getLogger(__name__)


@dataclass
class DispatchReport:
    sent: int = 0
    failed: int = 0


class TelegramChannel:
    """Sends HTML messages to a chat. Use as an async context manager."""

    def __init__(self, token: str = TELEGRAM_BOT_TOKEN, bot: Optional[Bot] = None, retry_delay: float = 5):
        self.bot = bot or Bot(token)
        self.retry_delay = retry_delay

    async def __aenter__(self) -> "TelegramChannel":
        await self.bot.initialize()
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.bot.shutdown()

    async def _send(self, chat_id: int, text: str):
        await self.bot.send_message(
            chat_id=chat_id,
            text=text,
            parse_mode=ParseMode.HTML,
            link_preview_options=LinkPreviewOptions(is_disabled=True),
        )

    async def send(self, chat_id: int, text: str):
        try:
            await self._send(chat_id, text)
        except Forbidden as e:
            raise DeliveryError(f"Chat {chat_id} blocked the bot: {e}") from e
        except BadRequest as e:
            raise DeliveryError(f"Telegram rejected message to {chat_id}: {e}") from e
        except NetworkError as e:
            # TimedOut is a NetworkError too; retry once after a short delay
            logger.warning(f"Transient error sending to {chat_id}, retrying: {e}")
            await asyncio.sleep(self.retry_delay)
            try:
                await self._send(chat_id, text)
            except TelegramError as retry_error:
                raise DeliveryError(f"Retry failed for {chat_id}: {retry_error}") from retry_error
        except TelegramError as e:
            raise DeliveryError(f"Failed to send to {chat_id}: {e}") from e


async def dispatch(
    channel,
    routed: dict[int, list[ChangeRecord]],
    max_length: int = MAX_MESSAGE_LENGTH,
    delay: float = MESSAGE_DELAY,
    now: Optional[datetime] = None,
) -> DispatchReport:
    """Batch and send each subscriber's changes, one message at a time.

    A failed message is logged and skipped; the remaining messages and
    subscribers are still attempted.
    """
    report = DispatchReport()
    for chat_id, changes in routed.items():
        messages = batch_messages(changes, max_length=max_length, now=now)
        delivered = 0
        for message in messages:
            try:
                await channel.send(chat_id, message)
                delivered += 1
            except DeliveryError as e:
                logger.error(f"Delivery failed: {e}")
                report.failed += 1
            await asyncio.sleep(delay)
        report.sent += delivered
        logger.info(
            f"Notified {chat_id}: {len(changes)} changes, "
            f"{delivered}/{len(messages)} messages delivered"
        )
    return report


def send_notifications(
    routed: dict[int, list[ChangeRecord]], token: str = TELEGRAM_BOT_TOKEN
) -> DispatchReport:
    """Blocking entry point used by the scheduler thread."""
    if not routed:
        return DispatchReport()

    async def _run() -> DispatchReport:
        async with TelegramChannel(token) as channel:
            return await dispatch(channel, routed)

    return asyncio.run(_run())
