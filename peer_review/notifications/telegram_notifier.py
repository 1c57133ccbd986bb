"""
Notifier that delivers messages through the Telegram Bot API.
"""
import logging
from typing import Any, Dict, Optional

from aiogram import Bot
from aiogram.client.default import DefaultBotProperties
from aiogram.enums import ParseMode
from aiogram.exceptions import TelegramAPIError

from peer_review.notifications.base import Notifier, NotificationResult, TemplateKind
from peer_review.notifications.formatter import MessageFormatter

logger = logging.getLogger(__name__)


def create_bot(token: str) -> Bot:
    """Create a bot instance for outgoing notifications."""
    return Bot(
        token=token,
        default=DefaultBotProperties(parse_mode=ParseMode.MARKDOWN)
    )


class TelegramNotifier(Notifier):
    """Sends rendered templates as Telegram chat messages; the address is a chat ID."""

    def __init__(self, bot: Bot, formatter: Optional[MessageFormatter] = None):
        self.bot = bot
        self.formatter = formatter or MessageFormatter()

    async def send(self, address: Any, template: TemplateKind, data: Dict[str, Any]) -> NotificationResult:
        if address is None:
            return NotificationResult(success=False, error="No notification address")

        try:
            text = self.formatter.render(template, data)
        except (KeyError, TypeError, ValueError) as e:
            logger.error(f"Could not render {template.value}: {e}")
            return NotificationResult(success=False, error=f"Render failed: {e}")

        try:
            await self.bot.send_message(chat_id=address, text=text)
        except TelegramAPIError as e:
            logger.warning(f"Telegram delivery of {template.value} to {address} failed: {e}")
            return NotificationResult(success=False, error=str(e))

        logger.debug(f"Sent {template.value} to {address}")
        return NotificationResult(success=True)

    async def close(self):
        """Close the bot's HTTP session."""
        await self.bot.session.close()
