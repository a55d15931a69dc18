"""Telegram notification channel for trade outcomes.

Uses python-telegram-bot library for async message delivery with retry logic.
"""

from __future__ import annotations

import asyncio
import logging

import telegram

from mentionbot.alerts.formatter import NotificationFormatter, format_amount
from mentionbot.models.bot import BotProfile
from mentionbot.models.trade import Trade, TradeStatus

logger = logging.getLogger(__name__)

# Retry configuration
MAX_RETRIES = 3
RETRY_DELAY_SECONDS = 1.0


def _escape_md(text: str) -> str:
    """Escape special characters for MarkdownV2 format.

    Args:
        text: Raw text to escape.

    Returns:
        Escaped text safe for MarkdownV2.
    """
    special_chars = r"_*[]()~`>#+-=|{}.!"
    escaped = []
    for char in str(text):
        if char in special_chars:
            escaped.append(f"\\{char}")
        else:
            escaped.append(char)
    return "".join(escaped)


class TelegramNotifier:
    """Sends formatted trade notifications to a Telegram chat.

    Uses python-telegram-bot for async delivery with automatic retry
    on connection failures (up to MAX_RETRIES attempts).

    Args:
        bot_token: Telegram Bot API token.
        chat_id: Target chat/channel ID for messages.
        formatter: Formatter shared with the other channels.
    """

    def __init__(
        self,
        bot_token: str,
        chat_id: str,
        formatter: NotificationFormatter | None = None,
    ) -> None:
        self._bot = telegram.Bot(token=bot_token)
        self._chat_id = chat_id
        self._formatter = formatter or NotificationFormatter()

    async def send_message(
        self,
        text: str,
        parse_mode: str = "MarkdownV2",
    ) -> bool:
        """Send a message to the configured Telegram chat.

        Retries up to MAX_RETRIES times on failure with linear backoff.

        Args:
            text: Message text to send.
            parse_mode: Telegram parse mode (default MarkdownV2).

        Returns:
            True if message was sent successfully, False otherwise.
        """
        for attempt in range(1, MAX_RETRIES + 1):
            try:
                await self._bot.send_message(
                    chat_id=self._chat_id,
                    text=text,
                    parse_mode=parse_mode,
                )
                return True
            except telegram.error.RetryAfter as e:
                logger.warning(
                    "Telegram rate limited, retry after %s seconds (attempt %d/%d)",
                    e.retry_after,
                    attempt,
                    MAX_RETRIES,
                )
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(_retry_seconds(e.retry_after))
            except telegram.error.TelegramError as e:
                logger.error(
                    "Telegram send failed (attempt %d/%d): %s",
                    attempt,
                    MAX_RETRIES,
                    e,
                )
                if attempt < MAX_RETRIES:
                    await asyncio.sleep(RETRY_DELAY_SECONDS * attempt)
        return False

    async def trade_outcome(self, trade: Trade, bot: BotProfile) -> bool:
        return await self.send_message(self.format_trade(trade, bot))

    async def command_rejected(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> bool:
        return await self.send_message(self.format_rejection(bot, message_id, reason))

    def format_trade(self, trade: Trade, bot: BotProfile) -> str:
        """Format a terminal trade for Telegram.

        Args:
            trade: Completed or failed trade.
            bot: Bot that executed the trade.

        Returns:
            MarkdownV2 formatted message string.
        """
        if trade.status == TradeStatus.COMPLETED:
            icon = "🧪" if trade.simulated else "✅"
        else:
            icon = "❌"
        lines = [
            f"*{_escape_md(f'{icon} {bot.name} trade {trade.status.value}')}*",
            "",
            f"*Action*: `{_escape_md(self._formatter.trade_summary(trade))}`",
            f"*Amount*: `{_escape_md(format_amount(trade.amount))} {_escape_md(trade.in_token)}`",
        ]
        if trade.transaction_signature:
            lines.append(f"*Signature*: `{_escape_md(trade.transaction_signature)}`")
        if trade.error_message:
            lines.append(f"*Error*: `{_escape_md(trade.error_message)}`")
        if trade.source_message_id:
            lines.append(f"*Mention*: `{_escape_md(trade.source_message_id)}`")
        return "\n".join(lines)

    def format_rejection(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> str:
        """Format a rejected command for Telegram.

        Returns:
            MarkdownV2 formatted message string.
        """
        lines = [
            f"*{_escape_md(f'⚠️ {bot.name} rejected a command')}*",
            "",
            f"*Reason*: `{_escape_md(reason)}`",
        ]
        if message_id:
            lines.append(f"*Mention*: `{_escape_md(message_id)}`")
        return "\n".join(lines)


def _retry_seconds(retry_after: object) -> float:
    """Normalise ``RetryAfter.retry_after`` (int seconds or timedelta)."""
    total_seconds = getattr(retry_after, "total_seconds", None)
    if callable(total_seconds):
        return float(total_seconds())
    return float(retry_after)  # type: ignore[arg-type]
