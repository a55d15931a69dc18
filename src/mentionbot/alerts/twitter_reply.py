"""Reports trade outcomes as replies to the originating mention."""

from __future__ import annotations

import logging

from mentionbot.alerts.formatter import NotificationFormatter, truncate
from mentionbot.connectors.base import SocialClient
from mentionbot.models.bot import BotProfile
from mentionbot.models.trade import Trade

logger = logging.getLogger(__name__)


class TwitterReplyNotifier:
    """Replies on X under the mention that triggered a command.

    Trades started without a source mention (manual commands) are skipped.

    Args:
        client: Social client used to post replies.
        formatter: Formatter for reply texts.
    """

    def __init__(
        self,
        client: SocialClient,
        formatter: NotificationFormatter | None = None,
    ) -> None:
        self._client = client
        self._formatter = formatter or NotificationFormatter()

    async def trade_outcome(self, trade: Trade, bot: BotProfile) -> bool:
        if trade.source_message_id is None:
            return False
        text = self._formatter.trade_reply(trade, bot)
        return await self._reply(trade.source_message_id, text)

    async def command_rejected(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> bool:
        if message_id is None:
            return False
        return await self._reply(message_id, self._formatter.rejection_reply(reason))

    async def _reply(self, message_id: str, text: str) -> bool:
        reply_id = await self._client.reply(message_id, truncate(text))
        if reply_id is None:
            logger.debug("Reply to %s not posted", message_id)
            return False
        return True
