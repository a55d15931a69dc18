"""Notifier protocol for multi-channel trade notifications."""

from __future__ import annotations

from typing import Protocol, runtime_checkable

from mentionbot.models.bot import BotProfile
from mentionbot.models.trade import Trade


@runtime_checkable
class Notifier(Protocol):
    """Protocol defining the notification channel interface.

    Any notifier (X replies, Telegram, etc.) must implement these methods.
    """

    async def trade_outcome(self, trade: Trade, bot: BotProfile) -> bool:
        """Report a trade that reached a terminal state.

        Args:
            trade: The completed or failed trade.
            bot: Bot that executed the trade.

        Returns:
            True if delivered, False if skipped or failed.
        """
        ...

    async def command_rejected(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> bool:
        """Report a command that failed parsing or validation.

        Args:
            bot: Bot the command was addressed to.
            message_id: Id of the originating mention, if any.
            reason: Human-readable rejection reason.

        Returns:
            True if delivered, False if skipped or failed.
        """
        ...
