"""Notification fan-out with deduplication and delivery history.

Delivers trade outcomes and command rejections to every configured channel
(X replies, Telegram). A failing channel is logged and never affects the
others or the trade that triggered the notification.
"""

from __future__ import annotations

import logging
import time
from collections import deque
from collections.abc import Callable

from pydantic import BaseModel

from mentionbot.alerts.notifier_protocol import Notifier
from mentionbot.models.bot import BotProfile
from mentionbot.models.trade import Trade

logger = logging.getLogger(__name__)


class NotificationRecord(BaseModel):
    """Record of a dispatched notification for history tracking.

    Attributes:
        kind: "trade_outcome" or "command_rejected".
        bot_id: Bot the notification concerns.
        key: Trade id or message id the notification is about.
        timestamp: Unix timestamp when it was dispatched.
        delivered: Number of channels that delivered it.
    """

    kind: str
    bot_id: int
    key: str | None
    timestamp: float
    delivered: int


class NotificationDispatcher:
    """Fans notifications out to all configured channels.

    Each (kind, key) pair is delivered once within ``dedup_window_seconds``;
    repeated calls for the same trade or mention are suppressed. The dedup
    cache holds at most ``max_history`` keys.

    Args:
        notifiers: Notification channels.
        max_history: Maximum number of records kept in history and dedup keys.
        dedup_window_seconds: Time window for duplicate suppression.
        clock: Monotonic time source (for testing).
    """

    def __init__(
        self,
        notifiers: list[Notifier] | None = None,
        max_history: int = 1000,
        dedup_window_seconds: float = 3600.0,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self._notifiers: list[Notifier] = list(notifiers or [])
        self._history: deque[NotificationRecord] = deque(maxlen=max_history)
        self._max_history = max_history
        self._dedup_window = dedup_window_seconds
        self._clock = clock
        self._sent: dict[tuple[str, str], float] = {}

    @property
    def notifiers(self) -> list[Notifier]:
        return list(self._notifiers)

    @property
    def history(self) -> list[NotificationRecord]:
        """Return list of recent notification records."""
        return list(self._history)

    def add(self, notifier: Notifier) -> None:
        self._notifiers.append(notifier)

    async def trade_outcome(self, trade: Trade, bot: BotProfile) -> int:
        """Report a terminal trade on every channel.

        Returns:
            Number of channels that delivered the notification.
        """
        if self._already_sent("trade_outcome", trade.id):
            logger.debug("Trade notification deduplicated: trade=%s", trade.id)
            return 0

        delivered = 0
        for n in self._notifiers:
            try:
                if await n.trade_outcome(trade, bot):
                    delivered += 1
            except Exception:
                logger.exception(
                    "Notifier %s failed for trade %s", type(n).__name__, trade.id
                )
        self._record("trade_outcome", bot.id, trade.id, delivered)
        return delivered

    async def command_rejected(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> int:
        """Report a rejected command on every channel.

        Returns:
            Number of channels that delivered the notification.
        """
        if message_id is not None and self._already_sent("command_rejected", message_id):
            logger.debug("Rejection deduplicated: message=%s", message_id)
            return 0

        delivered = 0
        for n in self._notifiers:
            try:
                if await n.command_rejected(bot, message_id, reason):
                    delivered += 1
            except Exception:
                logger.exception(
                    "Notifier %s failed for message %s", type(n).__name__, message_id
                )
        self._record("command_rejected", bot.id, message_id, delivered)
        return delivered

    def _already_sent(self, kind: str, key: str) -> bool:
        sent_at = self._sent.get((kind, key))
        if sent_at is None:
            return False
        return (self._clock() - sent_at) < self._dedup_window

    def _record_sent(self, kind: str, key: str) -> None:
        """Remember a dispatched key, pruning expired and excess entries."""
        now = self._clock()
        self._sent.pop((kind, key), None)
        self._sent[(kind, key)] = now

        expired = [k for k, t in self._sent.items() if (now - t) >= self._dedup_window]
        for k in expired:
            del self._sent[k]
        # Insertion order is send order
        while len(self._sent) > self._max_history:
            del self._sent[next(iter(self._sent))]

    def _record(self, kind: str, bot_id: int, key: str | None, delivered: int) -> None:
        if key is not None:
            self._record_sent(kind, key)
        self._history.append(
            NotificationRecord(
                kind=kind,
                bot_id=bot_id,
                key=key,
                timestamp=time.time(),
                delivered=delivered,
            )
        )
        if self._notifiers and delivered == 0:
            logger.warning("Notification not delivered: kind=%s key=%s", kind, key)
