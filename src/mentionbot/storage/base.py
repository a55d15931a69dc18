"""Abstract storage interface for schedules, trades and the mention ledger."""

from abc import ABC, abstractmethod
from datetime import datetime

from mentionbot.models.mention import MentionRecord
from mentionbot.models.schedule import PollSchedule
from mentionbot.models.trade import TokenBalance, Trade, TradeStatus


class TradeNotFoundError(KeyError):
    """Raised when a trade id does not exist."""


class InvalidTransitionError(ValueError):
    """Raised when a trade status change would leave a terminal state."""


class Storage(ABC):
    """Persistence used by the scheduler, orchestrator and service."""

    # --- Poll schedules ---

    @abstractmethod
    async def get_poll_schedule(self, bot_id: int) -> PollSchedule | None:
        """Return the bot's schedule, or None if it was never scheduled."""

    @abstractmethod
    async def save_poll_schedule(
        self, bot_id: int, next_poll_time: datetime, backoff_seconds: float
    ) -> PollSchedule:
        """Create or update the timing fields of a bot's schedule.

        The last-seen message id is left untouched.
        """

    @abstractmethod
    async def set_last_seen_message_id(self, bot_id: int, message_id: str) -> None:
        """Store the mention watermark of a bot."""

    @abstractmethod
    async def delete_poll_schedule(self, bot_id: int) -> None:
        """Forget a bot's schedule, watermark included."""

    # --- Trades ---

    @abstractmethod
    async def create_trade(self, trade: Trade) -> Trade:
        """Persist a new trade."""

    @abstractmethod
    async def update_trade_status(
        self,
        trade_id: str,
        status: TradeStatus,
        signature: str | None = None,
        error: str | None = None,
        out_amount: float | None = None,
    ) -> Trade:
        """Move a trade to ``status`` and record its outcome.

        Raises:
            TradeNotFoundError: If the trade does not exist.
            InvalidTransitionError: If the trade is already terminal.
        """

    @abstractmethod
    async def get_trade(self, trade_id: str) -> Trade | None:
        """Return a trade by id."""

    @abstractmethod
    async def list_trades(self, bot_id: int, limit: int = 50) -> list[Trade]:
        """Return a bot's trades, newest first."""

    # --- Mention ledger ---

    @abstractmethod
    async def get_mention_record(self, bot_id: int, message_id: str) -> MentionRecord | None:
        """Return the ledger entry of a mention, if it was seen before."""

    @abstractmethod
    async def save_mention_record(self, record: MentionRecord) -> None:
        """Create or overwrite a ledger entry."""

    # --- Balances ---

    @abstractmethod
    async def get_token_balance(self, wallet: str, token: str) -> TokenBalance | None:
        """Return the last known balance of ``token`` in ``wallet``."""

    @abstractmethod
    async def set_token_balance(self, wallet: str, token: str, balance: float) -> TokenBalance:
        """Store the balance of ``token`` in ``wallet``."""

    async def set_wallet_balance(self, wallet: str, balance: float) -> TokenBalance:
        """Store the native (SOL) balance of ``wallet``."""
        return await self.set_token_balance(wallet, "SOL", balance)
