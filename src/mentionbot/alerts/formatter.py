"""Plain-text rendering of trade outcomes for social replies."""

from mentionbot.connectors.solana import explorer_url
from mentionbot.models.bot import BotProfile
from mentionbot.models.command import CommandAction
from mentionbot.models.trade import Trade, TradeStatus

# X rejects longer posts
MAX_REPLY_LENGTH = 280


def format_amount(amount: float | None) -> str:
    """Render a token amount without float noise or trailing zeros."""
    if amount is None:
        return "?"
    text = f"{amount:.9f}".rstrip("0").rstrip(".")
    return text or "0"


def truncate(text: str, limit: int = MAX_REPLY_LENGTH) -> str:
    if len(text) <= limit:
        return text
    return text[: limit - 3] + "..."


class NotificationFormatter:
    """Builds reply texts for trade outcomes and rejected commands.

    Args:
        cluster: Solana cluster used in explorer links.
    """

    def __init__(self, cluster: str = "devnet") -> None:
        self._cluster = cluster

    def trade_summary(self, trade: Trade) -> str:
        """Describe what a trade did, e.g. ``SWAP 0.01 SOL for 0.5 JUP``."""
        amount_in = f"{format_amount(trade.amount)} {trade.in_token}"
        amount_out = f"{format_amount(trade.out_amount)} {trade.out_token}"
        if trade.action == CommandAction.BUY.value:
            return f"BUY {amount_out}"
        if trade.action == CommandAction.SELL.value:
            return f"SELL {amount_in}"
        return f"{trade.action.upper()} {amount_in} for {amount_out}"

    def trade_reply(self, trade: Trade, bot: BotProfile) -> str:
        """Reply text for a trade in a terminal state."""
        if trade.status == TradeStatus.FAILED:
            return self.failure_reply(trade.error_message or "Unknown error")

        owner = f"@{bot.owner_handle} " if bot.owner_handle else ""
        signature = trade.transaction_signature or ""
        if trade.simulated:
            return f"{owner}[{bot.name}] executed {self.trade_summary(trade)} – SIMULATED"

        text = (
            f"{owner}[{bot.name}] executed {self.trade_summary(trade)}"
            f" – SUCCESS ({signature[:6]}...)"
        )
        if signature:
            text += f"\n\nView on Solana Explorer: {explorer_url(signature, self._cluster)}"
        return text

    def failure_reply(self, reason: str) -> str:
        return f"❌ Trade failed: {reason}"

    def rejection_reply(self, reason: str) -> str:
        return f"❌ Invalid command: {reason}"
