"""Data models (Pydantic).

Re-exports all core data models for convenient imports:

    from mentionbot.models import ParsedCommand, Trade, PollSchedule
"""

from mentionbot.models.bot import BotProfile
from mentionbot.models.command import CommandAction, ParsedCommand
from mentionbot.models.mention import (
    Mention,
    MentionRecord,
    MentionStatus,
    RateLimitInfo,
    message_id_key,
    newest_message_id,
)
from mentionbot.models.schedule import PollSchedule, RateLimitState
from mentionbot.models.trade import (
    SIMULATED_SIGNATURE_PREFIX,
    ExecutionMode,
    SwapResult,
    TokenBalance,
    Trade,
    TradeStatus,
)

__all__ = [
    "SIMULATED_SIGNATURE_PREFIX",
    "BotProfile",
    "CommandAction",
    "ExecutionMode",
    "Mention",
    "MentionRecord",
    "MentionStatus",
    "ParsedCommand",
    "PollSchedule",
    "RateLimitInfo",
    "RateLimitState",
    "SwapResult",
    "TokenBalance",
    "Trade",
    "TradeStatus",
    "message_id_key",
    "newest_message_id",
]
