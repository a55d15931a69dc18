"""Polling schedule and rate-limit state models."""

from datetime import datetime

from pydantic import BaseModel


class PollSchedule(BaseModel):
    """Per-bot polling state, mutated only by the scheduler.

    Attributes:
        bot_id: Owning bot.
        last_seen_message_id: Highest mention id already processed.
        next_poll_time: When the bot is next due for a poll.
        backoff_seconds: Current polling interval in seconds.
    """

    bot_id: int
    last_seen_message_id: str | None = None
    next_poll_time: datetime
    backoff_seconds: float


class RateLimitState(BaseModel):
    """Throttling state of one external endpoint category.

    Attributes:
        endpoint: Endpoint category (e.g. "search").
        is_limited: Whether calls should currently be withheld.
        reset_at: When the limit is assumed cleared.
        remaining: Remaining quota reported by the last successful call.
    """

    endpoint: str
    is_limited: bool = False
    reset_at: datetime | None = None
    remaining: int | None = None
