"""Inbound social mention models."""

import enum
from datetime import UTC, datetime

from pydantic import BaseModel, Field


class Mention(BaseModel):
    """A social message referencing a bot's handle.

    Attributes:
        id: External message id (monotonically increasing).
        text: Raw message text.
        author_id: External id of the author.
        author_username: Author handle, when the API expanded it.
        created_at: When the message was posted.
    """

    model_config = {"frozen": True}

    id: str
    text: str
    author_id: str | None = None
    author_username: str | None = None
    created_at: datetime | None = None


class RateLimitInfo(BaseModel):
    """Quota headers reported alongside a successful API response.

    Attributes:
        limit: Window quota.
        remaining: Calls left in the current window.
        reset_at: When the window resets.
    """

    model_config = {"frozen": True}

    limit: int | None = None
    remaining: int
    reset_at: datetime


class MentionStatus(str, enum.Enum):
    """Processing outcome of a mention."""

    PENDING = "pending"
    PROCESSED = "processed"
    INVALID = "invalid"
    FAILED = "failed"


class MentionRecord(BaseModel):
    """Ledger entry that makes mention processing idempotent.

    Attributes:
        message_id: External message id.
        bot_id: Bot the mention was addressed to.
        text: Message text.
        author_username: Author handle, if known.
        status: Processing outcome.
        trade_id: Trade spawned by the mention, if any.
        error_message: Rejection or failure reason.
        created_at: When the mention was first seen.
    """

    message_id: str
    bot_id: int
    text: str
    author_username: str | None = None
    status: MentionStatus = MentionStatus.PENDING
    trade_id: str | None = None
    error_message: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))


def message_id_key(message_id: str) -> tuple[int, str]:
    """Sort key for external message ids.

    X ids are 64-bit snowflakes rendered as decimal strings, so longer ids are
    newer and equal-length ids compare lexically.
    """
    return (len(message_id), message_id)


def newest_message_id(*message_ids: str | None) -> str | None:
    """Return the highest of the given ids, ignoring None."""
    present = [m for m in message_ids if m]
    if not present:
        return None
    return max(present, key=message_id_key)
