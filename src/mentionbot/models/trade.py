"""Trade records and execution results."""

import enum
import uuid
from datetime import UTC, datetime

from pydantic import BaseModel, Field

# Signatures of synthetic results start with this prefix so they can never be
# mistaken for an on-chain receipt.
SIMULATED_SIGNATURE_PREFIX = "simulated_"


class TradeStatus(str, enum.Enum):
    """Trade lifecycle status."""

    PENDING = "pending"
    EXECUTING = "executing"
    COMPLETED = "completed"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (TradeStatus.COMPLETED, TradeStatus.FAILED)


class ExecutionMode(str, enum.Enum):
    """How swaps are executed."""

    PAPER = "paper"
    LIVE = "live"


class Trade(BaseModel):
    """A swap requested by a command, from creation to its terminal state.

    Attributes:
        id: Unique trade identifier (UUID).
        bot_id: Owning bot.
        action: Command verb that produced the trade.
        in_token: Symbol spent.
        out_token: Symbol received.
        amount: Input amount.
        out_amount: Output amount, set once the swap completes.
        status: Current lifecycle status.
        transaction_signature: Execution receipt, if any.
        error_message: Failure reason for failed trades.
        source_message_id: Id of the triggering mention (None for direct calls).
        source_message_text: Text of the triggering mention.
        created_at: Creation timestamp.
        updated_at: Timestamp of the last status change.
    """

    id: str = Field(default_factory=lambda: str(uuid.uuid4()))
    bot_id: int
    action: str
    in_token: str
    out_token: str
    amount: float
    out_amount: float | None = None
    status: TradeStatus = TradeStatus.PENDING
    transaction_signature: str | None = None
    error_message: str | None = None
    source_message_id: str | None = None
    source_message_text: str | None = None
    created_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def simulated(self) -> bool:
        """Whether the trade was completed with a synthetic result."""
        return bool(
            self.transaction_signature
            and self.transaction_signature.startswith(SIMULATED_SIGNATURE_PREFIX)
        )


class SwapResult(BaseModel):
    """Outcome of a successful swap.

    Attributes:
        signature: Transaction signature (``simulated_`` prefix for synthetic results).
        out_amount: Amount of the output token received.
        exchange_rate: Output units per input unit, when known.
    """

    model_config = {"frozen": True}

    signature: str
    out_amount: float
    exchange_rate: float | None = None

    @property
    def simulated(self) -> bool:
        return self.signature.startswith(SIMULATED_SIGNATURE_PREFIX)


class TokenBalance(BaseModel):
    """Balance of one token held by a wallet.

    Attributes:
        wallet: Wallet public key.
        token: Token symbol.
        balance: Current balance.
        updated_at: Timestamp of the last update.
    """

    wallet: str
    token: str
    balance: float = 0.0
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
