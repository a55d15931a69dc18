"""Parsed trade command models."""

import enum

from pydantic import BaseModel


class CommandAction(str, enum.Enum):
    """Trade verbs understood in a mention.

    ``buy`` and ``sell`` are legacy spellings of a swap with an implied
    direction; the parser resolves the direction into token order.
    """

    BUY = "buy"
    SELL = "sell"
    SWAP = "swap"


class ParsedCommand(BaseModel):
    """A structured trade intent extracted from mention text.

    Attributes:
        action: Trade verb found in the text.
        in_token: Symbol being spent.
        out_token: Symbol being received.
        amount: Amount of ``in_token`` to spend.
    """

    model_config = {"frozen": True}

    action: CommandAction
    in_token: str
    out_token: str
    amount: float
