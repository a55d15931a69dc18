"""Swap execution (paper and live) and wallet interfaces.

The live Jupiter client depends on the Solana connector and is imported from
``mentionbot.execution.jupiter`` directly.
"""

from mentionbot.execution.base import (
    ExecutionError,
    InsufficientFundsError,
    SwapClient,
    WalletClient,
)
from mentionbot.execution.paper_wallet import PaperWallet
from mentionbot.execution.tokens import NATIVE_TOKEN, TOKEN_DECIMALS, TOKEN_MINTS

__all__ = [
    "NATIVE_TOKEN",
    "TOKEN_DECIMALS",
    "TOKEN_MINTS",
    "ExecutionError",
    "InsufficientFundsError",
    "PaperWallet",
    "SwapClient",
    "WalletClient",
]
