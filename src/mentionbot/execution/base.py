"""Abstract interfaces for swap execution and wallet queries."""

from abc import ABC, abstractmethod

from mentionbot.models.trade import SwapResult


class SwapClient(ABC):
    """Executes token swaps for a wallet.

    Implementations handle the mechanics of quoting, signing and broadcasting
    (paper simulation or a live DEX aggregator).
    """

    @abstractmethod
    async def execute(
        self,
        in_token: str,
        out_token: str,
        amount: float,
        wallet: str,
        slippage_bps: int,
    ) -> SwapResult:
        """Swap ``amount`` of ``in_token`` into ``out_token``.

        Args:
            in_token: Symbol spent.
            out_token: Symbol received.
            amount: Input amount in whole token units.
            wallet: Public key of the wallet executing the swap.
            slippage_bps: Allowed slippage in basis points.

        Returns:
            SwapResult with the signature and output amount.

        Raises:
            ExecutionError: If the swap could not be completed.
        """


class WalletClient(ABC):
    """Reads native balances of wallets."""

    @abstractmethod
    async def get_balance(self, public_key: str) -> float:
        """Return the native (SOL) balance of ``public_key``.

        Raises:
            ConnectionError: If the balance cannot be fetched.
        """


class ExecutionError(Exception):
    """Raised when a swap fails to execute or broadcast."""


class InsufficientFundsError(Exception):
    """Raised when a wallet cannot cover a trade plus its fee."""

    def __init__(self, wallet: str, required: float, available: float) -> None:
        self.wallet = wallet
        self.required = required
        self.available = available
        super().__init__(
            f"Insufficient funds: required={required:.9g} SOL, "
            f"available={available:.9g} SOL"
        )
