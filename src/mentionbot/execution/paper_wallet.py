"""Paper trading wallet with simulated swaps and virtual balances.

Quotes swaps from a fixed rate table instead of a live aggregator and settles
them against in-memory balances. Every signature it produces carries the
``simulated_`` prefix so paper trades are never mistaken for on-chain ones.
"""

import math
import uuid
from collections import deque

from mentionbot.execution.base import ExecutionError, SwapClient, WalletClient
from mentionbot.execution.tokens import NATIVE_TOKEN, TOKEN_DECIMALS
from mentionbot.models.trade import SIMULATED_SIGNATURE_PREFIX, SwapResult

# Output units per input unit; pairs not listed swap 1:1
DEFAULT_RATES: dict[tuple[str, str], float] = {
    ("SOL", "USDC"): 160.0,
    ("USDC", "SOL"): 0.00625,
}


def _floor_to_decimals(amount: float, decimals: int) -> float:
    """Round down to the token's smallest unit."""
    scale = 10**decimals
    return math.floor(amount * scale) / scale


class PaperWallet(SwapClient, WalletClient):
    """Simulated swap venue and balance source for paper trading.

    Attributes:
        balances: Virtual balances per wallet per token.
        default_native_balance: SOL balance given to wallets seen for the first time.
        rates: Exchange rates keyed by (in_token, out_token).
        swap_history: Most recent executed swaps as
            (wallet, in_token, out_token, amount, result).
    """

    def __init__(
        self,
        initial_balances: dict[str, dict[str, float]] | None = None,
        default_native_balance: float = 0.0,
        rates: dict[tuple[str, str], float] | None = None,
        max_history: int = 1000,
    ) -> None:
        """Initialize the paper wallet.

        Args:
            initial_balances: Mapping of wallet -> {token: amount}.
                Example: {"7xKX...": {"SOL": 5.0, "USDC": 100.0}}
            default_native_balance: SOL credited to unknown wallets.
            rates: Override of the exchange rate table.
            max_history: Number of executed swaps kept in ``swap_history``.
        """
        self.balances: dict[str, dict[str, float]] = {}
        for wallet, tokens in (initial_balances or {}).items():
            self.balances[wallet] = {t.upper(): amt for t, amt in tokens.items()}
        self.default_native_balance = default_native_balance
        self.rates = dict(DEFAULT_RATES if rates is None else rates)
        self.swap_history: deque[tuple[str, str, str, float, SwapResult]] = deque(
            maxlen=max_history
        )

    def quote(
        self, in_token: str, out_token: str, amount: float, slippage_bps: int = 50
    ) -> tuple[float, float]:
        """Quote a swap.

        Returns:
            Tuple of (output amount after slippage, exchange rate).
        """
        rate = self.rates.get((in_token, out_token), 1.0)
        slippage_factor = 1 - slippage_bps / 10_000
        out_amount = _floor_to_decimals(
            amount * rate * slippage_factor,
            TOKEN_DECIMALS.get(out_token, 9),
        )
        return out_amount, rate

    async def get_balance(self, public_key: str) -> float:
        return self.token_balance(public_key, NATIVE_TOKEN)

    def token_balance(self, wallet: str, token: str) -> float:
        """Current virtual balance of ``token`` in ``wallet``."""
        return self._wallet(wallet).get(token.upper(), 0.0)

    async def execute(
        self,
        in_token: str,
        out_token: str,
        amount: float,
        wallet: str,
        slippage_bps: int,
    ) -> SwapResult:
        """Simulate a swap and settle it against the virtual balances.

        Raises:
            ExecutionError: If the amount is not positive or the wallet does not
                hold enough ``in_token``.
        """
        if amount <= 0:
            raise ExecutionError(f"Invalid swap amount: {amount}")
        if in_token == out_token:
            raise ExecutionError(f"Cannot swap {in_token} into itself")

        available = self.token_balance(wallet, in_token)
        if available < amount:
            raise ExecutionError(
                f"Insufficient {in_token} balance: required={amount}, available={available}"
            )

        out_amount, rate = self.quote(in_token, out_token, amount, slippage_bps)
        self._adjust(wallet, in_token, -amount)
        self._adjust(wallet, out_token, out_amount)

        result = SwapResult(
            signature=f"{SIMULATED_SIGNATURE_PREFIX}{uuid.uuid4().hex}",
            out_amount=out_amount,
            exchange_rate=rate,
        )
        self.swap_history.append((wallet, in_token, out_token, amount, result))
        return result

    def _wallet(self, wallet: str) -> dict[str, float]:
        if wallet not in self.balances:
            self.balances[wallet] = {NATIVE_TOKEN: self.default_native_balance}
        return self.balances[wallet]

    def _adjust(self, wallet: str, token: str, delta: float) -> None:
        balances = self._wallet(wallet)
        balances[token] = balances.get(token, 0.0) + delta
