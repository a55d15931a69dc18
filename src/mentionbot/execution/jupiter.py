"""Live swap execution through the Jupiter aggregator.

A swap is quoted and built by the Jupiter swap API, signed locally with the
bot wallet's keypair (solders), broadcast through the Solana RPC client and
then polled until the cluster confirms it.
"""

from __future__ import annotations

import asyncio
import base64
import json
import math
from collections.abc import Iterable
from typing import Any

import aiohttp
from solders.keypair import Keypair
from solders.transaction import VersionedTransaction

from mentionbot.connectors.solana import SolanaWalletClient
from mentionbot.execution.base import ExecutionError, SwapClient
from mentionbot.execution.tokens import TOKEN_DECIMALS, TOKEN_MINTS
from mentionbot.logging import get_logger
from mentionbot.models.trade import SwapResult

DEFAULT_API_URL = "https://lite-api.jup.ag/swap/v1"

_CONFIRMED = ("confirmed", "finalized")


def load_keypair(secret: str) -> Keypair:
    """Parse a signer key in the solana-keygen JSON format (64-byte array).

    Raises:
        ValueError: If the key cannot be parsed.
    """
    try:
        raw = bytes(json.loads(secret))
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid signer key: {e}") from e
    if len(raw) != 64:
        raise ValueError(f"Invalid signer key: expected 64 bytes, got {len(raw)}")
    return Keypair.from_bytes(raw)


class JupiterSwapClient(SwapClient):
    """Executes on-chain swaps for wallets whose keypairs it holds.

    Args:
        rpc: Solana RPC client used to broadcast and confirm transactions.
        signers: Keypairs of the bot wallets, matched by public key.
        api_url: Base URL of the Jupiter swap API.
        timeout_seconds: Per-request timeout for the Jupiter API.
        confirm_timeout_seconds: How long to wait for confirmation.
        poll_interval_seconds: Delay between signature status checks.
        session: Optional pre-configured aiohttp session (for testing).
    """

    def __init__(
        self,
        rpc: SolanaWalletClient,
        signers: Iterable[Keypair],
        api_url: str = DEFAULT_API_URL,
        timeout_seconds: float = 10.0,
        confirm_timeout_seconds: float = 60.0,
        poll_interval_seconds: float = 2.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._rpc = rpc
        self._signers = {str(kp.pubkey()): kp for kp in signers}
        self._api_url = api_url.rstrip("/")
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._confirm_timeout = confirm_timeout_seconds
        self._poll_interval = poll_interval_seconds
        self._session = session
        self._owns_session = session is None
        self._logger = get_logger("execution.jupiter")

    @property
    def wallets(self) -> list[str]:
        """Public keys this client can sign for."""
        return list(self._signers)

    async def close(self) -> None:
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def execute(
        self,
        in_token: str,
        out_token: str,
        amount: float,
        wallet: str,
        slippage_bps: int,
    ) -> SwapResult:
        keypair = self._signers.get(wallet)
        if keypair is None:
            raise ExecutionError(f"No signer configured for wallet {wallet}")
        if in_token == out_token:
            raise ExecutionError(f"Cannot swap {in_token} into itself")

        in_mint, in_decimals = _token(in_token)
        out_mint, out_decimals = _token(out_token)
        raw_amount = math.floor(amount * 10**in_decimals)
        if raw_amount <= 0:
            raise ExecutionError(f"Invalid swap amount: {amount}")

        quote = await self._request(
            "GET",
            "/quote",
            params={
                "inputMint": in_mint,
                "outputMint": out_mint,
                "amount": str(raw_amount),
                "slippageBps": str(slippage_bps),
            },
        )
        built = await self._request(
            "POST",
            "/swap",
            json={
                "quoteResponse": quote,
                "userPublicKey": wallet,
                "wrapAndUnwrapSol": True,
                "dynamicComputeUnitLimit": True,
            },
        )

        try:
            unsigned = VersionedTransaction.from_bytes(
                base64.b64decode(built["swapTransaction"])
            )
            signed = VersionedTransaction(unsigned.message, [keypair])
            out_raw = int(quote["outAmount"])
        except (KeyError, TypeError, ValueError) as e:
            raise ExecutionError(f"Malformed Jupiter response: {e}") from e
        encoded = base64.b64encode(bytes(signed)).decode("ascii")

        try:
            signature = await self._rpc.send_transaction(encoded)
        except ConnectionError as e:
            raise ExecutionError(f"Broadcast failed: {e}") from e

        self._logger.info(
            "swap_broadcast",
            signature=signature,
            in_token=in_token,
            out_token=out_token,
            amount=amount,
        )
        await self._wait_for_confirmation(signature)

        out_amount = out_raw / 10**out_decimals
        return SwapResult(
            signature=signature,
            out_amount=out_amount,
            exchange_rate=out_amount / amount,
        )

    async def _wait_for_confirmation(self, signature: str) -> None:
        loop = asyncio.get_running_loop()
        deadline = loop.time() + self._confirm_timeout
        while True:
            try:
                status = await self._rpc.get_signature_status(signature)
            except ConnectionError as e:
                self._logger.warning("signature_status_failed", signature=signature, error=str(e))
                status = None

            if status is not None:
                if status.get("err") is not None:
                    raise ExecutionError(f"Transaction {signature} failed: {status['err']}")
                if status.get("confirmationStatus") in _CONFIRMED:
                    return

            if loop.time() >= deadline:
                raise ExecutionError(f"Transaction {signature} not confirmed in time")
            await asyncio.sleep(self._poll_interval)

    async def _request(self, method: str, path: str, **kwargs: Any) -> dict[str, Any]:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        url = f"{self._api_url}{path}"
        try:
            async with self._session.request(method, url, **kwargs) as resp:
                body = await resp.json()
                if resp.status != 200:
                    raise ExecutionError(f"Jupiter {path} returned status {resp.status}: {body}")
        except aiohttp.ClientError as e:
            raise ExecutionError(f"Jupiter {path} request failed: {e}") from e

        if not isinstance(body, dict) or "error" in body:
            raise ExecutionError(f"Jupiter {path} error: {body}")
        return body


def _token(symbol: str) -> tuple[str, int]:
    mint = TOKEN_MINTS.get(symbol)
    if mint is None:
        raise ExecutionError(f"No mint address known for {symbol}")
    return mint, TOKEN_DECIMALS.get(symbol, 9)
