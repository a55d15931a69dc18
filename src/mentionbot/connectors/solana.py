"""Solana JSON-RPC client.

Answers "how much SOL does this wallet hold" for the funds check, and
broadcasts transactions that the live swap client has already signed.
"""

import aiohttp

from mentionbot.execution.base import WalletClient
from mentionbot.logging import get_logger

LAMPORTS_PER_SOL = 1_000_000_000


def explorer_url(signature: str, cluster: str = "devnet") -> str:
    """Solana Explorer link for a transaction signature."""
    return f"https://explorer.solana.com/tx/{signature}?cluster={cluster}"


class SolanaWalletClient(WalletClient):
    """Reads SOL balances and sends signed transactions through a Solana RPC node.

    Args:
        rpc_url: JSON-RPC endpoint.
        timeout_seconds: Per-request timeout.
        session: Optional pre-configured aiohttp session (for testing).
    """

    def __init__(
        self,
        rpc_url: str = "https://api.devnet.solana.com",
        timeout_seconds: float = 10.0,
        session: aiohttp.ClientSession | None = None,
    ) -> None:
        self._rpc_url = rpc_url
        self._timeout = aiohttp.ClientTimeout(total=timeout_seconds)
        self._session = session
        self._owns_session = session is None
        self._request_id = 0
        self._logger = get_logger("connector.solana")

    async def close(self) -> None:
        """Close the underlying HTTP session if this client created it."""
        if self._session is not None and self._owns_session:
            await self._session.close()
        self._session = None

    async def get_balance(self, public_key: str) -> float:
        """Return the SOL balance of ``public_key``.

        Raises:
            ConnectionError: If the RPC call fails or returns an error.
        """
        result = await self._rpc_call("getBalance", [public_key, {"commitment": "confirmed"}])
        lamports = result.get("value") if isinstance(result, dict) else result
        if not isinstance(lamports, int):
            raise ConnectionError(f"Unexpected getBalance result: {result!r}")
        return lamports / LAMPORTS_PER_SOL

    async def send_transaction(self, encoded_tx: str) -> str:
        """Broadcast a signed, base64-encoded transaction.

        Returns:
            The transaction signature.

        Raises:
            ConnectionError: If the node rejects the transaction.
        """
        result = await self._rpc_call(
            "sendTransaction",
            [encoded_tx, {"encoding": "base64", "preflightCommitment": "confirmed"}],
        )
        if not isinstance(result, str):
            raise ConnectionError(f"Unexpected sendTransaction result: {result!r}")
        return result

    async def get_signature_status(self, signature: str) -> dict | None:
        """Status of a transaction, or None while the node has not seen it."""
        result = await self._rpc_call("getSignatureStatuses", [[signature]])
        statuses = result.get("value") if isinstance(result, dict) else None
        if not statuses:
            return None
        return statuses[0]

    async def _rpc_call(self, method: str, params: list) -> object:
        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
            self._owns_session = True

        self._request_id += 1
        payload = {
            "jsonrpc": "2.0",
            "id": self._request_id,
            "method": method,
            "params": params,
        }
        try:
            async with self._session.post(self._rpc_url, json=payload) as resp:
                if resp.status != 200:
                    raise ConnectionError(f"Solana RPC {method} returned status {resp.status}")
                body = await resp.json()
        except aiohttp.ClientError as e:
            raise ConnectionError(f"Solana RPC {method} failed: {e}") from e

        if "error" in body:
            self._logger.warning("solana_rpc_error", method=method, error=body["error"])
            raise ConnectionError(f"Solana RPC {method} error: {body['error']}")
        return body.get("result")
