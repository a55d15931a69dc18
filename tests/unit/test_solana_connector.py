"""Unit tests for the Solana RPC wallet client."""

from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock

import aiohttp
import pytest

from mentionbot.connectors.solana import SolanaWalletClient, explorer_url

RPC_URL = "https://rpc.test"


def _session(status: int = 200, body: dict | None = None) -> MagicMock:
    response = MagicMock()
    response.status = status
    response.json = AsyncMock(return_value=body or {})
    session = MagicMock()
    session.post.return_value.__aenter__.return_value = response
    return session


class TestGetBalance:
    """Tests for getBalance over JSON-RPC."""

    @pytest.mark.asyncio
    async def test_lamports_converted_to_sol(self) -> None:
        session = _session(body={"jsonrpc": "2.0", "id": 1, "result": {"context": {}, "value": 1_500_000_000}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        assert await client.get_balance("wallet-1") == 1.5

        url = session.post.call_args.args[0]
        payload = session.post.call_args.kwargs["json"]
        assert url == RPC_URL
        assert payload["method"] == "getBalance"
        assert payload["params"][0] == "wallet-1"

    @pytest.mark.asyncio
    async def test_request_ids_increase(self) -> None:
        session = _session(body={"result": {"value": 0}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        await client.get_balance("a")
        await client.get_balance("b")

        ids = [c.kwargs["json"]["id"] for c in session.post.call_args_list]
        assert ids == [1, 2]

    @pytest.mark.asyncio
    async def test_rpc_error(self) -> None:
        session = _session(body={"error": {"code": -32602, "message": "Invalid param"}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        with pytest.raises(ConnectionError, match="Invalid param"):
            await client.get_balance("bad")

    @pytest.mark.asyncio
    async def test_http_error_status(self) -> None:
        client = SolanaWalletClient(rpc_url=RPC_URL, session=_session(status=502))

        with pytest.raises(ConnectionError, match="502"):
            await client.get_balance("wallet-1")

    @pytest.mark.asyncio
    async def test_network_error(self) -> None:
        session = MagicMock()
        session.post.side_effect = aiohttp.ClientConnectionError("refused")
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        with pytest.raises(ConnectionError):
            await client.get_balance("wallet-1")

    @pytest.mark.asyncio
    async def test_unexpected_result(self) -> None:
        client = SolanaWalletClient(rpc_url=RPC_URL, session=_session(body={"result": None}))

        with pytest.raises(ConnectionError, match="Unexpected"):
            await client.get_balance("wallet-1")

    @pytest.mark.asyncio
    async def test_close_leaves_injected_session_open(self) -> None:
        session = _session()
        session.close = AsyncMock()
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        await client.close()

        session.close.assert_not_awaited()


class TestSendTransaction:
    """Tests for broadcasting signed transactions."""

    @pytest.mark.asyncio
    async def test_returns_signature(self) -> None:
        session = _session(body={"jsonrpc": "2.0", "id": 1, "result": "5VERv8NMvzbJ"})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        assert await client.send_transaction("AQID") == "5VERv8NMvzbJ"

        payload = session.post.call_args.kwargs["json"]
        assert payload["method"] == "sendTransaction"
        assert payload["params"][0] == "AQID"
        assert payload["params"][1]["encoding"] == "base64"

    @pytest.mark.asyncio
    async def test_preflight_rejection(self) -> None:
        session = _session(body={"error": {"code": -32002, "message": "Transaction simulation failed"}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        with pytest.raises(ConnectionError, match="simulation failed"):
            await client.send_transaction("AQID")

    @pytest.mark.asyncio
    async def test_non_string_result(self) -> None:
        client = SolanaWalletClient(rpc_url=RPC_URL, session=_session(body={"result": {"value": 1}}))

        with pytest.raises(ConnectionError, match="Unexpected sendTransaction"):
            await client.send_transaction("AQID")


class TestGetSignatureStatus:
    """Tests for signature status lookups."""

    @pytest.mark.asyncio
    async def test_known_signature(self) -> None:
        status = {"slot": 7, "confirmations": None, "err": None, "confirmationStatus": "finalized"}
        session = _session(body={"result": {"context": {"slot": 9}, "value": [status]}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        assert await client.get_signature_status("sig-1") == status

        payload = session.post.call_args.kwargs["json"]
        assert payload["method"] == "getSignatureStatuses"
        assert payload["params"] == [["sig-1"]]

    @pytest.mark.asyncio
    async def test_unknown_signature(self) -> None:
        session = _session(body={"result": {"context": {"slot": 9}, "value": [None]}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        assert await client.get_signature_status("sig-1") is None

    @pytest.mark.asyncio
    async def test_empty_value(self) -> None:
        session = _session(body={"result": {"context": {"slot": 9}, "value": []}})
        client = SolanaWalletClient(rpc_url=RPC_URL, session=session)

        assert await client.get_signature_status("sig-1") is None


class TestExplorerUrl:
    """Tests for explorer links."""

    def test_devnet(self) -> None:
        assert explorer_url("abc") == "https://explorer.solana.com/tx/abc?cluster=devnet"

    def test_cluster(self) -> None:
        assert explorer_url("abc", "mainnet-beta").endswith("?cluster=mainnet-beta")
