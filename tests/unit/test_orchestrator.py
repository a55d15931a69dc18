"""Unit tests for TradeOrchestrator."""

from __future__ import annotations

from unittest.mock import AsyncMock

import fakeredis.aioredis
import pytest

from mentionbot.core.orchestrator import TradeOrchestrator
from mentionbot.execution.base import ExecutionError
from mentionbot.execution.paper_wallet import PaperWallet
from mentionbot.models.bot import BotProfile
from mentionbot.models.command import CommandAction, ParsedCommand
from mentionbot.models.trade import TradeStatus
from mentionbot.monitoring.metrics import MetricsCollector
from mentionbot.storage.redis_store import RedisStorage

WALLET = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
async def redis_client():
    client = fakeredis.aioredis.FakeRedis()
    yield client
    await client.aclose()


@pytest.fixture
async def storage(redis_client):
    s = RedisStorage(client=redis_client)
    await s.connect()
    yield s
    await s.disconnect()


@pytest.fixture
def wallet() -> PaperWallet:
    return PaperWallet(initial_balances={WALLET: {"SOL": 20.0, "USDC": 50.0}})


@pytest.fixture
def notifier() -> AsyncMock:
    n = AsyncMock()
    n.trade_outcome.return_value = 1
    return n


@pytest.fixture
def bot() -> BotProfile:
    return BotProfile(
        id=1,
        name="TradeBot",
        handle="tradebot",
        owner_handle="tradebot_owner",
        wallet_public_key=WALLET,
        transaction_fee=0.01,
    )


@pytest.fixture
def orchestrator(storage, wallet, notifier) -> TradeOrchestrator:
    return TradeOrchestrator(
        storage=storage,
        swap_client=wallet,
        wallet_client=wallet,
        notifier=notifier,
    )


def _swap(amount: float = 0.01, in_token: str = "SOL", out_token: str = "JUP") -> ParsedCommand:
    return ParsedCommand(
        action=CommandAction.SWAP, in_token=in_token, out_token=out_token, amount=amount
    )


# ---------------------------------------------------------------------------
# Successful execution
# ---------------------------------------------------------------------------


class TestExecuteSuccess:
    """Tests for trades that complete."""

    @pytest.mark.asyncio
    async def test_completed_trade(self, orchestrator, storage, bot) -> None:
        trade = await orchestrator.execute(
            _swap(), bot, source_message_id="123", source_message_text="@tradebot swap"
        )

        assert trade.status == TradeStatus.COMPLETED
        assert trade.transaction_signature.startswith("simulated_")
        assert trade.out_amount > 0
        assert trade.source_message_id == "123"

        stored = await storage.get_trade(trade.id)
        assert stored.status == TradeStatus.COMPLETED
        assert [t.id for t in await storage.list_trades(bot.id)] == [trade.id]

    @pytest.mark.asyncio
    async def test_notifies_after_completion(self, orchestrator, notifier, bot) -> None:
        trade = await orchestrator.execute(_swap(), bot)
        await orchestrator.drain()

        notifier.trade_outcome.assert_awaited_once()
        notified_trade, notified_bot = notifier.trade_outcome.await_args.args
        assert notified_trade.id == trade.id
        assert notified_bot is bot
        assert orchestrator.pending_side_effects == 0

    @pytest.mark.asyncio
    async def test_refreshes_balances(self, orchestrator, storage, wallet, bot) -> None:
        trade = await orchestrator.execute(_swap(amount=10.0, in_token="USDC", out_token="JUP"), bot)
        await orchestrator.drain()

        sol = await storage.get_token_balance(WALLET, "SOL")
        assert sol.balance == pytest.approx(wallet.token_balance(WALLET, "SOL"))
        jup = await storage.get_token_balance(WALLET, "JUP")
        assert jup.balance == pytest.approx(trade.out_amount)
        usdc = await storage.get_token_balance(WALLET, "USDC")
        assert usdc.balance == 0.0

    @pytest.mark.asyncio
    async def test_notifier_failure_keeps_trade_completed(
        self, storage, wallet, bot
    ) -> None:
        notifier = AsyncMock()
        notifier.trade_outcome.side_effect = RuntimeError("telegram down")
        orchestrator = TradeOrchestrator(
            storage=storage, swap_client=wallet, wallet_client=wallet, notifier=notifier
        )

        trade = await orchestrator.execute(_swap(), bot)
        await orchestrator.drain()

        stored = await storage.get_trade(trade.id)
        assert stored.status == TradeStatus.COMPLETED

    @pytest.mark.asyncio
    async def test_records_metrics(self, storage, wallet, bot) -> None:
        metrics = MetricsCollector()
        orchestrator = TradeOrchestrator(
            storage=storage, swap_client=wallet, wallet_client=wallet, metrics=metrics
        )

        await orchestrator.execute(_swap(), bot)

        value = metrics.registry.get_sample_value(
            "mentionbot_trades_total",
            {"bot_id": "1", "status": "completed", "simulated": "true"},
        )
        assert value == 1.0


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------


class TestExecuteFailures:
    """Tests for trades that fail."""

    @pytest.mark.asyncio
    async def test_insufficient_funds_skips_swap(self, storage, bot) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 0.0
        swap = AsyncMock()
        orchestrator = TradeOrchestrator(storage=storage, swap_client=swap, wallet_client=wallet)

        trade = await orchestrator.execute(_swap(), bot)

        assert trade.status == TradeStatus.FAILED
        assert "insufficient funds" in trade.error_message.lower()
        assert "required=0.02 SOL" in trade.error_message
        assert "available=0 SOL" in trade.error_message
        swap.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_fee_is_included_in_required_amount(self, storage, bot) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 0.015
        swap = AsyncMock()
        orchestrator = TradeOrchestrator(storage=storage, swap_client=swap, wallet_client=wallet)

        trade = await orchestrator.execute(_swap(amount=0.01), bot)

        assert trade.status == TradeStatus.FAILED
        swap.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_missing_wallet(self, orchestrator, storage, bot) -> None:
        no_wallet = bot.model_copy(update={"wallet_public_key": None})

        trade = await orchestrator.execute(_swap(), no_wallet)

        assert trade.status == TradeStatus.FAILED
        assert trade.error_message == "Wallet not found"

    @pytest.mark.asyncio
    async def test_balance_check_error(self, storage, bot) -> None:
        wallet = AsyncMock()
        wallet.get_balance.side_effect = ConnectionError("rpc unreachable")
        swap = AsyncMock()
        orchestrator = TradeOrchestrator(storage=storage, swap_client=swap, wallet_client=wallet)

        trade = await orchestrator.execute(_swap(), bot)

        assert trade.status == TradeStatus.FAILED
        assert "rpc unreachable" in trade.error_message
        swap.execute.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_swap_error_fails_trade(self, storage, bot, notifier) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 5.0
        swap = AsyncMock()
        swap.execute.side_effect = ExecutionError("route not found")
        orchestrator = TradeOrchestrator(
            storage=storage, swap_client=swap, wallet_client=wallet, notifier=notifier
        )

        trade = await orchestrator.execute(_swap(), bot)
        await orchestrator.drain()

        assert trade.status == TradeStatus.FAILED
        assert trade.error_message == "route not found"
        assert trade.transaction_signature is None
        notifier.trade_outcome.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_failed_trade_does_not_refresh_balances(
        self, storage, bot
    ) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 0.0
        orchestrator = TradeOrchestrator(
            storage=storage, swap_client=AsyncMock(), wallet_client=wallet
        )

        await orchestrator.execute(_swap(), bot)
        await orchestrator.drain()

        assert await storage.get_token_balance(WALLET, "SOL") is None


# ---------------------------------------------------------------------------
# Simulated fallback
# ---------------------------------------------------------------------------


class TestSimulateOnFailure:
    """Tests for the opt-in simulated result on swap failure."""

    @pytest.mark.asyncio
    async def test_simulated_result(self, storage, bot) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 5.0
        swap = AsyncMock()
        swap.execute.side_effect = ExecutionError("aggregator timeout")
        orchestrator = TradeOrchestrator(
            storage=storage,
            swap_client=swap,
            wallet_client=wallet,
            simulate_on_failure=True,
            simulated_output_multiplier=2.0,
        )

        trade = await orchestrator.execute(_swap(amount=0.5), bot)

        assert trade.status == TradeStatus.COMPLETED
        assert trade.transaction_signature.startswith("simulated_")
        assert trade.transaction_signature[len("simulated_"):].isdigit()
        assert trade.out_amount == pytest.approx(1.0)
        assert trade.simulated

    @pytest.mark.asyncio
    async def test_fallback_does_not_bypass_funds_check(self, storage, bot) -> None:
        wallet = AsyncMock()
        wallet.get_balance.return_value = 0.0
        swap = AsyncMock()
        orchestrator = TradeOrchestrator(
            storage=storage,
            swap_client=swap,
            wallet_client=wallet,
            simulate_on_failure=True,
        )

        trade = await orchestrator.execute(_swap(), bot)

        assert trade.status == TradeStatus.FAILED
        swap.execute.assert_not_awaited()
