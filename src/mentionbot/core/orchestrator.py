"""Trade orchestration: funds check -> swap -> terminal status -> side effects.

A trade moves ``pending -> executing -> completed | failed`` within a single
``execute`` call and is never retried. Balance refreshes and notifications run
afterwards as background tasks; their failures are logged and never change
the trade's terminal status.
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Coroutine
from typing import Any

from mentionbot.alerts.manager import NotificationDispatcher
from mentionbot.execution.base import InsufficientFundsError, SwapClient, WalletClient
from mentionbot.execution.tokens import NATIVE_TOKEN
from mentionbot.logging import get_logger
from mentionbot.models.bot import BotProfile
from mentionbot.models.command import ParsedCommand
from mentionbot.models.trade import SIMULATED_SIGNATURE_PREFIX, SwapResult, Trade, TradeStatus
from mentionbot.monitoring.metrics import MetricsCollector
from mentionbot.storage.base import Storage


class TradeOrchestrator:
    """Takes a validated command through execution to a terminal Trade.

    Attributes:
        simulate_on_failure: Substitute a simulated result when the swap fails.
        simulated_output_multiplier: Output per input unit of simulated results.
    """

    def __init__(
        self,
        storage: Storage,
        swap_client: SwapClient,
        wallet_client: WalletClient,
        notifier: NotificationDispatcher | None = None,
        metrics: MetricsCollector | None = None,
        simulate_on_failure: bool = False,
        simulated_output_multiplier: float = 2.0,
        balance_refresh_delay: float = 0.0,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            storage: Trade and balance persistence.
            swap_client: Executes swaps (paper or live).
            wallet_client: Reads native wallet balances.
            notifier: Receives terminal trades, if configured.
            metrics: Prometheus collector, if configured.
            simulate_on_failure: Opt-in sandbox fallback for failed swaps.
            simulated_output_multiplier: Output multiplier of the fallback.
            balance_refresh_delay: Seconds to wait before re-reading balances
                after a completed trade, giving the chain time to settle.
        """
        self._storage = storage
        self._swap_client = swap_client
        self._wallet_client = wallet_client
        self._notifier = notifier
        self._metrics = metrics
        self.simulate_on_failure = simulate_on_failure
        self.simulated_output_multiplier = simulated_output_multiplier
        self._balance_refresh_delay = balance_refresh_delay
        self._side_effects: set[asyncio.Task] = set()
        self._logger = get_logger("orchestrator")

    @property
    def pending_side_effects(self) -> int:
        return len(self._side_effects)

    async def execute(
        self,
        command: ParsedCommand,
        bot: BotProfile,
        source_message_id: str | None = None,
        source_message_text: str | None = None,
    ) -> Trade:
        """Execute a validated command for ``bot``.

        Args:
            command: Parsed and validated command.
            bot: Bot whose wallet trades.
            source_message_id: Originating mention, if any.
            source_message_text: Text of the originating mention.

        Returns:
            The trade in its terminal state.
        """
        started = time.monotonic()
        trade = await self._storage.create_trade(
            Trade(
                bot_id=bot.id,
                action=command.action.value,
                in_token=command.in_token,
                out_token=command.out_token,
                amount=command.amount,
                source_message_id=source_message_id,
                source_message_text=source_message_text,
            )
        )
        log = self._logger.bind(
            bot_id=bot.id, trade_id=trade.id, message_id=source_message_id
        )
        log.info(
            "trade_created",
            action=trade.action,
            in_token=trade.in_token,
            out_token=trade.out_token,
            amount=trade.amount,
        )

        trade = await self._run(trade, bot, log)

        if self._metrics is not None:
            self._metrics.record_trade(
                bot.id, trade.status.value, trade.simulated, time.monotonic() - started
            )
        if trade.status == TradeStatus.COMPLETED:
            self._spawn(self._after_completion(trade, bot))
        else:
            self._spawn(self._notify(trade, bot))
        return trade

    async def _run(self, trade: Trade, bot: BotProfile, log: Any) -> Trade:
        wallet = bot.wallet_public_key
        if not wallet:
            return await self._fail(trade, "Wallet not found", log)

        try:
            balance = await self._wallet_client.get_balance(wallet)
        except Exception as e:
            return await self._fail(trade, f"Balance check failed: {e}", log)

        required = trade.amount + bot.transaction_fee
        if balance < required:
            error = InsufficientFundsError(wallet, required, balance)
            return await self._fail(trade, str(error), log)

        trade = await self._storage.update_trade_status(trade.id, TradeStatus.EXECUTING)
        log.info("trade_executing", balance=balance, required=required)

        try:
            result = await self._swap_client.execute(
                trade.in_token,
                trade.out_token,
                trade.amount,
                wallet,
                bot.slippage_bps,
            )
        except Exception as e:
            if not self.simulate_on_failure:
                return await self._fail(trade, str(e) or type(e).__name__, log)
            log.warning("swap_failed_simulating", error=str(e))
            try:
                result = self._simulated_result(trade.amount)
            except Exception as sim_error:
                return await self._fail(trade, f"Simulation failed: {sim_error}", log)

        trade = await self._storage.update_trade_status(
            trade.id,
            TradeStatus.COMPLETED,
            signature=result.signature,
            out_amount=result.out_amount,
        )
        log.info(
            "trade_completed",
            signature=result.signature,
            out_amount=result.out_amount,
            simulated=result.simulated,
        )
        return trade

    def _simulated_result(self, amount: float) -> SwapResult:
        return SwapResult(
            signature=f"{SIMULATED_SIGNATURE_PREFIX}{int(time.time() * 1000)}",
            out_amount=amount * self.simulated_output_multiplier,
            exchange_rate=self.simulated_output_multiplier,
        )

    async def _fail(self, trade: Trade, reason: str, log: Any) -> Trade:
        log.warning("trade_failed", error=reason)
        return await self._storage.update_trade_status(
            trade.id, TradeStatus.FAILED, error=reason
        )

    # --- Side effects ---

    def _spawn(self, coro: Coroutine[Any, Any, None]) -> None:
        task = asyncio.create_task(coro)
        self._side_effects.add(task)
        task.add_done_callback(self._side_effects.discard)

    async def drain(self) -> None:
        """Wait for all pending balance refreshes and notifications."""
        while self._side_effects:
            await asyncio.gather(*list(self._side_effects), return_exceptions=True)

    async def _after_completion(self, trade: Trade, bot: BotProfile) -> None:
        await self._refresh_balances(trade, bot)
        await self._notify(trade, bot)

    async def _refresh_balances(self, trade: Trade, bot: BotProfile) -> None:
        wallet = bot.wallet_public_key
        if not wallet:
            return
        try:
            if self._balance_refresh_delay > 0:
                await asyncio.sleep(self._balance_refresh_delay)
            balance = await self._wallet_client.get_balance(wallet)
            await self._storage.set_wallet_balance(wallet, balance)

            if trade.in_token != NATIVE_TOKEN:
                current = await self._storage.get_token_balance(wallet, trade.in_token)
                held = current.balance if current else 0.0
                await self._storage.set_token_balance(
                    wallet, trade.in_token, max(0.0, held - trade.amount)
                )
            if trade.out_token != NATIVE_TOKEN and trade.out_amount is not None:
                current = await self._storage.get_token_balance(wallet, trade.out_token)
                held = current.balance if current else 0.0
                await self._storage.set_token_balance(
                    wallet, trade.out_token, held + trade.out_amount
                )
        except Exception:
            self._logger.exception("balance_refresh_failed", bot_id=bot.id, trade_id=trade.id)

    async def _notify(self, trade: Trade, bot: BotProfile) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.trade_outcome(trade, bot)
        except Exception:
            self._logger.exception("trade_notification_failed", bot_id=bot.id, trade_id=trade.id)
