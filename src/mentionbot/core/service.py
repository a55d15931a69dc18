"""Command service: the operations exposed to the scheduler and the HTTP layer.

Mentions found by the scheduler and commands submitted by hand both go
through ``process_single_command``, so parsing, validation and execution are
identical for the two paths.
"""

from __future__ import annotations

from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime

from mentionbot.alerts.manager import NotificationDispatcher
from mentionbot.commands.parser import (
    DEFAULT_TOKENS,
    CommandError,
    CommandParser,
    validate_command,
)
from mentionbot.config import SchedulerConfig
from mentionbot.connectors.base import SocialClient
from mentionbot.connectors.rate_limiter import RateLimitTracker
from mentionbot.core.orchestrator import TradeOrchestrator
from mentionbot.core.scheduler import (
    BotNotFoundError,
    MentionScheduler,
    utcnow,
)
from mentionbot.logging import get_logger
from mentionbot.models.bot import BotProfile
from mentionbot.models.command import ParsedCommand
from mentionbot.models.mention import Mention, MentionRecord, MentionStatus
from mentionbot.models.schedule import PollSchedule, RateLimitState
from mentionbot.models.trade import Trade, TradeStatus
from mentionbot.monitoring.metrics import MetricsCollector
from mentionbot.storage.base import Storage


class SchedulingUnavailableError(RuntimeError):
    """Raised when scheduling is requested but no social client is configured."""


@dataclass
class CommandOutcome:
    """Result of processing one command.

    Attributes:
        bot_id: Addressed bot.
        command: Parsed command, if parsing succeeded.
        trade: Resulting trade, if the command passed validation.
        error: Parse or validation error, if the command was rejected.
    """

    bot_id: int
    command: ParsedCommand | None = None
    trade: Trade | None = None
    error: str | None = None

    @property
    def accepted(self) -> bool:
        return self.error is None


class CommandService:
    """Entry point for scheduling control and command processing."""

    def __init__(
        self,
        bots: Iterable[BotProfile],
        storage: Storage,
        orchestrator: TradeOrchestrator,
        social_client: SocialClient | None = None,
        scheduler_config: SchedulerConfig | None = None,
        rate_limiter: RateLimitTracker | None = None,
        parser: CommandParser | None = None,
        notifier: NotificationDispatcher | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the service.

        Args:
            bots: Configured bot profiles.
            storage: Persistence for schedules, trades and the mention ledger.
            orchestrator: Executes validated commands.
            social_client: Source of mentions. Without one, scheduling is disabled.
            scheduler_config: Polling timing settings.
            rate_limiter: Shared quota tracker.
            parser: Command parser. Defaults to one that recognises the
                default tokens plus every token a bot supports.
            notifier: Receives command rejections.
            metrics: Prometheus collector, if configured.
            clock: Callable returning the current aware datetime.
        """
        self._bots: dict[int, BotProfile] = {bot.id: bot for bot in bots}
        self._storage = storage
        self._orchestrator = orchestrator
        self._notifier = notifier
        self._metrics = metrics
        self._logger = get_logger("command_service")

        if parser is None:
            tokens = list(DEFAULT_TOKENS)
            for bot in self._bots.values():
                tokens.extend(bot.supported_tokens)
            parser = CommandParser(tokens)
        self._parser = parser

        self.scheduler: MentionScheduler | None = None
        if social_client is not None:
            self.scheduler = MentionScheduler(
                storage=storage,
                social_client=social_client,
                bot_lookup=self.get_bot,
                handler=self.handle_mention,
                config=scheduler_config,
                rate_limiter=rate_limiter,
                metrics=metrics,
                clock=clock,
            )

    @property
    def bots(self) -> list[BotProfile]:
        return list(self._bots.values())

    @property
    def orchestrator(self) -> TradeOrchestrator:
        return self._orchestrator

    def get_bot(self, bot_id: int) -> BotProfile | None:
        return self._bots.get(bot_id)

    def require_bot(self, bot_id: int) -> BotProfile:
        """Return the bot profile or raise BotNotFoundError."""
        bot = self._bots.get(bot_id)
        if bot is None:
            raise BotNotFoundError(bot_id)
        return bot

    # --- Scheduling ---

    def _require_scheduler(self) -> MentionScheduler:
        if self.scheduler is None:
            raise SchedulingUnavailableError("Mention polling is not configured")
        return self.scheduler

    async def start_scheduling(self, bot_id: int) -> PollSchedule:
        """Start polling mentions for a bot.

        Raises:
            BotNotFoundError: If the bot is not configured.
            BotNotPollableError: If the bot cannot be polled.
            SchedulingUnavailableError: If no social client is configured.
        """
        self.require_bot(bot_id)
        return await self._require_scheduler().schedule_bot(bot_id)

    async def stop_scheduling(self, bot_id: int) -> bool:
        """Stop future polls of a bot. An in-flight poll or trade still completes.

        Returns:
            True if the bot was being polled.
        """
        self.require_bot(bot_id)
        if self.scheduler is None:
            return False
        return self.scheduler.unschedule_bot(bot_id)

    async def get_schedule(self, bot_id: int) -> PollSchedule | None:
        self.require_bot(bot_id)
        return await self._storage.get_poll_schedule(bot_id)

    async def reset_schedule(self, bot_id: int) -> bool:
        """Stop polling a bot and forget its stored schedule and watermark.

        The next ``start_scheduling`` call begins from the default interval
        and fetches mentions without a since-id.

        Returns:
            True if a stored schedule was removed.
        """
        self.require_bot(bot_id)
        if self.scheduler is not None:
            self.scheduler.unschedule_bot(bot_id)
        existing = await self._storage.get_poll_schedule(bot_id)
        if existing is None:
            return False
        await self._storage.delete_poll_schedule(bot_id)
        self._logger.info("schedule_reset", bot_id=bot_id)
        return True

    def rate_limits(self) -> dict[str, RateLimitState]:
        if self.scheduler is None:
            return {}
        return self.scheduler.rate_limiter.snapshot()

    # --- Commands ---

    async def process_single_command(
        self,
        bot_id: int,
        text: str,
        source_message_id: str | None = None,
    ) -> CommandOutcome:
        """Parse, validate and execute one command for a bot.

        Parse and validation errors are returned in the outcome (and reported
        to the notifier) rather than raised.

        Raises:
            BotNotFoundError: If the bot is not configured.
        """
        bot = self.require_bot(bot_id)
        return await self._process(bot, text, source_message_id)

    async def _process(
        self, bot: BotProfile, text: str, source_message_id: str | None
    ) -> CommandOutcome:
        log = self._logger.bind(bot_id=bot.id, message_id=source_message_id)
        try:
            command = self._parser.parse(text, bot.handle)
            validate_command(command, bot.supported_actions, bot.supported_tokens)
        except CommandError as e:
            log.info("command_rejected", reason=str(e), error_type=type(e).__name__)
            await self._notify_rejection(bot, source_message_id, str(e))
            return CommandOutcome(bot_id=bot.id, error=str(e))

        log.info(
            "command_accepted",
            action=command.action.value,
            in_token=command.in_token,
            out_token=command.out_token,
            amount=command.amount,
        )
        trade = await self._orchestrator.execute(
            command,
            bot,
            source_message_id=source_message_id,
            source_message_text=text,
        )
        return CommandOutcome(bot_id=bot.id, command=command, trade=trade)

    async def handle_mention(self, bot: BotProfile, mention: Mention) -> MentionRecord:
        """Process a mention found by the scheduler, at most once per message id.

        Returns:
            The ledger entry of the mention. A mention seen before returns its
            existing entry without being processed again.
        """
        existing = await self._storage.get_mention_record(bot.id, mention.id)
        if existing is not None:
            self._logger.debug("mention_already_processed", bot_id=bot.id, message_id=mention.id)
            return existing

        record = MentionRecord(
            message_id=mention.id,
            bot_id=bot.id,
            text=mention.text,
            author_username=mention.author_username,
        )
        await self._storage.save_mention_record(record)

        try:
            outcome = await self._process(bot, mention.text, mention.id)
        except Exception as e:
            record = record.model_copy(
                update={"status": MentionStatus.FAILED, "error_message": str(e)}
            )
            await self._storage.save_mention_record(record)
            self._record_mention_metric(bot.id, record.status)
            raise

        if outcome.trade is None:
            update = {"status": MentionStatus.INVALID, "error_message": outcome.error}
        elif outcome.trade.status == TradeStatus.FAILED:
            update = {
                "status": MentionStatus.FAILED,
                "trade_id": outcome.trade.id,
                "error_message": outcome.trade.error_message,
            }
        else:
            update = {"status": MentionStatus.PROCESSED, "trade_id": outcome.trade.id}
        record = record.model_copy(update=update)
        await self._storage.save_mention_record(record)
        self._record_mention_metric(bot.id, record.status)
        return record

    # --- Queries ---

    async def list_trades(self, bot_id: int, limit: int = 50) -> list[Trade]:
        self.require_bot(bot_id)
        return await self._storage.list_trades(bot_id, limit)

    async def get_trade(self, trade_id: str) -> Trade | None:
        return await self._storage.get_trade(trade_id)

    async def shutdown(self) -> None:
        """Stop polling and wait for pending trade side effects."""
        if self.scheduler is not None:
            await self.scheduler.stop()
        await self._orchestrator.drain()

    async def _notify_rejection(
        self, bot: BotProfile, message_id: str | None, reason: str
    ) -> None:
        if self._notifier is None:
            return
        try:
            await self._notifier.command_rejected(bot, message_id, reason)
        except Exception:
            self._logger.exception("rejection_notification_failed", bot_id=bot.id, message_id=message_id)

    def _record_mention_metric(self, bot_id: int, status: MentionStatus) -> None:
        if self._metrics is not None:
            self._metrics.record_mention(bot_id, status.value)
