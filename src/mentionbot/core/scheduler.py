"""Adaptive mention-polling scheduler.

A single loop ticks once per ``tick_seconds`` and polls, one after another,
every scheduled bot whose ``next_poll_time`` has passed. The per-bot interval
adapts to traffic:

* mentions found: the interval halves, down to ``min_poll_interval``
* nothing found: the interval grows by half, up to ``default_poll_interval``
* rate limited: the interval doubles, up to ``max_backoff_seconds``, and the
  next poll waits for the server's reset time when one was reported

Mentions are handed to the handler oldest first. The stored watermark is the
highest id observed, not the last one handled.
"""

from __future__ import annotations

import asyncio
from collections.abc import Awaitable, Callable, Iterable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

from mentionbot.config import SchedulerConfig
from mentionbot.connectors.base import RateLimitError, SocialClient
from mentionbot.connectors.rate_limiter import SEARCH_ENDPOINT, RateLimitTracker
from mentionbot.logging import get_logger
from mentionbot.models.bot import BotProfile
from mentionbot.models.mention import Mention, message_id_key, newest_message_id
from mentionbot.models.schedule import PollSchedule
from mentionbot.monitoring.metrics import MetricsCollector
from mentionbot.storage.base import Storage

MentionHandler = Callable[[BotProfile, Mention], Awaitable[object]]
BotLookup = Callable[[int], BotProfile | None]


class BotNotFoundError(KeyError):
    """Raised when a bot id is not configured."""

    def __init__(self, bot_id: int) -> None:
        self.bot_id = bot_id
        super().__init__(bot_id)

    def __str__(self) -> str:
        return f"Bot {self.bot_id} not found"


class BotNotPollableError(ValueError):
    """Raised when scheduling a bot that is inactive or has no social integration."""


def utcnow() -> datetime:
    return datetime.now(UTC)


@dataclass
class PollResult:
    """Outcome of one poll attempt.

    Attributes:
        bot_id: Polled bot.
        outcome: "mentions", "empty", "rate_limited", "skipped" or "error".
        mentions: Number of mentions fetched.
        next_poll_time: When the bot is due again.
        backoff_seconds: Interval chosen for the bot.
        last_seen_message_id: Watermark after the poll.
    """

    bot_id: int
    outcome: str
    next_poll_time: datetime
    backoff_seconds: float
    mentions: int = 0
    last_seen_message_id: str | None = None
    errors: list[str] = field(default_factory=list)


class MentionScheduler:
    """Polls bot mentions on an adaptive per-bot schedule.

    Attributes:
        config: Timing settings.
        rate_limiter: Per-endpoint quota state, shared with the HTTP layer.
    """

    def __init__(
        self,
        storage: Storage,
        social_client: SocialClient,
        bot_lookup: BotLookup,
        handler: MentionHandler,
        config: SchedulerConfig | None = None,
        rate_limiter: RateLimitTracker | None = None,
        metrics: MetricsCollector | None = None,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        """Initialize the scheduler.

        Args:
            storage: Poll schedule persistence.
            social_client: Source of mentions.
            bot_lookup: Resolves a bot id to its profile.
            handler: Called once per fetched mention, oldest first.
            config: Timing settings.
            rate_limiter: Shared tracker; a new one is created if omitted.
            metrics: Prometheus collector, if configured.
            clock: Callable returning the current aware datetime.
        """
        self.config = config or SchedulerConfig()
        self.rate_limiter = rate_limiter or RateLimitTracker(
            low_watermark=self.config.search_low_watermark, clock=clock
        )
        self._storage = storage
        self._social = social_client
        self._bot_lookup = bot_lookup
        self._handler = handler
        self._metrics = metrics
        self._clock = clock
        # Insertion-ordered so stagger offsets follow configuration order
        self._scheduled: dict[int, None] = {}
        self._running = False
        self._task: asyncio.Task | None = None
        self._logger = get_logger("scheduler")

    @property
    def is_running(self) -> bool:
        """Whether the polling loop is currently running."""
        return self._running

    @property
    def scheduled_bot_ids(self) -> list[int]:
        return list(self._scheduled)

    def is_scheduled(self, bot_id: int) -> bool:
        return bot_id in self._scheduled

    # --- Scheduling ---

    async def initialize(self, bot_ids: Iterable[int]) -> list[PollSchedule]:
        """Schedule the given bots, staggering their first polls.

        Bots without a schedule, or whose schedule is already due, get
        ``next_poll_time = now + index * stagger_seconds`` and the default
        interval. Future schedules are kept as they are.

        Returns:
            Schedules of the bots that were scheduled.
        """
        now = self._clock()
        schedules: list[PollSchedule] = []
        index = 0
        for bot_id in bot_ids:
            bot = self._bot_lookup(bot_id)
            if bot is None or not bot.pollable:
                self._logger.info("bot_not_pollable", bot_id=bot_id)
                continue

            schedule = await self._storage.get_poll_schedule(bot_id)
            if schedule is None or schedule.next_poll_time <= now:
                schedule = await self._storage.save_poll_schedule(
                    bot_id,
                    now + timedelta(seconds=index * self.config.stagger_seconds),
                    self.config.default_poll_interval,
                )
            self._scheduled[bot_id] = None
            schedules.append(schedule)
            index += 1

        self._update_scheduled_gauge()
        self._logger.info("scheduler_initialized", bots=self.scheduled_bot_ids)
        return schedules

    async def schedule_bot(self, bot_id: int) -> PollSchedule:
        """Start polling one bot, due immediately with the default interval.

        The stored watermark is kept, so mentions already seen are not
        fetched again.

        Raises:
            BotNotFoundError: If the bot is not configured.
            BotNotPollableError: If the bot is inactive or social polling is off.
        """
        bot = self._bot_lookup(bot_id)
        if bot is None:
            raise BotNotFoundError(bot_id)
        if not bot.pollable:
            raise BotNotPollableError(f"Bot {bot_id} is inactive or has no social integration")

        schedule = await self._storage.save_poll_schedule(
            bot_id, self._clock(), self.config.default_poll_interval
        )
        self._scheduled[bot_id] = None
        self._update_scheduled_gauge()
        self._logger.info("bot_scheduled", bot_id=bot_id)
        return schedule

    def unschedule_bot(self, bot_id: int) -> bool:
        """Stop future polls of a bot. An in-flight poll still completes.

        Returns:
            True if the bot was scheduled.
        """
        if bot_id not in self._scheduled:
            return False
        del self._scheduled[bot_id]
        self._update_scheduled_gauge()
        self._logger.info("bot_unscheduled", bot_id=bot_id)
        return True

    # --- Loop ---

    async def start(self, bot_ids: Iterable[int] | None = None) -> None:
        """Initialize the given bots and start the polling loop.

        Args:
            bot_ids: Bots to schedule before the first tick.
        """
        if self._running:
            return
        if bot_ids is not None:
            await self.initialize(bot_ids)
        self._running = True
        self._task = asyncio.create_task(self._run_loop())
        self._logger.info("scheduler_started", tick_seconds=self.config.tick_seconds)

    async def stop(self) -> None:
        """Stop the polling loop and wait for completion."""
        self._running = False
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        self._logger.info("scheduler_stopped")

    async def _run_loop(self) -> None:
        while self._running:
            try:
                await self.tick()
            except Exception:
                self._logger.exception("scheduler_tick_failed")
            await asyncio.sleep(self.config.tick_seconds)

    async def tick(self) -> list[PollResult]:
        """Poll every scheduled bot that is due, sequentially.

        Returns:
            Results of the polls made in this tick.
        """
        results: list[PollResult] = []
        for bot_id in list(self._scheduled):
            if bot_id not in self._scheduled:
                continue
            try:
                schedule = await self._storage.get_poll_schedule(bot_id)
                if schedule is not None and schedule.next_poll_time > self._clock():
                    continue
                results.append(await self.poll_bot(bot_id))
            except Exception:
                self._logger.exception("poll_failed", bot_id=bot_id)
        return results

    # --- Polling ---

    async def poll_bot(self, bot_id: int) -> PollResult:
        """Poll one bot now, regardless of its schedule.

        Raises:
            BotNotFoundError: If the bot is not configured.
        """
        bot = self._bot_lookup(bot_id)
        if bot is None:
            raise BotNotFoundError(bot_id)

        cfg = self.config
        now = self._clock()
        schedule = await self._storage.get_poll_schedule(bot_id)
        if schedule is None:
            schedule = await self._storage.save_poll_schedule(
                bot_id, now, cfg.default_poll_interval
            )
        backoff = schedule.backoff_seconds
        log = self._logger.bind(bot_id=bot_id, handle=bot.handle)

        if self.rate_limiter.is_limited(SEARCH_ENDPOINT):
            reset_at = self.rate_limiter.reset_at(SEARCH_ENDPOINT) or now
            next_poll = max(now + timedelta(seconds=cfg.min_poll_interval), reset_at)
            log.info("poll_skipped_rate_limited", next_poll_time=next_poll.isoformat())
            return await self._finish(schedule, "skipped", next_poll, backoff)

        try:
            mentions, rate_limit = await self._social.fetch_mentions_since(
                bot.handle, schedule.last_seen_message_id
            )
        except RateLimitError as e:
            backoff = min(backoff * cfg.backoff_multiplier, cfg.max_backoff_seconds)
            if e.reset_at is not None:
                next_poll = max(e.reset_at + timedelta(seconds=cfg.safety_buffer_seconds), now)
            else:
                next_poll = now + timedelta(seconds=backoff)
            self.rate_limiter.record_limit(e.endpoint or SEARCH_ENDPOINT, e.reset_at or next_poll)
            if self._metrics is not None:
                self._metrics.record_rate_limit(e.endpoint or SEARCH_ENDPOINT)
            log.warning(
                "poll_rate_limited",
                backoff_seconds=backoff,
                next_poll_time=next_poll.isoformat(),
            )
            return await self._finish(schedule, "rate_limited", next_poll, backoff)
        except Exception as e:
            log.warning("poll_error", error=str(e), error_type=type(e).__name__)
            result = await self._finish(
                schedule, "error", now + timedelta(seconds=backoff), backoff
            )
            result.errors.append(str(e))
            return result

        if rate_limit is not None:
            self.rate_limiter.record_success(
                SEARCH_ENDPOINT, rate_limit.remaining, rate_limit.reset_at
            )

        if not mentions:
            interval = min(cfg.default_poll_interval, backoff * 1.5)
            return await self._finish(
                schedule, "empty", self._clock() + timedelta(seconds=interval), interval
            )

        interval = max(cfg.min_poll_interval, backoff / 2)
        log.info("mentions_found", count=len(mentions))

        errors: list[str] = []
        for mention in sorted(mentions, key=lambda m: message_id_key(m.id)):
            try:
                await self._handler(bot, mention)
            except Exception as e:
                errors.append(f"{mention.id}: {e}")
                log.exception("mention_handling_failed", message_id=mention.id)

        watermark = newest_message_id(
            schedule.last_seen_message_id, *(m.id for m in mentions)
        )
        if watermark != schedule.last_seen_message_id:
            await self._storage.set_last_seen_message_id(bot_id, watermark)
            schedule = schedule.model_copy(update={"last_seen_message_id": watermark})

        result = await self._finish(
            schedule, "mentions", self._clock() + timedelta(seconds=interval), interval
        )
        result.mentions = len(mentions)
        result.errors.extend(errors)
        return result

    async def _finish(
        self,
        schedule: PollSchedule,
        outcome: str,
        next_poll_time: datetime,
        backoff_seconds: float,
    ) -> PollResult:
        await self._storage.save_poll_schedule(
            schedule.bot_id, next_poll_time, backoff_seconds
        )
        if self._metrics is not None:
            self._metrics.record_poll(schedule.bot_id, outcome, backoff_seconds)
        return PollResult(
            bot_id=schedule.bot_id,
            outcome=outcome,
            next_poll_time=next_poll_time,
            backoff_seconds=backoff_seconds,
            last_seen_message_id=schedule.last_seen_message_id,
        )

    def _update_scheduled_gauge(self) -> None:
        if self._metrics is not None:
            self._metrics.scheduled_bots.set(len(self._scheduled))
