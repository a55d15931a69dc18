"""Prometheus metrics for mention polling and trade execution."""

from __future__ import annotations

from prometheus_client import (
    CollectorRegistry,
    Counter,
    Gauge,
    Histogram,
    Info,
    start_http_server,
)


class MetricsCollector:
    """Central Prometheus metrics registry for MentionBot.

    Uses a custom CollectorRegistry to avoid global state conflicts,
    making it safe for use in tests and multiple instances.

    Attributes:
        registry: The Prometheus CollectorRegistry used for all metrics.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        """Initialize all Prometheus metrics.

        Args:
            registry: Custom registry. Creates a new one if not provided.
        """
        self._registry = registry or CollectorRegistry()

        # --- Counters ---
        self.polls_total = Counter(
            "mentionbot_polls_total",
            "Mention poll attempts",
            ["bot_id", "outcome"],
            registry=self._registry,
        )
        self.mentions_total = Counter(
            "mentionbot_mentions_total",
            "Mentions processed",
            ["bot_id", "status"],
            registry=self._registry,
        )
        self.rate_limit_hits = Counter(
            "mentionbot_rate_limit_hits_total",
            "Polls rejected or skipped because of the social API quota",
            ["endpoint"],
            registry=self._registry,
        )
        self.trades_total = Counter(
            "mentionbot_trades_total",
            "Trades by terminal status",
            ["bot_id", "status", "simulated"],
            registry=self._registry,
        )

        # --- Gauges ---
        self.backoff_seconds = Gauge(
            "mentionbot_backoff_seconds",
            "Current polling interval per bot",
            ["bot_id"],
            registry=self._registry,
        )
        self.scheduled_bots = Gauge(
            "mentionbot_scheduled_bots",
            "Number of bots currently scheduled for polling",
            registry=self._registry,
        )
        self.queue_depth = Gauge(
            "mentionbot_command_queue_depth",
            "Commands waiting in the background queue",
            registry=self._registry,
        )

        # --- Histograms ---
        self.trade_latency = Histogram(
            "mentionbot_trade_latency_seconds",
            "Time from trade creation to terminal status",
            buckets=[0.05, 0.1, 0.25, 0.5, 1.0, 2.5, 5.0, 10.0, 30.0],
            registry=self._registry,
        )

        # --- Info ---
        self.system_info = Info(
            "mentionbot_system",
            "MentionBot system information",
            registry=self._registry,
        )

    @property
    def registry(self) -> CollectorRegistry:
        """Return the collector registry."""
        return self._registry

    def record_poll(self, bot_id: int, outcome: str, backoff_seconds: float) -> None:
        """Record a poll attempt and the interval chosen after it.

        Args:
            bot_id: Polled bot.
            outcome: "mentions", "empty", "rate_limited", "skipped" or "error".
            backoff_seconds: Interval until the next poll.
        """
        self.polls_total.labels(bot_id=str(bot_id), outcome=outcome).inc()
        self.backoff_seconds.labels(bot_id=str(bot_id)).set(backoff_seconds)

    def record_rate_limit(self, endpoint: str) -> None:
        self.rate_limit_hits.labels(endpoint=endpoint).inc()

    def record_mention(self, bot_id: int, status: str) -> None:
        self.mentions_total.labels(bot_id=str(bot_id), status=status).inc()

    def record_trade(
        self, bot_id: int, status: str, simulated: bool, latency_seconds: float
    ) -> None:
        """Record a trade reaching a terminal state.

        Args:
            bot_id: Owning bot.
            status: "completed" or "failed".
            simulated: Whether the result was synthetic.
            latency_seconds: Time from creation to terminal status.
        """
        self.trades_total.labels(
            bot_id=str(bot_id), status=status, simulated=str(simulated).lower()
        ).inc()
        self.trade_latency.observe(latency_seconds)

    def set_system_info(self, version: str, mode: str, bots: list[str]) -> None:
        """Set system information labels.

        Args:
            version: Application version string.
            mode: Execution mode ("paper" or "live").
            bots: Handles of the configured bots.
        """
        self.system_info.info(
            {
                "version": version,
                "mode": mode,
                "bots": ",".join(bots),
            }
        )

    def start_server(self, port: int = 9108) -> None:
        """Start HTTP metrics server for Prometheus scraping.

        Args:
            port: Port number to listen on.
        """
        start_http_server(port, registry=self._registry)
