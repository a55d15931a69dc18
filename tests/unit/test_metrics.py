"""Tests for mentionbot.monitoring metrics."""

from __future__ import annotations

from unittest.mock import patch

from prometheus_client import CollectorRegistry

from mentionbot.monitoring.metrics import MetricsCollector


class TestMetricsCollector:
    """Tests for MetricsCollector."""

    def test_record_poll(self) -> None:
        """Poll counter increments per outcome and the backoff gauge tracks the last value."""
        registry = CollectorRegistry()
        mc = MetricsCollector(registry=registry)

        mc.record_poll(1, "empty", 60.0)
        mc.record_poll(1, "mentions", 30.0)
        mc.record_poll(1, "empty", 45.0)

        assert mc.polls_total.labels(bot_id="1", outcome="empty")._value.get() == 2.0
        assert mc.polls_total.labels(bot_id="1", outcome="mentions")._value.get() == 1.0
        assert mc.backoff_seconds.labels(bot_id="1")._value.get() == 45.0

    def test_record_rate_limit(self) -> None:
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.record_rate_limit("search")
        mc.record_rate_limit("search")

        assert mc.rate_limit_hits.labels(endpoint="search")._value.get() == 2.0

    def test_record_mention(self) -> None:
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.record_mention(1, "processed")
        mc.record_mention(1, "invalid")

        assert mc.mentions_total.labels(bot_id="1", status="processed")._value.get() == 1.0
        assert mc.mentions_total.labels(bot_id="1", status="invalid")._value.get() == 1.0

    def test_record_trade(self) -> None:
        """Trade counter splits simulated results and latency is observed."""
        registry = CollectorRegistry()
        mc = MetricsCollector(registry=registry)

        mc.record_trade(1, "completed", False, 0.2)
        mc.record_trade(1, "completed", True, 0.4)
        mc.record_trade(1, "failed", False, 0.1)

        assert (
            mc.trades_total.labels(bot_id="1", status="completed", simulated="false")._value.get()
            == 1.0
        )
        assert (
            mc.trades_total.labels(bot_id="1", status="completed", simulated="true")._value.get()
            == 1.0
        )
        assert registry.get_sample_value("mentionbot_trade_latency_seconds_count") == 3.0
        latency_sum = registry.get_sample_value("mentionbot_trade_latency_seconds_sum")
        assert abs(latency_sum - 0.7) < 1e-9

    def test_gauges(self) -> None:
        mc = MetricsCollector(registry=CollectorRegistry())

        mc.scheduled_bots.set(3)
        mc.queue_depth.set(2)

        assert mc.scheduled_bots._value.get() == 3.0
        assert mc.queue_depth._value.get() == 2.0

    def test_system_info(self) -> None:
        registry = CollectorRegistry()
        mc = MetricsCollector(registry=registry)

        mc.set_system_info(version="0.1.0", mode="paper", bots=["tradebot", "otherbot"])

        value = registry.get_sample_value(
            "mentionbot_system_info",
            {"version": "0.1.0", "mode": "paper", "bots": "tradebot,otherbot"},
        )
        assert value == 1.0

    def test_separate_registries(self) -> None:
        """Two collectors with their own registries do not conflict."""
        a = MetricsCollector()
        b = MetricsCollector()

        a.record_rate_limit("search")

        assert a.registry is not b.registry
        assert b.rate_limit_hits.labels(endpoint="search")._value.get() == 0.0

    def test_start_server(self) -> None:
        mc = MetricsCollector(registry=CollectorRegistry())

        with patch("mentionbot.monitoring.metrics.start_http_server") as start:
            mc.start_server(9200)

        start.assert_called_once_with(9200, registry=mc.registry)
