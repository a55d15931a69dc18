"""Prometheus metrics for MentionBot."""

from __future__ import annotations

from mentionbot.monitoring.metrics import MetricsCollector

__all__ = ["MetricsCollector"]
