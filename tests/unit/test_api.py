"""Tests for the HTTP control API."""

from __future__ import annotations

from datetime import UTC, datetime
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from mentionbot.api.app import create_app
from mentionbot.core.scheduler import BotNotFoundError, BotNotPollableError
from mentionbot.core.service import CommandOutcome, SchedulingUnavailableError
from mentionbot.core.worker import CommandJob
from mentionbot.models.command import CommandAction, ParsedCommand
from mentionbot.models.schedule import PollSchedule, RateLimitState
from mentionbot.models.trade import Trade, TradeStatus

T0 = datetime(2025, 1, 1, 12, 0, tzinfo=UTC)


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def service() -> MagicMock:
    service = MagicMock()
    service.scheduler = MagicMock(is_running=True, scheduled_bot_ids=[1])
    for name in (
        "start_scheduling",
        "stop_scheduling",
        "get_schedule",
        "reset_schedule",
        "process_single_command",
        "list_trades",
        "get_trade",
    ):
        setattr(service, name, AsyncMock())
    return service


@pytest.fixture
def queue() -> MagicMock:
    return MagicMock()


@pytest.fixture
def client(service: MagicMock, queue: MagicMock) -> TestClient:
    return TestClient(create_app(service, queue))


def _schedule(bot_id: int = 1) -> PollSchedule:
    return PollSchedule(bot_id=bot_id, next_poll_time=T0, backoff_seconds=60.0)


def _trade(**overrides) -> Trade:
    fields = {
        "id": "trade-1",
        "bot_id": 1,
        "action": "swap",
        "in_token": "SOL",
        "out_token": "JUP",
        "amount": 0.01,
        "status": TradeStatus.COMPLETED,
        "transaction_signature": "sig",
    }
    fields.update(overrides)
    return Trade(**fields)


# ---------------------------------------------------------------------------
# Health and scheduling
# ---------------------------------------------------------------------------


class TestHealth:
    """Tests for the health endpoint."""

    def test_health(self, client: TestClient) -> None:
        body = client.get("/health").json()
        assert body["status"] == "ok"
        assert body["scheduler_running"] is True
        assert body["scheduled_bots"] == [1]

    def test_health_without_scheduler(self, client: TestClient, service: MagicMock) -> None:
        service.scheduler = None
        body = client.get("/health").json()
        assert body["scheduler_running"] is False
        assert body["scheduled_bots"] == []


class TestScheduling:
    """Tests for scheduling control endpoints."""

    def test_start(self, client: TestClient, service: MagicMock) -> None:
        service.start_scheduling.return_value = _schedule()

        response = client.post("/bots/1/scheduling")

        assert response.status_code == 200
        body = response.json()
        assert body["scheduled"] is True
        assert body["schedule"]["backoff_seconds"] == 60.0
        service.start_scheduling.assert_awaited_once_with(1)

    def test_start_unknown_bot(self, client: TestClient, service: MagicMock) -> None:
        service.start_scheduling.side_effect = BotNotFoundError(99)

        response = client.post("/bots/99/scheduling")

        assert response.status_code == 404
        assert response.json()["detail"] == "Bot 99 not found"

    def test_start_unpollable_bot(self, client: TestClient, service: MagicMock) -> None:
        service.start_scheduling.side_effect = BotNotPollableError("inactive")
        assert client.post("/bots/1/scheduling").status_code == 409

    def test_start_without_social_client(self, client: TestClient, service: MagicMock) -> None:
        service.start_scheduling.side_effect = SchedulingUnavailableError("not configured")
        assert client.post("/bots/1/scheduling").status_code == 503

    def test_stop(self, client: TestClient, service: MagicMock) -> None:
        service.stop_scheduling.return_value = False

        body = client.delete("/bots/1/scheduling").json()

        assert body == {"bot_id": 1, "scheduled": False, "changed": False, "schedule": None}

    def test_get_schedule(self, client: TestClient, service: MagicMock) -> None:
        service.get_schedule.return_value = _schedule()
        body = client.get("/bots/1/schedule").json()
        assert body["bot_id"] == 1
        assert body["last_seen_message_id"] is None

    def test_get_missing_schedule(self, client: TestClient, service: MagicMock) -> None:
        service.get_schedule.return_value = None
        assert client.get("/bots/1/schedule").status_code == 404

    def test_reset_schedule(self, client: TestClient, service: MagicMock) -> None:
        service.reset_schedule.return_value = True

        body = client.delete("/bots/1/schedule").json()

        assert body == {"bot_id": 1, "scheduled": False, "changed": True, "schedule": None}
        service.reset_schedule.assert_awaited_once_with(1)

    def test_reset_unknown_bot(self, client: TestClient, service: MagicMock) -> None:
        service.reset_schedule.side_effect = BotNotFoundError(99)
        assert client.delete("/bots/99/schedule").status_code == 404


# ---------------------------------------------------------------------------
# Commands
# ---------------------------------------------------------------------------


class TestCommands:
    """Tests for command submission and execution endpoints."""

    def test_submit_is_acknowledged(self, client: TestClient, queue: MagicMock) -> None:
        queue.submit.return_value = CommandJob(id="job-1", bot_id=1, text="swap 1 SOL for JUP")

        response = client.post("/commands", json={"bot_id": 1, "text": "swap 1 SOL for JUP"})

        assert response.status_code == 202
        assert response.json()["id"] == "job-1"
        assert response.json()["status"] == "queued"
        queue.submit.assert_called_once_with(1, "swap 1 SOL for JUP", None)

    def test_submit_unknown_bot(self, client: TestClient, queue: MagicMock) -> None:
        queue.submit.side_effect = BotNotFoundError(5)
        response = client.post("/commands", json={"bot_id": 5, "text": "swap"})
        assert response.status_code == 404

    def test_submit_empty_text(self, client: TestClient) -> None:
        response = client.post("/commands", json={"bot_id": 1, "text": ""})
        assert response.status_code == 422

    def test_get_job(self, client: TestClient, queue: MagicMock) -> None:
        queue.get.return_value = CommandJob(id="job-1", bot_id=1, text="x")
        assert client.get("/commands/job-1").json()["bot_id"] == 1

    def test_get_missing_job(self, client: TestClient, queue: MagicMock) -> None:
        queue.get.return_value = None
        assert client.get("/commands/nope").status_code == 404

    def test_execute_accepted(self, client: TestClient, service: MagicMock) -> None:
        command = ParsedCommand(
            action=CommandAction.SWAP, in_token="SOL", out_token="JUP", amount=0.01
        )
        service.process_single_command.return_value = CommandOutcome(
            bot_id=1, command=command, trade=_trade()
        )

        response = client.post(
            "/commands/execute",
            json={"bot_id": 1, "text": "@tradebot swap 0.01 SOL for JUP", "source_message_id": "7"},
        )

        body = response.json()
        assert response.status_code == 200
        assert body["accepted"] is True
        assert body["command"]["in_token"] == "SOL"
        assert body["trade"]["status"] == "completed"
        service.process_single_command.assert_awaited_once_with(
            1, "@tradebot swap 0.01 SOL for JUP", "7"
        )

    def test_execute_rejected(self, client: TestClient, service: MagicMock) -> None:
        service.process_single_command.return_value = CommandOutcome(
            bot_id=1, error="No amount found"
        )

        body = client.post("/commands/execute", json={"bot_id": 1, "text": "swap"}).json()

        assert body["accepted"] is False
        assert body["error"] == "No amount found"
        assert body["trade"] is None


# ---------------------------------------------------------------------------
# Queries
# ---------------------------------------------------------------------------


class TestQueries:
    """Tests for trade and rate-limit queries."""

    def test_list_trades(self, client: TestClient, service: MagicMock) -> None:
        service.list_trades.return_value = [_trade()]

        body = client.get("/bots/1/trades", params={"limit": 10}).json()

        assert [t["id"] for t in body] == ["trade-1"]
        service.list_trades.assert_awaited_once_with(1, 10)

    def test_list_trades_limit_validated(self, client: TestClient) -> None:
        assert client.get("/bots/1/trades", params={"limit": 0}).status_code == 422

    def test_get_trade(self, client: TestClient, service: MagicMock) -> None:
        service.get_trade.return_value = _trade()
        assert client.get("/trades/trade-1").json()["transaction_signature"] == "sig"

    def test_get_missing_trade(self, client: TestClient, service: MagicMock) -> None:
        service.get_trade.return_value = None
        assert client.get("/trades/nope").status_code == 404

    def test_rate_limits(self, client: TestClient, service: MagicMock) -> None:
        service.rate_limits.return_value = {
            "search": RateLimitState(endpoint="search", is_limited=True, reset_at=T0)
        }

        body = client.get("/rate-limits").json()

        assert body["search"]["is_limited"] is True
