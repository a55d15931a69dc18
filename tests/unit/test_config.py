"""Tests for YAML configuration loading and validation."""

from __future__ import annotations

from pathlib import Path

import pytest
from pydantic import ValidationError

from mentionbot.config import AppConfig, SchedulerConfig, load_config
from mentionbot.models.bot import BotProfile
from mentionbot.models.command import CommandAction
from mentionbot.models.trade import ExecutionMode

CONFIG_DIR = Path(__file__).resolve().parents[2] / "configs"


# ---------------------------------------------------------------------------
# Shipped configuration
# ---------------------------------------------------------------------------


class TestShippedConfig:
    """Tests for the configuration files in configs/."""

    def test_loads(self) -> None:
        config = load_config(CONFIG_DIR)

        assert config.system.execution_mode == ExecutionMode.PAPER
        assert config.scheduler.default_poll_interval == 60
        assert config.scheduler.min_poll_interval == 30
        assert config.scheduler.max_backoff_seconds == 3600
        assert config.database.redis.url == "redis://localhost:6379/0"

    def test_bot_profile(self) -> None:
        config = load_config(CONFIG_DIR)

        bot = config.get_bot(1)
        assert bot is not None
        assert bot.handle == "tradebot"
        assert bot.supported_tokens == ["SOL", "USDC", "JUP"]
        assert CommandAction.SELL in bot.supported_actions
        assert config.get_bot(2) is None


# ---------------------------------------------------------------------------
# Loading rules
# ---------------------------------------------------------------------------


class TestLoadConfig:
    """Tests for file lookup and environment overrides."""

    def test_missing_directory_gives_defaults(self, tmp_path: Path) -> None:
        config = load_config(tmp_path / "nope")
        assert config.bots == []
        assert config.api.port == 8080

    def test_bots_file_wins(self, tmp_path: Path) -> None:
        (tmp_path / "default.yaml").write_text(
            "bots:\n  - {id: 1, name: Inline, handle: inline}\n"
        )
        (tmp_path / "bots.yaml").write_text(
            "bots:\n  - {id: 2, name: FromFile, handle: fromfile}\n"
        )

        config = load_config(tmp_path)

        assert [bot.name for bot in config.bots] == ["FromFile"]

    def test_empty_files(self, tmp_path: Path) -> None:
        (tmp_path / "default.yaml").write_text("")
        (tmp_path / "bots.yaml").write_text("bots:\n")

        config = load_config(tmp_path)

        assert config.bots == []

    def test_env_overrides_yaml(self, tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> None:
        (tmp_path / "default.yaml").write_text("system:\n  log_level: INFO\n")
        monkeypatch.setenv("MENTIONBOT_SYSTEM__LOG_LEVEL", "DEBUG")
        monkeypatch.setenv("MENTIONBOT_TWITTER__BEARER_TOKEN", "secret")

        config = load_config(tmp_path)

        assert config.system.log_level == "DEBUG"
        assert config.twitter.can_read is True
        assert config.twitter.can_write is False

    def test_duplicate_bot_ids_rejected(self, tmp_path: Path) -> None:
        (tmp_path / "bots.yaml").write_text(
            "bots:\n"
            "  - {id: 1, name: A, handle: a}\n"
            "  - {id: 1, name: B, handle: b}\n"
        )
        with pytest.raises(ValidationError, match="Duplicate bot ids"):
            load_config(tmp_path)

    def test_duplicate_handles_rejected(self) -> None:
        with pytest.raises(ValidationError, match="Duplicate bot handles"):
            AppConfig(
                bots=[
                    {"id": 1, "name": "A", "handle": "TradeBot"},
                    {"id": 2, "name": "B", "handle": "@tradebot"},
                ]
            )


# ---------------------------------------------------------------------------
# Models
# ---------------------------------------------------------------------------


class TestSchedulerConfig:
    """Tests for scheduler timing validation."""

    def test_defaults(self) -> None:
        cfg = SchedulerConfig()
        assert (cfg.min_poll_interval, cfg.default_poll_interval, cfg.max_backoff_seconds) == (
            30.0,
            60.0,
            3600.0,
        )
        assert cfg.stagger_seconds == 10.0
        assert cfg.safety_buffer_seconds == 5.0

    def test_min_above_default_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerConfig(min_poll_interval=120, default_poll_interval=60)

    def test_non_positive_min_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerConfig(min_poll_interval=0)

    def test_multiplier_below_one_rejected(self) -> None:
        with pytest.raises(ValidationError):
            SchedulerConfig(backoff_multiplier=0.5)


class TestBotProfile:
    """Tests for bot profile normalisation."""

    def test_mixed_token_formats(self) -> None:
        bot = BotProfile(
            id=1,
            name="TradeBot",
            handle="@TradeBot",
            supported_tokens=[{"symbol": "sol"}, "usdc", "SOL"],
            supported_actions=["SWAP", "Buy"],
        )
        assert bot.handle == "TradeBot"
        assert bot.supported_tokens == ["SOL", "USDC"]
        assert bot.supported_actions == [CommandAction.SWAP, CommandAction.BUY]

    def test_invalid_token_entry(self) -> None:
        with pytest.raises(ValidationError):
            BotProfile(id=1, name="x", handle="x", supported_tokens=[{"name": "no symbol"}])

    @pytest.mark.parametrize(
        ("active", "social_enabled", "expected"),
        [(True, True, True), (False, True, False), (True, False, False)],
    )
    def test_pollable(self, active: bool, social_enabled: bool, expected: bool) -> None:
        bot = BotProfile(
            id=1, name="x", handle="x", active=active, social_enabled=social_enabled
        )
        assert bot.pollable is expected

    def test_defaults(self) -> None:
        bot = BotProfile(id=1, name="x", handle="x")
        assert bot.supported_actions == [CommandAction.SWAP]
        assert bot.transaction_fee == 0.01
        assert bot.slippage_bps == 50
