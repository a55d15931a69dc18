"""Configuration management with Pydantic Settings and YAML loading."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from mentionbot.models.bot import BotProfile
from mentionbot.models.trade import ExecutionMode

# --- Sub-config models ---


class SystemConfig(BaseModel):
    """Top-level system settings."""

    execution_mode: ExecutionMode = ExecutionMode.PAPER
    log_level: str = "INFO"
    log_json: bool = False


class SchedulerConfig(BaseModel):
    """Mention polling scheduler settings (all durations in seconds)."""

    tick_seconds: float = 1.0
    default_poll_interval: float = 60.0
    min_poll_interval: float = 30.0
    max_backoff_seconds: float = 3600.0
    backoff_multiplier: float = 2.0
    stagger_seconds: float = 10.0
    safety_buffer_seconds: float = 5.0
    search_low_watermark: int = 1

    @model_validator(mode="after")
    def _check_bounds(self) -> SchedulerConfig:
        if self.min_poll_interval <= 0:
            raise ValueError("min_poll_interval must be positive")
        if not (
            self.min_poll_interval
            <= self.default_poll_interval
            <= self.max_backoff_seconds
        ):
            raise ValueError(
                "expected min_poll_interval <= default_poll_interval <= max_backoff_seconds"
            )
        if self.backoff_multiplier < 1.0:
            raise ValueError("backoff_multiplier must be >= 1.0")
        return self


class ExecutionConfig(BaseModel):
    """Trade execution settings."""

    simulate_on_failure: bool = False
    simulated_output_multiplier: float = 2.0
    balance_refresh_delay_seconds: float = 5.0
    paper_default_sol_balance: float = 10.0
    paper_initial_balances: dict[str, dict[str, float]] = Field(default_factory=dict)
    # Live mode: bot wallet keypairs as solana-keygen JSON arrays, from env only
    live_signer_keys: list[str] = Field(default_factory=list)
    jupiter_api_url: str = "https://lite-api.jup.ag/swap/v1"
    confirm_timeout_seconds: float = Field(default=60.0, gt=0)


class TwitterConfig(BaseModel):
    """X (Twitter) API credentials and query settings."""

    bearer_token: str = ""
    api_key: str = ""
    api_secret: str = ""
    access_token: str = ""
    access_secret: str = ""
    max_results: int = Field(default=10, ge=10, le=100)

    @property
    def can_read(self) -> bool:
        return bool(self.bearer_token)

    @property
    def can_write(self) -> bool:
        return all(
            (self.api_key, self.api_secret, self.access_token, self.access_secret)
        )


class SolanaConfig(BaseModel):
    """Solana RPC settings."""

    rpc_url: str = "https://api.devnet.solana.com"
    cluster: str = "devnet"
    request_timeout_seconds: float = 10.0


class TelegramAlertConfig(BaseModel):
    """Telegram alert settings."""

    enabled: bool = False
    chat_id: str = ""
    bot_token: str = ""


class AlertsConfig(BaseModel):
    """Trade outcome notification settings."""

    twitter_replies: bool = True
    telegram: TelegramAlertConfig = Field(default_factory=TelegramAlertConfig)


class RedisConfig(BaseModel):
    """Redis settings."""

    host: str = "localhost"
    port: int = 6379
    db: int = 0
    password: str = ""
    key_prefix: str = "mentionbot"

    @property
    def url(self) -> str:
        """Build Redis URL string."""
        auth = f":{self.password}@" if self.password else ""
        return f"redis://{auth}{self.host}:{self.port}/{self.db}"


class DatabaseConfig(BaseModel):
    """Database settings."""

    redis: RedisConfig = Field(default_factory=RedisConfig)


class ApiConfig(BaseModel):
    """HTTP API settings."""

    enabled: bool = True
    host: str = "127.0.0.1"
    port: int = 8080


class MetricsConfig(BaseModel):
    """Prometheus exposition settings."""

    enabled: bool = False
    port: int = 9108


# --- Main config ---


class AppConfig(BaseSettings):
    """Application configuration.

    Loads from YAML file, with environment variable overrides.
    """

    model_config = SettingsConfigDict(
        env_prefix="MENTIONBOT_",
        env_nested_delimiter="__",
    )

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls: type[BaseSettings],
        init_settings: Any,
        env_settings: Any,
        dotenv_settings: Any,
        file_secret_settings: Any,
    ) -> tuple[Any, ...]:
        """Environment variables override YAML (init) values."""
        return env_settings, init_settings, dotenv_settings, file_secret_settings

    system: SystemConfig = Field(default_factory=SystemConfig)
    scheduler: SchedulerConfig = Field(default_factory=SchedulerConfig)
    execution: ExecutionConfig = Field(default_factory=ExecutionConfig)
    twitter: TwitterConfig = Field(default_factory=TwitterConfig)
    solana: SolanaConfig = Field(default_factory=SolanaConfig)
    alerts: AlertsConfig = Field(default_factory=AlertsConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)
    api: ApiConfig = Field(default_factory=ApiConfig)
    metrics: MetricsConfig = Field(default_factory=MetricsConfig)
    bots: list[BotProfile] = Field(default_factory=list)

    @model_validator(mode="after")
    def _check_unique_bots(self) -> AppConfig:
        ids = [bot.id for bot in self.bots]
        if len(ids) != len(set(ids)):
            raise ValueError("Duplicate bot ids in configuration")
        handles = [bot.handle.lower() for bot in self.bots]
        if len(handles) != len(set(handles)):
            raise ValueError("Duplicate bot handles in configuration")
        return self

    def get_bot(self, bot_id: int) -> BotProfile | None:
        """Look up a configured bot by id."""
        for bot in self.bots:
            if bot.id == bot_id:
                return bot
        return None


def _load_yaml(path: Path) -> dict[str, Any]:
    """Load a YAML file and return its contents as a dict."""
    with open(path) as f:
        data = yaml.safe_load(f)
    return data if isinstance(data, dict) else {}


def load_config(
    config_dir: str | Path = "configs",
    config_file: str = "default.yaml",
    bots_file: str = "bots.yaml",
) -> AppConfig:
    """Load application configuration from YAML files with env var overrides.

    Args:
        config_dir: Path to the configuration directory.
        config_file: Name of the main config YAML file.
        bots_file: Name of the bot profiles YAML file.

    Returns:
        Validated AppConfig instance.
    """
    config_path = Path(config_dir)

    raw: dict[str, Any] = {}
    main_config_path = config_path / config_file
    if main_config_path.exists():
        raw = _load_yaml(main_config_path)

    # Bot profiles live in their own file; entries there win over inline ones
    bots_config_path = config_path / bots_file
    if bots_config_path.exists():
        bots_raw = _load_yaml(bots_config_path)
        if "bots" in bots_raw:
            raw["bots"] = bots_raw["bots"] or []

    # Pydantic Settings will automatically apply env var overrides
    return AppConfig(**raw)
