"""Bot profile model."""

from typing import Any

from pydantic import BaseModel, Field, field_validator

from mentionbot.models.command import CommandAction


class BotProfile(BaseModel):
    """A configured trading bot watching one social handle.

    Token configuration is accepted either as plain symbols (``"SOL"``) or as
    objects carrying a ``symbol`` key; both are normalised to upper-case
    symbols here so nothing downstream has to sniff the format.

    Attributes:
        id: Bot identifier.
        name: Display name used in replies.
        handle: Social handle the bot answers to, without the leading ``@``.
        owner_handle: Handle of the bot's owner, mentioned in trade replies.
        active: Whether the bot is active.
        social_enabled: Whether mention polling is enabled for the bot.
        wallet_public_key: Public key of the bot's wallet, if one is attached.
        supported_actions: Actions the bot accepts.
        supported_tokens: Token symbols the bot trades.
        transaction_fee: Network fee reserved on top of the trade amount.
        slippage_bps: Allowed slippage in basis points.
    """

    id: int
    name: str
    handle: str
    owner_handle: str | None = None
    active: bool = True
    social_enabled: bool = True
    wallet_public_key: str | None = None
    supported_actions: list[CommandAction] = Field(
        default_factory=lambda: [CommandAction.SWAP]
    )
    supported_tokens: list[str] = Field(
        default_factory=lambda: ["SOL", "USDC", "JUP"]
    )
    transaction_fee: float = Field(default=0.01, ge=0.0)
    slippage_bps: int = Field(default=50, ge=0, le=10_000)

    @field_validator("handle", "owner_handle")
    @classmethod
    def _strip_at(cls, value: str | None) -> str | None:
        if value is None:
            return None
        return value.strip().lstrip("@")

    @field_validator("supported_actions", mode="before")
    @classmethod
    def _lower_actions(cls, value: Any) -> Any:
        if isinstance(value, list):
            return [v.lower() if isinstance(v, str) else v for v in value]
        return value

    @field_validator("supported_tokens", mode="before")
    @classmethod
    def _normalize_tokens(cls, value: Any) -> list[str]:
        symbols: list[str] = []
        for entry in value or []:
            if isinstance(entry, dict):
                entry = entry.get("symbol")
            if not isinstance(entry, str) or not entry.strip():
                raise ValueError(f"Invalid token entry: {entry!r}")
            symbol = entry.strip().upper()
            if symbol not in symbols:
                symbols.append(symbol)
        return symbols

    @property
    def pollable(self) -> bool:
        """Whether the scheduler should poll mentions for this bot."""
        return self.active and self.social_enabled and bool(self.handle)
