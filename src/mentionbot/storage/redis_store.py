"""Redis-backed persistence for poll schedules, trades and the mention ledger.

Layout (``{p}`` is the configured key prefix):

    {p}:schedule:{bot_id}            hash: next_poll_time, backoff_seconds, last_seen_message_id
    {p}:trade:{trade_id}             JSON Trade
    {p}:bot:{bot_id}:trades          list of trade ids, newest first
    {p}:mention:{bot_id}:{msg_id}    JSON MentionRecord
    {p}:balance:{wallet}             hash: token -> JSON TokenBalance
"""

from datetime import UTC, datetime

import redis.asyncio as aioredis

from mentionbot.logging import get_logger
from mentionbot.models.mention import MentionRecord
from mentionbot.models.schedule import PollSchedule
from mentionbot.models.trade import TokenBalance, Trade, TradeStatus
from mentionbot.storage.base import InvalidTransitionError, Storage, TradeNotFoundError

_FIELD_NEXT_POLL = "next_poll_time"
_FIELD_BACKOFF = "backoff_seconds"
_FIELD_LAST_SEEN = "last_seen_message_id"


def _decode(value: bytes | str | None) -> str | None:
    if isinstance(value, bytes):
        return value.decode()
    return value


class RedisStorage(Storage):
    """Async Redis implementation of ``Storage``.

    Args:
        redis_url: Redis connection URL (e.g. "redis://localhost:6379/0").
        key_prefix: Namespace prepended to every key.
        client: Optional pre-configured redis client (for testing).
    """

    def __init__(
        self,
        redis_url: str = "redis://localhost:6379/0",
        key_prefix: str = "mentionbot",
        client: aioredis.Redis | None = None,
    ) -> None:
        self._redis_url = redis_url
        self._prefix = key_prefix
        self._client: aioredis.Redis | None = client
        self._logger = get_logger("redis_storage")

    async def connect(self) -> None:
        """Establish connection to Redis."""
        if self._client is None:
            self._client = aioredis.from_url(self._redis_url)
        await self._client.ping()
        self._logger.info("redis_connected", url=self._redis_url)

    async def disconnect(self) -> None:
        """Close the Redis connection."""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
        self._logger.info("redis_disconnected")

    @property
    def _redis(self) -> aioredis.Redis:
        if self._client is None:
            raise ConnectionError("Redis not connected")
        return self._client

    def _key(self, *parts: object) -> str:
        return ":".join([self._prefix, *(str(p) for p in parts)])

    # --- Poll schedules ---

    async def get_poll_schedule(self, bot_id: int) -> PollSchedule | None:
        raw = await self._redis.hgetall(self._key("schedule", bot_id))
        fields = {_decode(k): _decode(v) for k, v in raw.items()}
        if _FIELD_NEXT_POLL not in fields or _FIELD_BACKOFF not in fields:
            return None
        return PollSchedule(
            bot_id=bot_id,
            last_seen_message_id=fields.get(_FIELD_LAST_SEEN) or None,
            next_poll_time=datetime.fromisoformat(fields[_FIELD_NEXT_POLL]),
            backoff_seconds=float(fields[_FIELD_BACKOFF]),
        )

    async def save_poll_schedule(
        self, bot_id: int, next_poll_time: datetime, backoff_seconds: float
    ) -> PollSchedule:
        await self._redis.hset(
            self._key("schedule", bot_id),
            mapping={
                _FIELD_NEXT_POLL: next_poll_time.isoformat(),
                _FIELD_BACKOFF: repr(float(backoff_seconds)),
            },
        )
        schedule = await self.get_poll_schedule(bot_id)
        assert schedule is not None
        return schedule

    async def set_last_seen_message_id(self, bot_id: int, message_id: str) -> None:
        await self._redis.hset(self._key("schedule", bot_id), _FIELD_LAST_SEEN, message_id)

    async def delete_poll_schedule(self, bot_id: int) -> None:
        await self._redis.delete(self._key("schedule", bot_id))

    # --- Trades ---

    async def create_trade(self, trade: Trade) -> Trade:
        await self._redis.set(self._key("trade", trade.id), trade.model_dump_json())
        await self._redis.lpush(self._key("bot", trade.bot_id, "trades"), trade.id)
        return trade

    async def update_trade_status(
        self,
        trade_id: str,
        status: TradeStatus,
        signature: str | None = None,
        error: str | None = None,
        out_amount: float | None = None,
    ) -> Trade:
        trade = await self.get_trade(trade_id)
        if trade is None:
            raise TradeNotFoundError(trade_id)
        if trade.status.is_terminal:
            raise InvalidTransitionError(
                f"Trade {trade_id} is already {trade.status.value}"
            )

        updates: dict[str, object] = {
            "status": status,
            "updated_at": datetime.now(UTC),
        }
        if signature is not None:
            updates["transaction_signature"] = signature
        if error is not None:
            updates["error_message"] = error
        if out_amount is not None:
            updates["out_amount"] = out_amount
        updated = trade.model_copy(update=updates)

        await self._redis.set(self._key("trade", trade_id), updated.model_dump_json())
        return updated

    async def get_trade(self, trade_id: str) -> Trade | None:
        raw = await self._redis.get(self._key("trade", trade_id))
        if raw is None:
            return None
        return Trade.model_validate_json(raw)

    async def list_trades(self, bot_id: int, limit: int = 50) -> list[Trade]:
        ids = await self._redis.lrange(self._key("bot", bot_id, "trades"), 0, limit - 1)
        if not ids:
            return []
        values = await self._redis.mget([self._key("trade", _decode(i)) for i in ids])
        return [Trade.model_validate_json(raw) for raw in values if raw is not None]

    # --- Mention ledger ---

    async def get_mention_record(self, bot_id: int, message_id: str) -> MentionRecord | None:
        raw = await self._redis.get(self._key("mention", bot_id, message_id))
        if raw is None:
            return None
        return MentionRecord.model_validate_json(raw)

    async def save_mention_record(self, record: MentionRecord) -> None:
        await self._redis.set(
            self._key("mention", record.bot_id, record.message_id),
            record.model_dump_json(),
        )

    # --- Balances ---

    async def get_token_balance(self, wallet: str, token: str) -> TokenBalance | None:
        raw = await self._redis.hget(self._key("balance", wallet), token.upper())
        if raw is None:
            return None
        return TokenBalance.model_validate_json(raw)

    async def set_token_balance(self, wallet: str, token: str, balance: float) -> TokenBalance:
        entry = TokenBalance(wallet=wallet, token=token.upper(), balance=balance)
        await self._redis.hset(self._key("balance", wallet), entry.token, entry.model_dump_json())
        return entry
