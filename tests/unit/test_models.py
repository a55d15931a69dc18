"""Unit tests for data models."""

import pytest

from mentionbot.models import (
    SwapResult,
    Trade,
    TradeStatus,
    message_id_key,
    newest_message_id,
)


class TestMessageIds:
    """Tests for snowflake id ordering helpers."""

    def test_longer_id_is_newer(self) -> None:
        assert sorted(["10", "9", "100"], key=message_id_key) == ["9", "10", "100"]

    def test_same_length_compares_lexically(self) -> None:
        assert message_id_key("1850000000000000002") > message_id_key("1850000000000000001")

    def test_newest(self) -> None:
        assert newest_message_id("5", "3") == "5"
        assert newest_message_id(None, "9", "10") == "10"

    def test_newest_of_nothing(self) -> None:
        assert newest_message_id() is None
        assert newest_message_id(None, "") is None


class TestTrade:
    """Tests for the Trade model."""

    def _trade(self, **kwargs) -> Trade:
        return Trade(bot_id=1, action="swap", in_token="SOL", out_token="JUP", amount=1.0, **kwargs)

    def test_defaults(self) -> None:
        trade = self._trade()
        assert trade.status == TradeStatus.PENDING
        assert len(trade.id) == 36
        assert trade.created_at.tzinfo is not None

    def test_ids_are_unique(self) -> None:
        assert self._trade().id != self._trade().id

    @pytest.mark.parametrize(
        ("signature", "expected"),
        [("simulated_1700000000000", True), ("5VERv8NMvzbJ", False), (None, False)],
    )
    def test_simulated(self, signature, expected: bool) -> None:
        assert self._trade(transaction_signature=signature).simulated is expected

    def test_terminal_statuses(self) -> None:
        assert TradeStatus.COMPLETED.is_terminal
        assert TradeStatus.FAILED.is_terminal
        assert not TradeStatus.PENDING.is_terminal
        assert not TradeStatus.EXECUTING.is_terminal


class TestSwapResult:
    """Tests for the SwapResult model."""

    def test_simulated_prefix(self) -> None:
        assert SwapResult(signature="simulated_abc", out_amount=1.0).simulated
        assert not SwapResult(signature="abc", out_amount=1.0).simulated

    def test_frozen(self) -> None:
        result = SwapResult(signature="abc", out_amount=1.0)
        with pytest.raises(Exception):
            result.out_amount = 2.0
