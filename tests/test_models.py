"""Tests for the Pydantic data models."""

from __future__ import annotations

from datetime import timedelta
from decimal import Decimal

import pytest
from pydantic import ValidationError

from invest_robot.models.candle import Candle, CandleInterval
from invest_robot.models.order import Order, OrderSide, OrderStatus


def _order() -> Order:
    return Order(
        symbol="AAPL",
        side=OrderSide.BUY,
        price=Decimal("185.50"),
        quantity=Decimal("3"),
        strategy="candles",
    )


class TestOrderModel:
    """Tests for the Order model."""

    def test_order_creation(self) -> None:
        """Order should be created with default values."""
        order = _order()
        assert order.status == OrderStatus.PENDING
        assert order.id is None
        assert order.internal_id is not None
        assert order.is_filled is False

    def test_mark_filled_keeps_broker_id(self) -> None:
        order = _order()
        order.mark_filled({"orderId": "abc-1", "status": "accepted"})
        assert order.is_filled is True
        assert order.id == "abc-1"
        assert order.exchange_response["status"] == "accepted"
        assert order.updated_at is not None

    def test_mark_filled_without_response(self) -> None:
        """Simulated fills carry no broker id."""
        order = _order()
        order.mark_filled()
        assert order.status == OrderStatus.FILLED
        assert order.id is None

    def test_mark_failed(self) -> None:
        order = _order()
        order.mark_failed()
        assert order.status == OrderStatus.FAILED
        assert order.is_filled is False


class TestCandleModel:
    """Tests for Candle and CandleInterval."""

    def test_candle_is_frozen(self, sample_candles: list[Candle]) -> None:
        with pytest.raises(ValidationError):
            sample_candles[0].close = Decimal("1")

    @pytest.mark.parametrize(
        ("interval", "expected"),
        [
            ("1m", timedelta(minutes=1)),
            ("15m", timedelta(minutes=15)),
            ("1d", timedelta(days=1)),
        ],
    )
    def test_interval_duration(self, interval: str, expected: timedelta) -> None:
        assert CandleInterval(interval).to_timedelta() == expected
