"""Order model for invest-robot."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import uuid4

from pydantic import BaseModel, ConfigDict, Field


class OrderSide(str, Enum):
    """Order side enumeration."""

    BUY = "BUY"
    SELL = "SELL"


class OrderStatus(str, Enum):
    """Order lifecycle status."""

    PENDING = "PENDING"
    FILLED = "FILLED"
    FAILED = "FAILED"


class Order(BaseModel):
    """A market order issued by a strategy."""

    model_config = ConfigDict(use_enum_values=True)

    id: str | None = None  # Broker order ID (assigned after placement)
    internal_id: str = Field(default_factory=lambda: str(uuid4()))
    symbol: str
    side: OrderSide
    price: Decimal  # Reference price at signal time
    quantity: Decimal
    status: OrderStatus = OrderStatus.PENDING
    strategy: str
    reason: str = ""
    created_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    updated_at: datetime | None = None
    exchange_response: dict[str, Any] | None = None

    def mark_filled(self, response: dict[str, Any] | None = None) -> None:
        """Mark the order as filled, keeping the broker response if any."""
        self.status = OrderStatus.FILLED
        if response is not None:
            self.exchange_response = response
            self.id = response.get("orderId", self.id)
        self.updated_at = datetime.now(timezone.utc)

    def mark_failed(self) -> None:
        """Mark the order as failed."""
        self.status = OrderStatus.FAILED
        self.updated_at = datetime.now(timezone.utc)

    @property
    def is_filled(self) -> bool:
        return self.status == OrderStatus.FILLED
