"""Order snapshots as returned by the order-management service."""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator


class OrderStatus(str, Enum):
    """Lifecycle states the kitchen knows how to act on."""

    RECEIVED = "RECEIVED"
    PREPARING = "PREPARING"
    READY = "READY"


KNOWN_STATUSES: tuple[str, ...] = tuple(status.value for status in OrderStatus)


class OrderItem(BaseModel):
    """A single line of an order. ``price`` is ``None`` when unknown."""

    model_config = ConfigDict(extra="ignore", frozen=True)

    name: str = ""
    quantity: int = 1
    price: float | None = None


class Order(BaseModel):
    """Read-only order snapshot; status is kept as the raw server string."""

    model_config = ConfigDict(extra="ignore", frozen=True, populate_by_name=True)

    order_id: str = Field(validation_alias=AliasChoices("orderId", "order_id", "_id"))
    customer_name: str | None = Field(
        default=None, validation_alias=AliasChoices("customerName", "customer_name")
    )
    status: str = ""
    items: list[OrderItem] = Field(default_factory=list)
    received_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("receivedAt", "received_at")
    )
    preparing_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("preparingAt", "preparing_at")
    )
    ready_at: datetime | None = Field(
        default=None, validation_alias=AliasChoices("readyAt", "ready_at")
    )

    @field_validator("order_id", mode="before")
    @classmethod
    def _coerce_id(cls, value: Any) -> Any:
        if isinstance(value, (int, float)) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("items", mode="before")
    @classmethod
    def _none_items(cls, value: Any) -> Any:
        return [] if value is None else value

    @field_validator("status", mode="before")
    @classmethod
    def _status_text(cls, value: Any) -> Any:
        if value is None:
            return ""
        if isinstance(value, Enum):
            return value.value
        return value

    @property
    def known_status(self) -> OrderStatus | None:
        """The status as an ``OrderStatus`` or ``None`` for unrecognised values."""
        try:
            return OrderStatus(self.status)
        except ValueError:
            return None
