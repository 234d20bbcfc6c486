"""Order, OrderDraft and OrderResult data models."""

from datetime import datetime
from typing import Literal, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

OrderSide = Literal["BUY", "SELL"]
OrderType = Literal["MARKET", "LIMIT"]


class OrderDraft(BaseModel):
    """Represents an order request before the session accepts it.

    Drafts are validated on construction: a LIMIT draft must carry a
    positive limit price and a MARKET draft must not carry one.
    """

    symbol: str = Field(..., min_length=1, description="Trading symbol")
    quantity: int = Field(..., gt=0, strict=True, description="Order quantity")
    side: OrderSide = Field(..., description="Order side")
    order_type: OrderType = Field(default="MARKET", description="Order type")
    limit_price: Optional[float] = Field(
        default=None, allow_inf_nan=False, description="Limit price (LIMIT orders only)"
    )

    model_config = {"frozen": True}

    @field_validator("symbol")
    @classmethod
    def _normalize_symbol(cls, value: str) -> str:
        symbol = value.strip().upper()
        if not symbol:
            raise ValueError("Symbol must not be blank")
        return symbol

    @model_validator(mode="after")
    def _check_limit_price(self) -> "OrderDraft":
        if self.order_type == "LIMIT":
            if self.limit_price is None:
                raise ValueError("Limit price required for LIMIT orders")
            if self.limit_price <= 0:
                raise ValueError("Limit price must be greater than 0")
        elif self.limit_price is not None:
            raise ValueError("Limit price not allowed for MARKET orders")
        return self


class Order(BaseModel):
    """Represents a submitted order. Never mutated once recorded.

    Status is always SUBMITTED; fills and cancels are not modelled, so the
    literal has a single value, spelled in upper case like side and type.
    """

    id: int = Field(..., ge=1, description="Session-scoped order ID")
    symbol: str = Field(..., min_length=1, description="Trading symbol")
    quantity: int = Field(..., gt=0, description="Order quantity")
    side: OrderSide = Field(..., description="Order side")
    order_type: OrderType = Field(..., description="Order type")
    limit_price: Optional[float] = Field(
        default=None, gt=0, allow_inf_nan=False, description="Limit price (LIMIT orders only)"
    )
    status: Literal["SUBMITTED"] = Field(default="SUBMITTED", description="Order status")
    timestamp: datetime = Field(..., description="Submission timestamp")

    model_config = {"frozen": True}

    @classmethod
    def from_draft(cls, draft: OrderDraft, order_id: int, timestamp: datetime) -> "Order":
        return cls(
            id=order_id,
            symbol=draft.symbol,
            quantity=draft.quantity,
            side=draft.side,
            order_type=draft.order_type,
            limit_price=draft.limit_price,
            timestamp=timestamp,
        )

    def describe_type(self) -> str:
        """Human-readable order type, e.g. ``LIMIT @ 101.50``."""
        if self.order_type == "LIMIT":
            return f"LIMIT @ {self.limit_price:.2f}"
        return self.order_type


class OrderResult(BaseModel):
    """Represents the outcome of an order placement."""

    status: Literal["SUBMITTED", "REJECTED"] = Field(..., description="Placement status")
    order: Optional[Order] = Field(default=None, description="Recorded order, if accepted")
    message: str = Field(default="", description="Status message")

    model_config = {"frozen": True}

    @property
    def accepted(self) -> bool:
        return self.status == "SUBMITTED"
