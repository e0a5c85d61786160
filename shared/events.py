"""
events.py - Kafka Event Schema Definitions

PURPOSE:
    Defines the events the purchase service publishes after a committed
    change. Uses Pydantic for validation and serialization.

EVENTS:
    - order.placed: a reservation committed and an order was recorded
    - inventory.low: remaining stock fell below the alert threshold
    - inventory.released: stock of an order was given back (compensation)
    - payment.captured: the payment provider captured a payment order

COMMON FIELDS (BaseEvent):
    - event_id: Unique identifier (UUID)
    - event_type: Event category and action
    - timestamp: UTC timestamp of event creation
    - correlation_id: Links the events of one purchase request

SERIALIZATION:
    event.model_dump_json()  # Decimal amounts are rendered as strings
    EVENT_TYPE_MAP[event_type].model_validate(data)
"""

from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict, Optional
from uuid import uuid4

from pydantic import BaseModel, Field


class BaseEvent(BaseModel):
    """Base event model for all Kafka events."""

    event_id: str = Field(default_factory=lambda: str(uuid4()))
    event_type: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    correlation_id: str


class OrderPlacedEvent(BaseEvent):
    """
    Published after a reservation commits.
    Consumers: notifications, analytics.
    """

    event_type: str = "order.placed"
    order_id: int
    product_id: int
    buyer_email: str
    quantity: int
    total_price: Decimal
    remaining_stock: int


class InventoryLowEvent(BaseEvent):
    """Published when stock drops below the configured threshold after a purchase."""

    event_type: str = "inventory.low"
    product_id: int
    current_stock: int
    threshold: int


class InventoryReleasedEvent(BaseEvent):
    """Published when an order's stock is returned after a failed payment."""

    event_type: str = "inventory.released"
    order_id: int
    product_id: int
    quantity: int
    reason: str


class PaymentCapturedEvent(BaseEvent):
    """Published when the provider reports a successful capture."""

    event_type: str = "payment.captured"
    provider_order_id: str
    status: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)


EVENT_TYPE_MAP = {
    "order.placed": OrderPlacedEvent,
    "inventory.low": InventoryLowEvent,
    "inventory.released": InventoryReleasedEvent,
    "payment.captured": PaymentCapturedEvent,
}
