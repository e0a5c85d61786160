"""
orchestrator.py - Purchase Orchestrator

Exposes the purchase and payment operations with one response shape:
``{"success": True, <resource>: ...}`` on success; failures are raised as
PurchaseError subclasses and rendered as ``{"success": False, "error": ...}``
by the HTTP layer.

PURCHASE FLOW:
    1. POST /purchase       -> reserve stock and record the order (committed)
    2. POST /payment/create -> open a provider payment order for the total
    3. POST /payment/capture-> capture it once the buyer approved
    4. On a failed capture the client may call POST /orders/{id}/release to
       give the stock back. Payment failures never release stock on their own.

Events (order.placed, inventory.low, inventory.released, payment.captured)
are published after the database work has committed. A publishing failure is
logged and does not change the response.
"""

import logging
from typing import Any, Optional
from uuid import uuid4

from confluent_kafka import KafkaException

from events import (
    BaseEvent,
    InventoryLowEvent,
    InventoryReleasedEvent,
    OrderPlacedEvent,
    PaymentCapturedEvent,
)
from kafka_client import BaseKafkaProducer
from payment_gateway import PayPalGateway
from reservation import StockReservationEngine

logger = logging.getLogger(__name__)

CAPTURE_COMPLETED = "COMPLETED"


class PurchaseOrchestrator:
    """Entry point for the purchase, payment and release operations."""

    def __init__(
        self,
        engine: StockReservationEngine,
        gateway: PayPalGateway,
        producer: Optional[BaseKafkaProducer] = None,
        low_stock_threshold: int = 10,
    ):
        self.engine = engine
        self.gateway = gateway
        self.producer = producer
        self.low_stock_threshold = low_stock_threshold

    def purchase(self, product_id: Any, buyer_email: Any, quantity: Any) -> dict:
        correlation_id = str(uuid4())
        reservation = self.engine.reserve_and_order(product_id, buyer_email, quantity)
        order = reservation.order

        logger.info(
            f"Purchase completed for product {order.product_id}",
            extra={"correlation_id": correlation_id, "order_id": order.id, "product_id": order.product_id},
        )
        self._publish(
            "order.placed",
            OrderPlacedEvent(
                order_id=order.id,
                product_id=order.product_id,
                buyer_email=order.buyer_email,
                quantity=order.quantity,
                total_price=order.total_price,
                remaining_stock=reservation.remaining_stock,
                correlation_id=correlation_id,
            ),
        )
        if reservation.remaining_stock < self.low_stock_threshold:
            self._publish(
                "inventory.low",
                InventoryLowEvent(
                    product_id=order.product_id,
                    current_stock=reservation.remaining_stock,
                    threshold=self.low_stock_threshold,
                    correlation_id=correlation_id,
                ),
            )

        return {
            "success": True,
            "order": order.model_dump(mode="json"),
            "remainingStock": reservation.remaining_stock,
        }

    def create_payment(self, amount: Any, currency: Optional[str] = None) -> dict:
        payload = self.gateway.create_payment_order(amount, currency)
        return {"success": True, "payment": payload}

    def capture_payment(self, provider_order_id: Any) -> dict:
        payload = self.gateway.capture_payment_order(provider_order_id)
        status = payload.get("status") if isinstance(payload, dict) else None
        provider_order_id = str(provider_order_id).strip()
        if status == CAPTURE_COMPLETED:
            self._publish(
                "payment.captured",
                PaymentCapturedEvent(
                    provider_order_id=provider_order_id,
                    status=status,
                    payload=payload,
                    correlation_id=str(uuid4()),
                ),
            )
        else:
            logger.warning(
                f"Capture of {provider_order_id} answered with status {status}",
                extra={"provider_order_id": provider_order_id},
            )
        return {"success": True, "payment": payload}

    def release_order(self, order_id: Any, reason: Any = None) -> dict:
        result = self.engine.release_order(order_id, reason)
        release = result.release
        if result.created:
            self._publish(
                "inventory.released",
                InventoryReleasedEvent(
                    order_id=release.order_id,
                    product_id=release.product_id,
                    quantity=release.quantity,
                    reason=release.reason,
                    correlation_id=str(uuid4()),
                ),
            )
        else:
            logger.info(f"Order {release.order_id} was already released", extra={"order_id": release.order_id})

        return {
            "success": True,
            "release": release.model_dump(mode="json"),
            "remainingStock": result.remaining_stock,
        }

    def _publish(self, topic: str, event: BaseEvent) -> None:
        if self.producer is None:
            return
        try:
            self.producer.publish(topic, event)
        except (KafkaException, BufferError) as e:
            logger.error(
                f"Error publishing event to {topic}: {e}",
                extra={"event_type": event.event_type, "correlation_id": event.correlation_id},
            )
