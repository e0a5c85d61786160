"""
reservation.py - Stock Reservation Engine

Checks and decrements a product's stock and records the order in one
transaction. The product row is locked (SELECT ... FOR UPDATE) before stock
is read, so concurrent purchases of the same product queue behind each other
and each one sees the stock left by the previous commit. Purchases of
different products never wait on each other.

Any failure rolls the whole unit back: stock is never decremented without an
order, and no order exists without its decrement.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import ROUND_HALF_UP, Decimal
from typing import Any, Tuple

from sqlalchemy.exc import DataError, IntegrityError, SQLAlchemyError

from database import LedgerStore
from errors import InsufficientStock, InvalidInput, NotFound, StoreUnavailable
from models import EMAIL_MAX_LENGTH, MAX_MONEY, MAX_ROW_ID, REASON_MAX_LENGTH
from repository import LedgerRepository
from schemas import OrderSchema, StockReleaseSchema

logger = logging.getLogger(__name__)

CENTS = Decimal("0.01")
DEFAULT_RELEASE_REASON = "payment_failed"


@dataclass(frozen=True)
class Reservation:
    order: OrderSchema
    remaining_stock: int


@dataclass(frozen=True)
class Release:
    release: StockReleaseSchema
    remaining_stock: int
    created: bool


def normalize_email(email: Any) -> str:
    if email is None:
        return ""
    return str(email).strip().lower()


def validate_purchase(product_id: Any, buyer_email: Any, quantity: Any) -> Tuple[int, str, int]:
    """Check a purchase request before touching the store."""
    if isinstance(product_id, bool) or not isinstance(product_id, int) or product_id <= 0:
        raise InvalidInput("productId must be a positive integer")
    if product_id > MAX_ROW_ID:
        raise NotFound("Product not found", productId=product_id)
    email = normalize_email(buyer_email)
    if not email:
        raise InvalidInput("buyerEmail is required")
    if len(email) > EMAIL_MAX_LENGTH:
        raise InvalidInput(f"buyerEmail must be at most {EMAIL_MAX_LENGTH} characters")
    if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
        raise InvalidInput("quantity must be a positive integer")
    return product_id, email, quantity


def line_total(price: Decimal, quantity: int) -> Decimal:
    """Unit price times quantity, in exact cents."""
    return (Decimal(price) * quantity).quantize(CENTS, rounding=ROUND_HALF_UP)


class StockReservationEngine:
    """Atomic check-and-decrement of stock paired with order creation."""

    def __init__(self, store: LedgerStore):
        self.store = store

    def reserve_and_order(self, product_id: Any, buyer_email: Any, quantity: Any) -> Reservation:
        """
        Reserve ``quantity`` units of a product and record the order.

        Raises InvalidInput, NotFound, InsufficientStock or StoreUnavailable.
        """
        product_id, email, quantity = validate_purchase(product_id, buyer_email, quantity)

        try:
            with self.store.transaction() as db:
                repo = LedgerRepository(db)
                product = repo.lock_product(product_id)

                if product is None:
                    logger.warning(f"Product {product_id} not found", extra={"product_id": product_id})
                    raise NotFound("Product not found", productId=product_id)

                if product.stock < quantity:
                    logger.info(
                        f"Insufficient stock for product {product_id}: need {quantity}, have {product.stock}",
                        extra={"product_id": product_id},
                    )
                    raise InsufficientStock(product_id, requested=quantity, available=product.stock)

                new_stock = product.stock - quantity
                product.stock = new_stock
                product.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
                db.flush()

                total = line_total(product.price, quantity)
                if total > MAX_MONEY:
                    raise InvalidInput("Order total is too large", productId=product_id, quantity=quantity)
                order = repo.create_order(product.id, email, quantity, total)
                reservation = Reservation(
                    order=OrderSchema.model_validate(order),
                    remaining_stock=new_stock,
                )
        except (DataError, IntegrityError) as e:
            logger.warning(
                f"Reservation for product {product_id} rejected by the store: {e.orig}",
                extra={"product_id": product_id},
            )
            raise InvalidInput("Purchase could not be recorded", productId=product_id) from e
        except SQLAlchemyError as e:
            logger.exception(f"Reservation for product {product_id} rolled back", extra={"product_id": product_id})
            raise StoreUnavailable("Purchase failed, please retry") from e

        logger.info(
            f"Reserved {quantity} units of product {product_id} for order {reservation.order.id}",
            extra={"product_id": product_id, "order_id": reservation.order.id},
        )
        return reservation

    def release_order(self, order_id: Any, reason: Any = None) -> Release:
        """
        Give an order's stock back to its product after a failed payment.

        The order row itself is left untouched. Releasing an order twice
        returns the first release without changing stock again.
        """
        if isinstance(order_id, bool) or not isinstance(order_id, int) or order_id <= 0:
            raise InvalidInput("orderId must be a positive integer")
        if order_id > MAX_ROW_ID:
            raise NotFound("Order not found", orderId=order_id)
        reason = (str(reason).strip() if reason is not None else "") or DEFAULT_RELEASE_REASON
        if len(reason) > REASON_MAX_LENGTH:
            raise InvalidInput(f"reason must be at most {REASON_MAX_LENGTH} characters")

        try:
            with self.store.transaction() as db:
                repo = LedgerRepository(db)
                order = repo.get_order(order_id)
                if order is None:
                    raise NotFound("Order not found", orderId=order_id)

                # Same lock as purchases, taken before the release check
                product = repo.lock_product(order.product_id)
                if product is None:
                    raise NotFound("Product not found", productId=order.product_id)

                existing = repo.get_release(order.id)
                if existing is not None:
                    return Release(
                        release=StockReleaseSchema.model_validate(existing),
                        remaining_stock=product.stock,
                        created=False,
                    )

                product.stock = product.stock + order.quantity
                product.updated_at = datetime.now(timezone.utc).replace(tzinfo=None)
                release = repo.record_release(order, reason)
                result = Release(
                    release=StockReleaseSchema.model_validate(release),
                    remaining_stock=product.stock,
                    created=True,
                )
        except (DataError, IntegrityError) as e:
            logger.warning(
                f"Release of order {order_id} rejected by the store: {e.orig}",
                extra={"order_id": order_id},
            )
            raise InvalidInput("Release could not be recorded", orderId=order_id) from e
        except SQLAlchemyError as e:
            logger.exception(f"Release of order {order_id} rolled back", extra={"order_id": order_id})
            raise StoreUnavailable("Release failed, please retry") from e

        logger.info(
            f"Released {result.release.quantity} units of product {result.release.product_id} "
            f"for order {order_id} ({reason})",
            extra={"order_id": order_id, "product_id": result.release.product_id},
        )
        return result
