import unittest
from decimal import Decimal
from unittest import mock

from sqlalchemy.exc import DataError, IntegrityError, OperationalError

from database import LedgerStore
from errors import InsufficientStock, InvalidInput, NotFound, StoreUnavailable
from ledger_fixtures import make_store, order_count, seed_product, stock_of
from repository import LedgerRepository
from reservation import StockReservationEngine, line_total


class TestReserveAndOrder(unittest.TestCase):
    def setUp(self):
        self.store = make_store(self)
        self.engine = StockReservationEngine(self.store)
        self.product_id = seed_product(self.store, price="100.00", stock=5)

    def test_purchase_decrements_stock_and_records_order(self):
        reservation = self.engine.reserve_and_order(self.product_id, " A@B.com ", 2)

        self.assertEqual(reservation.remaining_stock, 3)
        self.assertEqual(reservation.order.total_price, Decimal("200.00"))
        self.assertEqual(reservation.order.buyer_email, "a@b.com")
        self.assertEqual(reservation.order.quantity, 2)
        self.assertEqual(reservation.order.product_id, self.product_id)
        self.assertIsNotNone(reservation.order.id)
        self.assertIsNotNone(reservation.order.created_at)
        self.assertEqual(stock_of(self.store, self.product_id), 3)
        self.assertEqual(order_count(self.store, self.product_id), 1)

    def test_buying_all_remaining_stock_leaves_zero(self):
        reservation = self.engine.reserve_and_order(self.product_id, "buyer@example.com", 5)
        self.assertEqual(reservation.remaining_stock, 0)
        self.assertEqual(stock_of(self.store, self.product_id), 0)

    def test_insufficient_stock_changes_nothing(self):
        with self.assertRaises(InsufficientStock) as ctx:
            self.engine.reserve_and_order(self.product_id, "buyer@example.com", 6)

        self.assertEqual(ctx.exception.context["available"], 5)
        self.assertEqual(ctx.exception.context["requested"], 6)
        self.assertEqual(stock_of(self.store, self.product_id), 5)
        self.assertEqual(order_count(self.store, self.product_id), 0)

    def test_unknown_product_is_not_found(self):
        with self.assertRaises(NotFound):
            self.engine.reserve_and_order(9999, "buyer@example.com", 1)
        with self.store.session() as db:
            self.assertEqual(LedgerRepository(db).count_orders(9999), 0)

    def test_total_uses_exact_decimal_arithmetic(self):
        product_id = seed_product(self.store, price="0.10", stock=10, name="Sticker")
        reservation = self.engine.reserve_and_order(product_id, "buyer@example.com", 3)
        self.assertEqual(reservation.order.total_price, Decimal("0.30"))

    def test_failure_after_decrement_rolls_everything_back(self):
        failure = OperationalError("INSERT INTO orders", {}, Exception("connection lost"))
        with mock.patch.object(LedgerRepository, "create_order", side_effect=failure):
            with self.assertRaises(StoreUnavailable) as ctx:
                self.engine.reserve_and_order(self.product_id, "buyer@example.com", 2)

        self.assertTrue(ctx.exception.retryable)
        self.assertEqual(stock_of(self.store, self.product_id), 5)
        self.assertEqual(order_count(self.store, self.product_id), 0)

    def test_total_beyond_money_column_is_rejected(self):
        product_id = seed_product(self.store, price="9999999999.00", stock=5, name="Yacht")
        with self.assertRaises(InvalidInput):
            self.engine.reserve_and_order(product_id, "buyer@example.com", 2)

        self.assertEqual(stock_of(self.store, product_id), 5)
        self.assertEqual(order_count(self.store, product_id), 0)

    def test_rejected_row_is_invalid_input_not_retryable(self):
        for failure in (
            DataError("INSERT INTO orders", {}, Exception("value too long for type character varying(255)")),
            IntegrityError("INSERT INTO orders", {}, Exception("violates check constraint")),
        ):
            with self.subTest(failure=type(failure).__name__):
                with mock.patch.object(LedgerRepository, "create_order", side_effect=failure):
                    with self.assertRaises(InvalidInput) as ctx:
                        self.engine.reserve_and_order(self.product_id, "buyer@example.com", 2)

                self.assertFalse(ctx.exception.retryable)
                self.assertEqual(ctx.exception.status_code, 400)
                self.assertEqual(stock_of(self.store, self.product_id), 5)
                self.assertEqual(order_count(self.store, self.product_id), 0)


class TestPurchaseValidation(unittest.TestCase):
    def setUp(self):
        self.store = mock.Mock(spec=LedgerStore)
        self.engine = StockReservationEngine(self.store)

    def assertRejected(self, product_id, email, quantity):
        with self.assertRaises(InvalidInput):
            self.engine.reserve_and_order(product_id, email, quantity)
        self.store.transaction.assert_not_called()

    def test_empty_email(self):
        self.assertRejected(1, "   ", 1)

    def test_missing_email(self):
        self.assertRejected(1, None, 1)

    def test_zero_quantity(self):
        self.assertRejected(1, "a@b.com", 0)

    def test_negative_quantity(self):
        self.assertRejected(1, "a@b.com", -3)

    def test_missing_quantity(self):
        self.assertRejected(1, "a@b.com", None)

    def test_missing_product(self):
        self.assertRejected(None, "a@b.com", 1)

    def test_overlong_email(self):
        self.assertRejected(1, "a" * 250 + "@b.com", 1)

    def test_product_id_beyond_id_range_is_not_found(self):
        for product_id in (2**31, 2**70):
            with self.subTest(product_id=product_id):
                with self.assertRaises(NotFound):
                    self.engine.reserve_and_order(product_id, "a@b.com", 1)
        self.store.transaction.assert_not_called()

    def test_store_failure_is_retryable(self):
        self.store.transaction.side_effect = OperationalError("BEGIN", {}, Exception("db down"))
        with self.assertRaises(StoreUnavailable):
            self.engine.reserve_and_order(1, "a@b.com", 1)


class TestLineTotal(unittest.TestCase):
    def test_rounds_to_cents(self):
        self.assertEqual(line_total(Decimal("19.99"), 3), Decimal("59.97"))
        self.assertEqual(line_total(Decimal("0.015"), 1), Decimal("0.02"))


class TestReleaseOrder(unittest.TestCase):
    def setUp(self):
        self.store = make_store(self)
        self.engine = StockReservationEngine(self.store)
        self.product_id = seed_product(self.store, stock=5)
        self.order = self.engine.reserve_and_order(self.product_id, "buyer@example.com", 2).order

    def test_release_returns_stock_once(self):
        first = self.engine.release_order(self.order.id)
        self.assertTrue(first.created)
        self.assertEqual(first.remaining_stock, 5)
        self.assertEqual(first.release.reason, "payment_failed")

        second = self.engine.release_order(self.order.id, "duplicate")
        self.assertFalse(second.created)
        self.assertEqual(second.release.id, first.release.id)
        self.assertEqual(stock_of(self.store, self.product_id), 5)

    def test_release_keeps_order_row(self):
        self.engine.release_order(self.order.id, "card_declined")
        self.assertEqual(order_count(self.store, self.product_id), 1)

    def test_unknown_order(self):
        with self.assertRaises(NotFound):
            self.engine.release_order(424242)

    def test_invalid_order_id(self):
        with self.assertRaises(InvalidInput):
            self.engine.release_order(0)

    def test_order_id_beyond_id_range_is_not_found(self):
        with self.assertRaises(NotFound):
            self.engine.release_order(2**70)

    def test_overlong_reason(self):
        with self.assertRaises(InvalidInput):
            self.engine.release_order(self.order.id, "x" * 256)
        self.assertEqual(stock_of(self.store, self.product_id), 3)

    def test_rejected_release_row_keeps_stock(self):
        failure = IntegrityError("INSERT INTO stock_releases", {}, Exception("UNIQUE constraint failed"))
        with mock.patch.object(LedgerRepository, "record_release", side_effect=failure):
            with self.assertRaises(InvalidInput):
                self.engine.release_order(self.order.id)
        self.assertEqual(stock_of(self.store, self.product_id), 3)


if __name__ == "__main__":
    unittest.main()
