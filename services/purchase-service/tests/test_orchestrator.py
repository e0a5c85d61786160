import unittest
from unittest import mock

from errors import InsufficientStock
from kafka_client import BaseKafkaProducer
from ledger_fixtures import make_store, seed_product
from orchestrator import PurchaseOrchestrator
from payment_gateway import PayPalGateway
from paypal_fake import PAYPAL_TEST_BASE, FakePayPal
from reservation import StockReservationEngine


class TestPurchaseEvents(unittest.TestCase):
    def setUp(self):
        self.store = make_store(self)
        self.producer = mock.Mock(spec=BaseKafkaProducer)
        self.paypal = FakePayPal()
        gateway = PayPalGateway(
            base_url=PAYPAL_TEST_BASE,
            client_id="client-id",
            client_secret="client-secret",
            transport=self.paypal.transport,
        )
        self.orchestrator = PurchaseOrchestrator(
            StockReservationEngine(self.store),
            gateway,
            producer=self.producer,
            low_stock_threshold=3,
        )

    def published(self):
        return [(c.args[0], c.args[1]) for c in self.producer.publish.call_args_list]

    def test_purchase_publishes_order_placed(self):
        product_id = seed_product(self.store, stock=10)
        result = self.orchestrator.purchase(product_id, "a@b.com", 2)

        self.assertEqual(result["remainingStock"], 8)
        topics = [topic for topic, _ in self.published()]
        self.assertEqual(topics, ["order.placed"])
        event = self.published()[0][1]
        self.assertEqual(event.order_id, result["order"]["id"])
        self.assertEqual(str(event.total_price), "200.00")

    def test_low_stock_alert(self):
        product_id = seed_product(self.store, stock=4)
        self.orchestrator.purchase(product_id, "a@b.com", 2)

        topics = [topic for topic, _ in self.published()]
        self.assertEqual(topics, ["order.placed", "inventory.low"])
        self.assertEqual(self.published()[1][1].current_stock, 2)

    def test_failed_purchase_publishes_nothing(self):
        product_id = seed_product(self.store, stock=1)
        with self.assertRaises(InsufficientStock):
            self.orchestrator.purchase(product_id, "a@b.com", 2)
        self.producer.publish.assert_not_called()

    def test_publish_failure_does_not_fail_purchase(self):
        self.producer.publish.side_effect = BufferError("Local: Queue full")
        product_id = seed_product(self.store, stock=10)

        result = self.orchestrator.purchase(product_id, "a@b.com", 1)
        self.assertTrue(result["success"])

    def test_release_publishes_once(self):
        product_id = seed_product(self.store, stock=10)
        order_id = self.orchestrator.purchase(product_id, "a@b.com", 1)["order"]["id"]
        self.producer.reset_mock()

        self.orchestrator.release_order(order_id, "payment_failed")
        self.orchestrator.release_order(order_id, "payment_failed")

        topics = [topic for topic, _ in self.published()]
        self.assertEqual(topics, ["inventory.released"])

    def test_capture_publishes_payment_captured(self):
        result = self.orchestrator.capture_payment("5O190127TN364715T")

        self.assertEqual(result["payment"]["status"], "COMPLETED")
        topic, event = self.published()[0]
        self.assertEqual(topic, "payment.captured")
        self.assertEqual(event.provider_order_id, "5O190127TN364715T")
        self.assertEqual(event.status, "COMPLETED")

    def test_capture_without_completed_status_publishes_nothing(self):
        for state in ("DECLINED", "PENDING"):
            with self.subTest(state=state):
                self.paypal.capture_state = state
                result = self.orchestrator.capture_payment("5O190127TN364715T")

                self.assertTrue(result["success"])
                self.assertEqual(result["payment"]["status"], state)
        self.producer.publish.assert_not_called()


if __name__ == "__main__":
    unittest.main()
