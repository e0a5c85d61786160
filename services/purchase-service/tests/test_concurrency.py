import threading
import unittest
from concurrent.futures import ThreadPoolExecutor

from errors import InsufficientStock
from ledger_fixtures import make_store, order_count, seed_product, stock_of
from reservation import StockReservationEngine


class TestConcurrentPurchases(unittest.TestCase):
    def setUp(self):
        self.store = make_store(self)
        self.engine = StockReservationEngine(self.store)

    def run_concurrently(self, product_id, buyers, quantity):
        start = threading.Barrier(buyers)

        def buy(n):
            start.wait()
            try:
                return self.engine.reserve_and_order(product_id, f"buyer{n}@example.com", quantity)
            except InsufficientStock as e:
                return e

        with ThreadPoolExecutor(max_workers=buyers) as pool:
            return list(pool.map(buy, range(buyers)))

    def test_no_overselling_under_contention(self):
        stock, quantity, buyers = 7, 2, 10
        product_id = seed_product(self.store, stock=stock)

        results = self.run_concurrently(product_id, buyers, quantity)

        successes = [r for r in results if not isinstance(r, InsufficientStock)]
        failures = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(successes), stock // quantity)
        self.assertEqual(len(failures), buyers - stock // quantity)
        self.assertEqual(stock_of(self.store, product_id), stock - (stock // quantity) * quantity)
        self.assertEqual(order_count(self.store, product_id), stock // quantity)

        # Each success saw the stock left by the one committed before it
        remaining = sorted(r.remaining_stock for r in successes)
        self.assertEqual(remaining, [1, 3, 5])

    def test_distinct_products_do_not_interfere(self):
        first = seed_product(self.store, stock=4, name="First")
        second = seed_product(self.store, stock=4, name="Second")

        def buy(product_id):
            return self.engine.reserve_and_order(product_id, "buyer@example.com", 1)

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(buy, [first, second] * 4))

        self.assertEqual(stock_of(self.store, first), 0)
        self.assertEqual(stock_of(self.store, second), 0)


if __name__ == "__main__":
    unittest.main()
