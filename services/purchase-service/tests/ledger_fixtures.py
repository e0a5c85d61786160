"""Shared setup for the purchase-service tests: a throwaway SQLite ledger."""

import os
import tempfile
import unittest
from decimal import Decimal

from database import LedgerStore
from models import Base, Order, Product
from repository import LedgerRepository


def sqlite_url(test: unittest.TestCase) -> str:
    """Path to a fresh database file removed when the test finishes."""
    tmpdir = tempfile.TemporaryDirectory()
    test.addCleanup(tmpdir.cleanup)
    return "sqlite:///" + os.path.join(tmpdir.name, "ledger.db")


def make_store(test: unittest.TestCase) -> LedgerStore:
    store = LedgerStore(sqlite_url(test))
    store.create_all(Base.metadata)
    test.addCleanup(store.dispose)
    return store


def seed_product(store: LedgerStore, price="100.00", stock=5, seller_email="seller@example.com", name="Widget") -> int:
    """Create a product (and its seller on first use); returns the product id."""
    with store.transaction() as db:
        repo = LedgerRepository(db)
        seller = repo.find_user_by_email(seller_email) or repo.create_user("Seller", seller_email, role="seller")
        return repo.create_product(seller.id, name, Decimal(price), stock).id


def stock_of(store: LedgerStore, product_id: int) -> int:
    with store.session() as db:
        return db.query(Product).filter(Product.id == product_id).one().stock


def order_count(store: LedgerStore, product_id: int) -> int:
    with store.session() as db:
        return db.query(Order).filter(Order.product_id == product_id).count()
