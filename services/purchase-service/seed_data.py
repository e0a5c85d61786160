import logging
from decimal import Decimal

from sqlalchemy.orm import Session

from repository import LedgerRepository

logger = logging.getLogger(__name__)

DEMO_SELLER = ("Demo Seller", "seller@example.com")

# Sample product templates: (name, description, category, price, stock)
SAMPLE_PRODUCTS = [
    ("Wireless Headphones", "Premium noise-cancelling headphones", "electronics", Decimal("149.99"), 25),
    ("USB-C Cable", "Durable 6ft USB-C charging cable", "electronics", Decimal("12.99"), 100),
    ("Phone Case", "Protective phone case with shock absorption", "accessories", Decimal("19.99"), 60),
    ("Power Bank", "30000mAh portable power bank", "electronics", Decimal("49.99"), 30),
    ("Laptop Stand", "Adjustable aluminum laptop stand", "office", Decimal("39.99"), 15),
    ("Mechanical Keyboard", "RGB mechanical gaming keyboard", "electronics", Decimal("99.99"), 8),
    ("Desk Lamp", "LED desk lamp with adjustable brightness", "office", Decimal("34.99"), 40),
    ("Webcam", "1080p HD webcam with microphone", "electronics", Decimal("59.99"), 5),
]


def seed_products(db: Session) -> None:
    """Seed a demo seller and its catalog. Skipped when the seller already exists."""
    repo = LedgerRepository(db)
    name, email = DEMO_SELLER

    if repo.find_user_by_email(email):
        logger.info(f"Seller {email} already exists, skipping seed")
        return

    logger.info("Seeding products...")
    seller = repo.create_user(name, email, role="seller")
    for product_name, description, category, price, stock in SAMPLE_PRODUCTS:
        repo.create_product(
            seller.id,
            product_name,
            price,
            stock,
            description=description,
            category=category,
        )
    logger.info(f"Seeded {len(SAMPLE_PRODUCTS)} products")
