import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import func
from sqlalchemy.orm import Query, Session

from models import Order, Product, StockRelease, User

logger = logging.getLogger(__name__)


class LedgerRepository:
    """Record reads and writes for users, products, orders and releases.

    Works inside whatever transaction the caller's session has open; nothing
    here commits.
    """

    def __init__(self, db: Session):
        """Initialize with database session."""
        self.db = db

    # Collaborator lookups

    def find_user_by_email(self, email: str) -> Optional[User]:
        """Get user by normalized email."""
        return self.db.query(User).filter(User.email == email).first()

    def find_product_by_id(self, product_id: int) -> Optional[Product]:
        """Get product by ID without locking."""
        return self.db.query(Product).filter(Product.id == product_id).first()

    def product_for_update(self, product_id: int) -> Query:
        """SELECT ... FOR UPDATE of one product row."""
        return self.db.query(Product).filter(Product.id == product_id).with_for_update()

    def lock_product(self, product_id: int) -> Optional[Product]:
        """Get product by ID holding an exclusive row lock until the transaction ends."""
        return self.product_for_update(product_id).first()

    def create_user(self, name: str, email: str, role: str = "customer") -> User:
        """Create a user."""
        user = User(name=name, email=email.strip().lower(), role=role)
        self.db.add(user)
        self.db.flush()
        logger.info(f"Created user {user.id} with role {role}")
        return user

    def create_product(
        self,
        user_id: int,
        name: str,
        price: Decimal,
        stock: int,
        description: str = "",
        category: str = "general",
        image_url: Optional[str] = None,
    ) -> Product:
        """Create a new product."""
        product = Product(
            user_id=user_id,
            name=name,
            description=description,
            price=Decimal(str(price)),
            category=category,
            stock=stock,
            image_url=image_url,
        )
        self.db.add(product)
        self.db.flush()
        logger.info(f"Created product {product.id}: {name}, stock: {stock}")
        return product

    # Orders

    def create_order(self, product_id: int, buyer_email: str, quantity: int, total_price: Decimal) -> Order:
        """Insert an order row and load its generated id and timestamp."""
        order = Order(
            product_id=product_id,
            buyer_email=buyer_email,
            quantity=quantity,
            total_price=total_price,
        )
        self.db.add(order)
        self.db.flush()
        self.db.refresh(order)
        return order

    def get_order(self, order_id: int) -> Optional[Order]:
        """Get order by ID."""
        return self.db.query(Order).filter(Order.id == order_id).first()

    def count_orders(self, product_id: int) -> int:
        return self.db.query(func.count(Order.id)).filter(Order.product_id == product_id).scalar()

    # Releases

    def get_release(self, order_id: int) -> Optional[StockRelease]:
        """Get the release recorded for an order, if any."""
        return self.db.query(StockRelease).filter(StockRelease.order_id == order_id).first()

    def record_release(self, order: Order, reason: str) -> StockRelease:
        """Record that an order's stock was given back."""
        release = StockRelease(
            order_id=order.id,
            product_id=order.product_id,
            quantity=order.quantity,
            reason=reason,
        )
        self.db.add(release)
        self.db.flush()
        self.db.refresh(release)
        return release

    # Listings

    def list_public_products(self) -> List[dict]:
        """In-stock products, newest first, with their seller's name."""
        rows = (
            self.db.query(Product, User.name)
            .join(User, User.id == Product.user_id)
            .filter(Product.stock > 0)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .all()
        )
        products = []
        for product, seller_name in rows:
            products.append(
                {
                    "id": product.id,
                    "user_id": product.user_id,
                    "name": product.name,
                    "description": product.description,
                    "price": product.price,
                    "category": product.category,
                    "stock": product.stock,
                    "image_url": product.image_url,
                    "created_at": product.created_at,
                    "seller_name": seller_name,
                }
            )
        return products

    def list_seller_products(self, user_id: int) -> List[Product]:
        """A seller's own products, sold out ones included, newest first."""
        return (
            self.db.query(Product)
            .filter(Product.user_id == user_id)
            .order_by(Product.created_at.desc(), Product.id.desc())
            .all()
        )

    def list_seller_orders(self, user_id: int) -> List[dict]:
        """Orders placed for a seller's products, newest first."""
        rows = (
            self.db.query(Order, Product.name)
            .join(Product, Product.id == Order.product_id)
            .filter(Product.user_id == user_id)
            .order_by(Order.created_at.desc(), Order.id.desc())
            .all()
        )
        return [
            {
                "id": order.id,
                "product_id": order.product_id,
                "product_name": product_name,
                "buyer_email": order.buyer_email,
                "quantity": order.quantity,
                "total_price": order.total_price,
                "created_at": order.created_at,
            }
            for order, product_name in rows
        ]
