"""
purchase-service/main.py - Purchase Transaction Microservice

PURPOSE:
    Sells products without overselling. A purchase locks the product row,
    checks and decrements stock, and records the order in one transaction.
    Payment is a separate, client-driven PayPal create/capture flow relayed
    through this service.

PURCHASE WORKFLOW:
    1. Client POSTs /purchase {productId, buyerEmail, quantity}
    2. Stock is reserved and the order recorded atomically (201)
    3. Client POSTs /payment/create {amount} -> PayPal order payload
    4. Buyer approves on PayPal; client POSTs /payment/capture {providerOrderId}
    5. If capture fails, client may POST /orders/{id}/release to return stock

API ENDPOINTS (also served under /api):
    POST /purchase                  - Reserve stock and create order
    POST /payment/create            - Create PayPal order
    POST /payment/capture           - Capture PayPal order
    POST /orders/{order_id}/release - Return an unpaid order's stock
    GET  /products/public           - In-stock products
    GET  /products/{product_id}     - Product details
    GET  /seller/orders?email=      - Orders for a seller's products
    GET  /health                    - Health check
    Legacy: /create-order, /capture-order, /api/paypal/create-order,
            /api/paypal/capture-order

KAFKA EVENTS PUBLISHED (only when KAFKA_BOOTSTRAP_SERVERS is set):
    - order.placed, inventory.low, inventory.released, payment.captured

DATABASE:
    - PostgreSQL tables: users, products, orders, stock_releases
    - DATABASE_URL may point at SQLite for local runs

USAGE:
    Runs on port 5000
    Access: http://localhost:5000/purchase
"""

import logging
import sys
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional

import httpx
from fastapi import FastAPI
from pydantic_settings import BaseSettings, SettingsConfigDict

# Add shared library to path for common utilities
sys.path.insert(0, str(Path(__file__).parent.parent.parent / "shared"))

from database import LedgerStore, build_postgres_url
from kafka_client import BaseKafkaProducer
from logging_config import setup_logging

from models import Base
from orchestrator import PurchaseOrchestrator
from payment_gateway import SANDBOX_BASE, PayPalGateway
from reservation import StockReservationEngine
from routes import install_error_handlers, legacy_router, router
from schemas import HealthResponse

SERVICE_NAME = "purchase-service"
VERSION = "1.0.0"

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Application settings, read from the environment or a .env file."""

    model_config = SettingsConfigDict(env_file=".env", extra="ignore")

    database_url: Optional[str] = None
    postgres_user: str = "postgres"
    postgres_password: str = "postgres"
    postgres_host: str = "localhost"
    postgres_port: str = "5432"
    postgres_db: str = "ecom"
    db_ssl: bool = False
    db_pool_size: int = 5
    db_lock_timeout_ms: Optional[int] = 5000
    db_statement_timeout_ms: Optional[int] = 30000

    paypal_base: str = SANDBOX_BASE
    paypal_client_id: str = ""
    paypal_client_secret: str = ""
    paypal_currency: str = "PHP"
    paypal_timeout_seconds: float = 10.0
    paypal_return_url: str = "https://example.com/success"
    paypal_cancel_url: str = "https://example.com/cancel"

    kafka_bootstrap_servers: str = ""
    low_stock_threshold: int = 10

    purchase_service_port: int = 5000
    log_level: str = "INFO"
    log_timezone: str = "UTC"
    seed_demo_data: bool = False

    @property
    def resolved_database_url(self) -> str:
        if self.database_url:
            return self.database_url
        return build_postgres_url(
            self.postgres_user,
            self.postgres_password,
            self.postgres_host,
            self.postgres_port,
            self.postgres_db,
        )


def create_app(
    settings: Optional[Settings] = None,
    payment_transport: Optional[httpx.BaseTransport] = None,
    producer: Optional[BaseKafkaProducer] = None,
) -> FastAPI:
    """Build the service. Resources are opened in the lifespan, not here."""
    settings = settings or Settings()
    setup_logging(SERVICE_NAME, level=settings.log_level, tz=settings.log_timezone)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Manage app lifecycle."""
        logger.info("Starting Purchase Service...")

        store = LedgerStore(
            settings.resolved_database_url,
            pool_size=settings.db_pool_size,
            lock_timeout_ms=settings.db_lock_timeout_ms,
            statement_timeout_ms=settings.db_statement_timeout_ms,
            ssl=settings.db_ssl,
        )
        try:
            store.create_all(Base.metadata)
        except Exception as e:
            logger.error(f"Failed to initialize database: {e}")
            store.dispose()
            raise

        if settings.seed_demo_data:
            from seed_data import seed_products

            with store.transaction() as db:
                seed_products(db)
            logger.info("Products seeded")

        event_producer = producer
        if event_producer is None and settings.kafka_bootstrap_servers:
            event_producer = BaseKafkaProducer(settings.kafka_bootstrap_servers, client_id="purchase-producer")
            logger.info("Kafka producer initialized")

        gateway = PayPalGateway(
            base_url=settings.paypal_base,
            client_id=settings.paypal_client_id,
            client_secret=settings.paypal_client_secret,
            currency=settings.paypal_currency,
            timeout=settings.paypal_timeout_seconds,
            return_url=settings.paypal_return_url,
            cancel_url=settings.paypal_cancel_url,
            transport=payment_transport,
        )
        if not gateway.configured:
            logger.warning("PayPal credentials not configured; payment calls will fail")

        app.state.settings = settings
        app.state.store = store
        app.state.orchestrator = PurchaseOrchestrator(
            StockReservationEngine(store),
            gateway,
            producer=event_producer,
            low_stock_threshold=settings.low_stock_threshold,
        )

        yield

        logger.info("Shutting down Purchase Service...")
        if event_producer:
            event_producer.close()
        store.dispose()

    app = FastAPI(title="Purchase Service", version=VERSION, lifespan=lifespan)
    install_error_handlers(app)

    @app.get("/health", response_model=HealthResponse)
    @app.get("/api/health", response_model=HealthResponse)
    async def health() -> HealthResponse:
        """Health check endpoint."""
        return HealthResponse(status="ok", service=SERVICE_NAME, version=VERSION)

    app.include_router(router)
    app.include_router(router, prefix="/api")
    app.include_router(legacy_router)
    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app, host="0.0.0.0", port=Settings().purchase_service_port)
