import logging
from typing import Optional

from fastapi import APIRouter, Depends, FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import SQLAlchemyError

from database import LedgerStore
from errors import InvalidInput, NotFound, PaymentError, PurchaseError, StoreUnavailable
from models import MAX_ROW_ID
from orchestrator import PurchaseOrchestrator
from reservation import normalize_email
from repository import LedgerRepository
from schemas import (
    PaymentCaptureRequest,
    PaymentCreateRequest,
    ProductSchema,
    PublicProductSchema,
    PurchaseRequest,
    ReleaseRequest,
    SellerOrderSchema,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["purchase"])
legacy_router = APIRouter(tags=["payment"])


def get_orchestrator(request: Request) -> PurchaseOrchestrator:
    return request.app.state.orchestrator


def get_store(request: Request) -> LedgerStore:
    return request.app.state.store


def error_response(exc: PurchaseError, status_code: Optional[int] = None) -> JSONResponse:
    return JSONResponse(
        status_code=status_code or exc.status_code,
        content={"success": False, "error": exc.to_dict()},
    )


def install_error_handlers(app: FastAPI) -> None:
    """Render every failure as {"success": false, "error": {...}} without internals."""

    @app.exception_handler(PurchaseError)
    async def purchase_error_handler(request: Request, exc: PurchaseError):
        return error_response(exc)

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        fields = [".".join(str(part) for part in err.get("loc", ())) for err in exc.errors()]
        return error_response(InvalidInput("Invalid request", fields=fields))

    @app.exception_handler(Exception)
    async def unexpected_error_handler(request: Request, exc: Exception):
        logger.exception(f"Unhandled error on {request.method} {request.url.path}")
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content={"success": False, "error": {"kind": "InternalError", "detail": "Internal server error"}},
        )


@router.post("/purchase", status_code=status.HTTP_201_CREATED)
def purchase(body: PurchaseRequest, orchestrator: PurchaseOrchestrator = Depends(get_orchestrator)) -> dict:
    """Reserve stock and record the order."""
    return orchestrator.purchase(body.product_id, body.buyer_email, body.quantity)


@router.post("/payment/create")
@legacy_router.post("/create-order")
@legacy_router.post("/api/paypal/create-order")
def create_payment(body: PaymentCreateRequest, orchestrator: PurchaseOrchestrator = Depends(get_orchestrator)):
    """Open a payment order with the provider for the given amount."""
    try:
        return orchestrator.create_payment(body.amount, body.currency)
    except PaymentError as e:
        return error_response(e, status.HTTP_500_INTERNAL_SERVER_ERROR)


@router.post("/payment/capture")
@legacy_router.post("/capture-order")
@legacy_router.post("/api/paypal/capture-order")
def capture_payment(body: PaymentCaptureRequest, orchestrator: PurchaseOrchestrator = Depends(get_orchestrator)):
    """Capture an approved payment order. Provider payloads pass through verbatim."""
    return orchestrator.capture_payment(body.provider_order_id)


@router.post("/orders/{order_id}/release")
def release_order(
    order_id: int,
    body: Optional[ReleaseRequest] = None,
    orchestrator: PurchaseOrchestrator = Depends(get_orchestrator),
) -> dict:
    """Give an unpaid order's stock back."""
    return orchestrator.release_order(order_id, body.reason if body else None)


@router.get("/products/public")
def list_public_products(store: LedgerStore = Depends(get_store)) -> dict:
    """In-stock products for customers."""
    try:
        with store.session() as db:
            products = LedgerRepository(db).list_public_products()
    except SQLAlchemyError as e:
        logger.exception("Error listing public products")
        raise StoreUnavailable("Public products failed") from e
    return {
        "success": True,
        "products": [PublicProductSchema.model_validate(p).model_dump(mode="json") for p in products],
    }


@router.get("/products/{product_id}")
def get_product(product_id: int, store: LedgerStore = Depends(get_store)) -> dict:
    """Get product details."""
    if not 0 < product_id <= MAX_ROW_ID:
        raise NotFound("Product not found", productId=product_id)
    try:
        with store.session() as db:
            product = LedgerRepository(db).find_product_by_id(product_id)
            found = ProductSchema.model_validate(product).model_dump(mode="json") if product else None
    except SQLAlchemyError as e:
        logger.exception(f"Error getting product {product_id}")
        raise StoreUnavailable("Get product failed") from e
    if found is None:
        raise NotFound("Product not found", productId=product_id)
    return {"success": True, "product": found}


@router.get("/seller/products")
def list_seller_products(email: Optional[str] = None, store: LedgerStore = Depends(get_store)) -> dict:
    """Products listed by the seller with this email, sold out ones included."""
    email = normalize_email(email)
    if not email:
        raise InvalidInput("Email is required")
    try:
        with store.session() as db:
            repo = LedgerRepository(db)
            user = repo.find_user_by_email(email)
            products = repo.list_seller_products(user.id) if user else None
            found = (
                [ProductSchema.model_validate(p).model_dump(mode="json") for p in products]
                if products is not None
                else None
            )
    except SQLAlchemyError as e:
        logger.exception("Error getting seller products")
        raise StoreUnavailable("Get seller products failed") from e
    if found is None:
        raise NotFound("User not found")
    return {"success": True, "products": found}


@router.get("/seller/orders")
def list_seller_orders(email: Optional[str] = None, store: LedgerStore = Depends(get_store)) -> dict:
    """Orders placed for the products of the seller with this email."""
    email = normalize_email(email)
    if not email:
        raise InvalidInput("Email is required")
    try:
        with store.session() as db:
            repo = LedgerRepository(db)
            user = repo.find_user_by_email(email)
            orders = repo.list_seller_orders(user.id) if user else None
    except SQLAlchemyError as e:
        logger.exception("Error getting seller orders")
        raise StoreUnavailable("Get seller orders failed") from e
    if orders is None:
        raise NotFound("User not found")
    return {
        "success": True,
        "orders": [SellerOrderSchema.model_validate(o).model_dump(mode="json") for o in orders],
    }
