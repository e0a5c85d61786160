from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class PurchaseRequest(BaseModel):
    """Request to buy a product. Presence and ranges are checked by the engine."""

    model_config = ConfigDict(populate_by_name=True)

    product_id: Optional[int] = Field(None, alias="productId")
    buyer_email: Optional[str] = Field(None, alias="buyerEmail")
    quantity: Optional[int] = None


class PaymentCreateRequest(BaseModel):
    """Request to open a payment order with the provider."""

    amount: Optional[Any] = None
    currency: Optional[str] = None


class PaymentCaptureRequest(BaseModel):
    """Request to capture an approved payment order."""

    provider_order_id: Optional[str] = Field(
        None,
        validation_alias=AliasChoices("providerOrderId", "orderID", "provider_order_id"),
    )


class ReleaseRequest(BaseModel):
    reason: Optional[str] = None


class OrderSchema(BaseModel):
    """Order as returned to clients."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    product_id: int
    buyer_email: str
    quantity: int
    total_price: Decimal
    created_at: datetime


class SellerOrderSchema(OrderSchema):
    product_name: str


class StockReleaseSchema(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    order_id: int
    product_id: int
    quantity: int
    reason: str
    created_at: datetime


class ProductSchema(BaseModel):
    """Product schema."""

    model_config = ConfigDict(from_attributes=True)

    id: int
    user_id: int
    name: str
    description: str = ""
    price: Decimal
    category: str
    stock: int
    image_url: Optional[str] = None
    created_at: datetime


class PublicProductSchema(ProductSchema):
    seller_name: str


class HealthResponse(BaseModel):
    """Response model for health check."""

    status: str
    service: str
    version: str
