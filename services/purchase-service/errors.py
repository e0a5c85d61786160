"""Purchase and payment failures.

Raised by the reservation engine and the payment gateway; the HTTP layer
renders them as ``{"success": false, "error": {...}}`` with the class's
status code. ``kind`` is the stable, machine-readable name clients match on.
"""

from typing import Any, Dict, Optional


class PurchaseError(Exception):
    """Base for every failure a client can see."""

    kind = "PurchaseError"
    status_code = 500
    retryable = False

    def __init__(self, detail: str, **context: Any):
        super().__init__(detail)
        self.detail = detail
        self.context = context

    def to_dict(self) -> Dict[str, Any]:
        body = {"kind": self.kind, "detail": self.detail, "retryable": self.retryable}
        body.update(self.context)
        return body


class InvalidInput(PurchaseError):
    """Caller error; rejected before any store or network access."""

    kind = "InvalidInput"
    status_code = 400


class NotFound(PurchaseError):
    kind = "NotFound"
    status_code = 404


class InsufficientStock(PurchaseError):
    """Requested quantity exceeds available stock. Retry with less."""

    kind = "InsufficientStock"
    status_code = 400

    def __init__(self, product_id: int, requested: int, available: int):
        super().__init__(
            "Insufficient stock",
            productId=product_id,
            requested=requested,
            available=available,
        )


class StoreUnavailable(PurchaseError):
    """The ledger store failed; nothing was committed, so a retry is safe."""

    kind = "StoreUnavailable"
    status_code = 500
    retryable = True


class PaymentError(PurchaseError):
    kind = "PaymentError"
    status_code = 502


class AuthFailed(PaymentError):
    kind = "AuthFailed"


class ProviderRejected(PaymentError):
    """Non-success answer from the provider, payload kept verbatim."""

    kind = "ProviderRejected"

    def __init__(self, detail: str, provider_status: int, provider_payload: Optional[Any] = None):
        super().__init__(detail, providerStatus=provider_status, providerPayload=provider_payload)
        self.provider_status = provider_status
        self.provider_payload = provider_payload


class ProviderUnavailable(PaymentError):
    """Provider unreachable or timed out."""

    kind = "ProviderUnavailable"
    retryable = True
