"""
payment_gateway.py - PayPal Orders API adapter

Relays payment orders to PayPal: create a CAPTURE-intent order for an amount,
then capture it once the buyer has approved it. Payment state is not stored
locally; the provider's payloads are passed back as-is.

Every call fetches a fresh OAuth2 client-credentials token first (one extra
round trip per operation, no token cache), then makes exactly one API call.

Failure mapping:
    - token endpoint answers non-2xx         -> AuthFailed
    - API endpoint answers non-2xx           -> ProviderRejected (status + payload kept)
    - connection error or timeout, any step  -> ProviderUnavailable
"""

import logging
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any, Optional
from urllib.parse import quote

import httpx

from errors import AuthFailed, InvalidInput, ProviderRejected, ProviderUnavailable

logger = logging.getLogger(__name__)

SANDBOX_BASE = "https://api-m.sandbox.paypal.com"
CENTS = Decimal("0.01")
# Same ceiling as the NUMERIC(12,2) order totals
MAX_AMOUNT = Decimal("9999999999.99")


def parse_amount(amount: Any) -> Decimal:
    """Parse a client-supplied amount into a positive two-decimal value."""
    if amount is None or isinstance(amount, bool):
        raise InvalidInput("Invalid amount")
    try:
        value = Decimal(str(amount).strip())
        if not value.is_finite():
            raise InvalidInput("Invalid amount")
        value = value.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, ValueError):
        raise InvalidInput("Invalid amount")
    if value <= 0 or value > MAX_AMOUNT:
        raise InvalidInput("Invalid amount")
    return value


def _payload(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError:
        return {"raw": response.text}


class PayPalGateway:
    """Client for the PayPal v2 checkout orders API."""

    def __init__(
        self,
        base_url: str = SANDBOX_BASE,
        client_id: str = "",
        client_secret: str = "",
        currency: str = "PHP",
        timeout: float = 10.0,
        return_url: str = "https://example.com/success",
        cancel_url: str = "https://example.com/cancel",
        transport: Optional[httpx.BaseTransport] = None,
    ):
        self.base_url = base_url.rstrip("/")
        self.client_id = client_id
        self.client_secret = client_secret
        self.currency = currency
        self.timeout = timeout
        self.return_url = return_url
        self.cancel_url = cancel_url
        self.transport = transport

    @property
    def configured(self) -> bool:
        return bool(self.client_id and self.client_secret)

    def _client(self) -> httpx.Client:
        return httpx.Client(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    def _post(self, client: httpx.Client, path: str, **kwargs) -> httpx.Response:
        try:
            return client.post(path, **kwargs)
        except httpx.TimeoutException as e:
            logger.error(f"PayPal request to {path} timed out after {self.timeout}s")
            raise ProviderUnavailable("Payment provider timed out") from e
        except httpx.TransportError as e:
            logger.error(f"PayPal request to {path} failed: {e}")
            raise ProviderUnavailable("Payment provider is unreachable") from e

    def _access_token(self, client: httpx.Client) -> str:
        if not self.configured:
            raise AuthFailed("PayPal credentials not configured")

        resp = self._post(
            client,
            "/v1/oauth2/token",
            auth=(self.client_id, self.client_secret),
            data={"grant_type": "client_credentials"},
        )
        if resp.is_error:
            logger.error(f"PayPal token failed: {resp.status_code} {resp.text}")
            raise AuthFailed("Payment provider rejected credentials", providerStatus=resp.status_code)

        data = _payload(resp)
        token = data.get("access_token") if isinstance(data, dict) else None
        if not token:
            raise AuthFailed("Payment provider returned no access token", providerStatus=resp.status_code)
        return token

    def acquire_access_token(self) -> str:
        """Exchange the client credentials for a short-lived bearer token."""
        with self._client() as client:
            return self._access_token(client)

    def create_payment_order(self, amount: Any, currency: Optional[str] = None) -> dict:
        """Open a CAPTURE-intent order; returns the provider's order payload."""
        value = parse_amount(amount)
        currency = (currency or self.currency).upper()

        with self._client() as client:
            token = self._access_token(client)
            resp = self._post(
                client,
                "/v2/checkout/orders",
                headers={"Authorization": f"Bearer {token}"},
                json={
                    "intent": "CAPTURE",
                    "purchase_units": [
                        {"amount": {"currency_code": currency, "value": f"{value:.2f}"}},
                    ],
                    "application_context": {
                        "return_url": self.return_url,
                        "cancel_url": self.cancel_url,
                    },
                },
            )

        data = _payload(resp)
        if resp.is_error:
            logger.warning(f"PayPal create-order rejected: {resp.status_code}")
            raise ProviderRejected("Payment provider rejected the order", resp.status_code, data)

        logger.info(
            f"Created PayPal order for {value:.2f} {currency}",
            extra={"provider_order_id": data.get("id") if isinstance(data, dict) else None},
        )
        return data

    def capture_payment_order(self, provider_order_id: Any) -> dict:
        """Capture an approved order; returns the provider's capture payload."""
        order_id = str(provider_order_id).strip() if provider_order_id is not None else ""
        if not order_id:
            raise InvalidInput("orderID is required")

        with self._client() as client:
            token = self._access_token(client)
            resp = self._post(
                client,
                f"/v2/checkout/orders/{quote(order_id, safe='')}/capture",
                headers={"Authorization": f"Bearer {token}", "Content-Type": "application/json"},
            )

        data = _payload(resp)
        if resp.is_error:
            logger.warning(
                f"PayPal capture rejected: {resp.status_code}",
                extra={"provider_order_id": order_id},
            )
            raise ProviderRejected("Payment provider rejected the capture", resp.status_code, data)

        logger.info("Captured PayPal order", extra={"provider_order_id": order_id})
        return data
