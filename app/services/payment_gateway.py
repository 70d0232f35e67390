"""
Razorpay payment gateway client.

Creates payment orders over the gateway's REST API and verifies checkout
signatures locally. The client is constructed once at startup and injected
into the registration and membership services; it holds a pooled
``httpx.Client`` with a bounded timeout.
"""

import hashlib
import hmac
import logging
import time
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from typing import Any

import httpx

from app.core.config import Settings
from app.core.errors import InvalidInput, UpstreamError

logger = logging.getLogger(__name__)


def to_minor_units(amount: Any) -> int:
    """
    Convert a major-unit amount (e.g. rupees) to integer minor units (paise).

    Raises:
        InvalidInput: If the amount is not a positive number
    """
    try:
        value = Decimal(str(amount))
    except (InvalidOperation, ValueError):
        raise InvalidInput("Amount must be a number") from None

    if not value.is_finite() or value <= 0:
        raise InvalidInput("Amount must be greater than zero")

    return int((value * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def generate_receipt(prefix: str = "rcpt") -> str:
    """Receipt id in the ``<prefix>_<epoch-ms>`` form used for orders."""
    return f"{prefix}_{int(time.time() * 1000)}"


def compute_signature(secret: str, order_id: str, payment_id: str) -> str:
    """HMAC-SHA256 hex digest over ``"{order_id}|{payment_id}"``."""
    message = f"{order_id}|{payment_id}".encode("utf-8", "surrogatepass")
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


class PaymentGatewayClient:
    """Thin client for the Razorpay orders API plus signature verification."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        base_url: str = "https://api.razorpay.com/v1",
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self.key_id = key_id
        self._key_secret = key_secret
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "PaymentGatewayClient":
        return cls(
            key_id=settings.razorpay_key_id,
            key_secret=settings.razorpay_key_secret,
            base_url=settings.razorpay_base_url,
            timeout=settings.razorpay_timeout_seconds,
        )

    def create_order(
        self,
        amount_minor_units: int,
        currency: str,
        receipt: str,
        notes: dict | None = None,
    ) -> dict:
        """
        Create a gateway order.

        Args:
            amount_minor_units: Amount in the currency's smallest unit
            currency: ISO currency code, e.g. "INR"
            receipt: Merchant receipt identifier
            notes: Free-form metadata stored on the order

        Returns:
            The gateway's order descriptor, verbatim

        Raises:
            UpstreamError: On timeout, connection failure or a gateway error response
        """
        payload = {
            "amount": amount_minor_units,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }

        try:
            response = self._client.post("/orders", json=payload)
            response.raise_for_status()
        except httpx.TimeoutException:
            logger.error(f"Payment gateway timed out creating order {receipt}")
            raise UpstreamError("Payment gateway timed out") from None
        except httpx.HTTPStatusError as e:
            message = _gateway_error_message(e.response)
            logger.error(
                f"Payment gateway rejected order {receipt}: "
                f"{e.response.status_code} {message}"
            )
            raise UpstreamError(message) from None
        except httpx.HTTPError as e:
            logger.error(f"Payment gateway request failed for order {receipt}: {e}")
            raise UpstreamError(f"Payment gateway unavailable: {e}") from None

        order = response.json()
        logger.info(f"Created gateway order {order.get('id')} for receipt {receipt}")
        return order

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        """Constant-time check of a checkout signature."""
        if not order_id or not payment_id or not signature:
            return False
        if not signature.isascii():
            return False
        expected = compute_signature(self._key_secret, order_id, payment_id)
        return hmac.compare_digest(expected.encode("ascii"), signature.encode("ascii"))

    def close(self) -> None:
        self._client.close()


def _gateway_error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text or f"Gateway error {response.status_code}"
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict) and error.get("description"):
        return error["description"]
    return f"Gateway error {response.status_code}"
