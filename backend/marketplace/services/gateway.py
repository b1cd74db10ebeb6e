"""Client for the external payment gateway.

Orders are created over HTTPS with basic auth (key id + key secret). The
gateway signs each completed transaction with the same key secret, so
``sign_transaction`` is the one place that recomputes that signature.
"""

import logging

import httpx

from marketplace.config import settings
from marketplace.errors import GatewayError
from marketplace.utils.hashing import hmac_sha256_hex

logger = logging.getLogger(__name__)


def _signing_key(secret: str | None) -> str:
    if not secret:
        # Never sign or verify with an empty key.
        logger.error("Payment gateway secret is not configured")
        raise GatewayError("Payment gateway is not configured")
    return secret


def sign_transaction(order_id: str, transaction_id: str, secret: str | None = None) -> str:
    key = _signing_key(secret or settings.gateway_key_secret)
    return hmac_sha256_hex(key, f"{order_id}|{transaction_id}")


def sign_webhook(raw_body: bytes, secret: str | None = None) -> str:
    key = _signing_key(secret or settings.webhook_secret)
    return hmac_sha256_hex(key, raw_body)


class PaymentGateway:
    def __init__(
        self,
        base_url: str,
        key_id: str,
        key_secret: str,
        timeout: float = 10.0,
        transport: httpx.BaseTransport | None = None,
    ):
        self._client = httpx.Client(
            base_url=base_url,
            auth=(key_id, key_secret),
            timeout=timeout,
            transport=transport,
        )

    def create_order(self, amount_minor: int, currency: str, receipt: str, notes: dict | None = None) -> dict:
        payload = {
            "amount": amount_minor,
            "currency": currency,
            "receipt": receipt,
            "notes": notes or {},
        }
        try:
            response = self._client.post("/orders", json=payload)
            response.raise_for_status()
            order = response.json()
        except httpx.TimeoutException as exc:
            logger.error("Gateway timed out creating order %s", receipt)
            raise GatewayError("Payment gateway timed out, try again") from exc
        except httpx.HTTPStatusError as exc:
            logger.error("Gateway rejected order %s: HTTP %s", receipt, exc.response.status_code)
            raise GatewayError(f"Payment gateway rejected the order (HTTP {exc.response.status_code})") from exc
        except httpx.HTTPError as exc:
            logger.error("Gateway request failed for order %s: %s", receipt, exc)
            raise GatewayError("Payment gateway unavailable, try again") from exc
        except ValueError as exc:
            raise GatewayError("Payment gateway returned an unreadable response") from exc

        if not isinstance(order, dict) or not order.get("id"):
            raise GatewayError("Payment gateway returned no order id")
        logger.info("Gateway order %s created for receipt %s", order["id"], receipt)
        return order

    def close(self):
        self._client.close()


def build_gateway() -> PaymentGateway:
    return PaymentGateway(
        settings.gateway_base_url,
        settings.gateway_key_id,
        settings.gateway_key_secret,
        timeout=settings.gateway_timeout_seconds,
    )
