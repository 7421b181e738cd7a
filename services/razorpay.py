from typing import Any, Dict, Protocol

import requests

from core.config import settings
from core.logging_config import get_logger

logger = get_logger(__name__)


class GatewayError(Exception):
    """The remote order could not be created; nothing was persisted remotely that we know of."""


class GatewayClient(Protocol):
    def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        ...


class RazorpayClient:
    """Thin wrapper over the Razorpay Orders API. No retries; callers decide."""

    def __init__(self, key_id: str, key_secret: str, base_url: str = "https://api.razorpay.com/v1", timeout: int = 20):
        self.key_id = key_id
        self._key_secret = key_secret
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    def _auth(self) -> tuple[str, str]:
        return (self.key_id, self._key_secret)

    def create_order(self, amount: int, currency: str, receipt: str, notes: Dict[str, str]) -> Dict[str, Any]:
        payload = {
            "amount": amount,  # minor units
            "currency": currency,
            "receipt": receipt,
            "notes": notes,
        }
        try:
            resp = requests.post(f"{self.base_url}/orders", json=payload, auth=self._auth(), timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("razorpay_order_create_failed", receipt=receipt, error=str(exc))
            raise GatewayError(str(exc)) from exc

        if not data.get("id"):
            logger.error("razorpay_order_missing_id", receipt=receipt)
            raise GatewayError("Missing order id from provider")

        return {
            "gateway_order_id": data["id"],
            "amount": data.get("amount", amount),
            "currency": data.get("currency", currency),
            "receipt": data.get("receipt", receipt),
        }


def get_gateway_client() -> GatewayClient:
    """FastAPI dependency; tests override it with a zero-I/O double."""
    return RazorpayClient(
        key_id=settings.RAZORPAY_KEY_ID,
        key_secret=settings.RAZORPAY_KEY_SECRET,
        base_url=settings.RAZORPAY_API_URL,
        timeout=settings.RAZORPAY_TIMEOUT_SECONDS,
    )
