"""HMAC-SHA256 signature checks for the two Razorpay trust boundaries.

Checkout signatures come back through the customer's browser and are keyed
by the API key secret. Webhook signatures cover the raw request body of a
server-to-server push and are keyed by the dedicated webhook secret. The
two secrets are never substituted for one another.
"""
import hashlib
import hmac

from core.errors import ConfigurationError


def _hexdigest(secret: str, message: bytes) -> str:
    if not secret:
        raise ConfigurationError("Signing secret not configured")
    return hmac.new(secret.encode(), message, hashlib.sha256).hexdigest()


def sign_checkout(gateway_order_id: str, gateway_payment_id: str, secret: str) -> str:
    return _hexdigest(secret, f"{gateway_order_id}|{gateway_payment_id}".encode())


def sign_webhook(raw_body: bytes, secret: str) -> str:
    return _hexdigest(secret, raw_body)


def verify_checkout_signature(gateway_order_id: str, gateway_payment_id: str, signature: str | None, secret: str) -> bool:
    expected = sign_checkout(gateway_order_id, gateway_payment_id, secret)
    return bool(signature) and hmac.compare_digest(expected.encode(), signature.encode())


def verify_webhook_signature(raw_body: bytes, signature: str | None, secret: str) -> bool:
    expected = sign_webhook(raw_body, secret)
    return bool(signature) and hmac.compare_digest(expected.encode(), signature.encode())
