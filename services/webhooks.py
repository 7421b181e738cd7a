"""
Razorpay webhook reconciliation.

- The signature over the exact raw body is checked before anything is parsed.
- Once authenticated, every delivery is acknowledged, including malformed
  payloads, unknown events and unknown orders, so the provider does not
  redeliver forever.
- ``payment.captured`` and ``payment.failed`` go through the store's
  conditional transitions, which makes duplicate deliveries no-ops.
"""
import json
from dataclasses import dataclass
from typing import Any, Dict, Optional

from sqlalchemy.exc import SQLAlchemyError

from core.errors import InvalidSignature
from core.logging_config import get_logger
from services.order_store import OrderStore
from services.signatures import verify_webhook_signature

logger = get_logger(__name__)

PAYMENT_CAPTURED = "payment.captured"
PAYMENT_FAILED = "payment.failed"
DEFAULT_FAILURE_REASON = "Payment failed"


@dataclass
class WebhookAck:
    status: str = "ok"


def _payment_entity(event: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    payload = event.get("payload")
    if not isinstance(payload, dict):
        return None
    payment = payload.get("payment")
    if not isinstance(payment, dict):
        return None
    entity = payment.get("entity")
    return entity if isinstance(entity, dict) else None


def _text(entity: Dict[str, Any], key: str) -> Optional[str]:
    value = entity.get(key)
    return value if isinstance(value, str) and value else None


class WebhookReconciler:
    def __init__(self, store: OrderStore, webhook_secret: str):
        self.store = store
        self.webhook_secret = webhook_secret

    def handle(self, raw_body: bytes, signature_header: Optional[str]) -> WebhookAck:
        if not verify_webhook_signature(raw_body, signature_header, self.webhook_secret):
            logger.warning("webhook_signature_rejected", body_size=len(raw_body))
            raise InvalidSignature("Invalid webhook signature")

        try:
            event = json.loads(raw_body)
        except (UnicodeDecodeError, json.JSONDecodeError) as exc:
            logger.error("webhook_malformed_body", error=str(exc))
            return WebhookAck()
        if not isinstance(event, dict):
            logger.error("webhook_malformed_body", error="envelope is not an object")
            return WebhookAck()

        event_type = event.get("event")
        try:
            if event_type == PAYMENT_CAPTURED:
                self._payment_captured(_payment_entity(event))
            elif event_type == PAYMENT_FAILED:
                self._payment_failed(_payment_entity(event))
            else:
                logger.info("webhook_event_ignored", event=event_type)
        except SQLAlchemyError:
            self.store.db.rollback()
            logger.exception("webhook_processing_failed", event=event_type)
        return WebhookAck()

    def _find(self, event_type: str, entity: Optional[Dict[str, Any]]):
        gateway_order_id = _text(entity, "order_id") if entity else None
        if gateway_order_id is None:
            logger.error("webhook_missing_payment_entity", event=event_type)
            return None
        payment = self.store.get_by_gateway_order_id(gateway_order_id)
        if not payment:
            logger.warning("webhook_unknown_order", event=event_type, gateway_order_id=gateway_order_id)
        return payment

    def _payment_captured(self, entity: Optional[Dict[str, Any]]) -> None:
        gateway_payment_id = _text(entity, "id") if entity else None
        if gateway_payment_id is None:
            logger.error("webhook_missing_payment_id", event=PAYMENT_CAPTURED)
            return
        payment = self._find(PAYMENT_CAPTURED, entity)
        if payment is None:
            return
        # No client signature exists on this path.
        applied = self.store.mark_paid(payment, gateway_payment_id, None)
        if not applied:
            logger.info("webhook_duplicate_or_stale", event=PAYMENT_CAPTURED, gateway_order_id=payment.gateway_order_id)

    def _payment_failed(self, entity: Optional[Dict[str, Any]]) -> None:
        payment = self._find(PAYMENT_FAILED, entity)
        if payment is None:
            return
        reason = _text(entity, "error_description") or DEFAULT_FAILURE_REASON
        applied = self.store.mark_failed(payment, reason)
        if not applied:
            logger.info("webhook_duplicate_or_stale", event=PAYMENT_FAILED, gateway_order_id=payment.gateway_order_id)
