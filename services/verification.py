from dataclasses import dataclass

from core.logging_config import get_logger
from models.payment import Payment, PaymentStatus
from services.order_store import OrderStore
from services.signatures import verify_checkout_signature

logger = get_logger(__name__)

INVALID_SIGNATURE_REASON = "invalid signature"


@dataclass
class VerificationResult:
    success: bool
    payment: Payment


class VerificationHandler:
    """Handles the order id / payment id / signature triple returned by checkout."""

    def __init__(self, store: OrderStore, checkout_secret: str):
        self.store = store
        self.checkout_secret = checkout_secret

    def verify(self, owner_id: int, gateway_order_id: str, gateway_payment_id: str, signature: str) -> VerificationResult:
        payment = self.store.get_for_owner(gateway_order_id, owner_id)

        if verify_checkout_signature(gateway_order_id, gateway_payment_id, signature, self.checkout_secret):
            self.store.mark_paid(payment, gateway_payment_id, signature)
            # Losing the race to a webhook still leaves the order paid
            return VerificationResult(success=payment.status == PaymentStatus.PAID, payment=payment)

        logger.warning("checkout_signature_mismatch", owner_id=owner_id, gateway_order_id=gateway_order_id)
        self.store.mark_failed(payment, INVALID_SIGNATURE_REASON)
        return VerificationResult(success=False, payment=payment)
