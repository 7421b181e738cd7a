import secrets
import time
from dataclasses import dataclass

from core.errors import DuplicateReceipt, InvalidPlan, UpstreamUnavailable
from core.logging_config import get_logger
from core.plans import PlanDetails, get_plan
from models.payment import Payment
from models.user import User
from services.order_store import OrderStore
from services.razorpay import GatewayClient, GatewayError

logger = get_logger(__name__)

MAX_RECEIPT_ATTEMPTS = 3


@dataclass
class OrderDescriptor:
    gateway_order_id: str
    amount: int
    currency: str
    receipt: str
    key_id: str
    plan: PlanDetails
    payment: Payment


def generate_receipt(owner_id: int) -> str:
    """rcpt_<ns clock>_<owner>_<random>; Razorpay caps receipts at 40 chars."""
    return f"rcpt_{time.time_ns()}_{owner_id}_{secrets.token_hex(3)}"[:40]


class OrderIssuer:
    def __init__(self, store: OrderStore, gateway: GatewayClient, currency: str = "INR", key_id: str = ""):
        self.store = store
        self.gateway = gateway
        self.currency = currency
        self.key_id = key_id

    def create_order(self, owner: User, plan_key: str) -> OrderDescriptor:
        plan = get_plan(plan_key)
        if plan is None:
            raise InvalidPlan()

        last_error: DuplicateReceipt | None = None
        for attempt in range(1, MAX_RECEIPT_ATTEMPTS + 1):
            try:
                return self._issue(owner, plan)
            except DuplicateReceipt as exc:
                logger.warning("receipt_collision", owner_id=owner.id, attempt=attempt)
                last_error = exc
        raise last_error

    def _issue(self, owner: User, plan: PlanDetails) -> OrderDescriptor:
        receipt = generate_receipt(owner.id)
        if self.store.receipt_exists(receipt):
            raise DuplicateReceipt(receipt)

        notes = {
            "userId": str(owner.id),
            "plan": plan.key.value,
            "userEmail": owner.email,
        }
        try:
            remote = self.gateway.create_order(plan.price, self.currency, receipt, notes)
        except GatewayError as exc:
            raise UpstreamUnavailable() from exc

        payment = self.store.create(
            owner_id=owner.id,
            gateway_order_id=remote["gateway_order_id"],
            amount_minor_units=plan.price,
            currency=self.currency,
            plan=plan.key,
            description=f"Payment for {plan.name}",
            receipt=receipt,
            notes=notes,
        )
        logger.info(
            "order_created",
            owner_id=owner.id,
            gateway_order_id=payment.gateway_order_id,
            plan=plan.key.value,
            amount=plan.price,
        )
        return OrderDescriptor(
            gateway_order_id=payment.gateway_order_id,
            amount=remote.get("amount", plan.price),
            currency=remote.get("currency", self.currency),
            receipt=receipt,
            key_id=self.key_id,
            plan=plan,
            payment=payment,
        )
