"""Persistence and state transitions for payment orders.

Every status change goes through :meth:`OrderStore._transition`, a single
conditional ``UPDATE ... WHERE status IN (...)``. The affected row count
tells the caller whether it won; a losing caller simply re-reads the row.
Hooks registered under ``on_paid`` run after the commit of a winning
transition into ``paid`` and nowhere else.
"""
from datetime import datetime
from typing import Any, Callable, Dict, List, Optional, Sequence, Tuple

from sqlalchemy import func, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.errors import DuplicateReceipt, NotFound
from core.logging_config import get_logger
from models.payment import Payment, PaymentStatus, Plan, allowed_sources, can_transition

logger = get_logger(__name__)

PaidHook = Callable[[Payment], None]


class OrderStore:
    def __init__(self, db: Session, on_paid: Sequence[PaidHook] = ()):
        self.db = db
        self.on_paid: List[PaidHook] = list(on_paid)

    # -- creation and lookups -------------------------------------------------

    def create(
        self,
        owner_id: int,
        gateway_order_id: str,
        amount_minor_units: int,
        currency: str,
        plan: Plan,
        description: str,
        receipt: str,
        notes: Dict[str, str],
    ) -> Payment:
        payment = Payment(
            owner_id=owner_id,
            gateway_order_id=gateway_order_id,
            amount_minor_units=amount_minor_units,
            currency=currency,
            plan=plan,
            description=description,
            receipt=receipt,
            notes=dict(notes),
            status=PaymentStatus.CREATED,
        )
        self.db.add(payment)
        try:
            self.db.commit()
        except IntegrityError as exc:
            self.db.rollback()
            # Receipt collisions are retried by the issuer; nothing else is
            if self.receipt_exists(receipt):
                raise DuplicateReceipt(receipt) from exc
            logger.error("order_persist_failed", gateway_order_id=gateway_order_id, owner_id=owner_id)
            raise
        self.db.refresh(payment)
        return payment

    def receipt_exists(self, receipt: str) -> bool:
        return self.db.scalar(select(func.count(Payment.id)).where(Payment.receipt == receipt)) > 0

    def get_by_gateway_order_id(self, gateway_order_id: str) -> Optional[Payment]:
        return self.db.scalars(select(Payment).where(Payment.gateway_order_id == gateway_order_id)).one_or_none()

    def get_for_owner(self, gateway_order_id: str, owner_id: int) -> Payment:
        payment = self.db.scalars(
            select(Payment).where(Payment.gateway_order_id == gateway_order_id, Payment.owner_id == owner_id)
        ).one_or_none()
        if not payment:
            raise NotFound()
        return payment

    def get_by_id_for_owner(self, payment_id: int, owner_id: int) -> Payment:
        payment = self.db.scalars(
            select(Payment).where(Payment.id == payment_id, Payment.owner_id == owner_id)
        ).one_or_none()
        if not payment:
            raise NotFound("Payment not found")
        return payment

    def list_for_owner(self, owner_id: int, page: int = 1, limit: int = 10) -> Tuple[List[Payment], int]:
        total = self.db.scalar(select(func.count(Payment.id)).where(Payment.owner_id == owner_id))
        rows = self.db.scalars(
            select(Payment)
            .where(Payment.owner_id == owner_id)
            .order_by(Payment.created_at.desc(), Payment.id.desc())
            .offset((page - 1) * limit)
            .limit(limit)
        ).all()
        return list(rows), total

    # -- transitions ----------------------------------------------------------

    def _transition(self, payment: Payment, target: PaymentStatus, **values: Any) -> bool:
        # Statuses only move forward, so a loaded row that cannot reach the
        # target cannot reach it in the database either.
        if not can_transition(payment.status, target):
            self.db.refresh(payment)
            won = False
        else:
            result = self.db.execute(
                update(Payment)
                .where(Payment.id == payment.id, Payment.status.in_(list(allowed_sources(target))))
                .values(status=target, **values)
                .execution_options(synchronize_session=False)
            )
            self.db.commit()
            self.db.refresh(payment)
            won = result.rowcount == 1
        logger.info(
            "payment_transition",
            gateway_order_id=payment.gateway_order_id,
            target=target.value,
            applied=won,
            status=payment.status.value,
        )
        return won

    def mark_attempted(self, payment: Payment) -> bool:
        return self._transition(payment, PaymentStatus.ATTEMPTED)

    def mark_paid(self, payment: Payment, gateway_payment_id: str, signature: Optional[str] = None) -> bool:
        won = self._transition(
            payment,
            PaymentStatus.PAID,
            gateway_payment_id=gateway_payment_id,
            gateway_signature=signature,
            paid_at=datetime.utcnow(),
        )
        if won:
            self._fire_paid(payment)
        return won

    def mark_failed(self, payment: Payment, reason: str) -> bool:
        return self._transition(payment, PaymentStatus.FAILED, failure_reason=reason)

    def mark_cancelled(self, payment: Payment) -> bool:
        return self._transition(payment, PaymentStatus.CANCELLED)

    def mark_refunded(self, payment: Payment, refund_amount: int) -> bool:
        if refund_amount <= 0 or refund_amount > payment.amount_minor_units:
            raise ValueError("Refund amount must be positive and not exceed the paid amount")
        return self._transition(payment, PaymentStatus.REFUNDED, refund_amount=refund_amount)

    def _fire_paid(self, payment: Payment) -> None:
        for hook in self.on_paid:
            try:
                hook(payment)
            except Exception:
                # Transition is committed; hook failures are only logged.
                logger.exception(
                    "paid_hook_failed",
                    hook=getattr(hook, "__qualname__", repr(hook)),
                    gateway_order_id=payment.gateway_order_id,
                )
