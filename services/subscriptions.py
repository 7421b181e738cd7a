from datetime import datetime
from typing import Protocol

from sqlalchemy.orm import Session

from core.logging_config import get_logger
from models.payment import Payment, Plan
from models.user import User

logger = get_logger(__name__)


class UserDirectory(Protocol):
    def set_subscription(self, owner_id: int, plan: str, status: str, activated_at: datetime) -> bool:
        ...


class SqlUserDirectory:
    """User directory backed by the local users table."""

    def __init__(self, db: Session):
        self.db = db

    def set_subscription(self, owner_id: int, plan: str, status: str, activated_at: datetime) -> bool:
        user = self.db.get(User, owner_id)
        if not user:
            return False
        user.subscription_plan = plan
        user.subscription_status = status
        user.subscription_date = activated_at
        self.db.commit()
        return True


class SubscriptionActivator:
    """Projects a paid order onto the owner's entitlement. Last write wins."""

    def __init__(self, directory: UserDirectory):
        self.directory = directory

    def activate(self, owner_id: int, plan: Plan) -> None:
        updated = self.directory.set_subscription(owner_id, Plan(plan).value, "active", datetime.utcnow())
        if updated:
            logger.info("subscription_activated", owner_id=owner_id, plan=Plan(plan).value)
        else:
            logger.warning("subscription_owner_missing", owner_id=owner_id, plan=Plan(plan).value)

    def on_order_paid(self, payment: Payment) -> None:
        self.activate(payment.owner_id, payment.plan)
