"""FastAPI dependencies wiring the payment services to a request's session."""
from typing import Optional

import jwt
from fastapi import Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from core.config import settings
from core.db import get_db
from models.user import User
from security import jwt as jwt_utils
from services.email import notify_payment_success
from services.order_store import OrderStore
from services.orders import OrderIssuer
from services.razorpay import GatewayClient, get_gateway_client
from services.subscriptions import SqlUserDirectory, SubscriptionActivator
from services.verification import VerificationHandler
from services.webhooks import WebhookReconciler


def get_current_user(
    db: Session = Depends(get_db), authorization: Optional[str] = Header(default=None, alias="Authorization")
) -> User:
    if not authorization or not authorization.lower().startswith("bearer "):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Not authenticated")
    token = authorization.split(" ", 1)[1]
    try:
        payload = jwt_utils.decode_access(token)
        user_id = int(payload.get("sub"))
    except (jwt.PyJWTError, TypeError, ValueError):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid token")
    user = db.get(User, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="User not found")
    return user


def get_order_store(db: Session = Depends(get_db)) -> OrderStore:
    activator = SubscriptionActivator(SqlUserDirectory(db))
    return OrderStore(db, on_paid=[activator.on_order_paid, notify_payment_success])


def get_order_issuer(
    store: OrderStore = Depends(get_order_store), gateway: GatewayClient = Depends(get_gateway_client)
) -> OrderIssuer:
    return OrderIssuer(store, gateway, currency=settings.PAYMENT_CURRENCY, key_id=settings.RAZORPAY_KEY_ID)


def get_verification_handler(store: OrderStore = Depends(get_order_store)) -> VerificationHandler:
    return VerificationHandler(store, checkout_secret=settings.RAZORPAY_KEY_SECRET)


def get_webhook_reconciler(store: OrderStore = Depends(get_order_store)) -> WebhookReconciler:
    return WebhookReconciler(store, webhook_secret=settings.RAZORPAY_WEBHOOK_SECRET)
