import math
from typing import Optional

from fastapi import APIRouter, Depends, Header, HTTPException, Query, Request

from core.deps import (
    get_current_user,
    get_order_issuer,
    get_order_store,
    get_verification_handler,
    get_webhook_reconciler,
)
from core.errors import (
    ConfigurationError,
    DuplicateReceipt,
    InvalidPlan,
    InvalidSignature,
    NotFound,
    UpstreamUnavailable,
)
from core.logging_config import get_logger
from core.plans import PLANS, PlanDetails
from models.user import User
from schemas.payment import (
    CreateOrderRequest,
    CreateOrderResponse,
    PaymentHistoryOut,
    PaymentOut,
    PaymentSummary,
    PaymentVerifyRequest,
    PaymentVerifyResponse,
    PlanOut,
    WebhookAckOut,
)
from services.order_store import OrderStore
from services.orders import OrderIssuer
from services.verification import VerificationHandler
from services.webhooks import WebhookReconciler

router = APIRouter(prefix="/payments", tags=["payments"])

logger = get_logger(__name__)


def _plan_out(plan: PlanDetails) -> PlanOut:
    return PlanOut(key=plan.key.value, name=plan.name, price=plan.price, features=list(plan.features))


async def _raw_body(request: Request) -> bytes:
    return await request.body()


@router.get("/plans")
def list_plans(current_user: User = Depends(get_current_user)):
    return {"success": True, "plans": {plan.key.value: _plan_out(plan) for plan in PLANS.values()}}


@router.post("/create-order", response_model=CreateOrderResponse, status_code=201)
def create_order(
    data: CreateOrderRequest,
    current_user: User = Depends(get_current_user),
    issuer: OrderIssuer = Depends(get_order_issuer),
):
    try:
        descriptor = issuer.create_order(current_user, data.plan)
    except InvalidPlan as e:
        raise HTTPException(status_code=400, detail=e.detail)
    except UpstreamUnavailable as e:
        raise HTTPException(status_code=502, detail=e.detail)
    except DuplicateReceipt:
        logger.error("receipt_retries_exhausted", owner_id=current_user.id)
        raise HTTPException(status_code=500, detail="Could not create order, please retry")

    return CreateOrderResponse(
        order={
            "id": descriptor.gateway_order_id,
            "amount": descriptor.amount,
            "currency": descriptor.currency,
            "receipt": descriptor.receipt,
        },
        key_id=descriptor.key_id,
        plan=_plan_out(descriptor.plan),
    )


@router.post("/verify", response_model=PaymentVerifyResponse)
def verify_payment(
    data: PaymentVerifyRequest,
    current_user: User = Depends(get_current_user),
    handler: VerificationHandler = Depends(get_verification_handler),
):
    try:
        result = handler.verify(
            current_user.id, data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature
        )
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.detail)
    except ConfigurationError as e:
        raise HTTPException(status_code=503, detail=e.detail)

    if not result.success:
        raise HTTPException(status_code=400, detail="Payment verification failed")
    return PaymentVerifyResponse(
        success=True,
        message="Payment verified successfully",
        payment=PaymentSummary.model_validate(result.payment),
    )


@router.post("/webhook", response_model=WebhookAckOut)
def razorpay_webhook(
    body: bytes = Depends(_raw_body),
    x_razorpay_signature: Optional[str] = Header(default=None, alias="X-Razorpay-Signature"),
    reconciler: WebhookReconciler = Depends(get_webhook_reconciler),
):
    if not x_razorpay_signature:
        raise HTTPException(status_code=400, detail="Missing signature")
    try:
        ack = reconciler.handle(body, x_razorpay_signature)
    except InvalidSignature:
        raise HTTPException(status_code=400, detail="Invalid webhook signature")
    except ConfigurationError:
        logger.error("webhook_secret_missing")
        raise HTTPException(status_code=503, detail="Webhook secret not configured")
    return {"status": ack.status}


@router.get("/history", response_model=PaymentHistoryOut)
def payment_history(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    current_user: User = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
):
    payments, total = store.list_for_owner(current_user.id, page=page, limit=limit)
    return {
        "count": len(payments),
        "total": total,
        "page": page,
        "pages": math.ceil(total / limit),
        "payments": payments,
    }


@router.get("/{payment_id}", response_model=PaymentOut)
def get_payment(
    payment_id: int,
    current_user: User = Depends(get_current_user),
    store: OrderStore = Depends(get_order_store),
):
    try:
        return store.get_by_id_for_owner(payment_id, current_user.id)
    except NotFound as e:
        raise HTTPException(status_code=404, detail=e.detail)
