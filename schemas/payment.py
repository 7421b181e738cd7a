from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from models.payment import PaymentStatus, Plan


class PlanOut(BaseModel):
    key: str
    name: str
    price: int
    features: List[str]


class CreateOrderRequest(BaseModel):
    # Plain string so unknown keys reach the catalog check instead of a 422
    plan: str = Field(min_length=1, max_length=50)


class GatewayOrderOut(BaseModel):
    id: str
    amount: int
    currency: str
    receipt: str


class CreateOrderResponse(BaseModel):
    success: bool = True
    order: GatewayOrderOut
    key_id: str
    plan: PlanOut


class PaymentVerifyRequest(BaseModel):
    razorpay_order_id: str = Field(min_length=1)
    razorpay_payment_id: str = Field(min_length=1)
    razorpay_signature: str = Field(min_length=1)


class PaymentSummary(BaseModel):
    id: int
    order_id: str = Field(validation_alias="gateway_order_id")
    payment_id: Optional[str] = Field(default=None, validation_alias="gateway_payment_id")
    amount: int = Field(validation_alias="amount_minor_units")
    plan: Plan
    status: PaymentStatus

    class Config:
        from_attributes = True


class PaymentVerifyResponse(BaseModel):
    success: bool
    message: str
    payment: PaymentSummary


class PaymentOut(BaseModel):
    """Client-facing projection. The gateway signature is never included."""

    id: int
    gateway_order_id: str
    gateway_payment_id: Optional[str] = None
    amount_minor_units: int
    currency: str
    status: PaymentStatus
    plan: Plan
    description: str
    receipt: str
    notes: Dict[str, str]
    failure_reason: Optional[str] = None
    refund_amount: int
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class PaymentHistoryOut(BaseModel):
    success: bool = True
    count: int
    total: int
    page: int
    pages: int
    payments: List[PaymentOut]


class WebhookAckOut(BaseModel):
    status: str = "ok"
