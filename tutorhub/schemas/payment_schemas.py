from typing import Optional
from datetime import datetime
from decimal import Decimal
from uuid import UUID
from pydantic import BaseModel, Field

class CreateOrderRequest(BaseModel):
    tutor_id: int
    amount: Decimal = Field(..., gt=0, description="Price in rupees")

class VerifyPaymentRequest(BaseModel):
    tutor_id: int
    amount: Decimal = Field(..., gt=0)
    razorpay_order_id: str
    razorpay_payment_id: str
    razorpay_signature: str

class AssignmentOut(BaseModel):
    id: UUID
    student_id: UUID
    tutor_id: int
    subscription_id: Optional[UUID] = None
    status: str
    created_at: datetime

    class Config:
        from_attributes = True
