# tutorhub/routers/payments.py
from typing import List
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer, get_current_viewer
from ..core.database import get_db
from ..schemas.payment_schemas import AssignmentOut, CreateOrderRequest, VerifyPaymentRequest
from ..services.payment_service import PaymentService, RazorpayGateway, get_payment_gateway

router = APIRouter(prefix="/api/v1", tags=["Payments"])

@router.post("/payments/create-order")
async def create_order(
    data: CreateOrderRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway)
):
    """Create a gateway order for booking a tutor"""
    order = await PaymentService(db, gateway).create_order(viewer, data.tutor_id, data.amount)
    return {"order_id": order["id"], "amount": order.get("amount"), "currency": order.get("currency", "INR")}

@router.post("/payments/verify-payment", response_model=AssignmentOut)
async def verify_payment(
    data: VerifyPaymentRequest,
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway)
):
    """Verify a completed payment and assign the tutor"""
    return await PaymentService(db, gateway).complete_purchase(viewer, data)

@router.get("/assignments", response_model=List[AssignmentOut])
async def list_assignments(
    viewer: Viewer = Depends(get_current_viewer),
    db: AsyncSession = Depends(get_db),
    gateway: RazorpayGateway = Depends(get_payment_gateway)
):
    return await PaymentService(db, gateway).active_assignments(viewer)
