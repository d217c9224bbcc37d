# tutorhub/services/payment_service.py
"""Order creation, signature verification and the assignment it unlocks."""
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Optional
import hashlib
import hmac
import logging
import uuid

import httpx
from sqlalchemy import select, delete
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.auth import Viewer
from ..core.clock import utcnow
from ..core.config import settings
from ..core.exceptions import AccessDenied, BackendError, Conflict, DatabaseError, ValidationError
from ..models.assignment import AssignmentStatus, StudentTutorAssignment
from ..models.message import SenderRole
from ..models.payment import Payment, Subscription
from ..schemas.payment_schemas import VerifyPaymentRequest
from .access_gate import AccessGate

logger = logging.getLogger(__name__)


class RazorpayGateway:
    """Thin client for the hosted payment gateway."""

    def __init__(
        self,
        key_id: str,
        key_secret: str,
        api_url: str = "https://api.razorpay.com/v1",
        client: Optional[httpx.AsyncClient] = None
    ):
        self.key_id = key_id
        self.key_secret = key_secret
        self.api_url = api_url.rstrip("/")
        self.client = client

    async def create_order(self, amount_paise: int, currency: str = "INR", receipt: Optional[str] = None) -> dict:
        payload = {
            "amount": amount_paise,
            "currency": currency,
            "receipt": receipt or f"rcpt_{uuid.uuid4().hex[:20]}",
        }
        try:
            if self.client is not None:
                response = await self._post(self.client, payload)
            else:
                async with httpx.AsyncClient(timeout=10.0) as client:
                    response = await self._post(client, payload)
            response.raise_for_status()
        except httpx.HTTPError as e:
            logger.error(f"Payment order creation failed: {e}")
            raise BackendError("Failed to create payment order")
        return response.json()

    async def _post(self, client: httpx.AsyncClient, payload: dict) -> httpx.Response:
        return await client.post(
            f"{self.api_url}/orders",
            json=payload,
            auth=(self.key_id, self.key_secret),
        )

    def verify_signature(self, order_id: str, payment_id: str, signature: str) -> bool:
        expected = hmac.new(
            self.key_secret.encode(),
            f"{order_id}|{payment_id}".encode(),
            hashlib.sha256
        ).hexdigest()
        return hmac.compare_digest(expected, signature)


def get_payment_gateway() -> RazorpayGateway:
    return RazorpayGateway(settings.razorpay_key_id, settings.razorpay_key_secret, settings.razorpay_api_url)


class PaymentService:
    def __init__(self, db: AsyncSession, gateway: RazorpayGateway):
        self.db = db
        self.gateway = gateway

    def _require_student(self, viewer: Viewer):
        if viewer.role != SenderRole.STUDENT:
            raise AccessDenied("Only students can book tutors.", "/")

    async def _ensure_not_assigned(self, viewer: Viewer, tutor_id: int):
        if await AccessGate(self.db).has_active_assignment(tutor_id, viewer.id):
            raise Conflict("This tutor is already assigned to your account.", title="Tutor already assigned")

    async def create_order(self, viewer: Viewer, tutor_id: int, amount: Decimal) -> dict:
        self._require_student(viewer)
        await self._ensure_not_assigned(viewer, tutor_id)
        order = await self.gateway.create_order(int(amount * 100))
        if not order.get("id"):
            raise BackendError("Failed to create payment order")
        logger.info(f"Payment order {order['id']} created for student {viewer.id} / tutor {tutor_id}")
        return order

    async def active_subscription(self, viewer: Viewer, now: datetime) -> Optional[Subscription]:
        stmt = select(Subscription).where(
            Subscription.user_id == viewer.id,
            Subscription.status == "active",
            Subscription.end_date > now,
            Subscription.is_deleted == False
        ).order_by(Subscription.created_at.desc()).limit(1)
        result = await self.db.execute(stmt)
        return result.scalar_one_or_none()

    async def complete_purchase(
        self,
        viewer: Viewer,
        data: VerifyPaymentRequest,
        now: Optional[datetime] = None
    ) -> StudentTutorAssignment:
        """Verify the gateway signature, record the payment and assign the tutor"""
        now = now or utcnow()
        self._require_student(viewer)

        if not self.gateway.verify_signature(data.razorpay_order_id, data.razorpay_payment_id, data.razorpay_signature):
            logger.warning(f"Payment signature mismatch for order {data.razorpay_order_id}")
            raise ValidationError("Payment verification failed", title="Processing failed")

        await self._ensure_not_assigned(viewer, data.tutor_id)

        subscription = await self.active_subscription(viewer, now)
        payment_type = "additional_tutor" if subscription else "subscription"
        try:
            if subscription is None:
                subscription = Subscription(
                    user_id=viewer.id,
                    end_date=now + timedelta(days=settings.subscription_days),
                    status="active",
                )
                self.db.add(subscription)
                await self.db.flush()

            payment = Payment(
                user_id=viewer.id,
                tutor_id=data.tutor_id,
                amount=data.amount,
                type=payment_type,
                status="completed",
                subscription_id=subscription.id,
                gateway_order_id=data.razorpay_order_id,
                gateway_payment_id=data.razorpay_payment_id,
            )
            self.db.add(payment)
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            raise Conflict("This payment has already been recorded.")
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Payment recording failed: {e}")
            raise DatabaseError("Payment was successful, but there was an error. Contact support.")

        assignment = StudentTutorAssignment(
            student_id=viewer.id,
            tutor_id=data.tutor_id,
            subscription_id=subscription.id,
            status=AssignmentStatus.ACTIVE,
        )
        try:
            self.db.add(assignment)
            await self.db.commit()
            await self.db.refresh(assignment)
        except SQLAlchemyError as e:
            await self.db.rollback()
            logger.error(f"Assignment creation failed, removing payment {data.razorpay_payment_id}: {e}")
            await self.db.execute(
                delete(Payment).where(Payment.gateway_payment_id == data.razorpay_payment_id)
            )
            await self.db.commit()
            raise DatabaseError("Assignment creation failed")

        logger.info(f"Student {viewer.id} assigned to tutor {data.tutor_id} ({payment_type})")
        return assignment

    async def active_assignments(self, viewer: Viewer) -> List[StudentTutorAssignment]:
        return await AccessGate(self.db).active_assignments(viewer.id)
