from sqlalchemy import Column, String, Integer, Numeric, DateTime, ForeignKey, Uuid
from sqlalchemy.orm import relationship

from .base import Base


class Subscription(Base):
    __tablename__ = "subscriptions"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    end_date = Column(DateTime(timezone=True), nullable=False)
    status = Column(String(20), nullable=False, default="active")


class Payment(Base):
    __tablename__ = "payments"

    user_id = Column(Uuid(as_uuid=True), ForeignKey("profiles.id"), nullable=False, index=True)
    tutor_id = Column(Integer, nullable=False)
    amount = Column(Numeric(10, 2), nullable=False)
    type = Column(String(30), nullable=False)  # 'subscription' or 'additional_tutor'
    status = Column(String(20), nullable=False, default="completed")
    subscription_id = Column(Uuid(as_uuid=True), ForeignKey("subscriptions.id"), nullable=True)
    gateway_order_id = Column(String(100), nullable=False)
    gateway_payment_id = Column(String(100), nullable=False, unique=True)

    subscription = relationship("Subscription")
