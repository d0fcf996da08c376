import uuid

from sqlalchemy import Column, DateTime, Float, ForeignKey, Integer, String, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func

from .database import Base


def generate_id():
    """Generate an opaque unique ID for public resources"""
    return str(uuid.uuid4())


class BookingStatus:
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    CANCELLED = "CANCELLED"
    COMPLETED = "COMPLETED"


class PaymentStatus:
    UNPAID = "UNPAID"
    PAID = "PAID"
    FAILED = "FAILED"
    REFUNDED = "REFUNDED"


class TransactionStatus:
    PENDING = "pending"
    COMPLETED = "completed"  # Stripe success
    SUCCESS = "SUCCESS"  # M-Pesa success
    FAILED = "failed"
    REFUNDED = "refunded"

    SUCCEEDED = (COMPLETED, SUCCESS)


class PaymentGateway:
    STRIPE = "STRIPE"
    MPESA = "MPESA"


class User(Base):
    __tablename__ = "users"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=True)
    email = Column(String(255), unique=True, index=True, nullable=False)
    password = Column(String(255), nullable=True)  # bcrypt hash
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="user")


class Service(Base):
    __tablename__ = "services"

    id = Column(String(36), primary_key=True, default=generate_id)
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    price = Column(Float, nullable=False)  # KES
    duration = Column(Integer, nullable=True)  # minutes
    category = Column(String(100), nullable=True, index=True)
    image_url = Column(String(500), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    bookings = relationship("Booking", back_populates="service")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(String(36), primary_key=True, default=generate_id)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    service_id = Column(String(36), ForeignKey("services.id"), nullable=False, index=True)
    booking_date = Column(DateTime(timezone=True), server_default=func.now())
    status = Column(String(20), default=BookingStatus.PENDING, nullable=False)
    payment_status = Column(String(20), default=PaymentStatus.UNPAID, nullable=False)
    # M-Pesa CheckoutRequestID or Stripe PaymentIntent id of the latest attempt
    gateway_correlation_id = Column(String(255), unique=True, index=True, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    user = relationship("User", back_populates="bookings")
    service = relationship("Service", back_populates="bookings")
    transaction = relationship("Transaction", back_populates="booking", uselist=False)


class Transaction(Base):
    """Payment ledger entry, one per booking"""

    __tablename__ = "transactions"

    id = Column(String(36), primary_key=True, default=generate_id)
    booking_id = Column(String(36), ForeignKey("bookings.id"), unique=True, nullable=False)
    amount = Column(Float, nullable=False)
    currency = Column(String(8), default="KES", nullable=False)
    payment_gateway = Column(String(20), nullable=False)  # STRIPE, MPESA
    gateway_transaction_id = Column(String(255), nullable=True, index=True)
    status = Column(String(20), default=TransactionStatus.PENDING, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    booking = relationship("Booking", back_populates="transaction")


class AIInteractionLog(Base):
    __tablename__ = "ai_interaction_logs"

    id = Column(Integer, primary_key=True, autoincrement=True)
    user_id = Column(String(36), ForeignKey("users.id"), nullable=False, index=True)
    input = Column(Text, nullable=True)
    response = Column(Text, nullable=True)
    status = Column(String(20), nullable=False)  # SUCCESS, ERROR
    error = Column(Text, nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
