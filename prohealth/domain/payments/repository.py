"""Payment repository - Booking payment state and transaction ledger"""

import logging
from typing import Optional

from sqlalchemy import case
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, joinedload

from ...models import (
    Booking,
    BookingStatus,
    PaymentStatus,
    Transaction,
    TransactionStatus,
)

logger = logging.getLogger(__name__)


class PaymentRepository:
    """Repository for payment-related database operations.

    The apply_* methods are conditional updates: each one only touches a
    booking whose payment_status allows the transition and reports whether
    a row was changed. Booking and ledger writes share one commit.
    """

    @staticmethod
    def get_booking_for_user(db: Session, booking_id: str, user_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.service))
            .filter(Booking.id == booking_id, Booking.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_booking_by_id(db: Session, booking_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.service))
            .filter(Booking.id == booking_id)
            .first()
        )

    @staticmethod
    def get_booking_by_correlation_id(db: Session, correlation_id: str) -> Optional[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.service))
            .filter(Booking.gateway_correlation_id == correlation_id)
            .first()
        )

    @staticmethod
    def get_transaction(db: Session, booking_id: str) -> Optional[Transaction]:
        return db.query(Transaction).filter(Transaction.booking_id == booking_id).first()

    @staticmethod
    def record_payment_attempt(
        db: Session,
        booking: Booking,
        correlation_id: str,
        pending_transaction: Optional[dict] = None,
    ) -> Booking:
        """Store the gateway correlation ID (and a pending ledger row) after the gateway accepted"""
        try:
            booking.gateway_correlation_id = correlation_id

            if pending_transaction is not None:
                txn = PaymentRepository.get_transaction(db, booking.id)
                if txn is None:
                    txn = Transaction(booking_id=booking.id)
                    db.add(txn)
                txn.amount = pending_transaction["amount"]
                txn.currency = pending_transaction["currency"]
                txn.payment_gateway = pending_transaction["gateway"]
                txn.gateway_transaction_id = correlation_id
                txn.status = TransactionStatus.PENDING

            db.commit()
            db.refresh(booking)
            return booking
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def apply_success(
        db: Session,
        booking_id: str,
        *,
        gateway: str,
        amount: float,
        currency: str,
        gateway_reference: str,
        transaction_status: str,
    ) -> bool:
        """Mark booking PAID (CONFIRMED unless cancelled) and upsert its ledger row, atomically.

        Returns False when the booking was already PAID (lost race or replay).
        """
        try:
            updated = (
                db.query(Booking)
                .filter(Booking.id == booking_id, Booking.payment_status != PaymentStatus.PAID)
                .update(
                    {
                        Booking.payment_status: PaymentStatus.PAID,
                        # A cancelled booking stays cancelled
                        Booking.status: case(
                            (Booking.status == BookingStatus.CANCELLED, Booking.status),
                            else_=BookingStatus.CONFIRMED,
                        ),
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                db.rollback()
                return False

            txn = PaymentRepository.get_transaction(db, booking_id)
            if txn is None:
                txn = Transaction(booking_id=booking_id, payment_gateway=gateway)
                db.add(txn)
            txn.amount = amount
            txn.currency = currency
            txn.payment_gateway = gateway
            txn.gateway_transaction_id = gateway_reference
            txn.status = transaction_status

            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def apply_failure(db: Session, booking_id: str) -> bool:
        """Mark payment FAILED unless already PAID; booking status is left untouched"""
        try:
            updated = (
                db.query(Booking)
                .filter(Booking.id == booking_id, Booking.payment_status != PaymentStatus.PAID)
                .update({Booking.payment_status: PaymentStatus.FAILED}, synchronize_session=False)
            )
            if not updated:
                db.rollback()
                return False

            txn = PaymentRepository.get_transaction(db, booking_id)
            if txn is not None and txn.status not in TransactionStatus.SUCCEEDED:
                txn.status = TransactionStatus.FAILED

            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            raise

    @staticmethod
    def apply_refund(db: Session, booking_id: str) -> bool:
        """Move a PAID booking to REFUNDED/CANCELLED"""
        try:
            updated = (
                db.query(Booking)
                .filter(Booking.id == booking_id, Booking.payment_status == PaymentStatus.PAID)
                .update(
                    {
                        Booking.payment_status: PaymentStatus.REFUNDED,
                        Booking.status: BookingStatus.CANCELLED,
                    },
                    synchronize_session=False,
                )
            )
            if not updated:
                db.rollback()
                return False

            txn = PaymentRepository.get_transaction(db, booking_id)
            if txn is not None:
                txn.status = TransactionStatus.REFUNDED

            db.commit()
            return True
        except SQLAlchemyError:
            db.rollback()
            raise
