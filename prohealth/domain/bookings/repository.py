"""Booking repository - Database operations for bookings"""

from datetime import datetime
from typing import Optional

from sqlalchemy.orm import Session, joinedload

from ...models import Booking, BookingStatus, PaymentStatus


class BookingRepository:
    """Repository for booking database operations"""

    @staticmethod
    def create_booking(
        db: Session, user_id: str, service_id: str, booking_date: Optional[datetime] = None
    ) -> Booking:
        booking = Booking(
            user_id=user_id,
            service_id=service_id,
            status=BookingStatus.PENDING,
            payment_status=PaymentStatus.UNPAID,
        )
        if booking_date is not None:
            booking.booking_date = booking_date
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    @staticmethod
    def get_booking_for_user(db: Session, booking_id: str, user_id: str) -> Optional[Booking]:
        """Get a booking only if it belongs to the user"""
        return (
            db.query(Booking)
            .options(joinedload(Booking.service), joinedload(Booking.transaction))
            .filter(Booking.id == booking_id, Booking.user_id == user_id)
            .first()
        )

    @staticmethod
    def get_user_bookings(db: Session, user_id: str) -> list[Booking]:
        return (
            db.query(Booking)
            .options(joinedload(Booking.service), joinedload(Booking.transaction))
            .filter(Booking.user_id == user_id)
            .order_by(Booking.created_at.desc())
            .all()
        )

    @staticmethod
    def update_status(db: Session, booking: Booking, status: str) -> Booking:
        booking.status = status
        db.commit()
        db.refresh(booking)
        return booking
