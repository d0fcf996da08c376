"""Booking service - Business logic for booking operations"""

import logging

from fastapi import HTTPException
from sqlalchemy.orm import Session

from ...models import Booking, BookingStatus, PaymentStatus, User
from ..catalog.repository import CatalogRepository
from .repository import BookingRepository
from .schemas import BookingCreate

logger = logging.getLogger(__name__)


class BookingService:
    """Service layer for booking business logic"""

    def __init__(self, db: Session):
        self.db = db
        self.repo = BookingRepository()
        self.catalog = CatalogRepository()

    def create_booking(self, data: BookingCreate, user: User) -> Booking:
        service = self.catalog.get_service_by_id(self.db, data.service_id)
        if not service:
            raise HTTPException(status_code=404, detail="Service not found.")

        booking = self.repo.create_booking(self.db, user.id, service.id, data.booking_date)
        logger.info(f"✅ Booking {booking.id} created for user {user.id} (service {service.id})")
        return booking

    def get_booking(self, booking_id: str, user: User) -> Booking:
        booking = self.repo.get_booking_for_user(self.db, booking_id, user.id)
        if not booking:
            raise HTTPException(status_code=404, detail="Booking not found")
        return booking

    def get_user_bookings(self, user: User) -> list[Booking]:
        return self.repo.get_user_bookings(self.db, user.id)

    def cancel_booking(self, booking_id: str, user: User) -> Booking:
        """Cancel a booking that has not been paid.

        Paid bookings are cancelled through a gateway refund instead.
        """
        booking = self.get_booking(booking_id, user)

        if booking.payment_status == PaymentStatus.PAID:
            raise HTTPException(
                status_code=409, detail="Paid bookings must be refunded before cancellation"
            )
        if booking.status == BookingStatus.CANCELLED:
            return booking

        booking = self.repo.update_status(self.db, booking, BookingStatus.CANCELLED)
        logger.info(f"🗑️ Booking {booking.id} cancelled by user {user.id}")
        return booking
