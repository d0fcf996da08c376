"""
Payment callback reconciler

Applies asynchronous gateway outcomes to bookings. Gateways may deliver a
callback more than once and in any order, so every transition is guarded:
a PAID booking is terminal for success/failure events, and the guard is
enforced again by the conditional UPDATE in the repository so that two
concurrent deliveries cannot both win.
"""

import logging
from enum import Enum
from typing import Optional, Union

from sqlalchemy.orm import Session

from ...models import Booking, PaymentGateway, PaymentStatus, TransactionStatus
from .events import PaymentFailed, PaymentRefunded, PaymentSucceeded
from .repository import PaymentRepository

logger = logging.getLogger(__name__)

SUCCESS_TRANSACTION_STATUS = {
    PaymentGateway.MPESA: TransactionStatus.SUCCESS,
    PaymentGateway.STRIPE: TransactionStatus.COMPLETED,
}


class ReconcileOutcome(str, Enum):
    BOOKING_NOT_FOUND = "booking_not_found"
    ALREADY_PROCESSED = "already_processed"
    PAYMENT_CONFIRMED = "payment_confirmed"
    PAYMENT_FAILED = "payment_failed"
    REFUNDED = "refunded"
    IGNORED = "ignored"


class PaymentReconciler:
    def __init__(self, db: Session, repo: Optional[PaymentRepository] = None):
        self.db = db
        self.repo = repo or PaymentRepository()

    def _find_booking(
        self, event: Union[PaymentSucceeded, PaymentFailed, PaymentRefunded]
    ) -> Optional[Booking]:
        booking = self.repo.get_booking_by_correlation_id(self.db, event.correlation_id)
        if booking is None and event.booking_id:
            booking = self.repo.get_booking_by_id(self.db, event.booking_id)
        return booking

    def apply(
        self, event: Union[PaymentSucceeded, PaymentFailed, PaymentRefunded]
    ) -> ReconcileOutcome:
        """Apply one gateway event. Persistence errors propagate to the caller."""
        booking = self._find_booking(event)
        if booking is None:
            logger.warning(
                f"⚠️ No booking found for {event.gateway} correlation ID {event.correlation_id}"
            )
            return ReconcileOutcome.BOOKING_NOT_FOUND

        if event.kind == "refund":
            return self._apply_refund(booking, event)

        if booking.payment_status == PaymentStatus.PAID:
            logger.info(f"Booking {booking.id} already marked as PAID. Ignoring callback.")
            return ReconcileOutcome.ALREADY_PROCESSED

        if event.kind == "success":
            return self._apply_success(booking, event)
        return self._apply_failure(booking, event)

    def _apply_success(self, booking: Booking, event: PaymentSucceeded) -> ReconcileOutcome:
        amount = event.amount if event.amount is not None else booking.service.price
        applied = self.repo.apply_success(
            self.db,
            booking.id,
            gateway=event.gateway,
            amount=amount,
            currency=event.currency or "KES",
            gateway_reference=event.gateway_reference or event.correlation_id,
            transaction_status=SUCCESS_TRANSACTION_STATUS[event.gateway],
        )
        if not applied:
            logger.info(f"Booking {booking.id} was paid concurrently. Ignoring duplicate callback.")
            return ReconcileOutcome.ALREADY_PROCESSED

        logger.info(
            f"✅ {event.gateway} payment SUCCESS for booking {booking.id}, "
            f"correlation ID {event.correlation_id}, amount {amount}"
        )
        return ReconcileOutcome.PAYMENT_CONFIRMED

    def _apply_failure(self, booking: Booking, event: PaymentFailed) -> ReconcileOutcome:
        applied = self.repo.apply_failure(self.db, booking.id)
        if not applied:
            logger.info(f"Booking {booking.id} was paid concurrently. Ignoring failure callback.")
            return ReconcileOutcome.ALREADY_PROCESSED

        logger.info(
            f"❌ {event.gateway} payment FAILED/CANCELLED for booking {booking.id}, "
            f"correlation ID {event.correlation_id}. "
            f"ResultCode: {event.result_code}, Desc: {event.result_description}"
        )
        return ReconcileOutcome.PAYMENT_FAILED

    def _apply_refund(self, booking: Booking, event: PaymentRefunded) -> ReconcileOutcome:
        if booking.payment_status != PaymentStatus.PAID:
            logger.warning(
                f"⚠️ Refund for booking {booking.id} ignored: payment status is {booking.payment_status}"
            )
            return ReconcileOutcome.IGNORED

        if not self.repo.apply_refund(self.db, booking.id):
            logger.info(f"Booking {booking.id} refund already applied.")
            return ReconcileOutcome.IGNORED

        logger.info(f"✅ Updated booking {booking.id} to REFUNDED and CANCELLED.")
        return ReconcileOutcome.REFUNDED
