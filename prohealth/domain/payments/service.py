"""Payment service - Starting gateway payments for bookings"""

import hmac
import logging
from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

from sqlalchemy.orm import Session

from ... import config
from ...errors import PaymentError, PaymentErrorKind
from ...models import Booking, PaymentGateway, PaymentStatus, User
from .events import payment_intent_to_event
from .mpesa_gateway import MpesaService
from .reconciler import PaymentReconciler, ReconcileOutcome
from .repository import PaymentRepository
from .schemas import (
    PaymentIntentResponse,
    StkPushResponse,
    VerifyPaymentResponse,
)
from .stripe_gateway import StripeService

logger = logging.getLogger(__name__)

PENDING_INTENT_STATUSES = ("processing", "requires_capture")


def to_whole_units(price: float) -> int:
    return int(Decimal(str(price)).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def to_minor_units(price: float) -> int:
    return int((Decimal(str(price)) * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


class PaymentService:
    """Business logic for initiating and verifying payments.

    Every initiation checks, in order: ownership, not already paid, and the
    gateway minimum amount. The correlation ID is written only after the
    gateway accepted the attempt.
    """

    def __init__(
        self,
        db: Session,
        mpesa: Optional[MpesaService] = None,
        stripe: Optional[StripeService] = None,
    ):
        self.db = db
        self.mpesa = mpesa
        self.stripe = stripe
        self.repo = PaymentRepository()

    def _get_payable_booking(self, booking_id: str, user: User) -> Booking:
        booking = self.repo.get_booking_for_user(self.db, booking_id, user.id)
        if not booking:
            raise PaymentError(PaymentErrorKind.NOT_FOUND, f"Booking {booking_id} not found for user {user.id}")
        if booking.payment_status == PaymentStatus.PAID:
            raise PaymentError(PaymentErrorKind.ALREADY_PAID, f"Booking {booking_id} is already paid")
        return booking

    # ========================================
    # M-PESA
    # ========================================

    async def initiate_stk_push(self, booking_id: str, phone_number: str, user: User) -> StkPushResponse:
        booking = self._get_payable_booking(booking_id, user)

        amount = to_whole_units(booking.service.price)
        if amount < config.MPESA_MIN_AMOUNT:
            raise PaymentError(
                PaymentErrorKind.INVALID_AMOUNT,
                f"Booking {booking_id} amount {amount} KES is below the M-Pesa minimum",
            )

        if self.mpesa is None:
            raise PaymentError(PaymentErrorKind.GATEWAY_NOT_CONFIGURED, "M-Pesa gateway not configured")

        ack = await self.mpesa.initiate_stk_push(booking.id, phone_number, amount)
        checkout_request_id = ack["CheckoutRequestID"]

        self.repo.record_payment_attempt(self.db, booking, checkout_request_id)
        logger.info(f"📥 STK push initiated for booking {booking.id}: {checkout_request_id}")

        return StkPushResponse.model_validate(ack)

    # ========================================
    # STRIPE
    # ========================================

    def _require_stripe(self) -> StripeService:
        if self.stripe is None or not self.stripe.is_available():
            raise PaymentError(PaymentErrorKind.GATEWAY_NOT_CONFIGURED, "Stripe gateway not configured")
        return self.stripe

    async def create_payment_intent(self, booking_id: str, user: User) -> PaymentIntentResponse:
        booking = self._get_payable_booking(booking_id, user)

        amount_minor = to_minor_units(booking.service.price)
        if amount_minor < config.STRIPE_MIN_AMOUNT_MINOR:
            raise PaymentError(
                PaymentErrorKind.INVALID_AMOUNT,
                f"Booking {booking_id} amount {amount_minor} minor units is below the Stripe minimum",
            )

        stripe = self._require_stripe()
        intent = await stripe.create_payment_intent(
            amount_minor,
            metadata={
                "booking_id": booking.id,
                "user_id": user.id,
                "service_name": booking.service.name,
            },
        )
        if not intent.get("id") or not intent.get("client_secret"):
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, "PaymentIntent response missing id/client_secret")

        self.repo.record_payment_attempt(
            self.db,
            booking,
            intent["id"],
            pending_transaction={
                "amount": booking.service.price,
                "currency": stripe.currency.upper(),
                "gateway": PaymentGateway.STRIPE,
            },
        )

        return PaymentIntentResponse(client_secret=intent["client_secret"], booking_amount=booking.service.price)

    async def verify_card_payment(
        self,
        payment_intent_id: str,
        client_secret: str,
        booking_id: str,
        user: User,
        redirect_status: Optional[str] = None,
    ) -> VerifyPaymentResponse:
        """Confirm a card payment after the client-side redirect.

        The PaymentIntent is fetched from Stripe rather than trusting the
        redirect parameters; the result goes through the same reconciler as
        the webhook.
        """
        booking = self.repo.get_booking_for_user(self.db, booking_id, user.id)
        if not booking:
            raise PaymentError(PaymentErrorKind.NOT_FOUND, f"Booking {booking_id} not found for user {user.id}")

        stripe = self._require_stripe()
        intent = await stripe.retrieve_payment_intent(payment_intent_id)

        expected_secret = intent.get("client_secret") or ""
        if not hmac.compare_digest(expected_secret.encode(), client_secret.encode()):
            raise PaymentError(PaymentErrorKind.INVALID_INPUT, f"Client secret mismatch for {payment_intent_id}")

        metadata = intent.get("metadata") or {}
        intent_booking_id = metadata.get("booking_id") or metadata.get("bookingId")
        if intent_booking_id != booking.id:
            raise PaymentError(
                PaymentErrorKind.NOT_FOUND,
                f"PaymentIntent {payment_intent_id} belongs to booking {intent_booking_id}, not {booking.id}",
            )

        status = intent.get("status")
        logger.info(
            f"Verifying PaymentIntent {payment_intent_id} for booking {booking.id}: "
            f"status={status}, redirect_status={redirect_status}"
        )

        if status in PENDING_INTENT_STATUSES:
            return VerifyPaymentResponse(
                status="processing",
                message="Your payment is processing. We will confirm your booking shortly.",
            )

        outcome = PaymentReconciler(self.db, self.repo).apply(payment_intent_to_event(intent))

        if status == "succeeded":
            logger.info(f"✅ Card payment verified for booking {booking.id} ({outcome.value})")
            return VerifyPaymentResponse(
                status="succeeded",
                message="Payment successful! Your booking is confirmed.",
            )

        if outcome == ReconcileOutcome.ALREADY_PROCESSED:
            return VerifyPaymentResponse(status="succeeded", message="Booking already paid.")

        return VerifyPaymentResponse(
            status="failed",
            message="Payment failed. Please try again with a different payment method.",
        )
