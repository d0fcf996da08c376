"""Payments router - STK Push, Stripe PaymentIntents and gateway callbacks"""

import json
import logging
from typing import Optional

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session

from ...auth import get_current_user
from ...database import get_db
from ...errors import PaymentError, PaymentErrorKind
from ...models import User
from ...webhook_security import WebhookSignatureError, verify_stripe_webhook
from .events import parse_mpesa_callback, parse_stripe_event
from .mpesa_gateway import MpesaService
from .reconciler import PaymentReconciler
from .schemas import (
    MPESA_ACCEPTED,
    MPESA_FAILED,
    PaymentIntentRequest,
    PaymentIntentResponse,
    StkPushRequest,
    StkPushResponse,
    VerifyPaymentRequest,
    VerifyPaymentResponse,
)
from .service import PaymentService
from .stripe_gateway import StripeService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/payments", tags=["Payments"])


def get_mpesa_service(request: Request) -> Optional[MpesaService]:
    return getattr(request.app.state, "mpesa_service", None)


def get_stripe_service(request: Request) -> Optional[StripeService]:
    return getattr(request.app.state, "stripe_service", None)


def get_payment_service(
    db: Session = Depends(get_db),
    mpesa: Optional[MpesaService] = Depends(get_mpesa_service),
    stripe: Optional[StripeService] = Depends(get_stripe_service),
) -> PaymentService:
    """Dependency injection for PaymentService"""
    return PaymentService(db, mpesa=mpesa, stripe=stripe)


# ============================================================================
# M-PESA
# ============================================================================


@router.post("/mpesa/stk-push", response_model=StkPushResponse)
async def initiate_stk_push(
    body: StkPushRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Send an M-Pesa PIN prompt to the payer's phone for a booking"""
    return await service.initiate_stk_push(body.booking_id, body.phone_number, user)


@router.post("/mpesa/callback")
async def mpesa_callback(request: Request, db: Session = Depends(get_db)):
    """
    Receive the asynchronous STK Push result from Safaricom.

    Unknown and already-paid bookings are acknowledged as Accepted so
    Safaricom stops retrying; only malformed bodies and processing errors
    return ResultCode 1.
    """
    try:
        payload = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        logger.error("❌ M-Pesa callback body is not valid JSON")
        return JSONResponse(status_code=400, content=MPESA_FAILED)

    logger.info(f"📥 M-Pesa callback received: {json.dumps(payload)}")

    try:
        event = parse_mpesa_callback(payload)
    except ValidationError as e:
        logger.error(f"❌ Invalid M-Pesa callback format: {e.errors()}")
        return JSONResponse(status_code=400, content=MPESA_FAILED)

    try:
        outcome = PaymentReconciler(db).apply(event)
    except SQLAlchemyError as e:
        logger.error(f"❌ Error processing M-Pesa callback {event.correlation_id}: {e}")
        return JSONResponse(status_code=500, content=MPESA_FAILED)
    except Exception:
        logger.exception(
            f"❌ Unexpected error processing M-Pesa callback {event.correlation_id}: {json.dumps(payload)}"
        )
        return JSONResponse(status_code=500, content=MPESA_FAILED)

    logger.info(f"M-Pesa callback {event.correlation_id} processed: {outcome.value}")
    return MPESA_ACCEPTED


# ============================================================================
# STRIPE
# ============================================================================


@router.post("/stripe/payment-intent", response_model=PaymentIntentResponse)
async def create_payment_intent(
    body: PaymentIntentRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Create a Stripe PaymentIntent for a booking"""
    return await service.create_payment_intent(body.booking_id, user)


@router.post("/stripe/verify", response_model=VerifyPaymentResponse)
async def verify_payment(
    body: VerifyPaymentRequest,
    user: User = Depends(get_current_user),
    service: PaymentService = Depends(get_payment_service),
):
    """Verify a card payment when the customer returns from the Stripe redirect"""
    return await service.verify_card_payment(
        body.payment_intent,
        body.payment_intent_client_secret,
        body.booking_id,
        user,
        redirect_status=body.redirect_status,
    )


@router.post("/stripe/webhook")
async def stripe_webhook(
    request: Request,
    db: Session = Depends(get_db),
    stripe: Optional[StripeService] = Depends(get_stripe_service),
):
    """
    Handle Stripe webhook events

    Events handled:
    - payment_intent.succeeded
    - payment_intent.payment_failed
    - charge.refunded
    """
    secret = stripe.webhook_secret if stripe else None
    try:
        payload = await verify_stripe_webhook(request, secret)
    except WebhookSignatureError as e:
        raise PaymentError(PaymentErrorKind.INVALID_SIGNATURE, str(e)) from None
    except ValueError:
        raise PaymentError(PaymentErrorKind.INVALID_INPUT, "Stripe webhook body is not valid JSON") from None

    event_type = payload.get("type")
    logger.info(f"📥 Received Stripe webhook: {event_type} ({payload.get('id')})")

    event = parse_stripe_event(payload)
    if event is None:
        logger.info(f"ℹ️ Unhandled Stripe event type: {event_type}")
        return {"received": True}

    try:
        outcome = PaymentReconciler(db).apply(event)
    except SQLAlchemyError as e:
        logger.error(f"❌ Error processing Stripe event {payload.get('id')}: {e}")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})
    except Exception:
        logger.exception(f"❌ Unexpected error processing Stripe event {payload.get('id')}")
        return JSONResponse(status_code=500, content={"error": "Webhook processing failed"})

    logger.info(f"Stripe event {payload.get('id')} processed: {outcome.value}")
    return {"received": True}
