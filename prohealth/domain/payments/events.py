"""
Gateway events

Inbound callbacks and webhooks are parsed here, at the boundary, into one of
three event kinds (success, failure, refund). The reconciler only ever sees
these typed events, never the raw gateway payloads.
"""

from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, Field

from ...models import PaymentGateway
from .schemas import MpesaCallbackEnvelope

MPESA_SUCCESS_CODE = 0


class _GatewayEventBase(BaseModel):
    gateway: str
    correlation_id: str
    # Fallback join key carried in Stripe PaymentIntent metadata
    booking_id: Optional[str] = None
    result_code: Optional[str] = None
    result_description: Optional[str] = None


class PaymentSucceeded(_GatewayEventBase):
    kind: Literal["success"] = "success"
    amount: Optional[float] = None
    currency: Optional[str] = None
    gateway_reference: Optional[str] = None


class PaymentFailed(_GatewayEventBase):
    kind: Literal["failure"] = "failure"


class PaymentRefunded(_GatewayEventBase):
    kind: Literal["refund"] = "refund"
    amount: Optional[float] = None


GatewayEvent = Annotated[
    Union[PaymentSucceeded, PaymentFailed, PaymentRefunded], Field(discriminator="kind")
]


def _to_amount(value: Any) -> Optional[float]:
    try:
        amount = float(value)
    except (TypeError, ValueError):
        return None
    return amount if amount > 0 else None


def parse_mpesa_callback(payload: dict) -> Union[PaymentSucceeded, PaymentFailed]:
    """
    Parse a Daraja STK callback body.

    Raises:
        pydantic.ValidationError: if Body.stkCallback is missing or malformed
    """
    callback = MpesaCallbackEnvelope.model_validate(payload).Body.stkCallback
    common = {
        "gateway": PaymentGateway.MPESA,
        "correlation_id": callback.CheckoutRequestID,
        "result_code": str(callback.ResultCode),
        "result_description": callback.ResultDesc,
    }

    if callback.ResultCode != MPESA_SUCCESS_CODE:
        return PaymentFailed(**common)

    metadata = callback.CallbackMetadata
    receipt = metadata.get("MpesaReceiptNumber") if metadata else None
    return PaymentSucceeded(
        **common,
        amount=_to_amount(metadata.get("Amount")) if metadata else None,
        currency="KES",
        gateway_reference=str(receipt) if receipt else None,
    )


def payment_intent_to_event(intent: dict) -> Union[PaymentSucceeded, PaymentFailed]:
    """Map a Stripe PaymentIntent object to a success or failure event"""
    metadata = intent.get("metadata") or {}
    common = {
        "gateway": PaymentGateway.STRIPE,
        "correlation_id": intent["id"],
        "booking_id": metadata.get("booking_id") or metadata.get("bookingId"),
        "result_code": intent.get("status"),
    }

    if intent.get("status") == "succeeded":
        received = intent.get("amount_received") or intent.get("amount")
        currency = intent.get("currency")
        return PaymentSucceeded(
            **common,
            result_description="succeeded",
            amount=received / 100 if received else None,
            currency=currency.upper() if currency else None,
            gateway_reference=intent["id"],
        )

    last_error = intent.get("last_payment_error") or {}
    return PaymentFailed(**common, result_description=last_error.get("message"))


def parse_stripe_event(event: dict) -> Optional[Union[PaymentSucceeded, PaymentFailed, PaymentRefunded]]:
    """
    Map a verified Stripe webhook event to a gateway event.

    Returns None for event types this application does not handle.
    """
    event_type = event.get("type")
    obj = (event.get("data") or {}).get("object") or {}

    if event_type in ("payment_intent.succeeded", "payment_intent.payment_failed"):
        if not obj.get("id"):
            return None
        return payment_intent_to_event(obj)

    if event_type == "charge.refunded":
        payment_intent_id = obj.get("payment_intent")
        if not payment_intent_id:
            return None
        metadata = obj.get("metadata") or {}
        refunded = obj.get("amount_refunded")
        return PaymentRefunded(
            gateway=PaymentGateway.STRIPE,
            correlation_id=payment_intent_id,
            booking_id=metadata.get("booking_id") or metadata.get("bookingId"),
            result_code="refunded",
            result_description=event_type,
            amount=refunded / 100 if refunded else None,
        )

    return None
