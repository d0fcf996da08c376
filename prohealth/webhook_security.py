"""
Webhook Security Module

Signature verification for inbound payment webhooks:
- Stripe-Signature checked by the Stripe SDK (HMAC-SHA256, constant-time compare)
- Timestamp tolerance against replayed deliveries
- Verification runs on the raw body, before any JSON parsing
"""

import logging
from typing import Any, Dict, Optional

import stripe
from fastapi import Request

logger = logging.getLogger(__name__)

# Maximum age of webhook in seconds (5 minutes)
MAX_WEBHOOK_AGE_SECONDS = 300


class WebhookSignatureError(Exception):
    """Raised when webhook signature verification fails"""

    pass


def construct_stripe_event(
    payload: bytes,
    signature_header: Optional[str],
    secret: Optional[str],
    tolerance: int = MAX_WEBHOOK_AGE_SECONDS,
) -> Dict[str, Any]:
    """
    Verify a Stripe webhook signature and return the event as a dict.

    Raises:
        WebhookSignatureError: secret missing, header missing or no valid signature
        ValueError: the signed body is not a JSON document
    """
    if not secret:
        raise WebhookSignatureError("Webhook secret not configured")
    if not signature_header:
        raise WebhookSignatureError("Webhook signature missing")

    try:
        event = stripe.Webhook.construct_event(payload, signature_header, secret, tolerance=tolerance)
    except stripe.SignatureVerificationError as e:
        raise WebhookSignatureError(str(e)) from None

    return event.to_dict() if hasattr(event, "to_dict") else dict(event)


async def verify_stripe_webhook(request: Request, secret: Optional[str]) -> Dict[str, Any]:
    """
    Verify the Stripe signature of an incoming request.

    Returns:
        The verified event payload
    """
    # Get raw body BEFORE any parsing - this is critical
    raw_body = await request.body()
    signature_header = request.headers.get("stripe-signature")

    try:
        event = construct_stripe_event(raw_body, signature_header, secret)
    except WebhookSignatureError as e:
        logger.error(f"❌ Stripe webhook signature verification failed: {e}")
        raise

    logger.info("✅ Stripe webhook signature verified")
    return event
