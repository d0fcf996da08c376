"""
Stripe Gateway
Wraps the synchronous Stripe SDK and runs it in a worker thread via
anyio.to_thread.run_sync so the event loop is never blocked.
"""
import logging
from typing import Any, Callable, Dict, Optional

import anyio
import stripe

from ... import config
from ...errors import PaymentError, PaymentErrorKind

logger = logging.getLogger(__name__)


def _to_dict(obj: Any) -> Dict[str, Any]:
    return obj.to_dict() if hasattr(obj, "to_dict") else dict(obj)


def _map_stripe_error(e: stripe.StripeError) -> PaymentError:
    if isinstance(e, (stripe.AuthenticationError, stripe.PermissionError)):
        kind = PaymentErrorKind.GATEWAY_NOT_CONFIGURED
    elif isinstance(e, (stripe.CardError, stripe.InvalidRequestError)):
        kind = PaymentErrorKind.GATEWAY_REJECTED
    else:
        kind = PaymentErrorKind.GATEWAY_UNAVAILABLE
    return PaymentError(kind, f"Stripe {type(e).__name__}: {e.user_message or str(e)}")


class StripeService:
    def __init__(
        self,
        api_key: Optional[str],
        webhook_secret: Optional[str] = None,
        currency: str = "kes",
        client: Optional[stripe.StripeClient] = None,
    ):
        self.api_key = api_key
        self.webhook_secret = webhook_secret
        self.currency = currency.lower()
        self._client = client

    @classmethod
    def from_config(cls) -> "StripeService":
        return cls(config.STRIPE_SECRET_KEY, config.STRIPE_WEBHOOK_SECRET, config.STRIPE_CURRENCY)

    def is_available(self) -> bool:
        return bool(self.api_key) or self._client is not None

    @property
    def client(self) -> stripe.StripeClient:
        if self._client is None:
            if not self.api_key:
                raise PaymentError(PaymentErrorKind.GATEWAY_NOT_CONFIGURED, "STRIPE_SECRET_KEY is not set")
            self._client = stripe.StripeClient(self.api_key)
        return self._client

    async def _call(self, fn: Callable[[], Any]) -> Dict[str, Any]:
        try:
            result = await anyio.to_thread.run_sync(fn)
        except stripe.StripeError as e:
            logger.error(f"❌ Stripe error: {type(e).__name__}: {e}")
            raise _map_stripe_error(e)
        return _to_dict(result)

    async def create_payment_intent(
        self, amount_minor: int, metadata: Dict[str, str], currency: Optional[str] = None
    ) -> Dict[str, Any]:
        """Create a PaymentIntent for `amount_minor` (cents) with automatic payment methods"""
        client = self.client
        params = {
            "amount": amount_minor,
            "currency": (currency or self.currency).lower(),
            "automatic_payment_methods": {"enabled": True},
            "metadata": metadata,
        }

        intent = await self._call(lambda: client.payment_intents.create(params=params))
        logger.info(f"✅ Created PaymentIntent {intent.get('id')} for {amount_minor} {params['currency']}")
        return intent

    async def retrieve_payment_intent(self, payment_intent_id: str) -> Dict[str, Any]:
        client = self.client
        return await self._call(lambda: client.payment_intents.retrieve(payment_intent_id))
