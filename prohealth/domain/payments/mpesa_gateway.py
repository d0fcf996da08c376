"""
M-Pesa Daraja Gateway
Handles OAuth token retrieval and STK Push (Lipa Na M-Pesa Online) requests
"""
import base64
import logging
import time
from datetime import datetime
from typing import Any, Callable, Dict, Optional

import httpx

from ... import config
from ...errors import PaymentError, PaymentErrorKind

logger = logging.getLogger(__name__)

MPESA_BASE_URLS = {
    "sandbox": "https://sandbox.safaricom.co.ke",
    "production": "https://api.safaricom.co.ke",
}
OAUTH_PATH = "/oauth/v1/generate?grant_type=client_credentials"
STK_PUSH_PATH = "/mpesa/stkpush/v1/processrequest"
CALLBACK_PATH = "/payments/mpesa/callback"

# Refresh the cached token this many seconds before Daraja expires it
TOKEN_EXPIRY_SLACK_SECONDS = 60


def mpesa_timestamp(now: Optional[datetime] = None) -> str:
    """Daraja timestamp, YYYYMMDDHHmmss"""
    return (now or datetime.now()).strftime("%Y%m%d%H%M%S")


def build_stk_password(shortcode: str, passkey: str, timestamp: str) -> str:
    return base64.b64encode(f"{shortcode}{passkey}{timestamp}".encode()).decode()


class MpesaService:
    """Thin async client for the Daraja API.

    A fresh httpx.AsyncClient is opened per call; `transport` lets tests
    plug in an httpx.MockTransport.
    """

    def __init__(
        self,
        consumer_key: Optional[str],
        consumer_secret: Optional[str],
        shortcode: Optional[str],
        passkey: Optional[str],
        *,
        environment: str = "sandbox",
        transaction_type: str = "CustomerPayBillOnline",
        callback_base_url: str = "http://localhost:8000",
        timeout: float = 30.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.consumer_key = consumer_key
        self.consumer_secret = consumer_secret
        self.shortcode = shortcode
        self.passkey = passkey
        self.base_url = MPESA_BASE_URLS.get(environment, MPESA_BASE_URLS["sandbox"])
        self.transaction_type = transaction_type
        self.callback_url = f"{callback_base_url.rstrip('/')}{CALLBACK_PATH}"
        self.timeout = timeout
        self.transport = transport
        self._clock = clock
        self._token: Optional[str] = None
        self._token_expires_at = 0.0

    @classmethod
    def from_config(cls, **overrides) -> "MpesaService":
        return cls(
            config.MPESA_CONSUMER_KEY,
            config.MPESA_CONSUMER_SECRET,
            config.MPESA_SHORTCODE,
            config.MPESA_PASSKEY,
            environment=config.MPESA_ENVIRONMENT,
            transaction_type=config.MPESA_TRANSACTION_TYPE,
            callback_base_url=config.MPESA_CALLBACK_BASE_URL,
            timeout=config.MPESA_HTTP_TIMEOUT,
            **overrides,
        )

    def is_available(self) -> bool:
        return all([self.consumer_key, self.consumer_secret, self.shortcode, self.passkey])

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(base_url=self.base_url, timeout=self.timeout, transport=self.transport)

    async def get_access_token(self) -> str:
        """Fetch (or reuse) an OAuth access token"""
        if not self.is_available():
            raise PaymentError(PaymentErrorKind.GATEWAY_NOT_CONFIGURED, "M-Pesa credentials are not set")

        if self._token and self._clock() < self._token_expires_at:
            return self._token

        try:
            async with self._client() as http_client:
                response = await http_client.get(
                    OAUTH_PATH, auth=(self.consumer_key, self.consumer_secret)
                )
        except httpx.TimeoutException as e:
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, f"M-Pesa OAuth timed out: {e}")
        except httpx.RequestError as e:
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, f"M-Pesa OAuth request failed: {e}")

        if response.status_code in (400, 401, 403):
            logger.error(f"❌ M-Pesa OAuth rejected credentials: {response.status_code} {response.text}")
            raise PaymentError(PaymentErrorKind.GATEWAY_NOT_CONFIGURED, "M-Pesa OAuth rejected credentials")
        if response.status_code != 200:
            logger.error(f"❌ M-Pesa OAuth failed: {response.status_code} {response.text}")
            raise PaymentError(
                PaymentErrorKind.GATEWAY_UNAVAILABLE, f"M-Pesa OAuth returned {response.status_code}"
            )

        data = response.json()
        token = data.get("access_token")
        if not token:
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, "M-Pesa OAuth response had no access_token")

        try:
            expires_in = int(data.get("expires_in", 3599))
        except (TypeError, ValueError):
            expires_in = 3599
        self._token = token
        self._token_expires_at = self._clock() + max(expires_in - TOKEN_EXPIRY_SLACK_SECONDS, 0)
        return token

    def build_stk_payload(self, booking_id: str, phone_number: str, amount: int, timestamp: str) -> Dict[str, Any]:
        return {
            "BusinessShortCode": self.shortcode,
            "Password": build_stk_password(self.shortcode, self.passkey, timestamp),
            "Timestamp": timestamp,
            "TransactionType": self.transaction_type,
            "Amount": amount,
            "PartyA": phone_number,
            "PartyB": self.shortcode,
            "PhoneNumber": phone_number,
            "CallBackURL": self.callback_url,
            "AccountReference": booking_id[:12],
            "TransactionDesc": f"Payment for Booking {booking_id[:10]}",
        }

    async def initiate_stk_push(self, booking_id: str, phone_number: str, amount: int) -> Dict[str, Any]:
        """
        Send an STK Push prompt to the payer's phone.

        Returns the Daraja acknowledgment (CheckoutRequestID, MerchantRequestID, ...).
        Raises PaymentError on any gateway failure.
        """
        token = await self.get_access_token()
        payload = self.build_stk_payload(booking_id, phone_number, amount, mpesa_timestamp())

        logger.info(f"📤 Sending STK push for booking {booking_id}, amount {amount}")
        try:
            async with self._client() as http_client:
                response = await http_client.post(
                    STK_PUSH_PATH,
                    json=payload,
                    headers={"Authorization": f"Bearer {token}"},
                )
        except httpx.TimeoutException as e:
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, f"STK push timed out: {e}")
        except httpx.RequestError as e:
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, f"STK push request failed: {e}")

        if response.status_code >= 500:
            logger.error(f"❌ STK push gateway error: {response.status_code} {response.text}")
            raise PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, f"STK push returned {response.status_code}")
        if response.status_code >= 400:
            logger.error(f"❌ STK push rejected: {response.status_code} {response.text}")
            if response.status_code == 401:
                # Cached token was revoked
                self._token = None
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, f"STK push returned {response.status_code}")

        data = response.json()
        if not data.get("CheckoutRequestID"):
            logger.error(f"❌ STK push response missing CheckoutRequestID: {data}")
            raise PaymentError(PaymentErrorKind.GATEWAY_REJECTED, "STK push response had no CheckoutRequestID")

        logger.info(f"✅ STK push accepted: {data['CheckoutRequestID']}")
        return data
