"""Payment schemas - Request/response models and raw gateway payloads"""

import re
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

# Country-code-prefixed Kenyan MSISDN, e.g. 254712345678
MPESA_PHONE_PATTERN = re.compile(r"^254\d{9}$")


def _require_booking_id(v: str) -> str:
    if not v or not v.strip():
        raise ValueError("Booking ID is required")
    return v.strip()


class StkPushRequest(BaseModel):
    booking_id: str
    phone_number: str

    @field_validator("booking_id")
    @classmethod
    def validate_booking_id(cls, v: str) -> str:
        return _require_booking_id(v)

    @field_validator("phone_number")
    @classmethod
    def validate_phone_number(cls, v: str) -> str:
        v = v.strip()
        if not MPESA_PHONE_PATTERN.match(v):
            raise ValueError("Phone number must be in the format 254XXXXXXXXX")
        return v


class StkPushResponse(BaseModel):
    """Acknowledgment that the PIN prompt was sent to the payer's phone"""

    model_config = ConfigDict(populate_by_name=True)

    checkout_request_id: str = Field(alias="CheckoutRequestID")
    merchant_request_id: Optional[str] = Field(default=None, alias="MerchantRequestID")
    response_code: Optional[str] = Field(default=None, alias="ResponseCode")
    response_description: Optional[str] = Field(default=None, alias="ResponseDescription")
    customer_message: Optional[str] = Field(default=None, alias="CustomerMessage")


class PaymentIntentRequest(BaseModel):
    booking_id: str

    @field_validator("booking_id")
    @classmethod
    def validate_booking_id(cls, v: str) -> str:
        return _require_booking_id(v)


class PaymentIntentResponse(BaseModel):
    client_secret: str
    booking_amount: float


class VerifyPaymentRequest(BaseModel):
    payment_intent: str = Field(min_length=1)
    payment_intent_client_secret: str = Field(min_length=1)
    redirect_status: str = Field(min_length=1)
    booking_id: str

    @field_validator("booking_id")
    @classmethod
    def validate_booking_id(cls, v: str) -> str:
        return _require_booking_id(v)


class VerifyPaymentResponse(BaseModel):
    status: str  # succeeded | processing | failed
    message: str


# ============================================================================
# M-PESA STK CALLBACK PAYLOAD
# ============================================================================


class MpesaCallbackItem(BaseModel):
    Name: str
    Value: Optional[Any] = None


class MpesaCallbackMetadata(BaseModel):
    Item: list[MpesaCallbackItem] = []

    def get(self, name: str) -> Optional[Any]:
        for item in self.Item:
            if item.Name == name:
                return item.Value
        return None


class MpesaStkCallback(BaseModel):
    MerchantRequestID: Optional[str] = None
    CheckoutRequestID: str = Field(min_length=1)
    ResultCode: int
    ResultDesc: str = ""
    CallbackMetadata: Optional[MpesaCallbackMetadata] = None


class MpesaCallbackBody(BaseModel):
    stkCallback: MpesaStkCallback


class MpesaCallbackEnvelope(BaseModel):
    Body: MpesaCallbackBody


# Acknowledgments Safaricom expects back from the callback URL
MPESA_ACCEPTED = {"ResultCode": 0, "ResultDesc": "Accepted", "ThirdPartyTransID": ""}
MPESA_FAILED = {"ResultCode": 1, "ResultDesc": "Failed", "ThirdPartyTransID": ""}
