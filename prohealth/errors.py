"""Structured payment errors and their user-facing rendering"""

import logging
from enum import Enum
from typing import Optional

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class PaymentErrorKind(str, Enum):
    INVALID_INPUT = "INVALID_INPUT"
    NOT_FOUND = "NOT_FOUND"
    ALREADY_PAID = "ALREADY_PAID"
    INVALID_AMOUNT = "INVALID_AMOUNT"
    GATEWAY_NOT_CONFIGURED = "GATEWAY_NOT_CONFIGURED"
    GATEWAY_REJECTED = "GATEWAY_REJECTED"
    GATEWAY_UNAVAILABLE = "GATEWAY_UNAVAILABLE"
    INVALID_SIGNATURE = "INVALID_SIGNATURE"


# kind -> (HTTP status, stable message safe to show the end user)
ERROR_RESPONSES: dict[PaymentErrorKind, tuple[int, str]] = {
    PaymentErrorKind.INVALID_INPUT: (400, "The request is missing required payment details."),
    PaymentErrorKind.NOT_FOUND: (404, "Booking not found or access denied"),
    PaymentErrorKind.ALREADY_PAID: (409, "Booking already paid"),
    PaymentErrorKind.INVALID_AMOUNT: (
        400,
        "The booking amount is below the minimum the payment provider accepts.",
    ),
    PaymentErrorKind.GATEWAY_NOT_CONFIGURED: (
        503,
        "Payments are temporarily unavailable. Please try again later.",
    ),
    PaymentErrorKind.GATEWAY_REJECTED: (
        400,
        "The payment provider rejected the request. Please check your details and try again.",
    ),
    PaymentErrorKind.GATEWAY_UNAVAILABLE: (
        502,
        "The payment provider could not be reached. Please try again.",
    ),
    PaymentErrorKind.INVALID_SIGNATURE: (400, "Webhook signature verification failed"),
}


class PaymentError(Exception):
    """Raised by payment services; rendered by the app-level handler.

    `detail` is for logs only and never reaches the client.
    """

    def __init__(self, kind: PaymentErrorKind, detail: Optional[str] = None):
        self.kind = kind
        self.detail = detail
        super().__init__(detail or kind.value)

    @property
    def status_code(self) -> int:
        return ERROR_RESPONSES[self.kind][0]

    @property
    def message(self) -> str:
        return ERROR_RESPONSES[self.kind][1]

    def to_dict(self) -> dict:
        return {"error": {"code": self.kind.value, "message": self.message}}


def register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(PaymentError)
    async def payment_error_handler(request: Request, exc: PaymentError) -> JSONResponse:
        log = logger.error if exc.status_code >= 500 else logger.warning
        log(f"⚠️ {request.method} {request.url.path} - {exc.kind.value}: {exc.detail or exc.message}")
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())
