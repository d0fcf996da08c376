"""
Starting payments: booking checks, gateway error mapping and card verification.
"""

import pytest

from prohealth.errors import PaymentError, PaymentErrorKind
from prohealth.models import Booking, PaymentStatus, Service, Transaction, TransactionStatus
from tests.conftest import auth_header, make_booking

STK_URL = "/payments/mpesa/stk-push"
INTENT_URL = "/payments/stripe/payment-intent"
VERIFY_URL = "/payments/stripe/verify"
PHONE = "254712345678"


def reload(db, booking_id: str) -> Booking:
    db.expire_all()
    return db.get(Booking, booking_id)


def error_code(response) -> str:
    return response.json()["error"]["code"]


# ============================================================================
# M-PESA STK PUSH
# ============================================================================


def test_stk_push_returns_acknowledgment(client, db, headers, booking, mpesa):
    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=headers)

    assert response.status_code == 200
    body = response.json()
    assert body["CheckoutRequestID"] == "ws_CO_191220191020363925_1"
    assert body["MerchantRequestID"] == "29115-34620561-1"
    assert body["ResponseCode"] == "0"
    assert mpesa.calls[0]["amount"] == 1500
    assert reload(db, booking.id).gateway_correlation_id == body["CheckoutRequestID"]


@pytest.mark.parametrize("phone", ["0712345678", "25471234567", "+254712345678", "2547123456789", "abc"])
def test_stk_push_rejects_bad_phone_numbers(client, headers, booking, mpesa, phone):
    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": phone}, headers=headers)

    assert response.status_code == 422
    assert mpesa.calls == []


def test_stk_push_requires_booking_id(client, headers, mpesa):
    response = client.post(STK_URL, json={"booking_id": "  ", "phone_number": PHONE}, headers=headers)

    assert response.status_code == 422
    assert mpesa.calls == []


def test_stk_push_requires_authentication(client, booking):
    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE})

    assert response.status_code == 401


def test_stk_push_for_someone_elses_booking_is_not_found(client, booking, other_user, mpesa):
    response = client.post(
        STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=auth_header(other_user)
    )

    assert response.status_code == 404
    assert error_code(response) == "NOT_FOUND"
    assert response.json()["error"]["message"] == "Booking not found or access denied"
    assert mpesa.calls == []


def test_stk_push_for_missing_booking_is_not_found(client, headers):
    response = client.post(STK_URL, json={"booking_id": "nope", "phone_number": PHONE}, headers=headers)

    assert response.status_code == 404
    assert error_code(response) == "NOT_FOUND"


def test_stk_push_for_paid_booking_is_rejected(client, db, headers, user, service, mpesa):
    booking = make_booking(db, user, service, payment_status=PaymentStatus.PAID)

    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=headers)

    assert response.status_code == 409
    assert error_code(response) == "ALREADY_PAID"
    assert mpesa.calls == []


def test_stk_push_amount_below_minimum_is_rejected(client, db, headers, user, mpesa):
    free = Service(name="Free Screening", price=0.4, category="Screening")
    db.add(free)
    db.commit()
    booking = make_booking(db, user, free)

    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=headers)

    assert response.status_code == 400
    assert error_code(response) == "INVALID_AMOUNT"
    assert mpesa.calls == []


@pytest.mark.parametrize(
    "kind,status_code",
    [
        (PaymentErrorKind.GATEWAY_NOT_CONFIGURED, 503),
        (PaymentErrorKind.GATEWAY_REJECTED, 400),
        (PaymentErrorKind.GATEWAY_UNAVAILABLE, 502),
    ],
)
def test_gateway_failure_leaves_correlation_id_untouched(
    client, db, headers, booking, mpesa, write_statements, kind, status_code
):
    mpesa.error = PaymentError(kind, "raw gateway body that must not leak")
    write_statements.clear()

    response = client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=headers)

    assert response.status_code == status_code
    assert error_code(response) == kind.value
    assert "raw gateway body" not in response.text
    assert write_statements == []
    assert reload(db, booking.id).gateway_correlation_id is None


def test_gateway_failure_keeps_previous_correlation_id(client, db, headers, user, service, mpesa):
    booking = make_booking(db, user, service, gateway_correlation_id="ws_CO_previous")
    mpesa.error = PaymentError(PaymentErrorKind.GATEWAY_UNAVAILABLE, "timeout")

    client.post(STK_URL, json={"booking_id": booking.id, "phone_number": PHONE}, headers=headers)

    assert reload(db, booking.id).gateway_correlation_id == "ws_CO_previous"


# ============================================================================
# STRIPE PAYMENT INTENT
# ============================================================================


def test_create_payment_intent(client, db, headers, user, booking, service, stripe_service):
    response = client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)

    assert response.status_code == 200
    assert response.json() == {"client_secret": "pi_test_1_secret_abc", "booking_amount": 1500.0}

    intent = stripe_service.intents["pi_test_1"]
    assert intent["amount"] == 150000
    assert intent["currency"] == "kes"
    assert intent["metadata"] == {"booking_id": booking.id, "user_id": user.id, "service_name": service.name}

    assert reload(db, booking.id).gateway_correlation_id == "pi_test_1"
    txn = db.query(Transaction).filter(Transaction.booking_id == booking.id).one()
    assert txn.status == TransactionStatus.PENDING
    assert txn.payment_gateway == "STRIPE"
    assert txn.currency == "KES"


def test_second_payment_intent_refreshes_pending_transaction(client, db, headers, booking):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)

    db.expire_all()
    txn = db.query(Transaction).filter(Transaction.booking_id == booking.id).one()
    assert txn.gateway_transaction_id == "pi_test_2"
    assert reload(db, booking.id).gateway_correlation_id == "pi_test_2"


def test_payment_intent_below_stripe_minimum(client, db, headers, user):
    cheap = Service(name="Tip", price=0.25, category="Other")
    db.add(cheap)
    db.commit()
    booking = make_booking(db, user, cheap)

    response = client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)

    assert response.status_code == 400
    assert error_code(response) == "INVALID_AMOUNT"


def test_payment_intent_for_paid_booking(client, db, headers, user, service):
    booking = make_booking(db, user, service, payment_status=PaymentStatus.PAID)

    response = client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)

    assert response.status_code == 409
    assert error_code(response) == "ALREADY_PAID"


def test_payment_intent_gateway_error_writes_nothing(client, db, headers, booking, stripe_service, write_statements):
    stripe_service.error = PaymentError(PaymentErrorKind.GATEWAY_REJECTED, "card_declined")
    write_statements.clear()

    response = client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)

    assert response.status_code == 400
    assert write_statements == []
    assert reload(db, booking.id).gateway_correlation_id is None


# ============================================================================
# STRIPE CLIENT-SIDE VERIFICATION
# ============================================================================


def _verify(client, headers, booking_id, intent_id="pi_test_1", secret="pi_test_1_secret_abc"):
    return client.post(
        VERIFY_URL,
        json={
            "payment_intent": intent_id,
            "payment_intent_client_secret": secret,
            "redirect_status": "succeeded",
            "booking_id": booking_id,
        },
        headers=headers,
    )


def test_verify_succeeded_payment_confirms_booking(client, db, headers, booking, stripe_service):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    stripe_service.intents["pi_test_1"].update(status="succeeded", amount_received=150000)

    response = _verify(client, headers, booking.id)

    assert response.status_code == 200
    assert response.json()["status"] == "succeeded"
    assert reload(db, booking.id).payment_status == PaymentStatus.PAID
    txn = db.query(Transaction).filter(Transaction.booking_id == booking.id).one()
    assert txn.status == TransactionStatus.COMPLETED


def test_verify_processing_payment_changes_nothing(client, db, headers, booking, stripe_service):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    stripe_service.intents["pi_test_1"]["status"] = "processing"

    response = _verify(client, headers, booking.id)

    assert response.json()["status"] == "processing"
    assert reload(db, booking.id).payment_status == PaymentStatus.UNPAID


def test_verify_failed_payment(client, db, headers, booking, stripe_service):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    stripe_service.intents["pi_test_1"]["status"] = "requires_payment_method"

    response = _verify(client, headers, booking.id)

    assert response.json()["status"] == "failed"
    assert reload(db, booking.id).payment_status == PaymentStatus.FAILED


def test_verify_rejects_wrong_client_secret(client, db, headers, booking, stripe_service):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    stripe_service.intents["pi_test_1"]["status"] = "succeeded"

    response = _verify(client, headers, booking.id, secret="pi_test_1_secret_forged")

    assert response.status_code == 400
    assert reload(db, booking.id).payment_status == PaymentStatus.UNPAID


def test_verify_rejects_intent_for_another_booking(client, db, headers, user, service, booking, stripe_service):
    client.post(INTENT_URL, json={"booking_id": booking.id}, headers=headers)
    stripe_service.intents["pi_test_1"]["status"] = "succeeded"
    other_booking = make_booking(db, user, service)

    response = _verify(client, headers, other_booking.id)

    assert response.status_code == 404
    assert reload(db, other_booking.id).payment_status == PaymentStatus.UNPAID


def test_verify_requires_all_fields(client, headers, booking):
    response = client.post(VERIFY_URL, json={"booking_id": booking.id}, headers=headers)

    assert response.status_code == 422
