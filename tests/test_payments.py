import json
import time

import pytest

from conftest import auth
from counseling import config
from counseling.constants import BookingStatus, PaymentMethod, PaymentStatus, ServiceType
from counseling.domain.chat.rooms import ChatRoomManager
from counseling.models import Booking, Payment
from counseling.webhook_security import SIGNATURE_HEADER, TIMESTAMP_HEADER, sign_payload

SECRET = "whsec_test"


@pytest.fixture
def webhook_secret(monkeypatch):
    monkeypatch.setattr(config, "PAYMENT_WEBHOOK_SECRET", SECRET)
    return SECRET


def capture_event(booking, transaction_id="TX-1", amount=None, event="PAYMENT.CAPTURE.COMPLETED"):
    return {
        "event": event,
        "bookingId": booking.id,
        "transactionId": transaction_id,
        "amount": booking.amount if amount is None else amount,
    }


def post_webhook(client, body, secret=SECRET, timestamp=None):
    raw = json.dumps(body).encode()
    timestamp = str(timestamp or int(time.time()))
    headers = {
        SIGNATURE_HEADER: sign_payload(secret, timestamp, raw),
        TIMESTAMP_HEADER: timestamp,
        "Content-Type": "application/json",
    }
    return client.post("/payments/webhook", content=raw, headers=headers)


class TestWebhook:
    def test_capture_confirms_booking_and_opens_chat(self, client, db, mailer, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)
        room_id = ChatRoomManager(db).get_or_create_room(booking.id).room.id

        response = post_webhook(client, capture_event(booking))

        assert response.status_code == 200
        assert response.json() == {"received": True, "applied": True, "bookingStatus": "confirmed"}
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.CONFIRMED
        payment = db.query(Payment).filter(Payment.booking_id == booking.id).one()
        assert payment.status == PaymentStatus.COMPLETED
        assert payment.transaction_id == "TX-1"
        assert ChatRoomManager(db).get_room(room_id).is_active is True
        assert mailer.subjects_for(client_user.email) == ["Your counseling session is confirmed"]

    def test_duplicate_delivery_is_a_no_op(self, client, db, mailer, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        first = post_webhook(client, capture_event(booking))
        second = post_webhook(client, capture_event(booking))

        assert first.json()["applied"] is True
        assert second.status_code == 200
        assert second.json()["applied"] is False
        assert db.query(Payment).filter(Payment.booking_id == booking.id).count() == 1
        assert len(mailer.subjects_for(client_user.email)) == 1

    def test_capture_for_cancelled_booking_is_recorded_but_not_applied(
        self, client, db, webhook_secret, parties, make_booking
    ):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor, status=BookingStatus.CANCELLED)

        response = post_webhook(client, capture_event(booking))

        assert response.status_code == 200
        assert response.json()["applied"] is False
        assert response.json()["bookingStatus"] == "cancelled"
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.CANCELLED

    def test_amount_mismatch(self, client, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = post_webhook(client, capture_event(booking, amount=1))

        assert response.status_code == 400

    def test_unknown_event_is_acknowledged(self, client, db, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = post_webhook(client, capture_event(booking, event="PAYMENT.CAPTURE.REFUNDED"))

        assert response.json() == {"received": True, "applied": False, "bookingStatus": None}
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.PENDING

    def test_bad_signature(self, client, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = post_webhook(client, capture_event(booking), secret="wrong")

        assert response.status_code == 401

    def test_stale_timestamp(self, client, webhook_secret, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = post_webhook(client, capture_event(booking), timestamp=int(time.time()) - 3600)

        assert response.status_code == 401

    def test_missing_secret_rejects_everything(self, client, monkeypatch, parties, make_booking):
        monkeypatch.setattr(config, "PAYMENT_WEBHOOK_SECRET", None)
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = post_webhook(client, capture_event(booking))

        assert response.status_code == 503

    def test_malformed_payload(self, client, webhook_secret):
        response = post_webhook(client, {"event": "PAYMENT.CAPTURE.COMPLETED"})
        assert response.status_code == 400


class TestClientPayments:
    def test_bank_transfer_sends_instructions_and_waits(self, client, db, mailer, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.BANK_TRANSFER, "amount": booking.amount},
            headers=auth(client_user),
        )

        assert response.status_code == 201
        assert response.json()["payment"]["status"] == "pending"
        assert response.json()["transition"] is None
        assert mailer.subjects_for(client_user.email) == ["Bank transfer details for your booking"]
        assert mailer.subjects_for(counselor.user.email) == []
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.PENDING

    def test_resubmitting_reuses_pending_payment(self, client, db, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)
        body = {"bookingId": booking.id, "method": PaymentMethod.BANK_TRANSFER, "amount": booking.amount}

        first = client.post("/payments", json=body, headers=auth(client_user))
        second = client.post("/payments", json=body, headers=auth(client_user))

        assert first.json()["payment"]["id"] == second.json()["payment"]["id"]
        assert db.query(Payment).filter(Payment.booking_id == booking.id).count() == 1

    def test_counselor_confirms_bank_transfer(self, client, db, mailer, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)
        payment_id = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.BANK_TRANSFER, "amount": booking.amount},
            headers=auth(client_user),
        ).json()["payment"]["id"]

        by_client = client.post(f"/payments/{payment_id}/confirm-bank-transfer", headers=auth(client_user))
        by_counselor = client.post(f"/payments/{payment_id}/confirm-bank-transfer", headers=auth(counselor.user))

        assert by_client.status_code == 403
        assert by_counselor.status_code == 200
        assert by_counselor.json()["payment"]["status"] == "completed"
        assert by_counselor.json()["transition"]["booking"]["status"] == "confirmed"
        assert "Your counseling session is confirmed" in mailer.subjects_for(counselor.user.email)

    def test_paypal_payment_cannot_be_confirmed_manually(self, client, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)
        payment_id = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.PAYPAL, "amount": booking.amount},
            headers=auth(client_user),
        ).json()["payment"]["id"]

        response = client.post(f"/payments/{payment_id}/confirm-bank-transfer", headers=auth(counselor.user))

        assert response.status_code == 400

    def test_amount_must_match_booking(self, client, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)

        response = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.PAYPAL, "amount": 100},
            headers=auth(client_user),
        )

        assert response.status_code == 400

    def test_free_chat_is_confirmed_immediately(self, client, db, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor, service_type=ServiceType.CHAT)

        response = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.PAYPAL, "amount": 0},
            headers=auth(client_user),
        )

        assert response.status_code == 201
        assert response.json()["payment"]["status"] == "completed"
        assert response.json()["transition"]["changed"] is True
        db.expire_all()
        assert db.get(Booking, booking.id).status == BookingStatus.CONFIRMED

    def test_only_pending_bookings_take_payment(self, client, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor, status=BookingStatus.CONFIRMED)

        response = client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.PAYPAL, "amount": booking.amount},
            headers=auth(client_user),
        )

        assert response.status_code == 409

    def test_list_payments(self, client, parties, make_booking):
        client_user, counselor = parties
        booking = make_booking(client_user, counselor)
        client.post(
            "/payments",
            json={"bookingId": booking.id, "method": PaymentMethod.PAYPAL, "amount": booking.amount},
            headers=auth(client_user),
        )

        mine = client.get("/payments", headers=auth(client_user)).json()
        theirs = client.get("/payments", headers=auth(counselor.user)).json()

        assert [p["bookingId"] for p in mine] == [booking.id]
        assert [p["bookingId"] for p in theirs] == [booking.id]
