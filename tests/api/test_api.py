"""
HTTP API 测试
覆盖认证、房间、报价、可用性、预订、支付对账端点
"""
from datetime import date, timedelta
from fastapi.testclient import TestClient

from clinic.models.ontology import User, utcnow
from clinic.security.auth import create_access_token


def _headers(user):
    return {"Authorization": f"Bearer {create_access_token(user.id)}"}


def _booking_payload(dates, room_id=1, time_slot="full", booking_type="daily"):
    return {
        "booking_type": booking_type,
        "rooms": [{"room_id": room_id, "time_slot": time_slot, "dates": dates}],
    }


class TestHealth:

    def test_health(self, client: TestClient):
        response = client.get("/health")
        assert response.status_code == 200
        assert response.json()["status"] == "healthy"


class TestAuthFlow:

    def test_register_verify_login(self, client: TestClient, email_channel, db_session):
        response = client.post("/auth/register", json={
            "first_name": "Sam", "last_name": "Lee", "email": "Sam@Example.com",
            "phone_number": "+1 214 555 0100", "password": "supersecret",
        })
        assert response.status_code == 201
        assert response.json()["is_email_verified"] is False
        assert len(email_channel.sent) == 1

        code = db_session.query(User).filter_by(email="sam@example.com").one().verification_code
        response = client.post("/auth/verify-code", json={"email": "sam@example.com", "code": code})
        assert response.status_code == 200
        assert response.json()["is_email_verified"] is True

        response = client.post("/auth/login", json={"email": "sam@example.com", "password": "supersecret"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["email"] == "sam@example.com"

    def test_register_invalid_email(self, client: TestClient):
        response = client.post("/auth/register", json={
            "first_name": "Sam", "last_name": "Lee", "email": "not-an-email",
            "phone_number": "2145550100", "password": "supersecret",
        })
        assert response.status_code == 422

    def test_register_duplicate(self, client: TestClient, user):
        response = client.post("/auth/register", json={
            "first_name": "Jane", "last_name": "Doe", "email": "jane@example.com",
            "phone_number": "2145550100", "password": "supersecret",
        })
        assert response.status_code == 409

    def test_verify_email_link(self, client: TestClient, db_session, unverified_user):
        unverified_user.verification_token = "tok123"
        unverified_user.verification_token_expires = utcnow() + timedelta(hours=1)
        db_session.commit()

        response = client.get("/auth/verify-email", params={"token": "tok123"})
        assert response.status_code == 200
        assert response.json()["is_email_verified"] is True

    def test_login_wrong_password(self, client: TestClient, user):
        response = client.post("/auth/login", json={"email": "jane@example.com", "password": "nope"})
        assert response.status_code == 401

    def test_me_requires_token(self, client: TestClient):
        assert client.get("/auth/me").status_code in (401, 403)


class TestRoomsAndQuotes:

    def test_list_rooms(self, client: TestClient, rooms):
        response = client.get("/rooms")
        assert response.status_code == 200
        assert [r["name"] for r in response.json()] == ["Room 1", "Room 2", "Room 3"]

    def test_quote_daily(self, client: TestClient, auth_headers, weekdays):
        response = client.post("/prices/quote", headers=auth_headers, json={
            "booking_type": "daily",
            "rooms": [{"room_id": 1, "time_slot": "full", "dates": weekdays(3)}],
        })
        assert response.status_code == 200
        data = response.json()
        assert float(data["subtotal"]) == 900
        assert float(data["tax"]) == 31.5
        assert float(data["total"]) == 1181.5

    def test_quote_member_override(self, client: TestClient, auth_headers, weekdays):
        response = client.post("/prices/quote", headers=auth_headers, json={
            "booking_type": "monthly",
            "is_membership_active": True,
            "rooms": [{"room_id": 1, "time_slot": "morning", "dates": weekdays(1)}],
        })
        assert float(response.json()["total"]) == 1242

    def test_quote_without_dates(self, client: TestClient, auth_headers):
        response = client.post("/prices/quote", headers=auth_headers, json={
            "rooms": [{"room_id": 1, "time_slot": "full", "dates": []}],
        })
        assert response.status_code == 400


class TestAvailabilityApi:

    def test_month_calendar(self, client: TestClient, auth_headers, rooms, weekdays):
        day = date.fromisoformat(weekdays(1)[0])
        client.post("/bookings", headers=auth_headers, json=_booking_payload([day.isoformat()], time_slot="morning"))

        response = client.get(
            "/availability/1",
            headers=auth_headers,
            params={"month": day.month, "year": day.year, "time_slot": "evening"},
        )
        assert response.status_code == 200
        entry = next(e for e in response.json() if e["date"] == day.isoformat())
        assert entry["time_slots"] == ["morning"]
        assert entry["status"] == "partially_booked"
        assert entry["available"] is True

    def test_unknown_room(self, client: TestClient, auth_headers, rooms):
        response = client.get("/availability/9", headers=auth_headers, params={"month": 6, "year": 2030})
        assert response.status_code == 404

    def test_year_out_of_range(self, client: TestClient, auth_headers, rooms):
        response = client.get("/availability/1", headers=auth_headers, params={"month": 12, "year": 10000})
        assert response.status_code == 422

    def test_time_slot_change(self, client: TestClient, auth_headers, rooms, weekdays):
        days = weekdays(2)
        client.post("/bookings", headers=auth_headers, json=_booking_payload(days[:1], time_slot="evening"))

        response = client.post("/availability/time-slot", headers=auth_headers, json={
            "room_id": 1, "time_slot": "full", "dates": days,
        })
        assert response.status_code == 200
        assert response.json()["dates"] == days[1:]
        assert response.json()["dropped_dates"] == days[:1]

    def test_monthly_dates(self, client: TestClient, auth_headers, rooms, weekdays):
        start = weekdays(1)[0]
        response = client.post("/availability/monthly-dates", headers=auth_headers, json={
            "room_id": 2, "time_slot": "full", "start_date": start,
        })
        assert response.status_code == 200
        dates = response.json()["dates"]
        assert len(dates) == 30
        assert dates[0] == start


class TestBookingsApi:

    def test_create_booking(self, client: TestClient, auth_headers, rooms, gateway, weekdays):
        response = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(3)))

        assert response.status_code == 201
        data = response.json()
        assert float(data["total_amount"]) == 1181.5
        assert data["client_secret"].startswith(data["payment_intent_id"])
        assert gateway.intents[data["payment_intent_id"]].amount == 118150

    def test_unverified_user_forbidden(self, client: TestClient, rooms, unverified_user, weekdays):
        response = client.post(
            "/bookings", headers=_headers(unverified_user), json=_booking_payload(weekdays(1))
        )
        assert response.status_code == 403

    def test_conflict_names_room(self, client: TestClient, auth_headers, rooms, other_user, weekdays):
        client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(2)))

        response = client.post(
            "/bookings", headers=_headers(other_user),
            json=_booking_payload(weekdays(2)[1:], time_slot="morning"),
        )
        assert response.status_code == 409
        assert response.json()["room_name"] == "Room 1"

    def test_weekend_rejected(self, client: TestClient, auth_headers, rooms, next_saturday):
        response = client.post(
            "/bookings", headers=auth_headers, json=_booking_payload([next_saturday.isoformat()])
        )
        assert response.status_code == 400

    def test_unordered_dates_rejected(self, client: TestClient, auth_headers, rooms, weekdays):
        response = client.post(
            "/bookings", headers=auth_headers, json=_booking_payload(list(reversed(weekdays(2))))
        )
        assert response.status_code == 400

    def test_processor_failure(self, client: TestClient, auth_headers, rooms, gateway, weekdays):
        gateway.fail_create = True
        response = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1)))
        assert response.status_code == 502

    def test_list_and_get(self, client: TestClient, auth_headers, rooms, other_user, weekdays):
        created = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1))).json()

        listing = client.get("/bookings", headers=auth_headers).json()
        assert [b["id"] for b in listing] == [created["booking_id"]]

        detail = client.get(f"/bookings/{created['booking_id']}", headers=auth_headers)
        assert detail.status_code == 200
        assert detail.json()["status"] == "pending"
        assert detail.json()["rooms"][0]["dates"][0]["start_time"] == "08:00"

        other = client.get(f"/bookings/{created['booking_id']}", headers=_headers(other_user))
        assert other.status_code == 404


class TestReconciliationApi:

    def test_confirm_success_then_duplicate(self, client: TestClient, auth_headers, rooms,
                                            email_channel, weekdays):
        created = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1))).json()
        body = {
            "payment_intent_id": created["payment_intent_id"],
            "payment_status": "succeeded",
            "payment_details": {"amount": 56050, "currency": "usd", "payment_method_type": "card"},
        }

        first = client.post("/bookings/confirm", headers=auth_headers, json=body)
        second = client.post("/bookings/confirm", headers=auth_headers, json=body)

        assert first.status_code == 200
        assert first.json()["transitioned"] is True
        assert first.json()["booking"]["status"] == "confirmed"
        assert first.json()["membership"]["is_membership_active"] is True
        assert second.json()["transitioned"] is False
        assert len([m for m in email_channel.sent if m["subject"].startswith("Booking")]) == 1

    def test_confirm_declined(self, client: TestClient, auth_headers, rooms, weekdays):
        created = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1))).json()

        response = client.post("/bookings/confirm", headers=auth_headers, json={
            "payment_intent_id": created["payment_intent_id"],
            "payment_status": "failed",
            "payment_details": {"error": {"message": "Declined", "code": "card_declined"}},
        })

        data = response.json()
        assert data["booking"]["status"] == "failed"
        assert data["booking"]["payment_status"] == "failed"
        assert data["booking"]["payment_details"]["error"]["code"] == "card_declined"
        assert data["membership"]["is_membership_active"] is False

    def test_verify_with_client_secret(self, client: TestClient, auth_headers, rooms, gateway, weekdays):
        created = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1))).json()
        gateway.settle(created["payment_intent_id"], "succeeded")

        response = client.post("/payments/verify", headers=auth_headers, json={
            "client_secret": created["client_secret"],
        })
        assert response.status_code == 200
        assert response.json()["booking"]["status"] == "confirmed"

    def test_verify_processor_unavailable(self, client: TestClient, auth_headers, rooms, gateway, weekdays):
        created = client.post("/bookings", headers=auth_headers, json=_booking_payload(weekdays(1))).json()
        gateway.fail_retrieve = True

        response = client.post("/payments/verify", headers=auth_headers, json={
            "payment_intent_id": created["payment_intent_id"],
        })
        assert response.status_code == 502

    def test_verify_requires_intent(self, client: TestClient, auth_headers):
        response = client.post("/payments/verify", headers=auth_headers, json={})
        assert response.status_code == 422

    def test_confirm_unknown_intent(self, client: TestClient, auth_headers):
        response = client.post("/bookings/confirm", headers=auth_headers, json={
            "payment_intent_id": "pi_missing", "payment_status": "succeeded",
        })
        assert response.status_code == 404
