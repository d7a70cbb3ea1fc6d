from datetime import date, timedelta

import pytest

from galerago import models, notifications

from conftest import PASSWORD, headers_for

NEXT_WEEK = (date.today() + timedelta(days=7)).isoformat()


@pytest.fixture
def sent(monkeypatch):
    """Capture booking status notifications instead of talking to SMTP"""
    messages = []

    def fake_notify(to_email, booking_reference, status, reason=None):
        messages.append((to_email, booking_reference, status, reason))
        return True

    monkeypatch.setattr(notifications, "notify_booking_status", fake_notify)
    return messages


def booking_payload(package_id, participants=2, **overrides):
    payload = {
        "package_id": package_id,
        "booking_date": NEXT_WEEK,
        "number_of_participants": participants,
        "contact_number": "09171234567",
        "emergency_contact": "Rosa Dela Cruz",
        "payment_method": "gcash",
    }
    payload.update(overrides)
    return payload


class TestAuthEndpoints:
    def test_register_login_me(self, client):
        response = client.post("/users/register", json={
            "username": "carlo",
            "email": "carlo@example.com",
            "password": "island123",
            "role": "activity_provider",
        })
        assert response.status_code == 201

        login = client.post("/users/login", json={"email": "carlo@example.com", "password": "island123"})
        assert login.status_code == 200
        assert login.json()["role"] == "activity_provider"

        token = login.json()["access_token"]
        me = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
        assert me.json()["username"] == "carlo"

    def test_bad_login_uses_error_envelope(self, client, tourist):
        response = client.post("/users/login", json={"email": tourist.email, "password": "wrong-one"})
        assert response.status_code == 403
        assert response.json()["success"] is False
        assert response.json()["error"] == "authorization_error"

    def test_missing_token(self, client):
        response = client.get("/bookings/my")
        assert response.status_code == 401
        assert response.json() == {"success": False, "error": "authentication_error", "detail": "Not authenticated"}

    def test_garbage_token(self, client):
        response = client.get("/bookings/my", headers={"Authorization": "Bearer not-a-jwt"})
        assert response.status_code == 401
        assert response.json()["error"] == "authentication_error"
        assert response.headers["WWW-Authenticate"] == "Bearer"

    def test_login_with_valid_password(self, client, tourist):
        response = client.post("/users/login", json={"email": tourist.email, "password": PASSWORD})
        assert response.status_code == 200


class TestBookingFlow:
    def test_book_confirm_complete_review(self, client, tourist, provider, package, sent):
        created = client.post("/bookings/", json=booking_payload(package.id), headers=headers_for(tourist))
        assert created.status_code == 201
        body = created.json()
        assert body["status"] == "pending"
        assert body["payment_reference"].startswith("PAY")
        assert float(body["total_amount"]) == 3000.0
        booking_id = body["booking_id"]

        confirmed = client.put(
            f"/bookings/{booking_id}/status",
            json={"status": "confirmed", "expected_status": "pending"},
            headers=headers_for(provider),
        )
        assert confirmed.status_code == 200
        assert confirmed.json()["status"] == "confirmed"

        completed = client.put(f"/bookings/{booking_id}/status", json={"status": "completed"},
                               headers=headers_for(provider))
        assert completed.json()["activity_completed"] is True

        review = client.post("/reviews/", json={"booking_id": booking_id, "rating": 5, "comment": "Amazing lagoons"},
                             headers=headers_for(tourist))
        assert review.status_code == 201

        again = client.post("/reviews/", json={"booking_id": booking_id, "rating": 4}, headers=headers_for(tourist))
        assert again.status_code == 409
        assert again.json()["error"] == "conflict"

        reviews = client.get(f"/packages/{package.id}/reviews").json()
        assert reviews["stats"]["total_reviews"] == 1
        assert reviews["stats"]["rating_breakdown"]["5"] == 1

        assert [status for _, _, status, _ in sent] == ["pending", "confirmed", "completed"]
        assert all(to == tourist.email for to, _, _, _ in sent)

    def test_capacity_exceeded(self, client, tourist, package):
        response = client.post("/bookings/", json=booking_payload(package.id, participants=11),
                               headers=headers_for(tourist))
        assert response.status_code == 422
        assert response.json()["error"] == "capacity_exceeded"

    def test_missing_fields_are_validation_errors(self, client, tourist, package):
        response = client.post("/bookings/", json={"package_id": package.id}, headers=headers_for(tourist))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_wrongly_typed_participants(self, client, tourist, package):
        payload = booking_payload(package.id, number_of_participants="three")
        response = client.post("/bookings/", json=payload, headers=headers_for(tourist))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert "number_of_participants" in response.json()["detail"]

    def test_fractional_rating(self, client, tourist, package, make_booking):
        booking = make_booking(tourist, package, status=models.STATUS_COMPLETED)
        response = client.post("/reviews/", json={"booking_id": booking.id, "rating": 4.5},
                               headers=headers_for(tourist))
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"
        assert "rating" in response.json()["detail"]

    def test_cancel_confirmed_booking_is_state_error(self, client, tourist, package, make_booking, sent):
        booking = make_booking(tourist, package, status=models.STATUS_CONFIRMED)
        response = client.post(f"/bookings/{booking.id}/cancel", json={"cancellation_reason": "Late flight"},
                               headers=headers_for(tourist))
        assert response.status_code == 409
        assert response.json()["error"] == "state_error"
        assert sent == []

    def test_cancel_pending_booking(self, client, tourist, package, make_booking, sent):
        booking = make_booking(tourist, package)
        response = client.post(f"/bookings/{booking.id}/cancel", json={"cancellation_reason": "Late flight"},
                               headers=headers_for(tourist))
        assert response.status_code == 200
        assert response.json()["cancelled_at"] is not None
        assert sent[0][2:] == ("cancelled", "Late flight")

    def test_stale_status_update(self, client, tourist, provider, package, make_booking, sent):
        booking = make_booking(tourist, package, status=models.STATUS_CONFIRMED)
        response = client.put(
            f"/bookings/{booking.id}/status",
            json={"status": "cancelled", "expected_status": "pending"},
            headers=headers_for(provider),
        )
        assert response.status_code == 409
        assert response.json()["error"] == "conflict"

    def test_review_pending_booking_forbidden(self, client, tourist, package, make_booking):
        booking = make_booking(tourist, package)
        response = client.post("/reviews/", json={"booking_id": booking.id, "rating": 5}, headers=headers_for(tourist))
        assert response.status_code == 403

    def test_unknown_booking(self, client, tourist):
        response = client.get("/bookings/4242", headers=headers_for(tourist))
        assert response.status_code == 404
        assert response.json()["error"] == "not_found"

    def test_my_bookings(self, client, tourist, package, make_booking):
        booking = make_booking(tourist, package)
        rows = client.get("/bookings/my", headers=headers_for(tourist)).json()
        assert [row["booking_reference"] for row in rows] == [booking.booking_reference]

    def test_suspended_user_cannot_book(self, client, make_tourist, package):
        suspended = make_tourist(suspended=True)
        response = client.post("/bookings/", json=booking_payload(package.id), headers=headers_for(suspended))
        assert response.status_code == 403


class TestPackageEndpoints:
    def test_create_and_list(self, client, provider):
        response = client.post("/packages/", json={
            "name": "Kayangan Lake Tour",
            "activity_type": "Island Hopping",
            "description": "Viewpoint and lake swim",
            "price": "1200.00",
            "duration": 5,
            "max_participants": 15,
            "includes": "Entrance fees, lunch",
        }, headers=headers_for(provider))
        assert response.status_code == 201

        listed = client.get("/packages/", params={"activity_type": "Island Hopping"}).json()
        assert [p["name"] for p in listed] == ["Kayangan Lake Tour"]
        assert listed[0]["review_count"] == 0

    def test_delete_blocked_by_pending_booking(self, client, tourist, provider, package, make_booking):
        make_booking(tourist, package)
        response = client.delete(f"/packages/{package.id}", headers=headers_for(provider))
        assert response.status_code == 409
        assert response.json()["error"] == "state_error"

    def test_patch(self, client, provider, package):
        response = client.patch(f"/packages/{package.id}", json={"duration": 7}, headers=headers_for(provider))
        assert response.status_code == 200
        assert response.json()["duration"] == 7


class TestStatsEndpoints:
    def test_public_review_stats(self, client, db):
        assert client.get("/stats/reviews").json()["total_reviews"] == 0
        assert len(client.get("/stats/reviews/activity-types").json()) == 2

    def test_admin_booking_stats(self, client, admin, provider):
        assert client.get("/stats/bookings", headers=headers_for(admin)).status_code == 200
        assert client.get("/stats/bookings", headers=headers_for(provider)).status_code == 403

    def test_provider_dashboard(self, client, provider):
        response = client.get("/stats/provider", headers=headers_for(provider))
        assert response.status_code == 200
        assert len(response.json()["monthly"]) == 12

    def test_tourist_demographics(self, client, admin, provider, tourist):
        response = client.get("/stats/tourists", params={"months": 6}, headers=headers_for(admin))
        assert response.status_code == 200
        months = response.json()
        assert len(months) == 6
        assert months[-1]["total"] == 1
        assert months[-1]["gender"]["Unspecified"] == 1
        assert months[-1]["age"]["Unknown"] == 1
        assert client.get("/stats/tourists", headers=headers_for(provider)).status_code == 403

    @pytest.mark.parametrize("path,limit", [
        ("/reviews/recent", -1),
        ("/reviews/recent", 0),
        ("/reviews/recent", 101),
        ("/stats/packages/top-rated", 0),
        ("/stats/packages/top-rated", 5000),
    ])
    def test_out_of_range_limits(self, client, path, limit):
        response = client.get(path, params={"limit": limit})
        assert response.status_code == 400
        assert response.json()["error"] == "validation_error"

    def test_admin_review_listing_limit(self, client, admin):
        response = client.get("/reviews/", params={"limit": 0}, headers=headers_for(admin))
        assert response.status_code == 400
        assert client.get("/reviews/", params={"limit": 100}, headers=headers_for(admin)).status_code == 200


class TestEntryEndpoints:
    @pytest.fixture
    def desk(self, make_user):
        return make_user(models.ROLE_ENTRY_PROVIDER)

    def test_verify_and_dashboard(self, client, desk, tourist):
        profile_id = tourist.tourist.id
        response = client.post(f"/entry/verify/{profile_id}", headers=headers_for(desk))
        assert response.status_code == 200
        assert response.json()["tourist"]["verified_at"] is not None

        dashboard = client.get("/entry/dashboard", headers=headers_for(desk)).json()
        assert dashboard["stats"]["verified_tourists"] == 1
        assert dashboard["recent_tourists"][0]["id"] == profile_id

    def test_search(self, client, desk, tourist):
        rows = client.get("/entry/search", params={"q": "dela"}, headers=headers_for(desk)).json()
        assert [row["id"] for row in rows] == [tourist.tourist.id]

        short = client.get("/entry/search", params={"q": "d"}, headers=headers_for(desk))
        assert short.status_code == 400

    def test_scan_qr(self, client, desk, tourist):
        response = client.post("/entry/scan-qr", json={"qr_data": "Name: Juan Dela Cruz\nPhone: 09181112222"},
                               headers=headers_for(desk))
        assert response.status_code == 200
        assert response.json()["tourist"]["id"] == tourist.tourist.id
        assert response.json()["match_count"] == 1

        unreadable = client.post("/entry/scan-qr", json={"qr_data": "???"}, headers=headers_for(desk))
        assert unreadable.status_code == 400
        missing = client.post("/entry/scan-qr", json={"qr_data": "Name: Pedro Penduko"}, headers=headers_for(desk))
        assert missing.status_code == 404

    def test_other_roles_refused(self, client, provider, tourist):
        response = client.post(f"/entry/verify/{tourist.tourist.id}", headers=headers_for(provider))
        assert response.status_code == 403
        assert response.json()["error"] == "authorization_error"
        assert client.get("/entry/dashboard").status_code == 401
