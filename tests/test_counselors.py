from datetime import timedelta

from conftest import auth, future_at
from counseling.constants import BookingStatus
from counseling.shared.clock import utcnow


def rate(db, counselor, rating, review_count=1):
    counselor.rating = rating
    counselor.review_count = review_count
    db.commit()


class TestDirectory:
    def test_active_counselors_best_rated_first(self, client, db, make_counselor):
        low = make_counselor("Low Rated")
        high = make_counselor("High Rated")
        make_counselor("On Leave", is_active=False)
        rate(db, low, 3.5)
        rate(db, high, 4.9)

        listed = client.get("/counselors")

        assert listed.status_code == 200
        assert [c["name"] for c in listed.json()] == ["High Rated", "Low Rated"]

    def test_specialty_filter(self, client, db, make_counselor):
        grief = make_counselor("Grief Counselor")
        grief.specialties = ["grief", "family"]
        db.commit()
        make_counselor("Anxiety Counselor")

        listed = client.get("/counselors", params={"specialty": " Grief "})

        assert [c["id"] for c in listed.json()] == [grief.id]

    def test_get_profile(self, client, parties):
        _, counselor = parties

        response = client.get(f"/counselors/{counselor.id}")

        assert response.status_code == 200
        assert response.json()["name"] == "Ren Counselor"
        assert response.json()["specialties"] == ["anxiety"]

    def test_unknown_counselor(self, client):
        assert client.get("/counselors/9999").status_code == 404


class TestOwnProfile:
    def test_create_then_update(self, client, make_user):
        user = make_user("New Counselor")

        created = client.post(
            "/counselors/me",
            json={"bio": "CBT practitioner", "specialties": ["Anxiety", "anxiety", "sleep"], "hourlyRate": 60},
            headers=auth(user),
        )
        updated = client.patch("/counselors/me", json={"hourlyRate": 75, "isActive": False}, headers=auth(user))

        assert created.status_code == 201
        assert created.json()["specialties"] == ["anxiety", "sleep"]
        assert created.json()["userId"] == user.id
        assert updated.json()["hourlyRate"] == 75
        assert updated.json()["isActive"] is False
        assert updated.json()["bio"] == "CBT practitioner"
        assert client.get("/counselors").json() == []

    def test_second_profile_conflicts(self, client, parties):
        _, counselor = parties
        response = client.post("/counselors/me", json={"bio": "again"}, headers=auth(counselor.user))
        assert response.status_code == 409

    def test_update_without_profile(self, client, parties):
        client_user, _ = parties
        response = client.patch("/counselors/me", json={"bio": "hi"}, headers=auth(client_user))
        assert response.status_code == 404

    def test_negative_rate_rejected(self, client, make_user):
        response = client.post("/counselors/me", json={"hourlyRate": -1}, headers=auth(make_user()))
        assert response.status_code == 422


class TestFavorites:
    def test_add_list_remove(self, client, parties, make_counselor):
        client_user, counselor = parties
        other = make_counselor("Other Counselor")

        first = client.post(f"/favorites/{counselor.id}", headers=auth(client_user))
        again = client.post(f"/favorites/{counselor.id}", headers=auth(client_user))
        client.post(f"/favorites/{other.id}", headers=auth(client_user))
        removed = client.delete(f"/favorites/{counselor.id}", headers=auth(client_user))
        listed = client.get("/favorites", headers=auth(client_user))

        assert first.status_code == 201
        assert again.status_code == 200
        assert again.json()["id"] == first.json()["id"]
        assert removed.status_code == 204
        assert [f["counselor"]["id"] for f in listed.json()] == [other.id]

    def test_favorites_are_per_user(self, client, parties, make_user):
        client_user, counselor = parties
        client.post(f"/favorites/{counselor.id}", headers=auth(client_user))

        assert client.get("/favorites", headers=auth(make_user("Someone Else"))).json() == []

    def test_unknown_counselor(self, client, parties):
        client_user, _ = parties
        assert client.post("/favorites/9999", headers=auth(client_user)).status_code == 404

    def test_remove_missing_favorite(self, client, parties):
        client_user, counselor = parties
        assert client.delete(f"/favorites/{counselor.id}", headers=auth(client_user)).status_code == 404


class TestClientOverview:
    def test_clients_summarised_latest_first(self, client, parties, make_user, make_booking):
        aiko, counselor = parties
        mei = make_user("Mei Client")
        jun = make_user("Jun Client")
        now = utcnow()
        make_booking(aiko, counselor, status=BookingStatus.COMPLETED, scheduled_at=now - timedelta(days=10))
        make_booking(aiko, counselor, status=BookingStatus.CONFIRMED, scheduled_at=future_at(days=4))
        make_booking(aiko, counselor, status=BookingStatus.CANCELLED, scheduled_at=future_at(days=6))
        make_booking(mei, counselor, status=BookingStatus.COMPLETED, scheduled_at=now - timedelta(days=2))
        make_booking(jun, counselor, status=BookingStatus.PENDING, scheduled_at=future_at(days=1))

        response = client.get("/counselors/me/clients", headers=auth(counselor.user))

        assert response.status_code == 200
        clients = response.json()
        assert [c["name"] for c in clients] == ["Mei Client", "Aiko Client", "Jun Client"]
        aiko_entry = clients[1]
        assert aiko_entry["totalBookings"] == 2
        assert aiko_entry["completedSessions"] == 1
        assert aiko_entry["upcomingSessions"] == 1
        assert clients[2]["lastSessionAt"] is None
        assert clients[2]["nextSessionAt"] is not None

    def test_only_counselors_have_clients(self, client, parties):
        client_user, _ = parties
        assert client.get("/counselors/me/clients", headers=auth(client_user)).status_code == 403
