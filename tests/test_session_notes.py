from conftest import auth
from counseling.constants import BookingStatus


def write_note(client, user, booking, **fields):
    body = {"bookingId": booking.id, "sessionType": "initial", "moodBefore": 4, "moodAfter": 6}
    body.update(fields)
    return client.post("/session-notes", json=body, headers=auth(user))


def test_counselor_writes_and_reads_notes(client, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.COMPLETED)

    created = write_note(client, counselor.user, booking, keyTopics=["sleep"], summary="First intake")
    fetched = client.get(f"/session-notes/bookings/{booking.id}", headers=auth(counselor.user))

    assert created.status_code == 201
    data = fetched.json()
    assert data["clientId"] == client_user.id
    assert data["clientName"] == "Aiko Client"
    assert data["sessionDate"].startswith(booking.scheduled_at.date().isoformat())
    assert data["durationMinutes"] == 60
    assert data["keyTopics"] == ["sleep"]
    assert data["crisisFlag"] is False


def test_client_cannot_see_notes(client, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.CONFIRMED)
    write_note(client, counselor.user, booking)

    response = client.get(f"/session-notes/bookings/{booking.id}", headers=auth(client_user))

    assert response.status_code == 403


def test_other_counselor_cannot_write_or_edit(client, parties, make_booking, make_counselor):
    client_user, counselor = parties
    other = make_counselor("Other Counselor")
    booking = make_booking(client_user, counselor, status=BookingStatus.COMPLETED)
    note_id = write_note(client, counselor.user, booking).json()["id"]

    assert write_note(client, other.user, booking).status_code == 403
    assert client.patch(f"/session-notes/{note_id}", json={"summary": "x"}, headers=auth(other.user)).status_code == 403


def test_one_note_per_booking(client, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.COMPLETED)

    write_note(client, counselor.user, booking)

    assert write_note(client, counselor.user, booking).status_code == 409


def test_no_notes_for_unpaid_or_cancelled_bookings(client, parties, make_booking):
    client_user, counselor = parties
    pending = make_booking(client_user, counselor)
    cancelled = make_booking(client_user, counselor, status=BookingStatus.CANCELLED)

    assert write_note(client, counselor.user, pending).status_code == 400
    assert write_note(client, counselor.user, cancelled).status_code == 400


def test_update_keeps_unsent_fields(client, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.COMPLETED)
    note_id = write_note(client, counselor.user, booking, summary="Intake").json()["id"]

    updated = client.patch(
        f"/session-notes/{note_id}",
        json={"homeworkAssigned": "Sleep diary", "requiresFollowup": True},
        headers=auth(counselor.user),
    )

    assert updated.status_code == 200
    assert updated.json()["summary"] == "Intake"
    assert updated.json()["homeworkAssigned"] == "Sleep diary"
    assert updated.json()["requiresFollowup"] is True


def test_list_filters_by_client(client, parties, make_booking, make_user):
    aiko, counselor = parties
    mei = make_user("Mei Client")
    write_note(client, counselor.user, make_booking(aiko, counselor, status=BookingStatus.COMPLETED))
    write_note(client, counselor.user, make_booking(mei, counselor, status=BookingStatus.COMPLETED))

    everyone = client.get("/session-notes", headers=auth(counselor.user))
    only_mei = client.get("/session-notes", params={"clientId": mei.id}, headers=auth(counselor.user))

    assert len(everyone.json()) == 2
    assert [n["clientId"] for n in only_mei.json()] == [mei.id]


def test_validation(client, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.COMPLETED)

    assert write_note(client, counselor.user, booking, sessionType="coffee").status_code == 422
    assert write_note(client, counselor.user, booking, moodBefore=11).status_code == 422
    assert write_note(client, counselor.user, booking, durationMinutes=5).status_code == 422


def test_clients_cannot_keep_notes(client, parties):
    client_user, _ = parties
    assert client.get("/session-notes", headers=auth(client_user)).status_code == 403
