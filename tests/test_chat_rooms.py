import pytest

from conftest import auth, future_at
from counseling.constants import BookingEvent, BookingStatus
from counseling.domain.bookings.service import BookingService
from counseling.domain.chat.ledger import MessageLedger
from counseling.domain.chat.repository import ChatRepository
from counseling.domain.chat.rooms import ChatRoomManager, list_participants
from counseling.errors import BookingNotFound, NotAParticipant
from counseling.models import ChatRoom


def test_first_access_creates_inactive_room_for_pending_booking(client, db, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor)

    response = client.get(f"/chat/bookings/{booking.id}/room", headers=auth(client_user))

    assert response.status_code == 200
    room = response.json()
    assert room["bookingId"] == booking.id
    assert room["isActive"] is False
    assert room["participants"] == {"clientId": client_user.id, "counselorUserId": counselor.user_id}
    assert db.query(ChatRoom).filter(ChatRoom.booking_id == booking.id).count() == 1


def test_both_participants_get_the_same_room(client, db, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor)

    first = client.get(f"/chat/bookings/{booking.id}/room", headers=auth(client_user)).json()
    second = client.get(f"/chat/bookings/{booking.id}/room", headers=auth(counselor.user)).json()

    assert first["id"] == second["id"]
    assert db.query(ChatRoom).filter(ChatRoom.booking_id == booking.id).count() == 1


def test_concurrent_create_resolves_to_existing_room(database, db, parties, make_booking, monkeypatch):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor)

    # The other participant's request inserts the room after our lookup missed it
    winner = ChatRoomManager(db).get_or_create_room(booking.id)
    original_lookup = ChatRepository.get_room_by_booking
    calls = {"n": 0}

    def stale_lookup(session, booking_id):
        calls["n"] += 1
        if calls["n"] == 1:
            return None
        return original_lookup(session, booking_id)

    monkeypatch.setattr(ChatRepository, "get_room_by_booking", staticmethod(stale_lookup))

    with database.session() as other_session:
        loser = ChatRoomManager(other_session).get_or_create_room(booking.id, client_user)
        assert loser.room.id == winner.room.id

    assert db.query(ChatRoom).filter(ChatRoom.booking_id == booking.id).count() == 1


def test_missing_booking_creates_no_room(db):
    with pytest.raises(BookingNotFound):
        ChatRoomManager(db).get_or_create_room(31337)
    assert db.query(ChatRoom).count() == 0


def test_outsider_cannot_open_room(client, parties, make_user, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor)

    response = client.get(f"/chat/bookings/{booking.id}/room", headers=auth(make_user("Stranger")))

    assert response.status_code == 403
    assert response.json()["code"] == "not_a_participant"


def test_activity_follows_booking_without_touching_room_row(db, parties, make_booking):
    client_user, counselor = parties
    booking = make_booking(client_user, counselor)
    manager = ChatRoomManager(db)
    room_id = manager.get_or_create_room(booking.id).room.id

    BookingService(db).transition(booking.id, BookingEvent.CONFIRM_PAYMENT)
    assert manager.get_room(room_id).is_active is True

    # Status changed behind the app's back; the stored flag is now stale
    db.execute(ChatRoom.__table__.update().values(is_active=True))
    db.execute(
        booking.__table__.update().where(booking.__table__.c.id == booking.id).values(status=BookingStatus.CANCELLED)
    )
    db.commit()

    assert manager.get_room(room_id).is_active is False
    assert manager.get_or_create_room(booking.id).is_active is False


def test_list_participants_reads_booking(db, confirmed_room):
    booking, room = confirmed_room
    participants = list_participants(db.get(ChatRoom, room.id))
    assert participants.client_id == booking.client_id
    assert participants.counselor_user_id == booking.counselor.user_id


def test_non_participant_cannot_read_room(db, confirmed_room, make_user):
    _, room = confirmed_room
    with pytest.raises(NotAParticipant):
        ChatRoomManager(db).get_room(room.id, make_user("Stranger"))


def test_inbox_lists_rooms_with_latest_message(client, db, hub, parties, make_user, make_booking):
    client_user, counselor = parties
    confirmed = make_booking(client_user, counselor, status=BookingStatus.CONFIRMED)
    make_booking(client_user, counselor, status=BookingStatus.PENDING, scheduled_at=future_at(days=5))
    make_booking(client_user, counselor, status=BookingStatus.CANCELLED, scheduled_at=future_at(days=6))
    make_booking(make_user("Someone else"), counselor, status=BookingStatus.CONFIRMED, scheduled_at=future_at(days=7))

    room = ChatRoomManager(db).get_or_create_room(confirmed.id).room
    ledger = MessageLedger(db, hub)
    ledger.append(room.id, client_user.id, "hello")
    ledger.append(room.id, counselor.user_id, "welcome")

    client_inbox = client.get("/chat/rooms", headers=auth(client_user)).json()
    counselor_inbox = client.get("/chat/rooms", headers=auth(counselor.user)).json()

    assert len(client_inbox) == 2
    assert len(counselor_inbox) == 3
    latest = next(e for e in client_inbox if e["room"]["bookingId"] == confirmed.id)
    assert latest["lastMessage"]["body"] == "welcome"
    assert latest["lastMessage"]["sequence"] == 2
    assert latest["otherParty"] == "Ren Counselor"
    assert latest["room"]["isActive"] is True
