"""Room creation and appends racing on a file-backed database, one session per thread"""

import threading

import pytest

from conftest import future_at
from counseling.constants import BookingStatus, ServiceType, service_price
from counseling.database import Database
from counseling.domain.chat.fanout import RealtimeHub
from counseling.domain.chat.ledger import MessageLedger
from counseling.domain.chat.rooms import ChatRoomManager
from counseling.models import Booking, ChatRoom, Counselor, User


@pytest.fixture
def file_database(tmp_path):
    database = Database(
        f"sqlite:///{tmp_path / 'chat.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    database.create_all()
    yield database
    database.dispose()


@pytest.fixture
def seeded(file_database):
    """A confirmed booking; returns (booking_id, client_id, counselor_user_id)"""
    with file_database.session() as db:
        client_user = User(firebase_uid="uid-client", email="client@test.local", name="Aiko Client")
        counselor_user = User(firebase_uid="uid-counselor", email="counselor@test.local", name="Ren Counselor")
        db.add_all([client_user, counselor_user])
        db.flush()
        counselor = Counselor(user_id=counselor_user.id, bio="Listens well", specialties=["anxiety"])
        db.add(counselor)
        db.flush()
        booking = Booking(
            client_id=client_user.id,
            counselor_id=counselor.id,
            service_type=ServiceType.SINGLE,
            scheduled_at=future_at(),
            status=BookingStatus.CONFIRMED,
            amount=service_price(ServiceType.SINGLE),
        )
        db.add(booking)
        db.commit()
        return booking.id, client_user.id, counselor_user.id


def run_in_threads(count, target):
    """Start count threads together and return target(index) of each"""
    barrier = threading.Barrier(count)
    results = [None] * count
    errors = []

    def worker(index):
        barrier.wait()
        try:
            results[index] = target(index)
        except Exception as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(i,)) for i in range(count)]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join(timeout=60)

    assert errors == []
    return results


def test_racing_openers_share_one_room(file_database, seeded):
    booking_id, _, _ = seeded

    def open_room(_):
        with file_database.session() as db:
            return ChatRoomManager(db).get_or_create_room(booking_id).room.id

    room_ids = run_in_threads(8, open_room)

    assert len(set(room_ids)) == 1
    with file_database.session() as db:
        assert db.query(ChatRoom).filter(ChatRoom.booking_id == booking_id).count() == 1


def test_concurrent_appends_have_gapless_sequences(file_database, seeded):
    booking_id, client_id, counselor_user_id = seeded
    hub = RealtimeHub()
    with file_database.session() as db:
        room_id = ChatRoomManager(db).get_or_create_room(booking_id).room.id
    senders = [client_id, counselor_user_id]

    def send_batch(index):
        with file_database.session() as db:
            ledger = MessageLedger(db, hub)
            return [
                ledger.append(room_id, senders[index % 2], f"thread {index} message {n}").message.sequence
                for n in range(20)
            ]

    batches = run_in_threads(4, send_batch)

    with file_database.session() as db:
        stored = MessageLedger(db, hub).history(room_id)
    assert [m.sequence for m in stored] == list(range(1, 81))
    assert sorted(sequence for batch in batches for sequence in batch) == list(range(1, 81))
    # Each sender's own messages keep the order they were sent in
    assert all(batch == sorted(batch) for batch in batches)
    assert all(a.created_at <= b.created_at for a, b in zip(stored, stored[1:]))
