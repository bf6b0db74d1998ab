import itertools
from datetime import datetime, time, timedelta

import pytest
from botocore.exceptions import ClientError
from fastapi import Depends, Header, HTTPException, Query, WebSocketException, status
from fastapi.testclient import TestClient
from sqlalchemy.orm import Session
from sqlalchemy.pool import StaticPool

from counseling.auth import get_current_user, get_websocket_user
from counseling.constants import BookingStatus, ServiceType, service_price
from counseling.database import Base, Database, get_db
from counseling.domain.chat.fanout import RealtimeHub
from counseling.email_service import Mailer
from counseling.main import create_app
from counseling.models import Booking, ChatRoom, Counselor, CounselorSchedule, User
from counseling.rate_limiter import RateLimiter
from counseling.shared.clock import utcnow
from counseling.storage import AttachmentStore


class RecordingMailer(Mailer):
    """Keeps every email instead of calling Resend"""

    def __init__(self):
        super().__init__(api_key="re_test", from_address="Counseling <noreply@test.local>")
        self.sent = []
        self.failing_addresses = set()

    async def send_email(self, to, subject, mjml_content):
        recipients = [to] if isinstance(to, str) else to
        if any(r in self.failing_addresses for r in recipients):
            raise Exception("mailbox unavailable")
        self.sent.append({"to": recipients, "subject": subject, "mjml": mjml_content})
        return {"id": f"test-{len(self.sent)}"}

    def subjects_for(self, address):
        return [m["subject"] for m in self.sent if address in m["to"]]


class FakeS3Client:
    """Stands in for the boto3 R2 client"""

    def __init__(self):
        self.objects = {}
        self.fail = False

    def put_object(self, Bucket, Key, Body, ContentType):
        if self.fail:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "boom"}}, "PutObject")
        self.objects[Key] = {"bucket": Bucket, "body": Body, "content_type": ContentType}
        return {"ETag": "etag"}


@pytest.fixture
def database():
    db = Database("sqlite://", poolclass=StaticPool)
    db.create_all()
    yield db
    Base.metadata.drop_all(bind=db.engine)
    db.dispose()


@pytest.fixture
def db(database):
    session = database.SessionLocal()
    yield session
    session.close()


@pytest.fixture
def hub():
    return RealtimeHub(queue_size=100)


@pytest.fixture
def mailer():
    return RecordingMailer()


@pytest.fixture
def s3_client():
    return FakeS3Client()


@pytest.fixture
def attachment_store(s3_client):
    return AttachmentStore(bucket="chat-files", public_base_url="https://files.test", client=s3_client)


@pytest.fixture
def app(database, hub, mailer, attachment_store):
    application = create_app(
        database=database,
        hub=hub,
        attachment_store=attachment_store,
        mailer=mailer,
        rate_limiter=RateLimiter(use_redis=False),
    )

    def current_user_from_header(x_test_user: int = Header(...), db: Session = Depends(get_db)) -> User:
        user = db.get(User, x_test_user)
        if user is None:
            raise HTTPException(status_code=401, detail="Unknown test user")
        return user

    def websocket_user_from_token(token: str = Query(...), db: Session = Depends(get_db)) -> User:
        user = db.get(User, int(token)) if token.isdigit() else None
        if user is None:
            raise WebSocketException(code=status.WS_1008_POLICY_VIOLATION)
        return user

    application.dependency_overrides[get_current_user] = current_user_from_header
    application.dependency_overrides[get_websocket_user] = websocket_user_from_token
    return application


@pytest.fixture
def client(app):
    with TestClient(app) as test_client:
        yield test_client


def auth(user):
    return {"X-Test-User": str(user.id)}


_ids = itertools.count(1)


@pytest.fixture
def make_user(db):
    def _make_user(name="Client"):
        n = next(_ids)
        user = User(firebase_uid=f"uid-{n}", email=f"user{n}@test.local", name=name)
        db.add(user)
        db.commit()
        db.refresh(user)
        return user

    return _make_user


@pytest.fixture
def make_counselor(db, make_user):
    def _make_counselor(name="Counselor", is_active=True):
        user = make_user(name)
        counselor = Counselor(user_id=user.id, bio="Listens well", specialties=["anxiety"], is_active=is_active)
        db.add(counselor)
        db.commit()
        db.refresh(counselor)
        return counselor

    return _make_counselor


@pytest.fixture
def make_slot(db):
    def _make_slot(counselor, day, start=time(9, 0), end=time(17, 0), is_available=True):
        slot = CounselorSchedule(
            counselor_id=counselor.id, date=day, start_time=start, end_time=end, is_available=is_available
        )
        db.add(slot)
        db.commit()
        db.refresh(slot)
        return slot

    return _make_slot


@pytest.fixture
def make_booking(db):
    def _make_booking(client_user, counselor, status=BookingStatus.PENDING, scheduled_at=None, service_type=ServiceType.SINGLE):
        booking = Booking(
            client_id=client_user.id,
            counselor_id=counselor.id,
            service_type=service_type,
            scheduled_at=scheduled_at or future_at(days=3),
            status=status,
            amount=service_price(service_type),
        )
        db.add(booking)
        db.commit()
        db.refresh(booking)
        return booking

    return _make_booking


@pytest.fixture
def parties(make_user, make_counselor):
    """A client and a counselor"""
    return make_user("Aiko Client"), make_counselor("Ren Counselor")


@pytest.fixture
def confirmed_room(db, parties, make_booking):
    """A confirmed booking with its room already opened"""
    client_user, counselor = parties
    booking = make_booking(client_user, counselor, status=BookingStatus.CONFIRMED)
    room = ChatRoom(booking_id=booking.id, is_active=True)
    db.add(room)
    db.commit()
    db.refresh(room)
    return booking, room


def future_at(days=3, hour=10, minute=0) -> datetime:
    day = (utcnow() + timedelta(days=days)).date()
    return datetime.combine(day, time(hour, minute))
