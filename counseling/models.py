from sqlalchemy import (
    JSON,
    Boolean,
    Column,
    Date,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    Time,
    UniqueConstraint,
)
from sqlalchemy.orm import relationship

from .constants import BookingStatus, PaymentStatus, ReminderStatus, SessionType
from .database import Base
from .shared.clock import utcnow


class User(Base):
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True)
    firebase_uid = Column(String(255), unique=True, index=True, nullable=False)
    email = Column(String(255), unique=True, index=True, nullable=False)
    name = Column(String(255), nullable=True)
    phone = Column(String(50), nullable=True)
    avatar = Column(String(500), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    counselor_profile = relationship("Counselor", back_populates="user", uselist=False)


class Counselor(Base):
    __tablename__ = "counselors"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), unique=True, nullable=False)
    bio = Column(Text, nullable=True)
    specialties = Column(JSON, default=list, nullable=True)
    profile_image = Column(String(500), nullable=True)
    hourly_rate = Column(Integer, nullable=True)
    is_active = Column(Boolean, default=True, nullable=False)
    rating = Column(Float, default=0.0, nullable=False)
    review_count = Column(Integer, default=0, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", back_populates="counselor_profile")
    schedules = relationship(
        "CounselorSchedule", back_populates="counselor", cascade="all, delete-orphan"
    )


class CounselorSchedule(Base):
    """An availability window a counselor publishes for booking"""

    __tablename__ = "counselor_schedules"

    id = Column(Integer, primary_key=True, index=True)
    counselor_id = Column(Integer, ForeignKey("counselors.id"), index=True, nullable=False)
    date = Column(Date, index=True, nullable=False)
    start_time = Column(Time, nullable=False)
    end_time = Column(Time, nullable=False)
    is_available = Column(Boolean, default=True, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    counselor = relationship("Counselor", back_populates="schedules")


class Booking(Base):
    __tablename__ = "bookings"

    id = Column(Integer, primary_key=True, index=True)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    counselor_id = Column(Integer, ForeignKey("counselors.id"), index=True, nullable=False)
    service_type = Column(String(20), nullable=False)  # chat, single, monthly
    scheduled_at = Column(DateTime, index=True, nullable=False)
    # pending -> confirmed -> completed, cancelled from pending/confirmed
    status = Column(String(20), default=BookingStatus.PENDING, index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    client = relationship("User", foreign_keys=[client_id])
    counselor = relationship("Counselor")
    chat_room = relationship("ChatRoom", back_populates="booking", uselist=False)
    payments = relationship("Payment", back_populates="booking")


class ChatRoom(Base):
    __tablename__ = "chat_rooms"

    id = Column(Integer, primary_key=True, index=True)
    # One room per booking, enforced by the database
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    # Snapshot only; readers recompute from the booking status
    is_active = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="chat_room")
    messages = relationship("ChatMessage", back_populates="room", order_by="ChatMessage.sequence")


class ChatMessage(Base):
    __tablename__ = "chat_messages"
    __table_args__ = (
        UniqueConstraint("room_id", "sequence", name="uq_chat_messages_room_sequence"),
        UniqueConstraint(
            "room_id", "client_message_id", name="uq_chat_messages_room_client_message_id"
        ),
    )

    id = Column(Integer, primary_key=True, index=True)
    room_id = Column(Integer, ForeignKey("chat_rooms.id"), index=True, nullable=False)
    sender_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    body = Column(Text, nullable=True)
    attachment_url = Column(String(1000), nullable=True)
    # Authoritative per-room order key; created_at is display only
    sequence = Column(Integer, nullable=False)
    client_message_id = Column(String(64), nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    room = relationship("ChatRoom", back_populates="messages")
    sender = relationship("User")


class Payment(Base):
    __tablename__ = "payments"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), index=True, nullable=False)
    amount = Column(Integer, nullable=False)
    method = Column(String(20), nullable=False)  # paypal, bank_transfer
    status = Column(String(20), default=PaymentStatus.PENDING, nullable=False)
    transaction_id = Column(String(255), unique=True, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking", back_populates="payments")


class ReminderJob(Base):
    __tablename__ = "reminder_jobs"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), index=True, nullable=False)
    reminder_type = Column(String(10), nullable=False)  # 24h, 1h
    scheduled_at = Column(DateTime, index=True, nullable=False)
    status = Column(String(20), default=ReminderStatus.PENDING, index=True, nullable=False)
    sent_at = Column(DateTime, nullable=True)
    error_message = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking")


class Review(Base):
    __tablename__ = "reviews"

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), nullable=False)
    counselor_id = Column(Integer, ForeignKey("counselors.id"), index=True, nullable=False)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    rating = Column(Integer, nullable=False)
    comment = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User")


class FavoriteCounselor(Base):
    __tablename__ = "favorite_counselors"
    __table_args__ = (
        UniqueConstraint("user_id", "counselor_id", name="uq_favorite_counselors_user_counselor"),
    )

    id = Column(Integer, primary_key=True, index=True)
    user_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    counselor_id = Column(Integer, ForeignKey("counselors.id"), nullable=False)
    created_at = Column(DateTime, default=utcnow, nullable=False)

    counselor = relationship("Counselor")


class SessionNote(Base):
    """A counselor's private record of one session; never shown to the client"""

    __tablename__ = "session_notes"

    id = Column(Integer, primary_key=True, index=True)
    booking_id = Column(Integer, ForeignKey("bookings.id"), unique=True, nullable=False)
    counselor_id = Column(Integer, ForeignKey("counselors.id"), index=True, nullable=False)
    client_id = Column(Integer, ForeignKey("users.id"), index=True, nullable=False)
    session_date = Column(DateTime, nullable=False)
    duration_minutes = Column(Integer, default=60, nullable=False)
    session_type = Column(String(20), default=SessionType.REGULAR, nullable=False)
    mood_before = Column(Integer, nullable=True)  # 1-10
    mood_after = Column(Integer, nullable=True)  # 1-10
    summary = Column(Text, nullable=True)
    key_topics = Column(JSON, default=list, nullable=True)
    client_goals = Column(JSON, default=list, nullable=True)
    progress_notes = Column(Text, nullable=True)
    homework_assigned = Column(Text, nullable=True)
    next_session_focus = Column(Text, nullable=True)
    effectiveness = Column(Integer, nullable=True)  # 1-10
    requires_followup = Column(Boolean, default=False, nullable=False)
    crisis_flag = Column(Boolean, default=False, nullable=False)
    confidential_notes = Column(Text, nullable=True)
    created_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    booking = relationship("Booking")
    client = relationship("User")
