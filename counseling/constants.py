"""Status vocabularies and the service catalogue"""


class BookingStatus:
    PENDING = "pending"
    CONFIRMED = "confirmed"
    COMPLETED = "completed"
    CANCELLED = "cancelled"

    ALL = (PENDING, CONFIRMED, COMPLETED, CANCELLED)
    TERMINAL = (COMPLETED, CANCELLED)
    # Bookings that hold a counselor's time slot
    HOLDS_SLOT = (PENDING, CONFIRMED)


class BookingEvent:
    CONFIRM_PAYMENT = "confirm_payment"
    COMPLETE = "complete"
    CANCEL = "cancel"

    ALL = (CONFIRM_PAYMENT, COMPLETE, CANCEL)


class ServiceType:
    CHAT = "chat"
    SINGLE = "single"
    MONTHLY = "monthly"

    ALL = (CHAT, SINGLE, MONTHLY)


class PaymentMethod:
    PAYPAL = "paypal"
    BANK_TRANSFER = "bank_transfer"

    ALL = (PAYPAL, BANK_TRANSFER)


class PaymentStatus:
    PENDING = "pending"
    COMPLETED = "completed"
    FAILED = "failed"
    REFUNDED = "refunded"


class ReminderStatus:
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


# reminder_type -> lead time before the session, in minutes
REMINDER_LEAD_MINUTES = {
    "24h": 24 * 60,
    "1h": 60,
}

SERVICES = {
    ServiceType.CHAT: {
        "name": "Chat consultation (30 min, free)",
        "price": 0,
        "duration_minutes": 30,
        "sessions": 1,
    },
    ServiceType.SINGLE: {
        "name": "Single counseling session",
        "price": 11000,
        "duration_minutes": 60,
        "sessions": 1,
    },
    ServiceType.MONTHLY: {
        "name": "One-month counseling course",
        "price": 44000,
        "duration_minutes": 60,
        "sessions": 4,
    },
}


def service_price(service_type: str) -> int:
    return SERVICES[service_type]["price"]


def service_duration_minutes(service_type: str) -> int:
    return SERVICES.get(service_type, SERVICES[ServiceType.SINGLE])["duration_minutes"]


def service_name(service_type: str) -> str:
    service = SERVICES.get(service_type)
    return service["name"] if service else service_type


class SessionType:
    """Kind of session a counselor records notes for"""

    INITIAL = "initial"
    REGULAR = "regular"
    FOLLOWUP = "followup"
    EMERGENCY = "emergency"
    GROUP = "group"

    ALL = (INITIAL, REGULAR, FOLLOWUP, EMERGENCY, GROUP)
