"""
Domain errors for bookings and chat.

Services raise these; a single exception handler in main.py turns them into
JSON responses of the form {"detail": ..., "code": ...}.
"""


class DomainError(Exception):
    status_code = 400
    code = "domain_error"
    default_message = "Request could not be processed"

    def __init__(self, message: str = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class BookingNotFound(DomainError):
    status_code = 404
    code = "booking_not_found"
    default_message = "Booking not found"


class RoomNotFound(DomainError):
    status_code = 404
    code = "room_not_found"
    default_message = "Chat room not found"


class InvalidTransition(DomainError):
    status_code = 409
    code = "invalid_transition"

    def __init__(self, current_status: str, event: str):
        self.current_status = current_status
        self.event = event
        super().__init__(f"Cannot apply '{event}' to a booking that is {current_status}")


class NotAParticipant(DomainError):
    status_code = 403
    code = "not_a_participant"
    default_message = "You are not a participant of this booking"


class EmptyMessage(DomainError):
    status_code = 422
    code = "empty_message"
    default_message = "A message needs text or an attachment"


class RoomInactive(DomainError):
    status_code = 423
    code = "room_inactive"
    default_message = "This session is closed"


class UploadError(DomainError):
    status_code = 502
    code = "upload_failed"
    default_message = "File upload failed"


class SlotUnavailable(DomainError):
    status_code = 409
    code = "slot_unavailable"
    default_message = "The requested time slot is not available"


class ClientMessageIdConflict(DomainError):
    status_code = 409
    code = "client_message_id_conflict"
    default_message = "This client message id is already used by another sender"
