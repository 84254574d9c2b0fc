"""Errors raised by the booking core, rendered by the app's ``BookingError`` handler."""


class BookingError(Exception):
    code = "booking_error"
    status_code = 400
    retryable = False
    default_message = "Booking operation failed"

    def __init__(self, message=None, **details):
        self.message = message or self.default_message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        out = {"error": self.message, "code": self.code, "retryable": self.retryable}
        out.update(self.details)
        return out


class NotFound(BookingError):
    code = "not_found"
    status_code = 404
    default_message = "Not found"


class InvalidTransition(BookingError):
    code = "invalid_transition"
    status_code = 409
    default_message = "Status change not allowed"


class Forbidden(BookingError):
    code = "forbidden"
    status_code = 403
    default_message = "Forbidden"


class SlotInPast(BookingError):
    code = "slot_in_past"
    default_message = "Cannot book a time that has already started"


class SlotNotOffered(BookingError):
    code = "slot_not_offered"
    default_message = "The shop does not take bookings at that time"


class ServiceNotActive(BookingError):
    code = "service_not_active"
    default_message = "Service is not currently offered"


class ValidationError(BookingError):
    code = "validation_error"
    default_message = "Invalid request"


class ConcurrentModification(BookingError):
    """Optimistic write lost. Re-fetch the booking and retry the operation once."""
    code = "concurrent_modification"
    status_code = 409
    retryable = True
    default_message = "Booking was changed by someone else; reload and try again"


class StoreUnavailable(BookingError):
    """Transient persistence failure. Nothing was committed."""
    code = "store_unavailable"
    status_code = 503
    retryable = True
    default_message = "Booking store temporarily unavailable"
