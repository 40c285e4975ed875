class BookingError(Exception):
    """Base class for every per-request failure raised by the booking core."""


class ValidationError(BookingError):
    def __init__(self, field: str, reason: str) -> None:
        super().__init__(f"{field}: {reason}")
        self.field = field
        self.reason = reason


class UnknownResourceError(ValidationError):
    def __init__(self, resource_type_id: str) -> None:
        super().__init__("resource_type_id", f"unknown resource type {resource_type_id!r}")
        self.resource_type_id = resource_type_id


class UnknownAddonError(ValidationError):
    def __init__(self, addon_id: str) -> None:
        super().__init__("extras", f"unknown add-on {addon_id!r}")
        self.addon_id = addon_id


class UnsupportedDurationError(ValidationError):
    def __init__(self, duration_minutes: int) -> None:
        super().__init__("duration_minutes", f"unsupported duration {duration_minutes}")
        self.duration_minutes = duration_minutes


class InvalidDateError(BookingError):
    pass


class SlotUnavailableError(BookingError):
    """The requested interval is taken; the client should refresh availability."""


class InvalidStateTransitionError(BookingError):
    pass


class ReservationNotFoundError(BookingError):
    pass


class StoreConflictError(BookingError):
    """Raised by repositories when the store rejects a write on a constraint."""


class StoreUnavailableError(BookingError):
    pass
