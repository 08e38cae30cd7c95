"""
Domain-specific exception hierarchy for slotpicker.
"""


class SlotPickerError(Exception):
    """Base class for all application-level errors."""


class InvalidDuration(SlotPickerError, ValueError):
    """Raised when the slot duration is zero or negative."""


class InvalidRange(SlotPickerError, ValueError):
    """Raised when a range does not end after it starts."""


class BusyIntervalSourceError(SlotPickerError):
    """Raised when busy intervals cannot be fetched from a collaborator."""


class CalendarAPIError(BusyIntervalSourceError):
    """Raised when calendar data cannot be fetched or parsed."""


class IcsFeedError(BusyIntervalSourceError):
    """Raised when an ICS feed cannot be downloaded or parsed."""


class AuthenticationError(SlotPickerError):
    """Raised when authentication or token handling fails."""
