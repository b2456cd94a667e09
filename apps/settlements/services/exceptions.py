"""
Domain-specific exceptions for settlements app.

Each precondition failure has its own exception class and a stable negative
``code`` so callers can tell which check failed without parsing messages.
Views convert them to HTTP responses.
"""


class SettlementsServiceError(Exception):
    """Base exception for all settlements service errors."""
    code = -100


class SessionNotFoundError(SettlementsServiceError):
    """Raised when a settlement session or entry does not exist."""
    code = -1


class NotGroupMemberError(SettlementsServiceError):
    """Raised when the caller is not a member of the session's group."""
    code = -2


class InvalidSessionStatusError(SettlementsServiceError):
    """Raised when the session is in the wrong lifecycle state."""
    code = -3


class NoFilledEntriesError(SettlementsServiceError):
    """Raised when confirming a session with no filled entries."""
    code = -4


class NotTransferPartyError(SettlementsServiceError):
    """Raised when the caller is not the payer or recipient of any transfer."""
    code = -5


class PaymentNotReportedError(SettlementsServiceError):
    """Raised when confirming receipt before the payment was reported."""
    code = -6


class EntryNotEditableError(SettlementsServiceError):
    """Raised when an entry's kind or state forbids the change."""
    code = -7


class InvalidEntryInputError(SettlementsServiceError):
    """Raised when entry input is malformed (missing amount, bad splits)."""
    code = -8


class InsufficientPermissionsError(SettlementsServiceError):
    """Raised when a user lacks required permissions for an action."""
    code = -9
