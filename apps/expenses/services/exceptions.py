"""
Domain-specific exceptions for expenses app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses.
"""


class ExpensesServiceError(Exception):
    """Base exception for all expenses service errors."""
    pass


class PaymentNotFoundError(ExpensesServiceError):
    """Raised when a payment does not exist."""
    pass


class RecurringRuleNotFoundError(ExpensesServiceError):
    """Raised when a recurring rule does not exist."""
    pass


class CategoryNotFoundError(ExpensesServiceError):
    """Raised when a category does not exist in the payment's group."""
    pass


class NotGroupMemberError(ExpensesServiceError):
    """Raised when the caller, payer or a split user is not in the group."""
    pass


class PaymentAlreadySettledError(ExpensesServiceError):
    """Raised when editing or deleting a payment consumed by a settlement."""
    pass


class InvalidSplitError(ExpensesServiceError):
    """Raised when a split definition is structurally invalid."""
    pass


class SplitTotalMismatchError(InvalidSplitError):
    """Raised when split amounts do not add up to the payment amount."""
    pass


class DuplicateCategoryError(ExpensesServiceError):
    """Raised when a group already has a category with that name."""
    pass


class InvalidRuleError(ExpensesServiceError):
    """Raised when a recurring rule's fields contradict each other."""
    pass
