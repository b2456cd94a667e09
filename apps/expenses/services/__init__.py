"""
Expenses app services layer.

Services contain business logic and orchestrate operations across models.
All state-changing operations use transactions and concurrency protection.
"""

from .exceptions import (
    ExpensesServiceError,
    PaymentNotFoundError,
    RecurringRuleNotFoundError,
    CategoryNotFoundError,
    NotGroupMemberError,
    PaymentAlreadySettledError,
    InvalidSplitError,
    SplitTotalMismatchError,
    DuplicateCategoryError,
    InvalidRuleError,
)

from .split_calculation import (
    SplitRecord,
    calculate_equal_split,
    calculate_custom_splits,
    calculate_proxy_split,
    is_proxy_split,
    get_proxy_beneficiary_id,
    is_custom_split,
    validate_split_total,
)

from .payment_management import (
    create_payment,
    update_payment,
    delete_payment,
    get_payment_shares,
    resolve_splits,
)

from .category_management import (
    create_category,
    delete_category,
)

from .rule_management import (
    create_recurring_rule,
    update_recurring_rule,
    deactivate_recurring_rule,
    delete_recurring_rule,
)


__all__ = [
    # Exceptions
    'ExpensesServiceError',
    'PaymentNotFoundError',
    'RecurringRuleNotFoundError',
    'CategoryNotFoundError',
    'NotGroupMemberError',
    'PaymentAlreadySettledError',
    'InvalidSplitError',
    'SplitTotalMismatchError',
    'DuplicateCategoryError',
    'InvalidRuleError',

    # Split calculation
    'SplitRecord',
    'calculate_equal_split',
    'calculate_custom_splits',
    'calculate_proxy_split',
    'is_proxy_split',
    'get_proxy_beneficiary_id',
    'is_custom_split',
    'validate_split_total',

    # Payments
    'create_payment',
    'update_payment',
    'delete_payment',
    'get_payment_shares',
    'resolve_splits',

    # Categories
    'create_category',
    'delete_category',

    # Recurring rules
    'create_recurring_rule',
    'update_recurring_rule',
    'deactivate_recurring_rule',
    'delete_recurring_rule',
]
