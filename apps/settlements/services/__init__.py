"""
Settlements app services layer.

Pure calculators (balances, transfers, recurring schedule, rounding) work
on plain records; the session, entry generation and entry management
services wrap them in transactions with the session row locked.
"""

from .exceptions import (
    SettlementsServiceError,
    SessionNotFoundError,
    NotGroupMemberError,
    InvalidSessionStatusError,
    NoFilledEntriesError,
    NotTransferPartyError,
    PaymentNotReportedError,
    EntryNotEditableError,
    InvalidEntryInputError,
    InsufficientPermissionsError,
)

from .records import (
    Member,
    PaymentInput,
    SplitPaymentInput,
    EntryInput,
    MemberBalance,
    Transfer,
    SettlementResult,
)

from .rounding import (
    floor_to_unit,
    split_equally,
)

from .balances import (
    calculate_balances,
    calculate_split_balances,
    calculate_entry_balances,
)

from .transfers import (
    suggest_settlements,
    balances_to_transfers,
    consolidate_transfers,
    calculate_my_transfer_balance,
)

from .recurring_schedule import (
    should_rule_fire_in_month,
    get_actual_day_of_month,
    compute_rule_dates_in_period,
)

from .entry_generation import (
    generate_settlement_entries,
    refresh_settlement_entries,
)

from .entry_management import (
    update_entry,
    replace_entry_splits,
    add_manual_entry,
    delete_manual_entry,
)

from .session_management import (
    create_session,
    delete_session,
    confirm_settlement,
    report_payment,
    confirm_settlement_receipt,
    get_consolidated_transfers,
    settle_consolidated_sessions,
    suggest_settlement_period,
    get_group_roster,
    get_group_balances,
)


__all__ = [
    # Exceptions
    'SettlementsServiceError',
    'SessionNotFoundError',
    'NotGroupMemberError',
    'InvalidSessionStatusError',
    'NoFilledEntriesError',
    'NotTransferPartyError',
    'PaymentNotReportedError',
    'EntryNotEditableError',
    'InvalidEntryInputError',
    'InsufficientPermissionsError',

    # Records
    'Member',
    'PaymentInput',
    'SplitPaymentInput',
    'EntryInput',
    'MemberBalance',
    'Transfer',
    'SettlementResult',

    # Calculators
    'floor_to_unit',
    'split_equally',
    'calculate_balances',
    'calculate_split_balances',
    'calculate_entry_balances',
    'suggest_settlements',
    'balances_to_transfers',
    'consolidate_transfers',
    'calculate_my_transfer_balance',
    'should_rule_fire_in_month',
    'get_actual_day_of_month',
    'compute_rule_dates_in_period',

    # Entry generation
    'generate_settlement_entries',
    'refresh_settlement_entries',

    # Entry management
    'update_entry',
    'replace_entry_splits',
    'add_manual_entry',
    'delete_manual_entry',

    # Session lifecycle
    'create_session',
    'delete_session',
    'confirm_settlement',
    'report_payment',
    'confirm_settlement_receipt',
    'get_consolidated_transfers',
    'settle_consolidated_sessions',
    'suggest_settlement_period',
    'get_group_roster',
    'get_group_balances',
]
