"""
Payment management service.

Payments consumed by a settlement are read-only: editing or deleting them
is refused. Explicit splits must add up to the payment amount; a payment
without splits is shared equally by the group's current members.
"""

import logging
from datetime import date
from typing import Dict, List, Optional
from uuid import UUID

from django.db import transaction

from apps.accounts.models import User
from apps.expenses.models import Category, Payment, PaymentSplit
from apps.groups.services import get_member_ids, is_group_member

from .exceptions import (
    CategoryNotFoundError,
    InvalidSplitError,
    NotGroupMemberError,
    PaymentAlreadySettledError,
    PaymentNotFoundError,
)
from .split_calculation import (
    SplitRecord,
    calculate_custom_splits,
    calculate_equal_split,
    calculate_proxy_split,
    validate_split_total,
)

logger = logging.getLogger(__name__)

# Sentinel: leave splits unchanged on update
UNCHANGED = object()


def require_group_member(group_id: UUID, user_id: UUID, role: str = 'user') -> None:
    if not is_group_member(group_id, user_id):
        raise NotGroupMemberError(f"The {role} is not a member of this group")


def check_category_in_group(group_id: UUID, category_id: Optional[UUID]) -> None:
    if category_id and not Category.objects.filter(id=category_id, group_id=group_id).exists():
        raise CategoryNotFoundError(f"Category {category_id} not found in this group")


def resolve_splits(
    *,
    group_id: UUID,
    payer_id: UUID,
    amount: int,
    splits: Optional[List[Dict]] = None,
    custom_amounts: Optional[Dict[str, str]] = None,
    beneficiary_id: Optional[UUID] = None,
) -> List[Dict]:
    """
    Turn the supported split inputs into ``[{'user_id', 'amount'}]``.

    At most one of splits, custom_amounts or beneficiary_id may be given.
    An empty result means "equal split among current members".

    Raises:
        InvalidSplitError: If several inputs are given or a proxy is invalid
        SplitTotalMismatchError: If explicit amounts don't add up
        NotGroupMemberError: If a split user is not a member
    """
    given = [x for x in (splits, custom_amounts, beneficiary_id) if x]
    if len(given) > 1:
        raise InvalidSplitError("Give only one of splits, custom_amounts or beneficiary_id")

    if beneficiary_id:
        records = calculate_proxy_split(None, amount, payer_id, beneficiary_id, get_member_ids(group_id))
        resolved = [{'user_id': r.user_id, 'amount': r.amount} for r in records]
    elif custom_amounts:
        records = calculate_custom_splits(None, custom_amounts)
        resolved = [{'user_id': r.user_id, 'amount': r.amount} for r in records]
    elif splits:
        resolved = [{'user_id': s['user_id'], 'amount': s['amount']} for s in splits]
    else:
        return []

    seen = set()
    for s in resolved:
        key = str(s['user_id'])
        if key in seen:
            raise InvalidSplitError(f"Duplicate split for user {key}")
        seen.add(key)
        require_group_member(group_id, s['user_id'], 'split user')

    validate_split_total(resolved, amount)
    return resolved


def get_payment_shares(payment: Payment) -> List[SplitRecord]:
    """
    What each member owes for a payment.

    Explicit splits are returned as stored; otherwise the amount is divided
    equally among current members with the payer absorbing the remainder.
    """
    explicit = list(payment.splits.all())
    if explicit:
        return [SplitRecord(payment.id, s.user_id, s.amount) for s in explicit]
    return calculate_equal_split(
        payment.id,
        payment.amount,
        get_member_ids(payment.group_id),
        payer_id=payment.payer_id,
    )


@transaction.atomic
def create_payment(
    *,
    group_id: UUID,
    user: User,
    payer_id: UUID,
    amount: int,
    description: str,
    payment_date: date,
    category_id: Optional[UUID] = None,
    splits: Optional[List[Dict]] = None,
    custom_amounts: Optional[Dict[str, str]] = None,
    beneficiary_id: Optional[UUID] = None,
) -> Payment:
    """
    Record a shared payment.

    Args:
        group_id: Group the payment belongs to
        user: Member recording it
        payer_id: Member who paid
        amount: Whole-unit amount (> 0)
        description: Short description
        payment_date: Date of payment
        category_id: Optional category of the group
        splits: Optional explicit ``[{'user_id', 'amount'}]``
        custom_amounts: Optional raw per-member amount strings
        beneficiary_id: Optional proxy-purchase beneficiary

    Returns:
        Created Payment

    Raises:
        NotGroupMemberError: If user, payer or a split user is not a member
        CategoryNotFoundError: If category is not in the group
        InvalidSplitError / SplitTotalMismatchError: If splits are invalid
    """
    require_group_member(group_id, user.id)
    require_group_member(group_id, payer_id, 'payer')
    check_category_in_group(group_id, category_id)

    resolved = resolve_splits(
        group_id=group_id,
        payer_id=payer_id,
        amount=amount,
        splits=splits,
        custom_amounts=custom_amounts,
        beneficiary_id=beneficiary_id,
    )

    payment = Payment.objects.create(
        group_id=group_id,
        payer_id=payer_id,
        amount=amount,
        description=description,
        payment_date=payment_date,
        category_id=category_id,
        created_by=user,
    )
    if resolved:
        PaymentSplit.objects.bulk_create([
            PaymentSplit(payment=payment, user_id=s['user_id'], amount=s['amount'])
            for s in resolved
        ])

    logger.info("User %s recorded payment %s of %d", user.id, payment.id, amount)
    return payment


def _lock_unsettled_payment(payment_id: UUID, user: User) -> Payment:
    try:
        payment = Payment.objects.select_for_update().get(id=payment_id)
    except Payment.DoesNotExist:
        raise PaymentNotFoundError(f"Payment with ID {payment_id} not found")

    require_group_member(payment.group_id, user.id)

    if payment.is_settled:
        raise PaymentAlreadySettledError("Settled payments cannot be changed")
    return payment


@transaction.atomic
def update_payment(
    *,
    payment_id: UUID,
    user: User,
    payer_id: Optional[UUID] = None,
    amount: Optional[int] = None,
    description: Optional[str] = None,
    payment_date: Optional[date] = None,
    category_id=UNCHANGED,
    splits=UNCHANGED,
) -> Payment:
    """
    Update an unsettled payment.

    ``splits`` replaces the stored splits when given (``[]`` or None clears
    them); when omitted, stored splits must still add up to the new amount.

    Raises:
        PaymentNotFoundError: If payment doesn't exist
        NotGroupMemberError: If user or new payer is not a member
        PaymentAlreadySettledError: If the payment belongs to a settlement
        SplitTotalMismatchError: If splits don't add up to the amount
    """
    payment = _lock_unsettled_payment(payment_id, user)

    if payer_id is not None:
        require_group_member(payment.group_id, payer_id, 'payer')
        payment.payer_id = payer_id
    if amount is not None:
        payment.amount = amount
    if description is not None:
        payment.description = description
    if payment_date is not None:
        payment.payment_date = payment_date
    if category_id is not UNCHANGED:
        check_category_in_group(payment.group_id, category_id)
        payment.category_id = category_id

    if splits is UNCHANGED:
        stored = list(payment.splits.all())
        if stored:
            validate_split_total(stored, payment.amount)
    else:
        resolved = resolve_splits(
            group_id=payment.group_id,
            payer_id=payment.payer_id,
            amount=payment.amount,
            splits=splits,
        )
        payment.splits.all().delete()
        PaymentSplit.objects.bulk_create([
            PaymentSplit(payment=payment, user_id=s['user_id'], amount=s['amount'])
            for s in resolved
        ])

    payment.save()
    logger.info("User %s updated payment %s", user.id, payment.id)
    return payment


@transaction.atomic
def delete_payment(*, payment_id: UUID, user: User) -> None:
    """
    Delete an unsettled payment. Draft checklist lines for it go with it.

    Raises:
        PaymentNotFoundError, NotGroupMemberError, PaymentAlreadySettledError
    """
    payment = _lock_unsettled_payment(payment_id, user)
    payment.delete()
    logger.info("User %s deleted payment %s", user.id, payment_id)
