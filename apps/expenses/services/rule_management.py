"""
Recurring rule management service.

Rules are templates only; nothing is generated when a rule changes. Draft
settlements pick the change up on their next refresh.
"""

import logging
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional
from uuid import UUID

from django.db import transaction

from apps.accounts.models import User
from apps.expenses.models import RecurringRule, RecurringRuleSplit, SplitType
from apps.groups.services import is_group_member

from .exceptions import (
    InvalidRuleError,
    InvalidSplitError,
    NotGroupMemberError,
    RecurringRuleNotFoundError,
)
from .payment_management import check_category_in_group, require_group_member

logger = logging.getLogger(__name__)

PERCENTAGE_TOLERANCE = Decimal('0.1')


def _check_rule_splits(group_id: UUID, split_type: str, splits: List[Dict]) -> None:
    if split_type != SplitType.CUSTOM:
        if splits:
            raise InvalidSplitError("Splits are only allowed for custom split rules")
        return

    if not splits:
        raise InvalidSplitError("A custom split rule needs at least one split")

    seen = set()
    for s in splits:
        key = str(s['user_id'])
        if key in seen:
            raise InvalidSplitError(f"Duplicate split for user {key}")
        seen.add(key)
        require_group_member(group_id, s['user_id'], 'split user')
        if s.get('amount') is None and s.get('percentage') is None:
            raise InvalidSplitError("Each split needs an amount or a percentage")

    percentages = [Decimal(str(s['percentage'])) for s in splits if s.get('amount') is None]
    if percentages and len(percentages) == len(splits):
        if abs(sum(percentages) - 100) > PERCENTAGE_TOLERANCE:
            raise InvalidSplitError(
                f"Split percentages total {sum(percentages)}%, expected 100%"
            )


def _write_rule_splits(rule: RecurringRule, splits: List[Dict]) -> None:
    rule.splits.all().delete()
    RecurringRuleSplit.objects.bulk_create([
        RecurringRuleSplit(
            rule=rule,
            user_id=s['user_id'],
            amount=s.get('amount'),
            percentage=s.get('percentage'),
            position=position,
        )
        for position, s in enumerate(splits)
    ])


@transaction.atomic
def create_recurring_rule(
    *,
    group_id: UUID,
    user: User,
    description: str,
    day_of_month: int,
    default_payer_id: UUID,
    is_variable: bool = False,
    default_amount: Optional[int] = None,
    interval_months: int = 1,
    split_type: str = SplitType.EQUAL,
    category_id: Optional[UUID] = None,
    start_date: Optional[date] = None,
    end_date: Optional[date] = None,
    splits: Optional[List[Dict]] = None,
) -> RecurringRule:
    """
    Create a recurring rule for a group.

    Field ranges (day 1-31, interval 1-12, amount vs. is_variable) are
    checked by the input serializer; this checks group membership and the
    custom split template.

    Raises:
        NotGroupMemberError: If user, payer or a split user is not a member
        CategoryNotFoundError: If category is not in the group
        InvalidSplitError: If the split template is invalid
    """
    if not is_group_member(group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")
    require_group_member(group_id, default_payer_id, 'payer')
    check_category_in_group(group_id, category_id)
    splits = splits or []
    _check_rule_splits(group_id, split_type, splits)

    fields = dict(
        group_id=group_id,
        description=description,
        day_of_month=day_of_month,
        default_payer_id=default_payer_id,
        is_variable=is_variable,
        default_amount=None if is_variable else default_amount,
        interval_months=interval_months,
        split_type=split_type,
        category_id=category_id,
        end_date=end_date,
    )
    if start_date is not None:
        fields['start_date'] = start_date

    rule = RecurringRule.objects.create(**fields)
    if splits:
        _write_rule_splits(rule, splits)

    logger.info("User %s created recurring rule %s", user.id, rule.id)
    return rule


def _lock_rule(rule_id: UUID, user: User) -> RecurringRule:
    try:
        rule = RecurringRule.objects.select_for_update().get(id=rule_id)
    except RecurringRule.DoesNotExist:
        raise RecurringRuleNotFoundError(f"Recurring rule with ID {rule_id} not found")

    if not is_group_member(rule.group_id, user.id):
        raise NotGroupMemberError("You are not a member of this group")
    return rule


@transaction.atomic
def update_recurring_rule(*, rule_id: UUID, user: User, splits: Optional[List[Dict]] = None, **changes) -> RecurringRule:
    """
    Update a rule's fields and, optionally, its split template.

    Raises:
        RecurringRuleNotFoundError, NotGroupMemberError, InvalidSplitError
        InvalidRuleError: If a fixed rule is left without an amount
    """
    rule = _lock_rule(rule_id, user)

    if 'default_payer_id' in changes:
        require_group_member(rule.group_id, changes['default_payer_id'], 'payer')
    if 'category_id' in changes:
        check_category_in_group(rule.group_id, changes['category_id'])

    for field, value in changes.items():
        setattr(rule, field, value)
    if rule.is_variable:
        rule.default_amount = None
    elif not rule.default_amount:
        raise InvalidRuleError("A fixed-amount rule needs a default amount")
    if rule.end_date and rule.end_date < rule.start_date:
        raise InvalidRuleError("end_date must not be before start_date")

    if splits is not None or 'split_type' in changes:
        template = splits if splits is not None else [
            {'user_id': s.user_id, 'amount': s.amount, 'percentage': s.percentage}
            for s in rule.splits.all()
        ]
        if rule.split_type != SplitType.CUSTOM:
            template = []
        _check_rule_splits(rule.group_id, rule.split_type, template)
        _write_rule_splits(rule, template)

    rule.save()
    logger.info("User %s updated recurring rule %s", user.id, rule.id)
    return rule


@transaction.atomic
def deactivate_recurring_rule(*, rule_id: UUID, user: User) -> RecurringRule:
    """Stop a rule from firing. Entries members already acted on are kept."""
    rule = _lock_rule(rule_id, user)
    rule.is_active = False
    rule.save(update_fields=['is_active', 'updated_at'])
    logger.info("User %s deactivated recurring rule %s", user.id, rule.id)
    return rule


@transaction.atomic
def delete_recurring_rule(*, rule_id: UUID, user: User) -> None:
    """Delete a rule. Settlement entries keep their data but lose the link."""
    rule = _lock_rule(rule_id, user)
    rule.delete()
    logger.info("User %s deleted recurring rule %s", user.id, rule_id)
