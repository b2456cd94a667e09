"""
Service layer tests for the expenses app.

Covers:
- Payment management (create, update, delete, settled payments)
- Split resolution and shares
- Recurring rules
- Categories
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from apps.expenses.models import Category, Payment, PaymentSplit, RecurringRule, SplitType
from apps.expenses.services import (
    create_category,
    create_payment,
    create_recurring_rule,
    deactivate_recurring_rule,
    delete_category,
    delete_payment,
    delete_recurring_rule,
    get_payment_shares,
    update_payment,
    update_recurring_rule,
    CategoryNotFoundError,
    DuplicateCategoryError,
    InvalidRuleError,
    InvalidSplitError,
    NotGroupMemberError,
    PaymentAlreadySettledError,
    PaymentNotFoundError,
    RecurringRuleNotFoundError,
    SplitTotalMismatchError,
)
from apps.groups.models import Group, GroupMembership
from apps.settlements.models import SessionStatus, SettlementSession


def _settle(payment):
    session = SettlementSession.objects.create(
        group=payment.group,
        period_start=payment.payment_date,
        period_end=payment.payment_date,
        status=SessionStatus.SETTLED,
    )
    payment.settlement = session
    payment.save()
    return session


# ============================================================================
# PAYMENT CREATION
# ============================================================================

@pytest.mark.django_db
class TestCreatePayment:

    def _create(self, household, alice, **kwargs):
        fields = dict(
            group_id=household.id,
            user=alice,
            payer_id=alice.id,
            amount=1001,
            description='Electricity',
            payment_date=date(2024, 3, 5),
        )
        fields.update(kwargs)
        return create_payment(**fields)

    def test_equal_split_stores_no_splits(self, household, alice, bob):
        payment = self._create(household, alice)

        assert payment.splits.count() == 0
        assert payment.created_by == alice
        shares = {s.user_id: s.amount for s in get_payment_shares(payment)}
        assert shares == {alice.id: 501, bob.id: 500}

    def test_explicit_splits(self, household, alice, bob):
        payment = self._create(household, alice, amount=1000, splits=[
            {'user_id': alice.id, 'amount': 700},
            {'user_id': bob.id, 'amount': 300},
        ])

        shares = {s.user_id: s.amount for s in get_payment_shares(payment)}
        assert shares == {alice.id: 700, bob.id: 300}

    def test_custom_amount_strings(self, household, alice, bob):
        payment = self._create(household, alice, amount=1000, custom_amounts={
            str(alice.id): '250',
            str(bob.id): '750',
        })

        assert PaymentSplit.objects.get(payment=payment, user=bob).amount == 750

    def test_proxy_purchase(self, household, alice, bob):
        payment = self._create(household, alice, amount=1000, beneficiary_id=bob.id)

        assert PaymentSplit.objects.get(payment=payment, user=alice).amount == 0
        assert PaymentSplit.objects.get(payment=payment, user=bob).amount == 1000

    def test_proxy_for_payer_rejected(self, household, alice):
        with pytest.raises(InvalidSplitError):
            self._create(household, alice, beneficiary_id=alice.id)

    def test_split_total_must_match(self, household, alice, bob):
        with pytest.raises(SplitTotalMismatchError):
            self._create(household, alice, amount=1000, splits=[
                {'user_id': alice.id, 'amount': 600},
                {'user_id': bob.id, 'amount': 300},
            ])

        assert Payment.objects.count() == 0

    def test_only_one_split_input(self, household, alice, bob):
        with pytest.raises(InvalidSplitError):
            self._create(
                household, alice,
                amount=1000,
                splits=[{'user_id': alice.id, 'amount': 1000}],
                beneficiary_id=bob.id,
            )

    def test_duplicate_split_user_rejected(self, household, alice):
        with pytest.raises(InvalidSplitError):
            self._create(household, alice, amount=1000, splits=[
                {'user_id': alice.id, 'amount': 500},
                {'user_id': alice.id, 'amount': 500},
            ])

    def test_non_member_cannot_record(self, household, alice, outsider):
        with pytest.raises(NotGroupMemberError):
            self._create(household, outsider, payer_id=alice.id)

    def test_payer_must_be_member(self, household, alice, outsider):
        with pytest.raises(NotGroupMemberError):
            self._create(household, alice, payer_id=outsider.id)

    def test_split_user_must_be_member(self, household, alice, outsider):
        with pytest.raises(NotGroupMemberError):
            self._create(household, alice, amount=1000, splits=[
                {'user_id': alice.id, 'amount': 500},
                {'user_id': outsider.id, 'amount': 500},
            ])

    def test_category_from_other_group_rejected(self, household, alice, outsider):
        other = Group.objects.create(name='Elsewhere', owner=outsider)
        GroupMembership.objects.create(user=outsider, group=other)
        foreign = Category.objects.create(group=other, name='Rent')

        with pytest.raises(CategoryNotFoundError):
            self._create(household, alice, category_id=foreign.id)


# ============================================================================
# PAYMENT UPDATE / DELETE
# ============================================================================

@pytest.mark.django_db
class TestUpdatePayment:

    def test_update_fields(self, payment, alice, bob, groceries):
        updated = update_payment(
            payment_id=payment.id,
            user=bob,
            payer_id=bob.id,
            amount=1500,
            description='Weekly shop',
            category_id=groceries.id,
        )

        assert updated.payer == bob
        assert updated.amount == 1500
        assert updated.description == 'Weekly shop'
        assert updated.category == groceries

    def test_stored_splits_must_still_add_up(self, household, alice, bob):
        payment = create_payment(
            group_id=household.id,
            user=alice,
            payer_id=alice.id,
            amount=1000,
            description='Dinner',
            payment_date=date(2024, 3, 5),
            splits=[{'user_id': alice.id, 'amount': 400}, {'user_id': bob.id, 'amount': 600}],
        )

        with pytest.raises(SplitTotalMismatchError):
            update_payment(payment_id=payment.id, user=alice, amount=1200)

    def test_replace_splits_with_amount(self, payment, alice, bob):
        update_payment(
            payment_id=payment.id,
            user=alice,
            amount=1200,
            splits=[{'user_id': alice.id, 'amount': 200}, {'user_id': bob.id, 'amount': 1000}],
        )

        assert PaymentSplit.objects.get(payment=payment, user=bob).amount == 1000

    def test_clearing_splits_returns_to_equal(self, household, alice, bob):
        payment = create_payment(
            group_id=household.id,
            user=alice,
            payer_id=alice.id,
            amount=1000,
            description='Dinner',
            payment_date=date(2024, 3, 5),
            splits=[{'user_id': alice.id, 'amount': 400}, {'user_id': bob.id, 'amount': 600}],
        )

        update_payment(payment_id=payment.id, user=alice, splits=None)

        assert payment.splits.count() == 0

    def test_settled_payment_is_read_only(self, payment, alice):
        _settle(payment)

        with pytest.raises(PaymentAlreadySettledError):
            update_payment(payment_id=payment.id, user=alice, amount=10)

    def test_missing_payment(self, alice):
        with pytest.raises(PaymentNotFoundError):
            update_payment(payment_id=uuid4(), user=alice, amount=10)

    def test_non_member_cannot_update(self, payment, outsider):
        with pytest.raises(NotGroupMemberError):
            update_payment(payment_id=payment.id, user=outsider, amount=10)


@pytest.mark.django_db
class TestDeletePayment:

    def test_delete(self, payment, bob):
        delete_payment(payment_id=payment.id, user=bob)

        assert not Payment.objects.filter(id=payment.id).exists()

    def test_settled_payment_cannot_be_deleted(self, payment, alice):
        _settle(payment)

        with pytest.raises(PaymentAlreadySettledError):
            delete_payment(payment_id=payment.id, user=alice)

        assert Payment.objects.filter(id=payment.id).exists()


# ============================================================================
# RECURRING RULES
# ============================================================================

@pytest.mark.django_db
class TestRecurringRules:

    def _rent(self, household, alice, **kwargs):
        fields = dict(
            group_id=household.id,
            user=alice,
            description='Rent',
            day_of_month=25,
            default_payer_id=alice.id,
            default_amount=80000,
            start_date=date(2024, 1, 1),
        )
        fields.update(kwargs)
        return create_recurring_rule(**fields)

    def test_create_fixed_rule(self, household, alice):
        rule = self._rent(household, alice)

        assert rule.default_amount == 80000
        assert rule.interval_months == 1
        assert rule.is_active

    def test_variable_rule_drops_amount(self, household, alice):
        rule = self._rent(household, alice, description='Electricity', is_variable=True)

        assert rule.default_amount is None

    def test_custom_split_by_percentage(self, household, alice, bob):
        rule = self._rent(household, alice, split_type=SplitType.CUSTOM, splits=[
            {'user_id': alice.id, 'percentage': Decimal('60')},
            {'user_id': bob.id, 'percentage': Decimal('40')},
        ])

        assert [s.user_id for s in rule.splits.all()] == [alice.id, bob.id]
        assert rule.splits.get(user=bob).resolve_amount(rule.default_amount) == 32000

    def test_percentages_must_total_100(self, household, alice, bob):
        with pytest.raises(InvalidSplitError):
            self._rent(household, alice, split_type=SplitType.CUSTOM, splits=[
                {'user_id': alice.id, 'percentage': Decimal('60')},
                {'user_id': bob.id, 'percentage': Decimal('30')},
            ])

    def test_custom_rule_needs_splits(self, household, alice):
        with pytest.raises(InvalidSplitError):
            self._rent(household, alice, split_type=SplitType.CUSTOM)

    def test_equal_rule_rejects_splits(self, household, alice):
        with pytest.raises(InvalidSplitError):
            self._rent(household, alice, splits=[{'user_id': alice.id, 'amount': 100}])

    def test_payer_must_be_member(self, household, alice, outsider):
        with pytest.raises(NotGroupMemberError):
            self._rent(household, alice, default_payer_id=outsider.id)

    def test_update_to_variable_clears_amount(self, household, alice):
        rule = self._rent(household, alice)

        updated = update_recurring_rule(rule_id=rule.id, user=alice, is_variable=True)

        assert updated.default_amount is None

    def test_fixed_rule_needs_amount(self, household, alice):
        rule = self._rent(household, alice, is_variable=True)

        with pytest.raises(InvalidRuleError):
            update_recurring_rule(rule_id=rule.id, user=alice, is_variable=False)

    def test_end_before_start_rejected(self, household, alice):
        rule = self._rent(household, alice)

        with pytest.raises(InvalidRuleError):
            update_recurring_rule(rule_id=rule.id, user=alice, end_date=date(2023, 12, 31))

    def test_switch_to_equal_drops_split_template(self, household, alice, bob):
        rule = self._rent(household, alice, split_type=SplitType.CUSTOM, splits=[
            {'user_id': alice.id, 'amount': 50000},
            {'user_id': bob.id, 'amount': 30000},
        ])

        update_recurring_rule(rule_id=rule.id, user=alice, split_type=SplitType.EQUAL)

        assert rule.splits.count() == 0

    def test_deactivate(self, household, alice):
        rule = self._rent(household, alice)

        deactivate_recurring_rule(rule_id=rule.id, user=alice)

        rule.refresh_from_db()
        assert not rule.is_active

    def test_delete(self, household, alice):
        rule = self._rent(household, alice)

        delete_recurring_rule(rule_id=rule.id, user=alice)

        assert not RecurringRule.objects.filter(id=rule.id).exists()

    def test_non_member_cannot_touch_rule(self, household, alice, outsider):
        rule = self._rent(household, alice)

        with pytest.raises(NotGroupMemberError):
            deactivate_recurring_rule(rule_id=rule.id, user=outsider)

    def test_missing_rule(self, alice):
        with pytest.raises(RecurringRuleNotFoundError):
            delete_recurring_rule(rule_id=uuid4(), user=alice)


# ============================================================================
# CATEGORIES
# ============================================================================

@pytest.mark.django_db
class TestCategories:

    def test_create(self, household, bob):
        category = create_category(group_id=household.id, user=bob, name='Utilities', color='#112233')

        assert category.group == household
        assert category.icon == ''

    def test_duplicate_name_rejected(self, household, alice, groceries):
        with pytest.raises(DuplicateCategoryError):
            create_category(group_id=household.id, user=alice, name='Groceries')

    def test_non_member_cannot_create(self, household, outsider):
        with pytest.raises(NotGroupMemberError):
            create_category(group_id=household.id, user=outsider, name='Utilities')

    def test_delete_keeps_payments(self, payment, alice, groceries):
        payment.category = groceries
        payment.save()

        delete_category(category_id=groceries.id, user=alice)

        payment.refresh_from_db()
        assert payment.category is None

    def test_delete_missing(self, alice):
        with pytest.raises(CategoryNotFoundError):
            delete_category(category_id=uuid4(), user=alice)
