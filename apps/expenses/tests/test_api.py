import pytest
from datetime import timedelta
from django.urls import reverse
from django.utils import timezone
from rest_framework import status

from apps.expenses.models import Category, Payment, RecurringRule
from apps.settlements.models import SessionStatus, SettlementSession


# =============================================================================
# Payment Tests
# =============================================================================

@pytest.mark.django_db
class TestPaymentList:
    """Tests for GET /api/expenses/payments/"""

    def test_list_requires_group(self, alice_client):
        url = reverse('expenses:payment-list')
        response = alice_client.get(url)

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_group_payments(self, alice_client, household, payment):
        url = reverse('expenses:payment-list')
        response = alice_client.get(url, {'group': household.id})

        assert response.status_code == status.HTTP_200_OK
        assert len(response.data['results']) == 1
        assert response.data['results'][0]['id'] == str(payment.id)
        assert response.data['results'][0]['is_settled'] is False

    def test_unsettled_filter(self, alice_client, household, payment):
        session = SettlementSession.objects.create(
            group=household,
            period_start=payment.payment_date,
            period_end=payment.payment_date,
            status=SessionStatus.SETTLED,
        )
        payment.settlement = session
        payment.save()

        url = reverse('expenses:payment-list')
        response = alice_client.get(url, {'group': household.id, 'unsettled': 'true'})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['results'] == []

    def test_non_member_forbidden(self, outsider_client, household, payment):
        url = reverse('expenses:payment-list')
        response = outsider_client.get(url, {'group': household.id})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_unauthenticated(self, api_client, household):
        url = reverse('expenses:payment-list')
        response = api_client.get(url, {'group': household.id})

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestPaymentCreate:
    """Tests for POST /api/expenses/payments/"""

    def test_create_defaults_payer_to_caller(self, alice_client, household, alice):
        url = reverse('expenses:payment-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'amount': 1000,
            'description': 'Dinner',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['payer']['id'] == str(alice.id)
        assert response.data['payment_date'] == timezone.localdate().isoformat()

    def test_create_with_splits(self, alice_client, household, alice, bob):
        url = reverse('expenses:payment-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'payer_id': str(bob.id),
            'amount': 1000,
            'description': 'Dinner',
            'splits': [
                {'user_id': str(alice.id), 'amount': 300},
                {'user_id': str(bob.id), 'amount': 700},
            ],
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert len(response.data['splits']) == 2

    def test_split_mismatch(self, alice_client, household, alice, bob):
        url = reverse('expenses:payment-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'amount': 1000,
            'description': 'Dinner',
            'splits': [
                {'user_id': str(alice.id), 'amount': 300},
                {'user_id': str(bob.id), 'amount': 300},
            ],
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'error' in response.data

    def test_future_date_rejected(self, alice_client, household):
        url = reverse('expenses:payment-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'amount': 1000,
            'description': 'Dinner',
            'payment_date': (timezone.localdate() + timedelta(days=1)).isoformat(),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'payment_date' in response.data

    def test_one_split_input_only(self, alice_client, household, alice, bob):
        url = reverse('expenses:payment-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'amount': 1000,
            'description': 'Dinner',
            'beneficiary_id': str(bob.id),
            'splits': [{'user_id': str(alice.id), 'amount': 1000}],
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_non_member_forbidden(self, outsider_client, household):
        url = reverse('expenses:payment-list')
        response = outsider_client.post(url, {
            'group': str(household.id),
            'amount': 1000,
            'description': 'Dinner',
        }, format='json')

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert Payment.objects.count() == 0


@pytest.mark.django_db
class TestPaymentDetail:
    """Tests for PATCH/DELETE /api/expenses/payments/{id}/"""

    def test_update(self, alice_client, payment):
        url = reverse('expenses:payment-detail', kwargs={'pk': payment.id})
        response = alice_client.patch(url, {'amount': 1200}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['amount'] == 1200

    def test_update_settled_conflict(self, alice_client, household, payment):
        session = SettlementSession.objects.create(
            group=household,
            period_start=payment.payment_date,
            period_end=payment.payment_date,
            status=SessionStatus.SETTLED,
        )
        payment.settlement = session
        payment.save()

        url = reverse('expenses:payment-detail', kwargs={'pk': payment.id})
        response = alice_client.patch(url, {'amount': 1200}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_non_member_cannot_see(self, outsider_client, payment):
        url = reverse('expenses:payment-detail', kwargs={'pk': payment.id})
        response = outsider_client.patch(url, {'amount': 1200}, format='json')

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_delete(self, alice_client, payment):
        url = reverse('expenses:payment-detail', kwargs={'pk': payment.id})
        response = alice_client.delete(url)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Payment.objects.filter(id=payment.id).exists()


# =============================================================================
# Recurring Rule Tests
# =============================================================================

@pytest.mark.django_db
class TestRecurringRuleApi:

    def test_create_fixed_rule(self, alice_client, household, alice):
        url = reverse('expenses:rule-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'description': 'Rent',
            'day_of_month': 25,
            'default_payer_id': str(alice.id),
            'default_amount': 80000,
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['default_amount'] == 80000
        assert response.data['default_payer']['id'] == str(alice.id)

    def test_fixed_rule_needs_amount(self, alice_client, household, alice):
        url = reverse('expenses:rule-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'description': 'Rent',
            'day_of_month': 25,
            'default_payer_id': str(alice.id),
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'default_amount' in response.data

    def test_day_of_month_range(self, alice_client, household, alice):
        url = reverse('expenses:rule-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'description': 'Rent',
            'day_of_month': 32,
            'default_payer_id': str(alice.id),
            'default_amount': 80000,
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_and_deactivate(self, alice_client, household, alice):
        rule = RecurringRule.objects.create(
            group=household,
            description='Internet',
            day_of_month=1,
            default_payer=alice,
            default_amount=5000,
        )

        list_response = alice_client.get(reverse('expenses:rule-list'), {'group': household.id})
        assert [r['id'] for r in list_response.data] == [str(rule.id)]

        url = reverse('expenses:rule-deactivate', kwargs={'pk': rule.id})
        response = alice_client.post(url)

        assert response.status_code == status.HTTP_200_OK
        assert response.data['is_active'] is False


# =============================================================================
# Category Tests
# =============================================================================

@pytest.mark.django_db
class TestCategoryApi:

    def test_create(self, alice_client, household):
        url = reverse('expenses:category-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'name': 'Utilities',
            'color': '#aabbcc',
        }, format='json')

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['name'] == 'Utilities'

    def test_duplicate_conflict(self, alice_client, household, groceries):
        url = reverse('expenses:category-list')
        response = alice_client.post(url, {'group': str(household.id), 'name': 'Groceries'}, format='json')

        assert response.status_code == status.HTTP_409_CONFLICT

    def test_bad_color(self, alice_client, household):
        url = reverse('expenses:category-list')
        response = alice_client.post(url, {
            'group': str(household.id),
            'name': 'Utilities',
            'color': 'blue',
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_list_and_delete(self, alice_client, household, groceries):
        list_response = alice_client.get(reverse('expenses:category-list'), {'group': household.id})
        assert [c['name'] for c in list_response.data] == ['Groceries']

        url = reverse('expenses:category-detail', kwargs={'pk': groceries.id})
        response = alice_client.delete(url)

        assert response.status_code == status.HTTP_204_NO_CONTENT
        assert not Category.objects.filter(id=groceries.id).exists()
