import pytest
from datetime import date
from django.urls import reverse
from rest_framework import status

from apps.settlements.models import EntryStatus, EntryType, SessionStatus, SettlementSession


def _create(client, household, start='2024-03-01', end='2024-03-31'):
    url = reverse('settlements:session-list')
    return client.post(url, {'group': str(household.id), 'period_start': start, 'period_end': end}, format='json')


# =============================================================================
# Session Tests
# =============================================================================

@pytest.mark.django_db
class TestSessionCreate:
    """Tests for POST /api/settlements/sessions/"""

    def test_create_generates_checklist(self, alice_client, household, rent_rule, alice):
        response = _create(alice_client, household)

        assert response.status_code == status.HTTP_201_CREATED
        assert response.data['status'] == SessionStatus.DRAFT
        assert response.data['entry_count'] == 1
        assert response.data['entries'][0]['entry_type'] == EntryType.RULE
        assert response.data['created_by']['id'] == str(alice.id)
        assert response.data['currency'] == 'JPY'

    def test_reversed_period(self, alice_client, household):
        response = _create(alice_client, household, start='2024-03-31', end='2024-03-01')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert 'period_end' in response.data

    def test_non_member(self, outsider_client, household):
        response = _create(outsider_client, household)

        assert response.status_code == status.HTTP_403_FORBIDDEN
        assert response.data['code'] == -2

    def test_unauthenticated(self, api_client, household):
        response = _create(api_client, household)

        assert response.status_code == status.HTTP_401_UNAUTHORIZED


@pytest.mark.django_db
class TestSessionRead:

    def test_list_by_group_and_status(self, alice_client, household, alice):
        response = _create(alice_client, household)
        SettlementSession.objects.create(
            group=household,
            period_start=date(2024, 1, 1),
            period_end=date(2024, 1, 31),
            status=SessionStatus.SETTLED,
        )

        url = reverse('settlements:session-list')
        all_sessions = alice_client.get(url, {'group': household.id})
        drafts = alice_client.get(url, {'group': household.id, 'status': 'draft'})

        assert all_sessions.status_code == status.HTTP_200_OK
        assert len(all_sessions.data) == 2
        assert [s['id'] for s in drafts.data] == [response.data['id']]

    def test_list_requires_group(self, alice_client):
        response = alice_client.get(reverse('settlements:session-list'))

        assert response.status_code == status.HTTP_400_BAD_REQUEST

    def test_outsider_cannot_retrieve(self, alice_client, outsider_client, household):
        session_id = _create(alice_client, household).data['id']

        url = reverse('settlements:session-detail', kwargs={'pk': session_id})
        response = outsider_client.get(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND

    def test_unknown_session_action(self, alice_client):
        url = reverse('settlements:session-confirm', kwargs={'pk': '00000000-0000-0000-0000-000000000000'})
        response = alice_client.post(url)

        assert response.status_code == status.HTTP_404_NOT_FOUND
        assert response.data['code'] == -1


@pytest.mark.django_db
class TestSessionLifecycle:

    def test_confirm_report_and_receive(self, alice_client, bob_client, household, alice, bob, record_payment):
        record_payment(alice, 1000, date(2024, 3, 4))
        session_id = _create(alice_client, household).data['id']

        confirm = alice_client.post(reverse('settlements:session-confirm', kwargs={'pk': session_id}))
        assert confirm.status_code == status.HTTP_200_OK
        assert confirm.data['payment_count'] == 1
        assert confirm.data['session']['status'] == SessionStatus.PENDING_PAYMENT
        assert confirm.data['session']['my_balance'] == 500

        bob_view = bob_client.get(reverse('settlements:session-detail', kwargs={'pk': session_id}))
        assert bob_view.data['my_balance'] == -500

        early = alice_client.post(reverse('settlements:session-confirm-receipt', kwargs={'pk': session_id}))
        assert early.status_code == status.HTTP_409_CONFLICT
        assert early.data['code'] == -6

        wrong_party = alice_client.post(reverse('settlements:session-report-payment', kwargs={'pk': session_id}))
        assert wrong_party.status_code == status.HTTP_403_FORBIDDEN

        report = bob_client.post(reverse('settlements:session-report-payment', kwargs={'pk': session_id}))
        assert report.status_code == status.HTTP_200_OK
        assert report.data['payment_reported_by']['id'] == str(bob.id)

        receipt = alice_client.post(reverse('settlements:session-confirm-receipt', kwargs={'pk': session_id}))
        assert receipt.status_code == status.HTTP_200_OK
        assert receipt.data['session']['status'] == SessionStatus.SETTLED

    def test_confirm_without_filled_entries(self, alice_client, household, rent_rule):
        session_id = _create(alice_client, household).data['id']

        response = alice_client.post(reverse('settlements:session-confirm', kwargs={'pk': session_id}))

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == -4

    def test_confirm_twice_conflicts(self, alice_client, household, alice, record_payment):
        record_payment(alice, 1000, date(2024, 3, 4))
        session_id = _create(alice_client, household).data['id']
        url = reverse('settlements:session-confirm', kwargs={'pk': session_id})

        alice_client.post(url)
        response = alice_client.post(url)

        assert response.status_code == status.HTTP_409_CONFLICT
        assert response.data['code'] == -3

    def test_refresh_and_generate(self, alice_client, household, alice, record_payment):
        session_id = _create(alice_client, household).data['id']
        record_payment(alice, 1000, date(2024, 3, 4))

        refresh = alice_client.post(reverse('settlements:session-refresh', kwargs={'pk': session_id}))
        generate = alice_client.post(reverse('settlements:session-generate', kwargs={'pk': session_id}))

        assert refresh.data['added_count'] == 1
        assert generate.data['entry_count'] == 1
        assert len(generate.data['session']['entries']) == 1

    def test_delete_draft(self, alice_client, bob_client, household):
        session_id = _create(alice_client, household).data['id']
        url = reverse('settlements:session-detail', kwargs={'pk': session_id})

        assert bob_client.delete(url).status_code == status.HTTP_403_FORBIDDEN
        assert alice_client.delete(url).status_code == status.HTTP_204_NO_CONTENT


# =============================================================================
# Entry Tests
# =============================================================================

@pytest.mark.django_db
class TestEntryApi:

    def test_fill_entry(self, alice_client, household, rent_rule, bob):
        entry_id = _create(alice_client, household).data['entries'][0]['id']

        url = reverse('settlements:entry-detail', kwargs={'pk': entry_id})
        response = alice_client.patch(url, {
            'status': 'filled',
            'actual_amount': 81000,
            'payer_id': str(bob.id),
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['status'] == EntryStatus.FILLED
        assert response.data['actual_amount'] == 81000
        assert response.data['payer']['id'] == str(bob.id)

    def test_fill_with_splits(self, alice_client, household, rent_rule, alice, bob):
        entry_id = _create(alice_client, household).data['entries'][0]['id']

        url = reverse('settlements:entry-detail', kwargs={'pk': entry_id})
        response = alice_client.patch(url, {
            'status': 'filled',
            'actual_amount': 90000,
            'splits': [
                {'user_id': str(alice.id), 'amount': 50000},
                {'user_id': str(bob.id), 'amount': 30000},
            ],
        }, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == -8

        response = alice_client.patch(url, {
            'status': 'filled',
            'actual_amount': 90000,
            'splits': [
                {'user_id': str(alice.id), 'amount': 50000},
                {'user_id': str(bob.id), 'amount': 40000},
            ],
        }, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['split_type'] == 'custom'
        assert sum(s['amount'] for s in response.data['splits']) == 90000

    def test_fill_without_amount(self, alice_client, household, rent_rule):
        entry_id = _create(alice_client, household).data['entries'][0]['id']

        url = reverse('settlements:entry-detail', kwargs={'pk': entry_id})
        response = alice_client.patch(url, {'status': 'filled'}, format='json')

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == -8

    def test_replace_splits(self, alice_client, household, rent_rule, alice, bob):
        entry_id = _create(alice_client, household).data['entries'][0]['id']

        url = reverse('settlements:entry-splits', kwargs={'pk': entry_id})
        response = alice_client.put(url, {'splits': [
            {'user_id': str(alice.id), 'amount': 60000},
            {'user_id': str(bob.id), 'amount': 20000},
        ]}, format='json')

        assert response.status_code == status.HTTP_200_OK
        assert response.data['split_type'] == 'custom'
        assert len(response.data['splits']) == 2

    def test_add_and_delete_manual_entry(self, alice_client, household, alice):
        session_id = _create(alice_client, household).data['id']

        url = reverse('settlements:session-entries', kwargs={'pk': session_id})
        created = alice_client.post(url, {
            'description': 'Plumber',
            'payment_date': '2024-03-18',
            'payer_id': str(alice.id),
            'actual_amount': 12000,
        }, format='json')

        assert created.status_code == status.HTTP_201_CREATED
        assert created.data['entry_type'] == EntryType.MANUAL
        assert created.data['status'] == EntryStatus.FILLED

        delete_url = reverse('settlements:entry-detail', kwargs={'pk': created.data['id']})
        assert alice_client.delete(delete_url).status_code == status.HTTP_204_NO_CONTENT

    def test_rule_entry_cannot_be_deleted(self, alice_client, household, rent_rule):
        entry_id = _create(alice_client, household).data['entries'][0]['id']

        url = reverse('settlements:entry-detail', kwargs={'pk': entry_id})
        response = alice_client.delete(url)

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.data['code'] == -7


# =============================================================================
# Overview Tests
# =============================================================================

@pytest.mark.django_db
class TestOverviewApi:

    def test_suggest(self, alice_client, household, alice, record_payment):
        record_payment(alice, 1000, date(2024, 3, 4))

        response = alice_client.get(reverse('settlements:session-suggest'), {'group': household.id})

        assert response.status_code == status.HTTP_200_OK
        assert response.data['suggested_start'] == '2024-03-04'
        assert response.data['unsettled_count'] == 1

    def test_balances(self, bob_client, household, alice, record_payment):
        record_payment(alice, 1000, date(2024, 3, 4))

        response = bob_client.get(reverse('settlements:session-balances'), {'group': household.id})

        assert response.status_code == status.HTTP_200_OK
        assert [b['balance'] for b in response.data['balances']] == [500, -500]
        assert response.data['settlements'][0]['amount'] == 500
        assert response.data['unsettled_remainder'] == 0

    def test_balances_non_member(self, outsider_client, household):
        response = outsider_client.get(reverse('settlements:session-balances'), {'group': household.id})

        assert response.status_code == status.HTTP_403_FORBIDDEN

    def test_consolidate_and_settle(self, alice_client, household, alice, bob, record_payment):
        record_payment(alice, 2000, date(2024, 1, 10))
        january = _create(alice_client, household, '2024-01-01', '2024-01-31').data['id']
        alice_client.post(reverse('settlements:session-confirm', kwargs={'pk': january}))
        record_payment(bob, 800, date(2024, 2, 10))
        february = _create(alice_client, household, '2024-02-01', '2024-02-29').data['id']
        alice_client.post(reverse('settlements:session-confirm', kwargs={'pk': february}))

        payload = {'session_ids': [january, february]}
        consolidated = alice_client.post(reverse('settlements:session-consolidate'), payload, format='json')
        settled = alice_client.post(reverse('settlements:session-settle-consolidated'), payload, format='json')

        assert consolidated.status_code == status.HTTP_200_OK
        assert consolidated.data['is_zero'] is False
        assert consolidated.data['transfers'][0]['amount'] == 600
        assert consolidated.data['transfers'][0]['from_id'] == str(bob.id)
        assert settled.data['settled_count'] == 2
