import pytest
from datetime import date
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.expenses.models import RecurringRule
from apps.expenses.services import create_payment
from apps.groups.models import Group, GroupMembership, GroupRole


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def alice(db):
    return User.objects.create_user(
        email='alice@example.com',
        password='TestPass123!',
        display_name='Alice',
    )


@pytest.fixture
def bob(db):
    return User.objects.create_user(
        email='bob@example.com',
        password='TestPass123!',
        display_name='Bob',
    )


@pytest.fixture
def outsider(db):
    """A user who belongs to no household."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


@pytest.fixture
def household(alice, bob):
    """Two-person household owned by Alice."""
    group = Group.objects.create(name='Flat 3B', owner=alice)
    GroupMembership.objects.create(user=alice, group=group, role=GroupRole.OWNER)
    GroupMembership.objects.create(user=bob, group=group, role=GroupRole.MEMBER)
    return group


@pytest.fixture
def rent_rule(household, alice):
    """80000 on the 25th of every month, paid by Alice."""
    return RecurringRule.objects.create(
        group=household,
        description='Rent',
        day_of_month=25,
        default_payer=alice,
        default_amount=80000,
        start_date=date(2024, 1, 1),
    )


@pytest.fixture
def record_payment(household):
    """Factory recording a payment through the expenses service."""

    def _record(payer, amount, payment_date, splits=None, description='Shared cost'):
        return create_payment(
            group_id=household.id,
            user=payer,
            payer_id=payer.id,
            amount=amount,
            description=description,
            payment_date=payment_date,
            splits=splits,
        )

    return _record


@pytest.fixture
def alice_client(alice):
    """Return API client authenticated as Alice."""
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    """Return API client authenticated as Bob."""
    return _client_for(bob)


@pytest.fixture
def outsider_client(outsider):
    """Return API client authenticated as a non-member."""
    return _client_for(outsider)
