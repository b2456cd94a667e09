import pytest
from datetime import date
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.expenses.models import Category, Payment
from apps.groups.models import Group, GroupMembership, GroupRole


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
def groceries(household):
    return Category.objects.create(group=household, name='Groceries', icon='cart', color='#22aa55')


@pytest.fixture
def payment(household, alice):
    """Unsettled 1000 paid by Alice, shared equally."""
    return Payment.objects.create(
        group=household,
        payer=alice,
        amount=1000,
        description='Supermarket',
        payment_date=date.today(),
        created_by=alice,
    )


@pytest.fixture
def alice_client(api_client, alice):
    """Return API client authenticated as Alice."""
    refresh = RefreshToken.for_user(alice)
    api_client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return api_client


@pytest.fixture
def outsider_client(outsider):
    """Return API client authenticated as a non-member."""
    client = APIClient()
    refresh = RefreshToken.for_user(outsider)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client
