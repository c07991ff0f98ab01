import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.households.models import Household, HouseholdMembership
from apps.ledger.models import RotaItem


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def alice(db):
    """Household admin."""
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
def carol(db):
    return User.objects.create_user(
        email='carol@example.com',
        password='TestPass123!',
        display_name='Carol',
    )


@pytest.fixture
def stranger(db):
    """User outside the household."""
    return User.objects.create_user(
        email='stranger@example.com',
        password='TestPass123!',
        display_name='Stranger',
    )


@pytest.fixture
def household(db, alice, bob, carol):
    """Alice (admin), Bob and Carol share a flat."""
    household = Household.objects.create(name='Flat 4B', admin=alice)
    HouseholdMembership.objects.create(user=alice, household=household, base_rent_share=50000)
    HouseholdMembership.objects.create(user=bob, household=household, base_rent_share=50000)
    HouseholdMembership.objects.create(user=carol, household=household, base_rent_share=40000)
    return household


@pytest.fixture
def toilet_rolls(household, alice, bob):
    """Rota [Alice, Bob], Alice's turn."""
    return RotaItem.objects.create(
        household=household,
        name='Toilet rolls',
        rota_order=[str(alice.id), str(bob.id)],
        created_by=alice,
    )


@pytest.fixture
def milk(household, alice, bob, carol):
    """Rota [Alice, Bob, Carol], Alice's turn."""
    return RotaItem.objects.create(
        household=household,
        name='Milk',
        rota_order=[str(alice.id), str(bob.id), str(carol.id)],
        created_by=alice,
    )


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def alice_client(alice):
    return _client_for(alice)


@pytest.fixture
def bob_client(bob):
    return _client_for(bob)


@pytest.fixture
def stranger_client(stranger):
    return _client_for(stranger)
