import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from apps.accounts.models import User
from apps.households.models import Household, HouseholdMembership


@pytest.fixture
def api_client():
    """Return an unauthenticated API client."""
    return APIClient()


@pytest.fixture
def household_admin(db):
    """Create and return the user who runs the household."""
    return User.objects.create_user(
        email='admin@example.com',
        password='TestPass123!',
        display_name='House Admin',
    )


@pytest.fixture
def member_user(db):
    """Create and return a household member."""
    return User.objects.create_user(
        email='member@example.com',
        password='TestPass123!',
        display_name='House Member',
    )


@pytest.fixture
def second_member(db):
    """Create and return another household member."""
    return User.objects.create_user(
        email='member2@example.com',
        password='TestPass123!',
        display_name='Second Member',
    )


@pytest.fixture
def outsider(db):
    """Create and return a user not in any household."""
    return User.objects.create_user(
        email='outsider@example.com',
        password='TestPass123!',
        display_name='Outsider',
    )


def _client_for(user):
    client = APIClient()
    refresh = RefreshToken.for_user(user)
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
    return client


@pytest.fixture
def admin_client(household_admin):
    """Return API client authenticated as the household admin."""
    return _client_for(household_admin)


@pytest.fixture
def member_client(member_user):
    """Return API client authenticated as a household member."""
    return _client_for(member_user)


@pytest.fixture
def outsider_client(outsider):
    """Return API client authenticated as a non-member."""
    return _client_for(outsider)


@pytest.fixture
def household(db, household_admin):
    """Create and return a household with its admin as first member."""
    household = Household.objects.create(name='Flat 4B', admin=household_admin)
    HouseholdMembership.objects.create(user=household_admin, household=household, base_rent_share=50000)
    return household


@pytest.fixture
def household_with_members(household, member_user, second_member):
    """Household with admin, member and second member."""
    HouseholdMembership.objects.create(user=member_user, household=household, base_rent_share=40000)
    HouseholdMembership.objects.create(user=second_member, household=household, base_rent_share=30000)
    return household
