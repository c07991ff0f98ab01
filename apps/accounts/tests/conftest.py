import pytest
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken

from apps.accounts.models import User

PASSWORD = 'Tidy-Kitchen-42'


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def flatmate(db):
    return User.objects.create_user(
        email='dana@flat.example',
        password=PASSWORD,
        display_name='Dana',
    )


@pytest.fixture
def moved_out(db):
    """A former flatmate whose account an operator has disabled."""
    return User.objects.create_user(
        email='eli@flat.example',
        password=PASSWORD,
        is_active=False,
    )


@pytest.fixture
def flatmate_client(flatmate):
    client = APIClient()
    token = RefreshToken.for_user(flatmate).access_token
    client.credentials(HTTP_AUTHORIZATION=f'Bearer {token}')
    return client
