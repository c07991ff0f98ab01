"""Sign-up and sign-in for household members."""

from .exceptions import (
    AccountsServiceError,
    InactiveAccountError,
    InvalidCredentialsError,
    UserRegistrationError,
)
from .user_authentication import authenticate_user
from .user_registration import register_user

__all__ = [
    'AccountsServiceError',
    'InactiveAccountError',
    'InvalidCredentialsError',
    'UserRegistrationError',
    'authenticate_user',
    'register_user',
]
