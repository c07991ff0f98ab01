"""Credential check for members signing in."""

import logging

from django.contrib.auth import get_user_model
from django.utils import timezone

from .exceptions import InactiveAccountError, InvalidCredentialsError

User = get_user_model()

logger = logging.getLogger(__name__)

_GENERIC_FAILURE = "Invalid email or password"


def authenticate_user(*, email: str, password: str) -> User:
    """
    Resolve an email/password pair to an active member.

    Every ledger call after this trusts the returned identity, so a failed
    attempt is logged without saying which half was wrong.

    Raises:
        InvalidCredentialsError: unknown email or wrong password
        InactiveAccountError: the account exists but is switched off
    """
    user = User.objects.filter(email__iexact=email).first()
    if user is None or not user.check_password(password):
        logger.warning("Sign-in refused for %s", email)
        raise InvalidCredentialsError(_GENERIC_FAILURE)

    if not user.is_active:
        logger.warning("Sign-in refused for inactive member %s", user.id)
        raise InactiveAccountError("Account is deactivated")

    User.objects.filter(pk=user.pk).update(last_login=timezone.now())
    user.refresh_from_db(fields=['last_login'])
    return user
