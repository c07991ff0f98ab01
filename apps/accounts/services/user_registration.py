"""User registration service."""

import logging
from typing import Optional

from django.db import transaction, IntegrityError
from django.contrib.auth import get_user_model

from apps.households.models import Household
from apps.households.services import join_household, InvalidInviteCodeError

from .exceptions import UserRegistrationError

User = get_user_model()

logger = logging.getLogger(__name__)


def register_user(
    *,
    email: str,
    password: str,
    display_name: str = "",
    invite_code: Optional[str] = None
) -> User:
    """
    Register a new household member account.

    With an ``invite_code`` the new account joins that household in the
    same transaction, so a bad code leaves no orphan account behind.

    Raises:
        UserRegistrationError: If the email is taken or the invite code is unknown
    """
    try:
        with transaction.atomic():
            user = User.objects.create_user(
                email=email,
                password=password,
                display_name=display_name
            )
            if invite_code:
                household_id = (
                    Household.objects
                    .filter(invite_code=invite_code)
                    .values_list('id', flat=True)
                    .first()
                )
                if household_id is None:
                    raise InvalidInviteCodeError("Invalid invite code")
                join_household(household_id=household_id, user=user, invite_code=invite_code)
    except IntegrityError:
        raise UserRegistrationError("An account with this email already exists")
    except InvalidInviteCodeError as e:
        raise UserRegistrationError(str(e))

    logger.info("Registered user %s", user.id)
    return user
