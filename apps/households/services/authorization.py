"""
Household admin gate.

Every mutating ledger operation calls into here with a household row it
has just loaded inside its own transaction, so the admin check always
reflects the current admin even if the role was transferred a moment ago.
"""

import logging

from apps.accounts.models import User
from apps.households.models import Household, HouseholdMembership

from .exceptions import NotAuthorizedError, NotHouseholdMemberError

logger = logging.getLogger(__name__)


def require_household_member(*, household: Household, user: User) -> HouseholdMembership:
    """
    Return the caller's membership or raise NotHouseholdMemberError.
    """
    try:
        return HouseholdMembership.objects.get(household=household, user=user)
    except HouseholdMembership.DoesNotExist:
        raise NotHouseholdMemberError("You are not a member of this household")


def require_household_admin(*, household: Household, user: User, action: str) -> None:
    """
    Raise NotAuthorizedError unless ``user`` is the household's admin.

    Args:
        household: Household instance freshly read by the caller
        user: Verified identity supplied by the authenticator
        action: Short name of the attempted operation, for the audit log
    """
    is_member = HouseholdMembership.objects.filter(household=household, user=user).exists()
    if household.admin_id == user.pk and is_member:
        return

    logger.warning(
        "Denied admin-only action '%s' on household %s for user %s",
        action, household.pk, user.pk,
    )
    raise NotAuthorizedError("Only the household admin can do this")
