"""
Membership management service.

Handles joining and leaving households. A departing member is taken out
of every rota in the same transaction that deletes the membership.
"""

import logging
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import QuerySet

from apps.accounts.models import User
from apps.households.models import Household, HouseholdMembership

from .authorization import require_household_admin
from .exceptions import (
    HouseholdNotFoundError,
    InvalidInviteCodeError,
    AlreadyMemberError,
    NotHouseholdMemberError,
    AdminCannotLeaveError,
    CannotRemoveAdminError,
)
from .household_management import lock_household

logger = logging.getLogger(__name__)


@transaction.atomic
def join_household(
    *,
    household_id: UUID,
    user: User,
    invite_code: str
) -> HouseholdMembership:
    """
    Join a household using an invite code.

    Uses row-level locking to prevent race conditions when checking
    and creating memberships.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
        InvalidInviteCodeError: If invite code is incorrect
        AlreadyMemberError: If user already belongs to a household
    """
    household = lock_household(household_id)

    if household.invite_code != invite_code:
        raise InvalidInviteCodeError("Invalid invite code")

    if HouseholdMembership.objects.filter(user=user).exists():
        raise AlreadyMemberError("You already belong to a household")

    try:
        with transaction.atomic():
            membership = HouseholdMembership.objects.create(
                user=user,
                household=household,
            )
    except IntegrityError:
        # Database constraint caught a concurrent join
        raise AlreadyMemberError("You already belong to a household")

    logger.info("User %s joined household %s", user.id, household.id)
    return membership


@transaction.atomic
def leave_household(*, household_id: UUID, user: User) -> None:
    """
    Leave a household.

    The admin cannot leave - they must transfer the admin role first.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
        NotHouseholdMemberError: If user is not a member
        AdminCannotLeaveError: If user is the admin
    """
    household = lock_household(household_id)

    if household.admin_id == user.pk:
        raise AdminCannotLeaveError(
            "The household admin cannot leave. Transfer the admin role first."
        )

    _remove_membership(household, user.pk)
    logger.info("User %s left household %s", user.id, household.id)


@transaction.atomic
def remove_member(
    *,
    household_id: UUID,
    user_id: UUID,
    removed_by: User
) -> None:
    """
    Remove a member from a household (admin only).

    Raises:
        HouseholdNotFoundError: If household doesn't exist
        NotAuthorizedError: If removed_by is not the admin
        CannotRemoveAdminError: If trying to remove the admin
        NotHouseholdMemberError: If target user is not a member
    """
    household = lock_household(household_id)
    require_household_admin(household=household, user=removed_by, action='remove_member')

    if str(household.admin_id) == str(user_id):
        raise CannotRemoveAdminError("Cannot remove the household admin")

    _remove_membership(household, user_id)
    logger.info("User %s removed from household %s by %s", user_id, household.id, removed_by.id)


def get_household_members(*, household_id: UUID) -> QuerySet[HouseholdMembership]:
    """
    Get all members of a household, admin first.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
    """
    if not Household.objects.filter(id=household_id).exists():
        raise HouseholdNotFoundError(f"Household with ID {household_id} not found")

    return (
        HouseholdMembership.objects
        .filter(household_id=household_id)
        .select_related('user', 'household')
        .order_by('joined_at')
    )


def _remove_membership(household: Household, user_id) -> None:
    # Imported here; the ledger app imports this package at module level.
    from apps.ledger.services.rota_management import drop_member_from_rotas

    try:
        membership = (
            HouseholdMembership.objects
            .select_for_update()
            .get(household=household, user_id=user_id)
        )
    except HouseholdMembership.DoesNotExist:
        raise NotHouseholdMemberError("User is not a member of this household")

    drop_member_from_rotas(household=household, member_id=user_id)
    membership.delete()
