"""
Household management service.

Handles household creation, admin hand-over, rent shares and invite codes
with proper transaction safety.
"""

import logging
import secrets
from typing import Optional
from uuid import UUID

from django.db import transaction, IntegrityError
from django.db.models import Prefetch

from apps.accounts.models import User
from apps.households.models import Household, HouseholdMembership

from .authorization import require_household_admin
from .exceptions import (
    HouseholdNotFoundError,
    AlreadyMemberError,
    NotHouseholdMemberError,
    InvalidRentShareError,
)

logger = logging.getLogger(__name__)


def create_household(
    *,
    name: str,
    admin: User,
    base_rent_share: int = 0,
    max_retries: int = 5
) -> Household:
    """
    Create a new household with the creator as its admin and first member.

    This is a multi-step operation wrapped in a transaction:
    1. Generate unique invite code
    2. Create the household
    3. Create the admin's membership

    Args:
        name: Household name
        admin: User who will administer the household
        base_rent_share: Creator's rent share in minor currency units
        max_retries: Maximum attempts to generate unique invite code

    Returns:
        Created Household instance

    Raises:
        AlreadyMemberError: If the creator already belongs to a household
        InvalidRentShareError: If base_rent_share is negative
        RuntimeError: If cannot generate unique invite code after retries
    """
    _validate_rent_share(base_rent_share)

    # Retry logic outside transaction to handle invite code collisions
    for attempt in range(max_retries):
        if HouseholdMembership.objects.filter(user=admin).exists():
            raise AlreadyMemberError("You already belong to a household")

        invite_code = secrets.token_urlsafe(12)[:16]

        try:
            # Each attempt is a separate transaction
            with transaction.atomic():
                household = Household.objects.create(
                    name=name,
                    admin=admin,
                    invite_code=invite_code
                )

                HouseholdMembership.objects.create(
                    user=admin,
                    household=household,
                    base_rent_share=base_rent_share
                )

        except IntegrityError:
            # Either an invite code collision or the creator joined elsewhere
            if attempt == max_retries - 1:
                raise RuntimeError(
                    f"Failed to generate unique invite code after {max_retries} attempts"
                )
            continue

        logger.info("Household %s created by %s", household.id, admin.id)
        return household

    # Should never reach here
    raise RuntimeError("Unexpected error in household creation")


def get_household_by_id(*, household_id: UUID) -> Household:
    """
    Get a household by ID with its members prefetched.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
    """
    try:
        return (
            Household.objects
            .select_related('admin')
            .prefetch_related(
                Prefetch(
                    'memberships',
                    queryset=HouseholdMembership.objects.select_related('user')
                )
            )
            .get(id=household_id)
        )
    except Household.DoesNotExist:
        raise HouseholdNotFoundError(f"Household with ID {household_id} not found")


def lock_household(household_id: UUID) -> Household:
    """
    Load a household row under ``select_for_update`` inside the caller's transaction.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
    """
    try:
        return Household.objects.select_for_update().get(id=household_id)
    except Household.DoesNotExist:
        raise HouseholdNotFoundError(f"Household with ID {household_id} not found")


@transaction.atomic
def rename_household(*, household_id: UUID, user: User, name: str) -> Household:
    """Rename a household (admin only)."""
    household = lock_household(household_id)
    require_household_admin(household=household, user=user, action='rename_household')

    household.name = name
    household.save(update_fields=['name', 'updated_at'])
    return household


@transaction.atomic
def transfer_admin(
    *,
    household_id: UUID,
    new_admin_id: UUID,
    transferred_by: User
) -> Household:
    """
    Hand the admin role to another member (admin only).

    The household row is locked so a settlement or another transfer in
    flight sees either the old admin or the new one, never both.

    Raises:
        HouseholdNotFoundError: If household doesn't exist
        NotAuthorizedError: If transferred_by is not the admin
        NotHouseholdMemberError: If the target is not a member
    """
    household = lock_household(household_id)
    require_household_admin(household=household, user=transferred_by, action='transfer_admin')

    if not HouseholdMembership.objects.filter(household=household, user_id=new_admin_id).exists():
        raise NotHouseholdMemberError("New admin must be a member of this household")

    household.admin_id = new_admin_id
    household.save(update_fields=['admin', 'updated_at'])

    logger.info(
        "Household %s admin transferred from %s to %s",
        household.id, transferred_by.id, new_admin_id,
    )
    return household


@transaction.atomic
def set_base_rent_share(
    *,
    household_id: UUID,
    user_id: UUID,
    amount: int,
    updated_by: User
) -> HouseholdMembership:
    """
    Record a member's base rent share as supplied by bill splitting (admin only).

    Raises:
        InvalidRentShareError: If amount is negative
        NotAuthorizedError: If updated_by is not the admin
        NotHouseholdMemberError: If the target is not a member
    """
    _validate_rent_share(amount)

    household = lock_household(household_id)
    require_household_admin(household=household, user=updated_by, action='set_base_rent_share')

    try:
        membership = (
            HouseholdMembership.objects
            .select_for_update()
            .get(household=household, user_id=user_id)
        )
    except HouseholdMembership.DoesNotExist:
        raise NotHouseholdMemberError("User is not a member of this household")

    membership.base_rent_share = amount
    membership.save(update_fields=['base_rent_share'])
    return membership


def regenerate_invite_code(
    *,
    household_id: UUID,
    user: User,
    max_retries: int = 5
) -> str:
    """
    Issue a fresh invite code (admin only), invalidating the old one.

    Raises:
        NotAuthorizedError: If user is not the admin
        RuntimeError: If no unique code could be generated
    """
    for attempt in range(max_retries):
        try:
            with transaction.atomic():
                household = lock_household(household_id)
                require_household_admin(household=household, user=user, action='regenerate_invite_code')

                household.invite_code = secrets.token_urlsafe(12)[:16]
                household.save(update_fields=['invite_code', 'updated_at'])
                return household.invite_code
        except IntegrityError:
            if attempt == max_retries - 1:
                raise RuntimeError(
                    f"Failed to generate unique invite code after {max_retries} attempts"
                )

    raise RuntimeError("Unexpected error in invite code regeneration")


def _validate_rent_share(amount: Optional[int]) -> None:
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidRentShareError("Rent share must be a non-negative integer amount")
