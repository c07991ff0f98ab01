"""
Households app services layer.

Services contain business logic and orchestrate operations across models.
All state-changing operations use transactions and row locks on the
household.
"""

from .exceptions import (
    HouseholdsServiceError,
    HouseholdNotFoundError,
    InvalidInviteCodeError,
    AlreadyMemberError,
    NotHouseholdMemberError,
    AdminCannotLeaveError,
    CannotRemoveAdminError,
    NotAuthorizedError,
    InvalidRentShareError,
)

from .authorization import (
    require_household_admin,
    require_household_member,
)

from .household_management import (
    create_household,
    get_household_by_id,
    lock_household,
    rename_household,
    transfer_admin,
    set_base_rent_share,
    regenerate_invite_code,
)

from .membership_management import (
    join_household,
    leave_household,
    remove_member,
    get_household_members,
)


__all__ = [
    # Exceptions
    'HouseholdsServiceError',
    'HouseholdNotFoundError',
    'InvalidInviteCodeError',
    'AlreadyMemberError',
    'NotHouseholdMemberError',
    'AdminCannotLeaveError',
    'CannotRemoveAdminError',
    'NotAuthorizedError',
    'InvalidRentShareError',

    # Admin gate
    'require_household_admin',
    'require_household_member',

    # Household management
    'create_household',
    'get_household_by_id',
    'lock_household',
    'rename_household',
    'transfer_admin',
    'set_base_rent_share',
    'regenerate_invite_code',

    # Membership management
    'join_household',
    'leave_household',
    'remove_member',
    'get_household_members',
]
