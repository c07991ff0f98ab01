"""
Domain-specific exceptions for households app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses.
"""


class HouseholdsServiceError(Exception):
    """Base exception for all households service errors."""
    pass


class HouseholdNotFoundError(HouseholdsServiceError):
    """Raised when a household does not exist or is inaccessible."""
    pass


class InvalidInviteCodeError(HouseholdsServiceError):
    """Raised when an invite code is incorrect."""
    pass


class AlreadyMemberError(HouseholdsServiceError):
    """Raised when a user who already belongs to a household tries to join one."""
    pass


class NotHouseholdMemberError(HouseholdsServiceError):
    """Raised when a user acts on a household they do not belong to."""
    pass


class AdminCannotLeaveError(HouseholdsServiceError):
    """Raised when the household admin tries to leave without handing over."""
    pass


class CannotRemoveAdminError(HouseholdsServiceError):
    """Raised when attempting to remove the household admin."""
    pass


class NotAuthorizedError(HouseholdsServiceError):
    """Raised when a non-admin attempts an admin-only mutation."""
    pass


class InvalidRentShareError(HouseholdsServiceError):
    """Raised when a base rent share is negative or not an integer."""
    pass
