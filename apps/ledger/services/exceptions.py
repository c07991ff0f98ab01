"""
Domain-specific exceptions for ledger app.

These exceptions represent business rule violations and should be
caught in views and converted to appropriate HTTP responses.
"""

from apps.households.services.exceptions import (  # noqa: F401
    NotAuthorizedError,
    NotHouseholdMemberError,
    HouseholdNotFoundError,
)
from apps.ledger.models import ImmutableRecordError  # noqa: F401


class LedgerServiceError(Exception):
    """Base exception for all ledger service errors."""
    pass


class RotaItemNotFoundError(LedgerServiceError):
    """Raised when a rota item does not exist."""
    pass


class SettlementNotFoundError(LedgerServiceError):
    """Raised when a settlement does not exist."""
    pass


class InvalidRotaStateError(LedgerServiceError):
    """Raised when a rota is empty or otherwise unusable."""
    pass


class MemberNotInRotaError(LedgerServiceError):
    """Raised when an admin override targets a member absent from the rota."""
    pass


class InactiveRotaItemError(LedgerServiceError):
    """Raised when a purchase is recorded against a deactivated item."""
    pass


class InvalidAmountError(LedgerServiceError):
    """Raised when a purchase amount or rent share is not a non-negative integer."""
    pass


class PurchaseConflictError(LedgerServiceError):
    """Raised when a purchase kept colliding with concurrent writes."""
    pass


class AlreadySettledError(LedgerServiceError):
    """Raised when the open period already has a settlement."""
    pass


class RotaConflictError(LedgerServiceError):
    """Raised when a rota changed underneath an admin edit."""
    pass


class SettlementConflictError(LedgerServiceError):
    """Raised when a close kept colliding with concurrent writes."""
    pass
