"""
Settlement engine.

Closes a household's open accounting period in one transaction:
snapshot the balances, derive each member's adjusted rent, write the
Settlement and its lines, archive the period's purchases, zero the
balances and start the next period.
"""

import logging
import time
from typing import Dict, Mapping, Optional
from uuid import UUID

from django.db import transaction, IntegrityError, OperationalError
from django.db.models import Sum, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.households.models import HouseholdMembership
from apps.households.services import (
    lock_household,
    require_household_admin,
)
from apps.ledger.models import BalanceEntry, Purchase, Settlement, SettlementLine

from . import balance_ledger
from .exceptions import (
    AlreadySettledError,
    InvalidAmountError,
    NotHouseholdMemberError,
    SettlementConflictError,
    SettlementNotFoundError,
)
from .retry import backoff_delay, max_attempts

logger = logging.getLogger(__name__)


def compute_adjusted_rent(base_rent_share: int, net_balance: int) -> int:
    """A member who is owed money pays less next period; one who owes pays more."""
    return base_rent_share - net_balance


def close_period(
    *,
    household_id: UUID,
    closed_by: User,
    rent_shares: Optional[Mapping] = None
) -> Settlement:
    """
    Close the open accounting period (admin only).

    Once a household has been settled, a period with no purchases in it
    cannot be closed: it would repeat the previous close. Rent share or
    membership changes alone therefore produce no new Settlement; they
    apply at the next close that has at least one purchase.

    Args:
        household_id: Household to settle
        closed_by: Caller; must be the admin at the moment of closing
        rent_shares: Optional member id -> base rent share override. Members
            left out fall back to their stored share; former members still
            holding a balance use 0. Only current members may be named.

    Returns:
        The new Settlement

    Raises:
        NotAuthorizedError: If closed_by is not the admin
        AlreadySettledError: If the open period already has a settlement, or
            has no purchases and directly follows the previous settlement
        InvalidAmountError: If a rent share override is negative
        SettlementConflictError: If every retry lost to a concurrent write
    """
    max_retries = max_attempts()

    for attempt in range(1, max_retries + 1):
        try:
            return _close_once(household_id=household_id, closed_by=closed_by, rent_shares=rent_shares)
        except OperationalError as exc:
            logger.info(
                "Close of household %s hit a concurrent write (attempt %d/%d): %s",
                household_id, attempt, max_retries, exc,
            )
            if attempt < max_retries:
                time.sleep(backoff_delay(attempt))

    logger.warning("Giving up on closing household %s after %d attempts", household_id, max_retries)
    raise SettlementConflictError("The household was busy, please retry the settlement")


@transaction.atomic
def _close_once(
    *,
    household_id: UUID,
    closed_by: User,
    rent_shares: Optional[Mapping]
) -> Settlement:
    # Purchases lock the same row, so none can land half in, half out
    household = lock_household(household_id)
    require_household_admin(household=household, user=closed_by, action='close_period')

    period_start = household.current_period_start
    if Settlement.objects.filter(household=household, period_start=period_start).exists():
        raise AlreadySettledError("This period has already been settled")

    open_purchases = Purchase.objects.filter(household=household, settlement__isnull=True)
    # A repeat close with nothing recorded since the last one is the same close again
    if not open_purchases.exists() and Settlement.objects.filter(
        household=household, period_end=period_start
    ).exists():
        raise AlreadySettledError("This period has already been settled")

    period_end = timezone.now()
    shares = _resolve_rent_shares(household.pk, rent_shares)
    balances = balance_ledger.snapshot(household_id=household.pk, for_update=True)

    # Members with no purchases yet still get a line
    for member_id in shares:
        balances.setdefault(member_id, None)

    totals = open_purchases.aggregate(total=Sum('amount'))

    try:
        with transaction.atomic():
            settlement = Settlement.objects.create(
                household=household,
                period_start=period_start,
                period_end=period_end,
                closed_by=closed_by,
                purchase_count=open_purchases.count(),
                total_amount=totals['total'] or 0,
            )
    except IntegrityError:
        # A concurrent close got there first
        raise AlreadySettledError("This period has already been settled")

    lines = []
    for member_id, entry in balances.items():
        total_purchased = entry.total_purchased if entry else 0
        expected_purchases = entry.expected_purchases if entry else 0
        net_balance = total_purchased - expected_purchases
        base_share = shares.get(member_id, 0)
        lines.append(SettlementLine(
            settlement=settlement,
            member_id=member_id,
            total_purchased=total_purchased,
            expected_purchases=expected_purchases,
            net_balance=net_balance,
            base_rent_share=base_share,
            adjusted_rent=compute_adjusted_rent(base_share, net_balance),
        ))
    SettlementLine.objects.bulk_create(lines)

    archived = open_purchases.update(settlement=settlement)

    balance_ledger.reset(household_id=household.pk)
    # Former members' rows are zero now and have nothing left to carry
    BalanceEntry.objects.filter(household=household).exclude(
        member_id__in=household.memberships.values('user_id')
    ).delete()

    household.current_period_start = period_end
    household.save(update_fields=['current_period_start', 'updated_at'])

    logger.info(
        "Household %s settled by %s: %d purchases archived into settlement %s",
        household.pk, closed_by.pk, archived, settlement.pk,
    )
    return settlement


def list_settlements(*, household_id: UUID) -> QuerySet[Settlement]:
    return (
        Settlement.objects
        .filter(household_id=household_id)
        .select_related('closed_by')
        .prefetch_related('lines__member')
        .order_by('-period_end')
    )


def get_settlement(*, settlement_id: UUID) -> Settlement:
    try:
        return (
            Settlement.objects
            .select_related('household', 'closed_by')
            .prefetch_related('lines__member')
            .get(pk=settlement_id)
        )
    except Settlement.DoesNotExist:
        raise SettlementNotFoundError(f"Settlement with ID {settlement_id} not found")


def _resolve_rent_shares(household_id: UUID, overrides: Optional[Mapping]) -> Dict[str, int]:
    shares = {
        str(user_id): share
        for user_id, share in HouseholdMembership.objects
        .filter(household_id=household_id)
        .values_list('user_id', 'base_rent_share')
    }

    for member_id, amount in (overrides or {}).items():
        if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
            raise InvalidAmountError("Rent shares must be non-negative integer amounts")
        if str(member_id) not in shares:
            raise NotHouseholdMemberError("Rent share given for someone who is not a member")
        shares[str(member_id)] = amount

    return shares
