"""
Balance ledger.

Keeps one BalanceEntry per member for the open period. Only the two
running totals are stored; the net position is derived from them.
Every write here expects to run inside the caller's transaction.
"""

import logging
from typing import Dict, List
from uuid import UUID

from django.db import transaction
from django.db.models import F, QuerySet, Sum
from django.utils import timezone

from apps.ledger.models import BalanceEntry, Purchase

logger = logging.getLogger(__name__)


def apply_delta(
    *,
    household_id: UUID,
    member_id: UUID,
    total_purchased_delta: int = 0,
    expected_purchases_delta: int = 0
) -> None:
    """
    Add to a member's running totals.

    The update is a single ``UPDATE ... SET col = col + delta`` so two
    deltas against the same row can never overwrite each other.
    """
    if total_purchased_delta < 0 or expected_purchases_delta < 0:
        raise ValueError("Balance deltas must be non-negative")

    entry, _ = BalanceEntry.objects.get_or_create(household_id=household_id, member_id=member_id)
    BalanceEntry.objects.filter(pk=entry.pk).update(
        total_purchased=F('total_purchased') + total_purchased_delta,
        expected_purchases=F('expected_purchases') + expected_purchases_delta,
        last_updated=timezone.now(),
    )


def get_balances(*, household_id: UUID) -> QuerySet[BalanceEntry]:
    """Read-only listing of a household's open-period balances."""
    return (
        BalanceEntry.objects
        .filter(household_id=household_id)
        .select_related('member')
        .order_by('member__created_at')
    )


def snapshot(*, household_id: UUID, for_update: bool = False) -> Dict[str, BalanceEntry]:
    """
    Map member id string -> BalanceEntry for the open period.

    With ``for_update`` the rows are locked until the caller's transaction ends.
    """
    qs = BalanceEntry.objects.filter(household_id=household_id).select_related('member')
    if for_update:
        qs = qs.select_for_update()
    return {str(entry.member_id): entry for entry in qs}


@transaction.atomic
def reset(*, household_id: UUID) -> int:
    """Zero every member's totals. Only the settlement engine calls this."""
    updated = BalanceEntry.objects.filter(household_id=household_id).update(
        total_purchased=0,
        expected_purchases=0,
        last_updated=timezone.now(),
    )
    logger.info("Reset %d balance entries for household %s", updated, household_id)
    return updated


def recompute(*, household_id: UUID) -> Dict[str, Dict[str, int]]:
    """
    Rebuild open-period totals from the household's unsettled purchases.

    Returns:
        member id string -> {'total_purchased': int, 'expected_purchases': int}
    """
    totals: Dict[str, Dict[str, int]] = {}

    def bucket(member_id):
        return totals.setdefault(str(member_id), {'total_purchased': 0, 'expected_purchases': 0})

    open_purchases = Purchase.objects.filter(household_id=household_id, settlement__isnull=True).order_by()
    for row in open_purchases.values('purchased_by_id').annotate(total=Sum('amount')):
        bucket(row['purchased_by_id'])['total_purchased'] = row['total']
    for row in open_purchases.values('expected_by_id').annotate(total=Sum('amount')):
        bucket(row['expected_by_id'])['expected_purchases'] = row['total']
    return totals


def find_drift(*, household_id: UUID) -> List[Dict]:
    """
    Compare stored balances with ``recompute``. An empty list means no drift.
    """
    expected = recompute(household_id=household_id)
    stored = snapshot(household_id=household_id)

    drift = []
    for member_id in sorted(set(expected) | set(stored)):
        want = expected.get(member_id, {'total_purchased': 0, 'expected_purchases': 0})
        entry = stored.get(member_id)
        have = {
            'total_purchased': entry.total_purchased if entry else 0,
            'expected_purchases': entry.expected_purchases if entry else 0,
        }
        if want != have:
            drift.append({'member_id': member_id, 'stored': have, 'recomputed': want})
    return drift
