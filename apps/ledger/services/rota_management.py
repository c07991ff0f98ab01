"""
Rota management service.

Creates rota items and applies admin overrides (reorder, set turn,
deactivate). Each write locks the owning household first and then
compare-and-swaps the item's ``version`` so a concurrent purchase and an
override can never both apply against the same starting state.
"""

import logging
from typing import Iterable, Optional, Tuple
from uuid import UUID

from django.db import transaction
from django.db.models import F, QuerySet
from django.utils import timezone

from apps.accounts.models import User
from apps.households.models import Household
from apps.households.services import (
    lock_household,
    require_household_admin,
    require_household_member,
)
from apps.ledger.models import RotaItem

from . import rota_tracker
from .exceptions import (
    RotaItemNotFoundError,
    InactiveRotaItemError,
    RotaConflictError,
)
from .rota_tracker import RotaState

logger = logging.getLogger(__name__)


def compare_and_swap(item: RotaItem, state: RotaState, **extra) -> bool:
    """
    Persist ``state`` only if nobody has written the item since it was read.

    Returns False when the stored version no longer matches ``item.version``.
    """
    updated = RotaItem.objects.filter(pk=item.pk, version=item.version).update(
        rota_order=list(state.order),
        current_turn_index=state.index,
        version=F('version') + 1,
        updated_at=timezone.now(),
        **extra,
    )
    return updated == 1


def get_rota_item(*, item_id: UUID) -> RotaItem:
    try:
        return RotaItem.objects.select_related('household').get(pk=item_id)
    except RotaItem.DoesNotExist:
        raise RotaItemNotFoundError(f"Rota item with ID {item_id} not found")


def list_rota_items(*, household_id: UUID, include_inactive: bool = False) -> QuerySet[RotaItem]:
    qs = RotaItem.objects.filter(household_id=household_id)
    if not include_inactive:
        qs = qs.filter(is_active=True)
    return qs.order_by('name')


def load_item_for_write(item_id: UUID) -> Tuple[Household, RotaItem]:
    """
    Lock the item's household and return it with a fresh copy of the item.

    Must be called inside a transaction.
    """
    household_id = (
        RotaItem.objects
        .filter(pk=item_id)
        .values_list('household_id', flat=True)
        .first()
    )
    if household_id is None:
        raise RotaItemNotFoundError(f"Rota item with ID {item_id} not found")

    household = lock_household(household_id)
    item = RotaItem.objects.get(pk=item_id)
    return household, item


@transaction.atomic
def create_rota_item(
    *,
    household_id: UUID,
    name: str,
    rota_order: Iterable,
    created_by: User
) -> RotaItem:
    """
    Add a shared item with its buying rota. Any member may do this.

    Raises:
        NotHouseholdMemberError: If created_by is not a member
        InvalidRotaStateError: If the rota is empty or has duplicates
        MemberNotInRotaError: If the rota names a non-member
    """
    household = lock_household(household_id)
    require_household_member(household=household, user=created_by)

    order = rota_tracker.validate_rota_order(list(rota_order), household.member_ids())

    item = RotaItem.objects.create(
        household=household,
        name=name,
        rota_order=list(order),
        current_turn_index=0,
        created_by=created_by,
    )
    logger.info("Rota item %s created in household %s by %s", item.id, household.id, created_by.id)
    return item


@transaction.atomic
def update_rota_order(*, item_id: UUID, rota_order: Iterable, updated_by: User) -> RotaItem:
    """
    Replace an item's rota (admin only).

    The member whose turn it is keeps it if they are still in the new
    order; otherwise the turn goes to the first member.
    """
    household, item = load_item_for_write(item_id)
    require_household_admin(household=household, user=updated_by, action='update_rota_order')
    _require_active(item)

    order = rota_tracker.validate_rota_order(list(rota_order), household.member_ids())
    state = rota_tracker.reorder(RotaState.from_item(item), order)

    _store(item, state)
    logger.info("Rota for item %s reordered by %s", item.id, updated_by.id)
    return get_rota_item(item_id=item.id)


@transaction.atomic
def set_turn(*, item_id: UUID, member_id: UUID, updated_by: User) -> RotaItem:
    """
    Admin override of whose turn it is.

    Raises:
        NotAuthorizedError: If updated_by is not the admin
        MemberNotInRotaError: If member_id is not in the rota
    """
    household, item = load_item_for_write(item_id)
    require_household_admin(household=household, user=updated_by, action='set_turn')
    _require_active(item)

    state = rota_tracker.set_turn(RotaState.from_item(item), member_id)

    _store(item, state)
    logger.info("Turn for item %s set to %s by %s", item.id, member_id, updated_by.id)
    return get_rota_item(item_id=item.id)


@transaction.atomic
def deactivate_rota_item(*, item_id: UUID, deactivated_by: User) -> RotaItem:
    """Retire an item so no more purchases can be recorded against it (admin only)."""
    household, item = load_item_for_write(item_id)
    require_household_admin(household=household, user=deactivated_by, action='deactivate_rota_item')

    if item.is_active:
        _store(item, RotaState.from_item(item), is_active=False)
        logger.info("Rota item %s deactivated by %s", item.id, deactivated_by.id)
    return get_rota_item(item_id=item.id)


def drop_member_from_rotas(*, household: Household, member_id) -> int:
    """
    Take a departing member out of every rota in the household.

    The caller holds the household lock. Turn indices are renormalised by
    ``rota_tracker.remove_member``; a rota left empty deactivates its item.

    Returns:
        Number of rota items changed
    """
    changed = 0
    member_key = str(member_id)

    for item in RotaItem.objects.filter(household=household):
        if member_key not in [str(m) for m in item.rota_order]:
            continue

        state = rota_tracker.remove_member(RotaState.from_item(item), member_key)
        extra = {} if state.order else {'is_active': False}
        _store(item, state, **extra)
        changed += 1

        if not state.order:
            logger.info("Rota item %s deactivated: last member %s left", item.id, member_key)

    if changed:
        logger.info("Removed member %s from %d rota(s) in household %s", member_key, changed, household.id)
    return changed


def _store(item: RotaItem, state: RotaState, **extra) -> None:
    if not compare_and_swap(item, state, **extra):
        raise RotaConflictError("The rota was changed by someone else, please retry")


def _require_active(item: RotaItem, message: Optional[str] = None) -> None:
    if not item.is_active:
        raise InactiveRotaItemError(message or "This item has been deactivated")
