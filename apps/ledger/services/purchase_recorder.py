"""
Purchase recorder.

Applies one purchase event: reads whose turn it was, writes the Purchase,
advances the rota and books the balance deltas, all in one transaction.
Transactions that lose a race against another writer are retried with
exponential backoff a bounded number of times before giving up.
"""

import logging
import time
from datetime import datetime
from typing import Optional
from uuid import UUID

from django.db import transaction, IntegrityError, OperationalError

from apps.accounts.models import User
from apps.households.services import require_household_member
from apps.ledger.models import Purchase

from . import rota_tracker
from .balance_ledger import apply_delta
from .exceptions import (
    InactiveRotaItemError,
    InvalidAmountError,
    PurchaseConflictError,
)
from .retry import backoff_delay, max_attempts
from .rota_management import compare_and_swap, load_item_for_write
from .rota_tracker import RotaState

logger = logging.getLogger(__name__)


class StaleRotaError(Exception):
    """The rota moved between read and write; the attempt must be redone."""
    pass


def record_purchase(
    *,
    item_id: UUID,
    member: User,
    amount: int,
    purchased_at: Optional[datetime] = None,
    client_reference: str = '',
    note: str = ''
) -> Purchase:
    """
    Record that ``member`` bought ``item_id`` for ``amount`` minor units.

    The buyer whose turn it was is charged the obligation, the actual
    buyer is credited, and the rota moves on by exactly one. Passing the
    same ``client_reference`` again returns the first Purchase untouched.

    The returned Purchase carries ``replayed`` (True for a repeated
    ``client_reference``).

    Raises:
        InvalidAmountError: If amount is not a non-negative integer
        RotaItemNotFoundError: If the item doesn't exist
        NotHouseholdMemberError: If member doesn't belong to the household
        InactiveRotaItemError: If the item is deactivated
        InvalidRotaStateError: If the rota is empty
        PurchaseConflictError: If every retry lost to a concurrent write
    """
    if not isinstance(amount, int) or isinstance(amount, bool) or amount < 0:
        raise InvalidAmountError("Amount must be a non-negative integer in minor currency units")

    client_reference = (client_reference or '').strip()
    max_retries = max_attempts()

    # Retry loop sits outside the transaction so every attempt reads fresh state
    for attempt in range(1, max_retries + 1):
        try:
            return _record_once(
                item_id=item_id,
                member=member,
                amount=amount,
                purchased_at=purchased_at,
                client_reference=client_reference,
                note=note,
            )
        except IntegrityError as exc:
            # Only a client_reference collision is a lost race; the next
            # attempt finds the winner and returns it as a replay
            if not client_reference:
                raise
            lost = exc
        except (StaleRotaError, OperationalError) as exc:
            lost = exc

        logger.info(
            "Purchase on item %s by %s hit a concurrent write (attempt %d/%d): %s",
            item_id, member.pk, attempt, max_retries, lost.__class__.__name__,
        )
        if attempt < max_retries:
            time.sleep(backoff_delay(attempt))

    logger.warning(
        "Giving up on purchase of item %s by %s after %d attempts",
        item_id, member.pk, max_retries,
    )
    raise PurchaseConflictError("The item was updated by someone else at the same time, please retry")


@transaction.atomic
def _record_once(
    *,
    item_id: UUID,
    member: User,
    amount: int,
    purchased_at: Optional[datetime],
    client_reference: str,
    note: str
) -> Purchase:
    household, item = load_item_for_write(item_id)
    require_household_member(household=household, user=member)

    if client_reference:
        existing = Purchase.objects.filter(
            household=household,
            client_reference=client_reference,
        ).first()
        if existing is not None:
            existing.replayed = True
            return existing

    if not item.is_active:
        raise InactiveRotaItemError("This item has been deactivated")

    state = RotaState.from_item(item)
    expected_by = rota_tracker.current_buyer(state)

    purchase_kwargs = {}
    if purchased_at is not None:
        purchase_kwargs['purchased_at'] = purchased_at

    purchase = Purchase.objects.create(
        household=household,
        item=item,
        purchased_by=member,
        expected_by_id=UUID(expected_by),
        amount=amount,
        client_reference=client_reference,
        note=note or '',
        **purchase_kwargs,
    )

    if not compare_and_swap(item, rota_tracker.advance(state)):
        # Raising rolls back the purchase row as well
        raise StaleRotaError(f"Rota item {item.pk} changed during purchase")

    # The obligation belongs to whoever's turn it was, the credit to whoever paid
    apply_delta(
        household_id=household.pk,
        member_id=expected_by,
        expected_purchases_delta=amount,
    )
    apply_delta(
        household_id=household.pk,
        member_id=member.pk,
        total_purchased_delta=amount,
    )

    if purchase.is_out_of_turn:
        logger.info(
            "Out-of-turn purchase %s: %s bought item %s, expected %s",
            purchase.id, member.pk, item.pk, expected_by,
        )
    else:
        logger.info("Purchase %s of item %s by %s", purchase.id, item.pk, member.pk)

    purchase.replayed = False
    return purchase

