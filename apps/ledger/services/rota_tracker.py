"""
Rota tracker.

Whose turn it is to buy an item is a pure function of the rota order and
the turn index. Everything here works on an immutable ``RotaState`` and
returns a new one; persisting the result is the caller's job.
"""

from dataclasses import dataclass, replace
from typing import Iterable, Optional, Sequence, Tuple

from .exceptions import InvalidRotaStateError, MemberNotInRotaError


@dataclass(frozen=True)
class RotaState:
    order: Tuple[str, ...]
    index: int = 0

    @classmethod
    def from_item(cls, item) -> 'RotaState':
        return cls(order=tuple(str(m) for m in item.rota_order), index=item.current_turn_index)


def validate_rota_order(order: Sequence, member_ids: Iterable) -> Tuple[str, ...]:
    """
    Normalise a proposed rota order to a tuple of id strings.

    Raises:
        InvalidRotaStateError: If the order is empty or has duplicates
        MemberNotInRotaError: If an entry is not a household member
    """
    normalised = tuple(str(m) for m in order)
    if not normalised:
        raise InvalidRotaStateError("A rota needs at least one member")
    if len(set(normalised)) != len(normalised):
        raise InvalidRotaStateError("A member can appear in a rota only once")

    members = {str(m) for m in member_ids}
    outsiders = [m for m in normalised if m not in members]
    if outsiders:
        raise MemberNotInRotaError("Every rota entry must be a member of the household")
    return normalised


def current_buyer(state: RotaState) -> str:
    """Return the member whose turn it is."""
    if not state.order:
        raise InvalidRotaStateError("Rota is empty")
    if not 0 <= state.index < len(state.order):
        raise InvalidRotaStateError("Rota turn index is out of range")
    return state.order[state.index]


def advance(state: RotaState) -> RotaState:
    """Move the turn to the next member, wrapping at the end."""
    if not state.order:
        raise InvalidRotaStateError("Rota is empty")
    return replace(state, index=(state.index + 1) % len(state.order))


def set_turn(state: RotaState, member_id) -> RotaState:
    """Admin override: make it ``member_id``'s turn."""
    member_id = str(member_id)
    if member_id not in state.order:
        raise MemberNotInRotaError("Member is not part of this rota")
    return replace(state, index=state.order.index(member_id))


def reorder(state: RotaState, new_order: Sequence) -> RotaState:
    """
    Replace the rota order.

    The member whose turn it currently is keeps the turn when they are
    still in the new order; otherwise the turn restarts at the top.
    """
    new_order = tuple(str(m) for m in new_order)
    if not new_order:
        raise InvalidRotaStateError("A rota needs at least one member")

    holder: Optional[str] = None
    if state.order and 0 <= state.index < len(state.order):
        holder = state.order[state.index]

    index = new_order.index(holder) if holder in new_order else 0
    return RotaState(order=new_order, index=index)


def remove_member(state: RotaState, member_id) -> RotaState:
    """
    Drop a member from the rota and renormalise the turn index.

    Removing someone before the current turn shifts the index back by one.
    Removing the current buyer hands the turn to whoever followed them.
    An empty result has index 0.
    """
    member_id = str(member_id)
    if member_id not in state.order:
        return state

    position = state.order.index(member_id)
    remaining = state.order[:position] + state.order[position + 1:]
    if not remaining:
        return RotaState(order=(), index=0)

    index = state.index
    if position < index:
        index -= 1
    return RotaState(order=remaining, index=index % len(remaining))
