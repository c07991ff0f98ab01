"""
Ledger app services layer.

Rota tracking, purchase recording, running balances and period
settlement. Views call these functions and translate the exceptions in
``exceptions`` to HTTP responses.
"""

from .exceptions import (
    LedgerServiceError,
    RotaItemNotFoundError,
    SettlementNotFoundError,
    InvalidRotaStateError,
    MemberNotInRotaError,
    InactiveRotaItemError,
    InvalidAmountError,
    PurchaseConflictError,
    AlreadySettledError,
    SettlementConflictError,
    RotaConflictError,
    ImmutableRecordError,
    NotAuthorizedError,
    NotHouseholdMemberError,
    HouseholdNotFoundError,
)

from .rota_tracker import (
    RotaState,
    current_buyer,
    advance,
    validate_rota_order,
)

from .rota_management import (
    get_rota_item,
    list_rota_items,
    create_rota_item,
    update_rota_order,
    set_turn,
    deactivate_rota_item,
    drop_member_from_rotas,
)

from .purchase_recorder import (
    record_purchase,
)

from .balance_ledger import (
    apply_delta,
    get_balances,
    snapshot,
    find_drift,
)

from .settlement_engine import (
    close_period,
    compute_adjusted_rent,
    list_settlements,
    get_settlement,
)


__all__ = [
    # Exceptions
    'LedgerServiceError',
    'RotaItemNotFoundError',
    'SettlementNotFoundError',
    'InvalidRotaStateError',
    'MemberNotInRotaError',
    'InactiveRotaItemError',
    'InvalidAmountError',
    'PurchaseConflictError',
    'AlreadySettledError',
    'SettlementConflictError',
    'RotaConflictError',
    'ImmutableRecordError',
    'NotAuthorizedError',
    'NotHouseholdMemberError',
    'HouseholdNotFoundError',

    # Rota tracker
    'RotaState',
    'current_buyer',
    'advance',
    'validate_rota_order',

    # Rota management
    'get_rota_item',
    'list_rota_items',
    'create_rota_item',
    'update_rota_order',
    'set_turn',
    'deactivate_rota_item',
    'drop_member_from_rotas',

    # Purchases
    'record_purchase',

    # Balances
    'apply_delta',
    'get_balances',
    'snapshot',
    'find_drift',

    # Settlement
    'close_period',
    'compute_adjusted_rent',
    'list_settlements',
    'get_settlement',
]
