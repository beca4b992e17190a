"""SplitZone core: expense split calculator and debt simplifier."""

from .errors import ImbalancedLedger, InvalidInput, SplitZoneError
from .models import (
    Debt,
    ExpenseSplit,
    NetBalance,
    Participant,
    SettlementSuggestion,
    SplitResult,
    SplitValidation,
)
from .settlements import apply_suggestions, net_balances_from_debts, simplify_debts
from .splits import (
    ChangeMethod,
    ChangeTotal,
    SetAmount,
    SetPercentage,
    SetShares,
    SplitState,
    apply_edit,
    compute_split,
    initial_state,
    validate_split,
)

__version__ = "0.1.0"
