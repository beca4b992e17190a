"""
splits.py - the split calculator

Turns (total, participants, payer, method) into per-person ExpenseSplit rows
and keeps them consistent while a user edits individual fields.

The editing session is a pure reducer:

    state = initial_state(total, currency, participants, payer, "shares")
    state = apply_edit(state, SetShares("bob", 2))

No state is mutated in place; each edit returns a new SplitState.

Rounding:
 - equal and shares split the total with money.apportion (largest remainder
   in cents, ties go to the payer first, then participant order), so the set
   always sums to the cent.
 - percentage rounds each amount on its own until the percentages total
   exactly 100, then re-apportions the whole set the same way.
 - exact never redistributes; the user must make the amounts add up.
"""

import logging
from dataclasses import dataclass, replace
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional, Sequence, Tuple

from .config import config
from .errors import InvalidInput
from .models import SPLIT_METHODS, ExpenseSplit, Participant, SplitResult, SplitValidation
from .money import (
    HUNDRED,
    ZERO,
    amounts_close,
    apportion,
    normalize_currency,
    parse_amount,
    percentage_of,
    round_money,
    to_cents,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SplitState:
    total_amount: Decimal
    currency: str
    method: str
    payer_user_id: str
    participants: Tuple[Participant, ...]
    splits: Tuple[ExpenseSplit, ...]


# -----------------------
# Edit events
# -----------------------
@dataclass(frozen=True)
class ChangeMethod:
    method: str


@dataclass(frozen=True)
class ChangeTotal:
    total_amount: Any


@dataclass(frozen=True)
class SetAmount:
    user_id: str
    amount: Any


@dataclass(frozen=True)
class SetPercentage:
    user_id: str
    percentage: Any


@dataclass(frozen=True)
class SetShares:
    user_id: str
    shares: Any


# -----------------------
# Input checks
# -----------------------
def _check_total(total_amount: Any) -> Decimal:
    total = parse_amount(total_amount, "totalAmount")
    if total <= 0:
        raise InvalidInput(f"totalAmount must be positive, got {total}", "invalid_amount")
    return total


def _check_method(method: str) -> str:
    if method not in SPLIT_METHODS:
        raise InvalidInput(
            f"splitMethod must be one of {', '.join(SPLIT_METHODS)}, got {method!r}",
            "invalid_split_method",
        )
    return method


def _check_participants(participants: Iterable[Participant], payer_user_id: str) -> Tuple[Participant, ...]:
    members = tuple(participants or ())
    if not members:
        raise InvalidInput("at least one participant is required", "missing_participants")
    seen = set()
    for member in members:
        if member.user_id in seen:
            raise InvalidInput(f"participant {member.user_id!r} is listed twice", "duplicate_participant")
        seen.add(member.user_id)
    if payer_user_id not in seen:
        raise InvalidInput(f"payer {payer_user_id!r} is not a participant", "payer_not_in_participants")
    return members


def _index_of(splits: Sequence[ExpenseSplit], user_id: str) -> Optional[int]:
    for i, split in enumerate(splits):
        if split.user_id == user_id:
            return i
    return None


def _require_index(splits: Sequence[ExpenseSplit], user_id: str) -> int:
    index = _index_of(splits, user_id)
    if index is None:
        raise InvalidInput(f"user {user_id!r} is not part of this split", "unknown_participant")
    return index


def _require_method(state: SplitState, method: str, field: str) -> None:
    if state.method != method:
        raise InvalidInput(
            f"{field} can only be edited with the {method} method (current: {state.method})",
            "invalid_edit",
        )


def _parse_shares(value: Any) -> int:
    if isinstance(value, bool):
        raise InvalidInput("shares must be a whole number", "invalid_edit")
    try:
        shares = Decimal(str(value).strip())
    except InvalidOperation:
        raise InvalidInput(f"shares must be a whole number, got {value!r}", "invalid_edit") from None
    if not shares.is_finite() or shares != shares.to_integral_value():
        raise InvalidInput(f"shares must be a whole number, got {value!r}", "invalid_edit")
    if shares < 0:
        raise InvalidInput("shares must not be negative", "invalid_edit")
    return int(shares)


# -----------------------
# Per-method recalculation
# -----------------------
def _recalculate_from_shares(total: Decimal, splits: Sequence[ExpenseSplit], payer_user_id: str) -> Tuple[ExpenseSplit, ...]:
    weights = [s.shares or 0 for s in splits]
    total_shares = sum(weights)
    if total_shares == 0:
        return tuple(replace(s, amount=ZERO, percentage=ZERO) for s in splits)

    amounts = apportion(total, weights, first=_index_of(splits, payer_user_id))
    return tuple(
        replace(s, amount=amount, percentage=round_money(Decimal(weight) * HUNDRED / total_shares))
        for s, weight, amount in zip(splits, weights, amounts)
    )


def _recalculate_from_percentages(total: Decimal, splits: Sequence[ExpenseSplit], payer_user_id: str) -> Tuple[ExpenseSplit, ...]:
    percentages = [s.percentage or ZERO for s in splits]
    if sum(percentages) == HUNDRED:
        amounts = apportion(total, [to_cents(p) for p in percentages], first=_index_of(splits, payer_user_id))
    else:
        amounts = [round_money(total * p / HUNDRED) for p in percentages]
    return tuple(replace(s, amount=amount) for s, amount in zip(splits, amounts))


def _initial_splits(total: Decimal, participants: Sequence[Participant], payer_user_id: str, method: str) -> Tuple[ExpenseSplit, ...]:
    if method == "equal":
        count = len(participants)
        amounts = apportion(total, [1] * count, first=[p.user_id for p in participants].index(payer_user_id))
        percentage = round_money(HUNDRED / count)
        return tuple(
            ExpenseSplit(
                user_id=p.user_id,
                user_name=p.user_name,
                amount=amount,
                percentage=percentage,
                shares=1,
                is_paid=p.user_id == payer_user_id,
            )
            for p, amount in zip(participants, amounts)
        )

    # exact and percentage start empty, shares start at one each
    start_shares = 1 if method == "shares" else 0
    splits = tuple(
        ExpenseSplit(
            user_id=p.user_id,
            user_name=p.user_name,
            amount=ZERO,
            percentage=ZERO,
            shares=start_shares,
            is_paid=p.user_id == payer_user_id,
        )
        for p in participants
    )
    if method == "shares":
        return _recalculate_from_shares(total, splits, payer_user_id)
    return splits


# -----------------------
# Public API
# -----------------------
def initial_state(
    total_amount: Any,
    currency: Optional[str],
    participants: Iterable[Participant],
    payer_user_id: str,
    method: str = "equal",
) -> SplitState:
    """Validate the inputs and build the starting splits for `method`."""
    total = _check_total(total_amount)
    code = normalize_currency(currency, config.DEFAULT_CURRENCY)
    members = _check_participants(participants, payer_user_id)
    method = _check_method(method)
    return SplitState(
        total_amount=total,
        currency=code,
        method=method,
        payer_user_id=payer_user_id,
        participants=members,
        splits=_initial_splits(total, members, payer_user_id, method),
    )


def apply_edit(state: SplitState, event: Any) -> SplitState:
    """Return the state that results from one user edit."""
    if isinstance(event, ChangeMethod):
        method = _check_method(event.method)
        return replace(
            state,
            method=method,
            splits=_initial_splits(state.total_amount, state.participants, state.payer_user_id, method),
        )

    if isinstance(event, ChangeTotal):
        total = _check_total(event.total_amount)
        return replace(
            state,
            total_amount=total,
            splits=_initial_splits(total, state.participants, state.payer_user_id, state.method),
        )

    if isinstance(event, SetAmount):
        _require_method(state, "exact", "amount")
        index = _require_index(state.splits, event.user_id)
        amount = parse_amount(event.amount, "amount", "invalid_edit")
        if amount < 0:
            raise InvalidInput("amount must not be negative", "invalid_edit")
        splits = list(state.splits)
        splits[index] = replace(splits[index], amount=amount)
        # percentages are display-only for exact splits
        splits = [replace(s, percentage=percentage_of(s.amount, state.total_amount)) for s in splits]
        return replace(state, splits=tuple(splits))

    if isinstance(event, SetPercentage):
        _require_method(state, "percentage", "percentage")
        index = _require_index(state.splits, event.user_id)
        percentage = parse_amount(event.percentage, "percentage", "invalid_edit")
        if percentage < 0 or percentage > HUNDRED:
            raise InvalidInput("percentage must be between 0 and 100", "invalid_edit")
        splits = list(state.splits)
        splits[index] = replace(splits[index], percentage=percentage)
        return replace(
            state,
            splits=_recalculate_from_percentages(state.total_amount, splits, state.payer_user_id),
        )

    if isinstance(event, SetShares):
        _require_method(state, "shares", "shares")
        index = _require_index(state.splits, event.user_id)
        splits = list(state.splits)
        splits[index] = replace(splits[index], shares=_parse_shares(event.shares))
        return replace(
            state,
            splits=_recalculate_from_shares(state.total_amount, splits, state.payer_user_id),
        )

    raise InvalidInput(f"unsupported edit {type(event).__name__}", "invalid_edit")


def validate_split(splits: Sequence[ExpenseSplit], total_amount: Any, method: Optional[str] = None) -> SplitValidation:
    """
    Check whether a split set may be submitted.

    Percentage sets must first total 100; every set must then total the
    expense amount. Both checks use a strict 0.01 tolerance, so 99.99% and
    100.01% are both rejected. The discrepancy is signed: expected minus actual.
    """
    total = _check_total(total_amount)
    if method is not None:
        _check_method(method)
    if not splits:
        raise InvalidInput("at least one split is required", "missing_participants")
    for split in splits:
        if split.amount < 0:
            raise InvalidInput(f"split amount for {split.user_id!r} is negative", "invalid_amount")

    if method == "percentage":
        percentage_total = sum((s.percentage or ZERO for s in splits), ZERO)
        if not amounts_close(percentage_total, HUNDRED):
            return SplitValidation(False, HUNDRED - percentage_total, "percentage")

    amount_total = sum((s.amount for s in splits), ZERO)
    discrepancy = total - amount_total
    return SplitValidation(amounts_close(amount_total, total), discrepancy, "amount")


def compute_split(
    total_amount: Any,
    currency: Optional[str],
    participants: Iterable[Participant],
    payer_user_id: str,
    method: str,
    edits: Iterable[Any] = (),
) -> SplitResult:
    """Build the splits for `method`, replay `edits` over them and validate the result."""
    state = initial_state(total_amount, currency, participants, payer_user_id, method)
    for event in edits:
        state = apply_edit(state, event)
    validation = validate_split(state.splits, state.total_amount, state.method)
    logger.debug(
        "Computed %s split of %s %s over %d participants (valid=%s)",
        state.method, state.total_amount, state.currency, len(state.splits), validation.is_valid,
    )
    return SplitResult(
        splits=state.splits,
        is_valid=validation.is_valid,
        discrepancy=validation.discrepancy,
        currency=state.currency,
        field=validation.field,
    )
