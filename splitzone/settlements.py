"""
settlements.py - the debt simplifier

Given a group's net balances, suggest the payments that settle everyone.

 - simplify=True: greedy min-cash-flow. The largest creditor is repeatedly
   paired with the largest debtor (ties broken by user id), which needs at
   most n - 1 payments. It is not guaranteed to be the theoretical minimum.
 - simplify=False: direct debts. Pairwise debts are netted only between the
   same two people; one suggestion per pair that still owes something.

A ledger whose balances do not sum to zero is rejected with ImbalancedLedger,
never patched up here.
"""

import heapq
import logging
from collections import OrderedDict
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from .config import config
from .errors import ImbalancedLedger, InvalidInput
from .models import Debt, NetBalance, Participant, SettlementSuggestion
from .money import CENT, RECONCILIATION_TOLERANCE, ZERO, normalize_currency, round_money

logger = logging.getLogger(__name__)


def check_ledger(balances: Sequence[NetBalance]) -> Decimal:
    """Return the sum of the balances; raise ImbalancedLedger when it is not ~0."""
    total = round_money(sum((b.net_amount for b in balances), ZERO))
    if abs(total) > RECONCILIATION_TOLERANCE:
        logger.error(
            "Imbalanced ledger: net balances sum to %s (tolerance %s)", total, RECONCILIATION_TOLERANCE
        )
        raise ImbalancedLedger(total, RECONCILIATION_TOLERANCE)
    return total


def _check_unique(balances: Sequence[NetBalance]) -> None:
    seen = set()
    for balance in balances:
        if balance.user_id in seen:
            raise InvalidInput(f"user {balance.user_id!r} has more than one balance", "duplicate_participant")
        seen.add(balance.user_id)


def net_balances_from_debts(debts: Iterable[Debt]) -> List[NetBalance]:
    """Creditors gain, debtors lose; users are listed in order of first appearance."""
    totals: Dict[str, Decimal] = OrderedDict()
    names: Dict[str, str] = {}
    for debt in debts:
        for person, signed in ((debt.debtor, -debt.amount), (debt.creditor, debt.amount)):
            totals[person.user_id] = totals.get(person.user_id, ZERO) + signed
            names.setdefault(person.user_id, person.user_name)
    return [NetBalance(user_id, names[user_id], round_money(amount)) for user_id, amount in totals.items()]


def apply_suggestions(balances: Sequence[NetBalance], suggestions: Iterable[SettlementSuggestion]) -> List[NetBalance]:
    """
    Return the balances left after every suggested payment is made.

    The payer's balance rises by the amount (they owe less), the recipient's
    falls by the same amount (they are owed less).
    """
    remaining: Dict[str, Decimal] = OrderedDict((b.user_id, b.net_amount) for b in balances)
    names = {b.user_id: b.user_name for b in balances}
    for suggestion in suggestions:
        for person, signed in ((suggestion.from_user, suggestion.amount), (suggestion.to_user, -suggestion.amount)):
            remaining[person.user_id] = remaining.get(person.user_id, ZERO) + signed
            names.setdefault(person.user_id, person.user_name)
    return [NetBalance(user_id, names[user_id], amount) for user_id, amount in remaining.items()]


def _simplified(balances: Sequence[NetBalance], currency: str) -> List[SettlementSuggestion]:
    # heaps of (-remaining, user_id, participant); user ids are unique so
    # participants are never compared
    creditors: List[Tuple[Decimal, str, Participant]] = []
    debtors: List[Tuple[Decimal, str, Participant]] = []
    for balance in balances:
        amount = round_money(balance.net_amount)
        if abs(amount) < CENT:
            continue
        if amount > 0:
            heapq.heappush(creditors, (-amount, balance.user_id, balance.participant))
        else:
            heapq.heappush(debtors, (amount, balance.user_id, balance.participant))

    suggestions: List[SettlementSuggestion] = []
    while creditors and debtors:
        neg_credit, creditor_id, creditor = heapq.heappop(creditors)
        neg_owed, debtor_id, debtor = heapq.heappop(debtors)
        credit, owed = -neg_credit, -neg_owed

        amount = round_money(min(credit, owed))
        suggestions.append(SettlementSuggestion(debtor, creditor, amount, currency))

        credit -= amount
        owed -= amount
        if credit >= CENT:
            heapq.heappush(creditors, (-credit, creditor_id, creditor))
        if owed >= CENT:
            heapq.heappush(debtors, (-owed, debtor_id, debtor))

    return suggestions


def _check_debts_match(balances: Sequence[NetBalance], debts: Sequence[Debt]) -> None:
    derived = {b.user_id: b.net_amount for b in net_balances_from_debts(debts)}
    supplied = {b.user_id: b.net_amount for b in balances}
    for user_id in list(supplied) + [u for u in derived if u not in supplied]:
        difference = supplied.get(user_id, ZERO) - derived.get(user_id, ZERO)
        if abs(difference) > RECONCILIATION_TOLERANCE:
            logger.error(
                "Debts disagree with net balance of %s by %s (tolerance %s)",
                user_id, difference, RECONCILIATION_TOLERANCE,
            )
            raise ImbalancedLedger(
                difference,
                RECONCILIATION_TOLERANCE,
                f"debts for user {user_id!r} differ from their net balance by {difference}",
            )


def _direct(debts: Sequence[Debt], currency: str) -> List[SettlementSuggestion]:
    # key is the (lower id, higher id) pair; positive means lower owes higher
    pairs: Dict[Tuple[str, str], Decimal] = OrderedDict()
    people: Dict[str, Participant] = {}
    for debt in debts:
        debtor_id, creditor_id = debt.debtor.user_id, debt.creditor.user_id
        people.setdefault(debtor_id, debt.debtor)
        people.setdefault(creditor_id, debt.creditor)
        if debtor_id < creditor_id:
            key, signed = (debtor_id, creditor_id), debt.amount
        else:
            key, signed = (creditor_id, debtor_id), -debt.amount
        pairs[key] = pairs.get(key, ZERO) + signed

    suggestions: List[SettlementSuggestion] = []
    for (low, high), net in pairs.items():
        net = round_money(net)
        if abs(net) < CENT:
            continue
        if net > 0:
            suggestions.append(SettlementSuggestion(people[low], people[high], net, currency))
        else:
            suggestions.append(SettlementSuggestion(people[high], people[low], -net, currency))

    suggestions.sort(key=lambda s: (s.from_user.user_id, s.to_user.user_id))
    return suggestions


def simplify_debts(
    net_balances: Iterable[NetBalance],
    simplify: bool = True,
    debts: Optional[Iterable[Debt]] = None,
    currency: Optional[str] = None,
) -> List[SettlementSuggestion]:
    """
    Suggest the payments that bring every balance in `net_balances` to zero.

    `debts` is only read when simplify is False; it must be the pairwise
    breakdown of the same balances.
    """
    code = normalize_currency(currency, config.DEFAULT_CURRENCY)
    balances = list(net_balances)
    _check_unique(balances)
    check_ledger(balances)

    if simplify:
        suggestions = _simplified(balances, code)
    else:
        pairwise = list(debts or ())
        if not pairwise:
            if any(abs(b.net_amount) >= CENT for b in balances):
                raise InvalidInput("direct settlement needs the pairwise debts", "missing_debts")
            return []
        _check_debts_match(balances, pairwise)
        suggestions = _direct(pairwise, code)

    logger.info(
        "Suggested %d %s settlement(s) for %d balance(s)",
        len(suggestions), "simplified" if simplify else "direct", len(balances),
    )
    return suggestions
