"""
models.py - value objects exchanged with the split calculator and simplifier

All models are frozen dataclasses holding Decimal money. to_dict() produces
the camelCase JSON shape the SplitZone frontend already speaks; from_dict()
is its inverse and reports malformed payloads as InvalidInput.
"""

from dataclasses import dataclass
from decimal import Decimal
from typing import Any, Dict, Optional, Tuple

from .errors import InvalidInput
from .money import parse_amount

SPLIT_METHODS = ("equal", "exact", "percentage", "shares")


def _require_id(payload: Dict[str, Any], key: str = "userId") -> str:
    value = payload.get(key)
    if value is None or str(value).strip() == "":
        raise InvalidInput(f"{key} is required", "invalid_payload")
    return str(value).strip()


def _require_mapping(payload: Any, what: str) -> Dict[str, Any]:
    if not isinstance(payload, dict):
        raise InvalidInput(f"{what} must be an object", "invalid_payload")
    return payload


@dataclass(frozen=True)
class Participant:
    """A group member eligible for a split."""
    user_id: str
    user_name: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "userName": self.user_name}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Participant":
        d = _require_mapping(d, "participant")
        return Participant(user_id=_require_id(d), user_name=str(d.get("userName") or "").strip())


@dataclass(frozen=True)
class ExpenseSplit:
    """
    One participant's share of an expense.

    Fields:
      - amount: owed amount, never negative
      - percentage: share of the total in percent (display value for exact)
      - shares: integer weight for the shares method
      - is_paid: True only for the payer when the split set is created
      - paid_at: set by the external mark-paid flow, None here
    """
    user_id: str
    user_name: str
    amount: Decimal
    percentage: Optional[Decimal] = None
    shares: Optional[int] = None
    is_paid: bool = False
    paid_at: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "userId": self.user_id,
            "userName": self.user_name,
            "amount": float(self.amount),
            "percentage": None if self.percentage is None else float(self.percentage),
            "shares": self.shares,
            "isPaid": self.is_paid,
            "paidAt": self.paid_at,
        }

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "ExpenseSplit":
        d = _require_mapping(d, "split")
        percentage = d.get("percentage")
        shares = d.get("shares")
        if shares is not None:
            try:
                shares = int(shares)
            except (TypeError, ValueError):
                raise InvalidInput(f"shares must be an integer, got {shares!r}", "invalid_payload") from None
        return ExpenseSplit(
            user_id=_require_id(d),
            user_name=str(d.get("userName") or "").strip(),
            amount=parse_amount(d.get("amount", 0), "amount"),
            percentage=None if percentage is None else parse_amount(percentage, "percentage"),
            shares=shares,
            is_paid=bool(d.get("isPaid", False)),
            paid_at=d.get("paidAt"),
        )


@dataclass(frozen=True)
class NetBalance:
    """A user's position in a group: positive is owed money, negative owes."""
    user_id: str
    user_name: str
    net_amount: Decimal

    @property
    def participant(self) -> Participant:
        return Participant(self.user_id, self.user_name)

    def to_dict(self) -> Dict[str, Any]:
        return {"userId": self.user_id, "userName": self.user_name, "netAmount": float(self.net_amount)}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "NetBalance":
        d = _require_mapping(d, "balance")
        return NetBalance(
            user_id=_require_id(d),
            user_name=str(d.get("userName") or "").strip(),
            net_amount=parse_amount(d.get("netAmount"), "netAmount"),
        )


@dataclass(frozen=True)
class Debt:
    """One pairwise obligation: `debtor` owes `creditor` `amount`."""
    debtor: Participant
    creditor: Participant
    amount: Decimal

    def to_dict(self) -> Dict[str, Any]:
        return {"from": self.debtor.to_dict(), "to": self.creditor.to_dict(), "amount": float(self.amount)}

    @staticmethod
    def from_dict(d: Dict[str, Any]) -> "Debt":
        d = _require_mapping(d, "debt")
        debtor = Participant.from_dict(d.get("from"))
        creditor = Participant.from_dict(d.get("to"))
        amount = parse_amount(d.get("amount"), "amount")
        if amount < 0:
            raise InvalidInput("debt amount must not be negative", "invalid_amount")
        if debtor.user_id == creditor.user_id:
            raise InvalidInput("a debt needs two different users", "invalid_payload")
        return Debt(debtor=debtor, creditor=creditor, amount=amount)


@dataclass(frozen=True)
class SettlementSuggestion:
    """A payment that, once recorded, moves `amount` from `from_user` to `to_user`."""
    from_user: Participant
    to_user: Participant
    amount: Decimal
    currency: str

    def to_dict(self) -> Dict[str, Any]:
        return {
            "from": self.from_user.to_dict(),
            "to": self.to_user.to_dict(),
            "amount": float(self.amount),
            "currency": self.currency,
        }


@dataclass(frozen=True)
class SplitValidation:
    is_valid: bool
    discrepancy: Decimal
    # "amount" or "percentage": which sum the discrepancy refers to
    field: str = "amount"

    def to_dict(self) -> Dict[str, Any]:
        return {"isValid": self.is_valid, "discrepancy": float(self.discrepancy), "field": self.field}


@dataclass(frozen=True)
class SplitResult:
    splits: Tuple[ExpenseSplit, ...]
    is_valid: bool
    discrepancy: Decimal
    currency: str
    field: str = "amount"

    def to_dict(self) -> Dict[str, Any]:
        return {
            "splits": [s.to_dict() for s in self.splits],
            "isValid": self.is_valid,
            "discrepancy": float(self.discrepancy),
            "field": self.field,
            "currency": self.currency,
        }
