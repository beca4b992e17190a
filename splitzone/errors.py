"""
errors.py - exceptions raised by the split calculator and debt simplifier

Two failure kinds leave the core as exceptions:
 - InvalidInput: the caller handed us something we refuse to compute with
   (non-positive total, empty participant list, payer outside the group, ...).
 - ImbalancedLedger: the net balances handed to the simplifier do not sum to
   zero, which means balance aggregation upstream is wrong.

An unreconciled split set is NOT an exception; validate_split reports it as a
normal result so the editing UI can show the discrepancy.
"""

from decimal import Decimal
from typing import Any, Dict


class SplitZoneError(Exception):
    code = "splitzone_error"

    def __init__(self, message: str, code: str = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def to_dict(self) -> Dict[str, Any]:
        return {"error": self.code, "message": self.message}


class InvalidInput(SplitZoneError, ValueError):
    code = "invalid_input"


class ImbalancedLedger(SplitZoneError):
    code = "imbalanced_ledger"

    def __init__(self, total: Decimal, tolerance: Decimal, message: str = None) -> None:
        super().__init__(
            message or f"net balances sum to {total}, expected 0 within {tolerance}",
        )
        self.total = total
        self.tolerance = tolerance

    def to_dict(self) -> Dict[str, Any]:
        payload = super().to_dict()
        payload["data"] = {"sum": float(self.total), "tolerance": float(self.tolerance)}
        return payload
