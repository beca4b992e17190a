from __future__ import annotations

import logging
from typing import Any, Callable, Dict, List, Optional

from flask import Flask, jsonify, request
from flask_cors import CORS

from .config import config
from .errors import ImbalancedLedger, InvalidInput
from .models import Debt, ExpenseSplit, NetBalance, Participant
from .settlements import net_balances_from_debts, simplify_debts
from .splits import (
    ChangeMethod,
    ChangeTotal,
    SetAmount,
    SetPercentage,
    SetShares,
    compute_split,
    validate_split,
)

logger = logging.getLogger(__name__)

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s %(message)s"


def create_app(overrides: Optional[Dict[str, Any]] = None) -> Flask:
    app = Flask(__name__)
    app.config["DEFAULT_CURRENCY"] = config.DEFAULT_CURRENCY
    if overrides:
        app.config.update(overrides)

    _configure_logging(config.LOG_LEVEL)

    CORS(
        app,
        resources={r"/api/*": {"origins": config.CORS_ORIGINS}},
    )

    register_error_handlers(app)
    register_routes(app)
    return app


def _configure_logging(level_name: str) -> None:
    package_logger = logging.getLogger("splitzone")
    if not package_logger.handlers:
        handler = logging.StreamHandler()
        handler.setFormatter(logging.Formatter(LOG_FORMAT))
        package_logger.addHandler(handler)
    level = getattr(logging, level_name, None)
    package_logger.setLevel(level if isinstance(level, int) else logging.INFO)


def register_error_handlers(app: Flask) -> None:
    @app.errorhandler(InvalidInput)
    def handle_invalid_input(exc: InvalidInput):
        logger.warning("Rejected %s %s: %s", request.method, request.path, exc.message)
        return jsonify({"success": False, **exc.to_dict()}), 400

    @app.errorhandler(ImbalancedLedger)
    def handle_imbalanced_ledger(exc: ImbalancedLedger):
        return jsonify({"success": False, **exc.to_dict()}), 422


def register_routes(app: Flask) -> None:
    @app.get("/api/health")
    def health_check():
        return jsonify({"status": "healthy", "message": "SplitZone core is running"})

    @app.post("/api/splits/calculate")
    def calculate_split():
        payload = _json_body()
        participants = _parse_list(payload, "participants", Participant.from_dict)
        edits = _parse_list(payload, "edits", _parse_edit)

        result = compute_split(
            payload.get("totalAmount"),
            payload.get("currency") or app.config["DEFAULT_CURRENCY"],
            participants,
            _payer_id(payload.get("paidBy")),
            payload.get("splitMethod") or "equal",
            edits,
        )
        return jsonify({"success": True, "data": result.to_dict()})

    @app.post("/api/splits/validate")
    def check_split():
        payload = _json_body()
        splits = _parse_list(payload, "splits", ExpenseSplit.from_dict)

        validation = validate_split(splits, payload.get("totalAmount"), payload.get("splitMethod"))
        if not validation.is_valid:
            message = "Split amounts don't match total expense amount"
            if validation.field == "percentage":
                message = "Split percentages don't add up to 100"
            return jsonify({"success": True, "data": validation.to_dict(), "message": message})
        return jsonify({"success": True, "data": validation.to_dict()})

    @app.post("/api/settlements/suggest")
    def suggest_settlements():
        payload = _json_body()
        simplify = _parse_bool(request.args.get("simplify", payload.get("simplify")), default=True)
        balances = _parse_list(payload, "balances", NetBalance.from_dict)
        debts = _parse_list(payload, "debts", Debt.from_dict)
        if not balances and debts:
            balances = net_balances_from_debts(debts)

        suggestions = simplify_debts(
            balances,
            simplify=simplify,
            debts=debts,
            currency=payload.get("currency") or app.config["DEFAULT_CURRENCY"],
        )
        return jsonify({"success": True, "data": [s.to_dict() for s in suggestions]})


def _json_body() -> Dict[str, Any]:
    payload = request.get_json(force=True, silent=True)
    if not isinstance(payload, dict):
        raise InvalidInput("request body must be a JSON object", "invalid_payload")
    return payload


def _parse_list(payload: Dict[str, Any], key: str, parse: Callable[[Any], Any]) -> List[Any]:
    items = payload.get(key) or []
    if not isinstance(items, list):
        raise InvalidInput(f"{key} must be a list", "invalid_payload")
    return [parse(item) for item in items]


def _payer_id(paid_by: Any) -> str:
    if isinstance(paid_by, dict):
        paid_by = paid_by.get("userId")
    if paid_by is None or str(paid_by).strip() == "":
        raise InvalidInput("paidBy is required", "invalid_payload")
    return str(paid_by).strip()


def _parse_bool(value: Any, default: bool) -> bool:
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    text = str(value).strip().lower()
    if text in ("true", "1", "yes"):
        return True
    if text in ("false", "0", "no"):
        return False
    raise InvalidInput(f"simplify must be true or false, got {value!r}", "invalid_payload")


def _parse_edit(item: Any):
    if not isinstance(item, dict):
        raise InvalidInput("each edit must be an object", "invalid_edit")
    kind = item.get("type")
    value = item.get("value")

    if kind == "method":
        return ChangeMethod(value)
    if kind == "total":
        return ChangeTotal(value)

    per_user = {"amount": SetAmount, "percentage": SetPercentage, "shares": SetShares}
    if kind not in per_user:
        raise InvalidInput(f"unknown edit type {kind!r}", "invalid_edit")
    user_id = item.get("userId")
    if user_id is None or str(user_id).strip() == "":
        raise InvalidInput(f"{kind} edits need a userId", "invalid_edit")
    return per_user[kind](str(user_id).strip(), value)


app = create_app()


if __name__ == "__main__":
    app.run(debug=True)
