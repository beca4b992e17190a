from decimal import Decimal

import pytest

from splitzone.errors import InvalidInput
from splitzone.models import ExpenseSplit, Participant
from splitzone.splits import (
    ChangeMethod,
    ChangeTotal,
    SetAmount,
    SetPercentage,
    SetShares,
    apply_edit,
    compute_split,
    initial_state,
    validate_split,
)


def amounts(result):
    return {s.user_id: s.amount for s in result.splits}


# -----------------------
# equal
# -----------------------
def test_equal_split_gives_odd_cent_to_payer(roommates):
    result = compute_split("10.00", "USD", roommates, "alice", "equal")
    assert amounts(result) == {
        "alice": Decimal("3.34"),
        "bob": Decimal("3.33"),
        "carol": Decimal("3.33"),
    }
    assert result.is_valid
    assert result.discrepancy == Decimal("0.00")


def test_equal_split_follows_payer_not_position(roommates):
    result = compute_split("10.00", "USD", roommates, "carol", "equal")
    assert amounts(result)["carol"] == Decimal("3.34")
    assert amounts(result)["alice"] == Decimal("3.33")


def test_equal_split_fields(roommates):
    result = compute_split("90.00", "EUR", roommates, "bob", "equal")
    assert result.currency == "EUR"
    for split in result.splits:
        assert split.percentage == Decimal("33.33")
        assert split.shares == 1
        assert split.is_paid == (split.user_id == "bob")
        assert split.paid_at is None


@pytest.mark.parametrize("total", ["0.01", "0.05", "1.00", "10.00", "99.99", "123.45", "1000.03"])
@pytest.mark.parametrize("count", [1, 2, 3, 6, 7, 13, 49, 50])
def test_equal_split_reconciles_to_the_cent(total, count):
    people = [Participant(f"u{i:02d}", f"User {i}") for i in range(count)]
    result = compute_split(total, "USD", people, "u00", "equal")

    values = [s.amount for s in result.splits]
    assert sum(values) == Decimal(total)
    assert min(values) >= 0
    assert max(values) - min(values) <= Decimal("0.01")
    assert result.is_valid


# -----------------------
# exact
# -----------------------
def test_exact_split_starts_invalid(roommates):
    result = compute_split("60.00", "USD", roommates, "alice", "exact")
    assert all(s.amount == 0 for s in result.splits)
    assert not result.is_valid
    assert result.discrepancy == Decimal("60.00")


def test_exact_split_valid_once_amounts_add_up(roommates):
    edits = [SetAmount("alice", "10"), SetAmount("bob", 20.5), SetAmount("carol", "29.50")]
    result = compute_split("60.00", "USD", roommates, "alice", "exact", edits)

    assert result.is_valid
    assert amounts(result)["bob"] == Decimal("20.50")
    percentages = {s.user_id: s.percentage for s in result.splits}
    assert percentages == {
        "alice": Decimal("16.67"),
        "bob": Decimal("34.17"),
        "carol": Decimal("49.17"),
    }


def test_exact_split_reports_signed_discrepancy(roommates):
    edits = [SetAmount("alice", "50"), SetAmount("bob", "20")]
    result = compute_split("60.00", "USD", roommates, "alice", "exact", edits)
    assert not result.is_valid
    assert result.discrepancy == Decimal("-10.00")


# -----------------------
# percentage
# -----------------------
def test_percentage_amounts_follow_edits(roommates):
    state = initial_state("200.00", "USD", roommates, "alice", "percentage")
    state = apply_edit(state, SetPercentage("bob", "12.5"))
    split = {s.user_id: s for s in state.splits}["bob"]
    assert split.percentage == Decimal("12.50")
    assert split.amount == Decimal("25.00")


def test_percentage_split_invalid_until_hundred(roommates):
    edits = [SetPercentage("alice", 50), SetPercentage("bob", 30)]
    result = compute_split("10.00", "USD", roommates, "alice", "percentage", edits)
    assert not result.is_valid
    assert result.field == "percentage"
    assert result.discrepancy == Decimal("20.00")


def test_percentage_split_reconciles_rounding_at_hundred(roommates):
    edits = [
        SetPercentage("alice", "33.33"),
        SetPercentage("bob", "33.33"),
        SetPercentage("carol", "33.34"),
    ]
    result = compute_split("10.00", "USD", roommates, "alice", "percentage", edits)
    assert result.is_valid
    assert sum(amounts(result).values()) == Decimal("10.00")
    assert amounts(result)["carol"] == Decimal("3.34")


@pytest.mark.parametrize(
    "last, valid",
    [("33.33", False), ("33.34", True), ("33.35", False)],
    ids=["99.99", "100.00", "100.01"],
)
def test_percentage_validity_boundary(last, valid):
    splits = [
        ExpenseSplit("a", "A", Decimal("3.33"), Decimal("33.33")),
        ExpenseSplit("b", "B", Decimal("3.33"), Decimal("33.33")),
        ExpenseSplit("c", "C", Decimal("3.34"), Decimal(last)),
    ]
    validation = validate_split(splits, "10.00", "percentage")
    assert validation.is_valid is valid
    if not valid:
        assert validation.field == "percentage"
        assert abs(validation.discrepancy) == Decimal("0.01")


# -----------------------
# shares
# -----------------------
def test_shares_start_at_one_each(roommates):
    result = compute_split("100.00", "USD", roommates, "bob", "shares")
    assert amounts(result) == {
        "alice": Decimal("33.33"),
        "bob": Decimal("33.34"),
        "carol": Decimal("33.33"),
    }
    assert all(s.shares == 1 for s in result.splits)
    assert result.is_valid


def test_shares_edit_recomputes_everyone(roommates):
    result = compute_split("100.00", "USD", roommates, "alice", "shares", [SetShares("bob", 2)])
    assert amounts(result) == {
        "alice": Decimal("25.00"),
        "bob": Decimal("50.00"),
        "carol": Decimal("25.00"),
    }
    assert [s.percentage for s in result.splits] == [Decimal("25.00"), Decimal("50.00"), Decimal("25.00")]


def test_all_zero_shares_is_invalid(roommates):
    edits = [SetShares("alice", 0), SetShares("bob", 0), SetShares("carol", 0)]
    result = compute_split("30.00", "USD", roommates, "alice", "shares", edits)
    assert all(s.amount == 0 for s in result.splits)
    assert not result.is_valid


@pytest.mark.parametrize("total", ["10.00", "0.07", "333.33"])
def test_more_shares_never_lowers_amount(roommates, total):
    state = initial_state(total, "USD", roommates, "alice", "shares")
    state = apply_edit(state, SetShares("carol", 3))
    previous = None
    for shares in range(0, 12):
        state = apply_edit(state, SetShares("bob", shares))
        bob = {s.user_id: s.amount for s in state.splits}["bob"]
        if previous is not None:
            assert bob >= previous
        previous = bob
        assert sum(s.amount for s in state.splits) == Decimal(total)


# -----------------------
# reducer
# -----------------------
def test_edits_do_not_mutate_previous_state(roommates):
    before = initial_state("30.00", "USD", roommates, "alice", "shares")
    after = apply_edit(before, SetShares("alice", 4))
    assert before.splits[0].shares == 1
    assert after.splits[0].shares == 4


def test_change_method_resets_splits(roommates):
    state = initial_state("30.00", "USD", roommates, "alice", "shares")
    state = apply_edit(state, SetShares("bob", 5))
    state = apply_edit(state, ChangeMethod("exact"))
    assert state.method == "exact"
    assert all(s.amount == 0 and s.shares == 0 for s in state.splits)


def test_change_total_resplits(roommates):
    state = initial_state("30.00", "USD", roommates, "alice", "equal")
    state = apply_edit(state, ChangeTotal("31.00"))
    assert state.total_amount == Decimal("31.00")
    assert [s.amount for s in state.splits] == [Decimal("10.34"), Decimal("10.33"), Decimal("10.33")]


def test_compute_split_is_idempotent(roommates):
    edits = [SetShares("alice", 3), SetShares("carol", 2)]
    first = compute_split("47.11", "GBP", roommates, "carol", "shares", edits)
    second = compute_split("47.11", "GBP", roommates, "carol", "shares", edits)
    assert first == second


# -----------------------
# invalid input
# -----------------------
@pytest.mark.parametrize(
    "kwargs, code",
    [
        ({"total_amount": "0"}, "invalid_amount"),
        ({"total_amount": "-5"}, "invalid_amount"),
        ({"total_amount": None}, "invalid_amount"),
        ({"participants": []}, "missing_participants"),
        ({"payer_user_id": "mallory"}, "payer_not_in_participants"),
        ({"method": "random"}, "invalid_split_method"),
        ({"currency": "BTC"}, "unsupported_currency"),
    ],
)
def test_invalid_inputs_raise(roommates, kwargs, code):
    args = {
        "total_amount": "10.00",
        "currency": "USD",
        "participants": roommates,
        "payer_user_id": "alice",
        "method": "equal",
    }
    args.update(kwargs)
    with pytest.raises(InvalidInput) as exc_info:
        compute_split(**args)
    assert exc_info.value.code == code


def test_duplicate_participants_raise(roommates):
    with pytest.raises(InvalidInput) as exc_info:
        compute_split("10", "USD", roommates + [Participant("bob", "Bobby")], "alice", "equal")
    assert exc_info.value.code == "duplicate_participant"


@pytest.mark.parametrize(
    "method, edit, code",
    [
        ("equal", SetAmount("alice", 5), "invalid_edit"),
        ("percentage", SetAmount("alice", 5), "invalid_edit"),
        ("exact", SetAmount("alice", -1), "invalid_edit"),
        ("exact", SetAmount("zed", 1), "unknown_participant"),
        ("percentage", SetPercentage("bob", "100.5"), "invalid_edit"),
        ("shares", SetShares("bob", -1), "invalid_edit"),
        ("shares", SetShares("bob", 1.5), "invalid_edit"),
        ("shares", SetShares("bob", "two"), "invalid_edit"),
        ("shares", ChangeMethod("thirds"), "invalid_split_method"),
        ("shares", ChangeTotal(0), "invalid_amount"),
        ("shares", "not an edit", "invalid_edit"),
    ],
)
def test_invalid_edits_raise(roommates, method, edit, code):
    state = initial_state("10.00", "USD", roommates, "alice", method)
    with pytest.raises(InvalidInput) as exc_info:
        apply_edit(state, edit)
    assert exc_info.value.code == code


def test_validate_split_rejects_negative_amounts():
    splits = [ExpenseSplit("a", "A", Decimal("-1.00")), ExpenseSplit("b", "B", Decimal("11.00"))]
    with pytest.raises(InvalidInput):
        validate_split(splits, "10.00")


def test_validate_split_rejects_empty_set():
    with pytest.raises(InvalidInput):
        validate_split([], "10.00")
