"""
Ledger behaviour through the balance service: apply, reverse, edit, and
the zero-sum rule holding after every step.
"""

import random

import pytest

from splitledger.extensions import db
from splitledger.models import Expense
from splitledger.services import balance_service, ledger_store
from splitledger.services.debt_simplifier import Transfer
from splitledger.services.exceptions import InvariantViolation, StorageError, ValidationError
from splitledger.services.expense_service import create_expense, delete_expense
from splitledger.services.ledger_queries import get_simplified_debts
from splitledger.services.money import split_equally
from splitledger.services.settlement_service import create_settlement


# ============================================================
# SCENARIOS
# ============================================================

def test_equal_split_dinner(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]

    balance_service.apply_expense(group_id, a, 9000, split_equally(9000, [a, b, c]))

    assert balances() == {a: 6000, b: -3000, c: -3000}
    assert get_simplified_debts(group_id) == [Transfer(b, a, 3000), Transfer(c, a, 3000)]


def test_settle_up_after_dinner(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]
    balance_service.apply_expense(group_id, a, 9000, split_equally(9000, [a, b, c]))

    balance_service.apply_settlement(group_id, b, a, 3000)

    assert balances() == {a: 3000, b: 0, c: -3000}
    assert get_simplified_debts(group_id) == [Transfer(c, a, 3000)]


def test_opposing_expenses_cancel_out(group_id, trio, balances):
    a, b = trio["A"], trio["B"]

    balance_service.apply_expense(group_id, a, 10000, {b: 10000})
    balance_service.apply_expense(group_id, b, 10000, {a: 10000})

    assert set(balances().values()) == {0}
    assert get_simplified_debts(group_id) == []


def test_uneven_custom_split(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]

    balance_service.apply_expense(group_id, b, 1000, {a: 200, b: 300, c: 500})

    assert balances() == {a: -200, b: 700, c: -500}


def test_rejected_expense_leaves_balances_untouched(group_id, trio, balances):
    a, b = trio["A"], trio["B"]
    before = balances()

    with pytest.raises(ValidationError):
        balance_service.apply_expense(group_id, a, 1000, {a: 500, b: 499})

    assert balances() == before


def test_non_member_cannot_be_in_split(group_id, trio, make_user, balances):
    outsider = make_user("Zed")
    before = balances()

    with pytest.raises(ValidationError):
        balance_service.apply_expense(group_id, trio["A"], 100, {outsider: 100})
    with pytest.raises(ValidationError):
        balance_service.apply_settlement(group_id, outsider, trio["A"], 100)

    assert balances() == before


# ============================================================
# REVERSAL
# ============================================================

def test_reversal_restores_previous_snapshot(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]
    balance_service.apply_expense(group_id, c, 1200, split_equally(1200, [a, b, c]))
    snapshot = balances()

    balance_service.apply_expense(group_id, a, 999, split_equally(999, [a, b, c]), expense_id=77)
    balance_service.reverse_expense(77)

    assert balances() == snapshot
    assert ledger_store.load_effect("expense", 77) is None


def test_reversal_uses_recorded_effect_not_current_fields(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]
    expense = create_expense(group_id, a, "Dinner", 9000, paid_by=a, split_between=[a, b, c])

    # Corrupt the stored amount behind the service's back
    expense.amount = 1
    db.session.commit()

    balance_service.reverse_expense(expense.id)
    db.session.commit()

    assert balances() == {a: 0, b: 0, c: 0}


def test_reversing_unknown_effect_is_an_invariant_violation(app):
    with pytest.raises(InvariantViolation):
        balance_service.reverse_settlement(424242)


def test_replace_expense_effect(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]
    balance_service.apply_expense(group_id, a, 9000, split_equally(9000, [a, b, c]), expense_id=5)

    old, new = balance_service.replace_expense_effect(5, group_id, b, 4000, {a: 2000, b: 2000})

    assert old.as_dict() == {a: 6000, b: -3000, c: -3000}
    assert new.as_dict() == {a: -2000, b: 2000}
    assert balances() == {a: -2000, b: 2000, c: 0}


def test_invalid_replacement_keeps_old_effect(group_id, trio, balances):
    a, b, c = trio["A"], trio["B"], trio["C"]
    balance_service.apply_expense(group_id, a, 9000, split_equally(9000, [a, b, c]), expense_id=5)
    before = balances()

    with pytest.raises(ValidationError):
        balance_service.replace_expense_effect(5, group_id, a, 4000, {a: 1000})

    assert balances() == before
    assert ledger_store.load_effect("expense", 5) is not None


# ============================================================
# ATOMICITY
# ============================================================

def test_storage_failure_mid_effect_rolls_back(group_id, trio, balances, monkeypatch):
    a, b, c = trio["A"], trio["B"], trio["C"]
    create_expense(group_id, a, "Taxi", 300, paid_by=a, split_between=[a, b, c])
    before = balances()

    real_apply_delta = ledger_store.apply_delta
    calls = []

    def flaky_apply_delta(group, user, delta):
        calls.append(user)
        if len(calls) == 2:
            raise StorageError("disk on fire")
        return real_apply_delta(group, user, delta)

    monkeypatch.setattr(ledger_store, "apply_delta", flaky_apply_delta)

    with pytest.raises(StorageError):
        create_expense(group_id, b, "Hotel", 900, paid_by=b, split_between=[a, b, c])

    monkeypatch.undo()
    assert balances() == before
    assert Expense.query.filter_by(description="Hotel").count() == 0


# ============================================================
# ZERO-SUM UNDER RANDOM OPERATIONS
# ============================================================

@pytest.mark.parametrize("seed", range(5))
def test_balances_always_sum_to_zero(group_id, trio, seed):
    rng = random.Random(seed)
    members = list(trio.values())
    created = []

    for step in range(30):
        choice = rng.random()
        if choice < 0.5 or not created:
            payer = rng.choice(members)
            sharers = rng.sample(members, rng.randint(1, len(members)))
            amount = rng.randint(10, 100_000)
            expense = create_expense(group_id, payer, f"Item {step}", amount,
                                     paid_by=payer, split_between=sharers)
            created.append(expense.id)
        elif choice < 0.8:
            from_user, to_user = rng.sample(members, 2)
            create_settlement(group_id, from_user, from_user, to_user, rng.randint(1, 50_000))
        else:
            expense_id = created.pop(rng.randrange(len(created)))
            expense = db.session.get(Expense, expense_id)
            delete_expense(expense_id, expense.paid_by)

        assert ledger_store.get_group_total(group_id) == 0

    # The simplified plan settles the group completely
    snapshot = ledger_store.list_balances(group_id)
    for t in get_simplified_debts(group_id):
        snapshot[t.from_user] += t.amount
        snapshot[t.to_user] -= t.amount
    assert set(snapshot.values()) <= {0}
