"""
Debt simplifier tests. No database, no Flask: simplify_debts takes a plain
{member_id: balance} dict.
"""

import random
from decimal import Decimal

import pytest

from splitledger.services.debt_simplifier import Transfer, simplify_debts
from splitledger.services.exceptions import InvariantViolation


def _apply_as_settlements(balances, transfers):
    """Settle each transfer: debtor's balance goes up, creditor's goes down"""
    result = dict(balances)
    for t in transfers:
        assert t.amount > 0
        result[t.from_user] += t.amount
        result[t.to_user] -= t.amount
    return result


def _random_balances(rng, size):
    balances = {member: rng.randint(-50_000, 50_000) for member in range(1, size)}
    balances[size] = -sum(balances.values())
    return balances


# ============================================================
# SCENARIOS
# ============================================================

def test_one_payer_two_debtors():
    transfers = simplify_debts({"A": 6000, "B": -3000, "C": -3000})
    assert transfers == [Transfer("B", "A", 3000), Transfer("C", "A", 3000)]


def test_after_partial_settle_up():
    transfers = simplify_debts({"A": 3000, "B": 0, "C": -3000})
    assert transfers == [Transfer("C", "A", 3000)]


def test_all_zero_returns_empty_list():
    assert simplify_debts({"A": 0, "B": 0, "C": 0}) == []


def test_empty_dict_returns_empty_list():
    assert simplify_debts({}) == []


def test_largest_debtor_pays_largest_creditor_first():
    transfers = simplify_debts({1: 7000, 2: 3000, 3: -1000, 4: -9000})
    assert transfers == [
        Transfer(4, 1, 7000),
        Transfer(4, 2, 2000),
        Transfer(3, 2, 1000),
    ]


def test_ties_broken_by_member_id():
    transfers = simplify_debts({3: 100, 1: 100, 4: -100, 2: -100})
    assert transfers == [Transfer(2, 1, 100), Transfer(4, 3, 100)]


def test_decimal_balances_are_rounded_to_minor_units():
    transfers = simplify_debts({1: Decimal("100.4"), 2: Decimal("-100.4")})
    assert transfers == [Transfer(2, 1, 100)]


# ============================================================
# REJECTED SNAPSHOTS
# ============================================================

def test_single_nonzero_balance_is_rejected():
    with pytest.raises(InvariantViolation):
        simplify_debts({"A": 500, "B": 0})


def test_unbalanced_snapshot_is_rejected():
    with pytest.raises(InvariantViolation):
        simplify_debts({"A": 500, "B": -400, "C": -99})


# ============================================================
# PROPERTIES
# ============================================================

@pytest.mark.parametrize("seed", range(25))
def test_transfers_settle_everyone(seed):
    rng = random.Random(seed)
    balances = _random_balances(rng, rng.randint(2, 12))
    transfers = simplify_debts(balances)

    assert all(v == 0 for v in _apply_as_settlements(balances, transfers).values())


@pytest.mark.parametrize("seed", range(25))
def test_transfer_count_is_bounded(seed):
    rng = random.Random(seed)
    balances = _random_balances(rng, rng.randint(2, 12))
    nonzero = sum(1 for v in balances.values() if v != 0)

    assert len(simplify_debts(balances)) <= max(0, nonzero - 1)


@pytest.mark.parametrize("seed", range(10))
def test_output_is_deterministic(seed):
    rng = random.Random(seed)
    balances = _random_balances(rng, 8)
    shuffled = list(balances.items())
    rng.shuffle(shuffled)

    first = simplify_debts(balances)
    assert simplify_debts(balances) == first
    # Insertion order of the snapshot must not matter either
    assert simplify_debts(dict(shuffled)) == first


def test_input_is_not_modified():
    balances = {"A": 6000, "B": -3000, "C": -3000}
    simplify_debts(balances)
    assert balances == {"A": 6000, "B": -3000, "C": -3000}
