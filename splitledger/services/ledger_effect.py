"""
LEDGER EFFECT - THE ONLY WAY BALANCES CHANGE
============================================

A LedgerEffect is the set of signed deltas a single transaction applies
to a group's balances. It is validated (sums to zero) when it is built,
so the ledger store never sees an unbalanced effect.

Expense  (amount A, payer P, shares {m_i: s_i}):
    P   += A
    m_i -= s_i          (P may also be in the shares; deltas merge)

Settlement (amount A, from F, to T):
    F   += A
    T   -= A
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

from splitledger.models import TransactionType
from splitledger.services.exceptions import InvariantViolation, ValidationError
from splitledger.services.money import MAX_MINOR_UNITS


@dataclass(frozen=True)
class LedgerEffect:
    group_id: int
    deltas: Tuple[Tuple[int, int], ...]
    reference_type: Optional[str] = None
    reference_id: Optional[int] = field(default=None, compare=False)

    def __post_init__(self):
        total = sum(delta for _, delta in self.deltas)
        if total != 0:
            raise InvariantViolation(
                f"Ledger effect for group {self.group_id} does not sum to zero (off by {total})"
            )

    @classmethod
    def from_mapping(cls, group_id, deltas, reference_type=None, reference_id=None,
                     keep_zero=False):
        """
        Build an effect from {user_id: delta}, sorted by member.

        Zero deltas are dropped unless keep_zero is set; an expense keeps them
        so every participant is recorded even when nothing moves.
        """
        items = tuple(sorted(
            (user_id, int(delta)) for user_id, delta in deltas.items()
            if keep_zero or int(delta) != 0
        ))
        return cls(group_id=group_id, deltas=items,
                   reference_type=reference_type, reference_id=reference_id)

    def as_dict(self) -> Dict[int, int]:
        return dict(self.deltas)

    def negated(self) -> "LedgerEffect":
        return LedgerEffect(
            group_id=self.group_id,
            deltas=tuple((user_id, -delta) for user_id, delta in self.deltas),
            reference_type=self.reference_type,
            reference_id=self.reference_id,
        )

    def with_reference(self, reference_type, reference_id) -> "LedgerEffect":
        return LedgerEffect(self.group_id, self.deltas, reference_type, reference_id)

    @property
    def member_ids(self) -> List[int]:
        return [user_id for user_id, _ in self.deltas]

    def __bool__(self):
        return any(delta for _, delta in self.deltas)


# ============================================================
# BUILDERS
# ============================================================

def _require_positive_int(value, what):
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValidationError(f"{what} must be an integer amount of minor units")
    if value <= 0:
        raise ValidationError(f"{what} must be greater than 0")
    if value > MAX_MINOR_UNITS:
        raise ValidationError(f"{what} is too large")


def build_expense_effect(group_id, payer_id, amount, shares):
    """
    Build the effect of an expense.

    Args:
        shares: iterable of (user_id, amount) pairs, or a {user_id: amount} dict.

    Raises:
        ValidationError: non-positive amount/share, duplicate share member,
            empty shares, or shares not adding up to the amount.
    """
    _require_positive_int(amount, "Expense amount")

    share_items = list(shares.items()) if isinstance(shares, dict) else list(shares)
    if not share_items:
        raise ValidationError("Expense must be split between at least one member")

    seen = set()
    total_shares = 0
    for user_id, share_amount in share_items:
        _require_positive_int(share_amount, "Share amount")
        if user_id in seen:
            raise ValidationError(f"Member {user_id} appears more than once in the split")
        seen.add(user_id)
        total_shares += share_amount

    if total_shares != amount:
        raise ValidationError(
            f"Split total {total_shares} does not match expense amount {amount}"
        )

    deltas = {payer_id: amount}
    for user_id, share_amount in share_items:
        deltas[user_id] = deltas.get(user_id, 0) - share_amount

    return LedgerEffect.from_mapping(
        group_id, deltas, TransactionType.EXPENSE.value, keep_zero=True
    )


def build_settlement_effect(group_id, from_user_id, to_user_id, amount):
    """Build the effect of a settlement payment from `from_user_id` to `to_user_id`."""
    _require_positive_int(amount, "Settlement amount")
    if from_user_id == to_user_id:
        raise ValidationError("A member cannot settle with themselves")

    return LedgerEffect.from_mapping(
        group_id,
        {from_user_id: amount, to_user_id: -amount},
        TransactionType.SETTLEMENT.value,
    )
