"""
BALANCE SERVICE - APPLY / REVERSE TRANSACTION EFFECTS
=====================================================

CRITICAL BUSINESS RULES:
1. Every expense and settlement changes balances through exactly one
   LedgerEffect, built and validated before anything is written
2. The applied effect is recorded next to the transaction and reversed
   verbatim on delete (never recomputed from the current field values)
3. Editing an expense = reverse the recorded effect, then apply the new one
4. Nothing here commits. Callers run these inside the same db transaction
   as the expense/settlement row and roll back on any LedgerError
5. After each apply/reverse the group's balances must still sum to zero
"""

import logging

from splitledger.models import GroupMember, TransactionType
from splitledger.services import ledger_store
from splitledger.services.exceptions import InvariantViolation, ValidationError
from splitledger.services.ledger_effect import (
    build_expense_effect, build_settlement_effect
)

logger = logging.getLogger(__name__)


# ============================================================
# VALIDATION HELPERS
# ============================================================

def require_active_members(group_id, user_ids, role_label="Member"):
    """Raise ValidationError unless every user is an active member of the group."""
    wanted = set(user_ids)
    if not wanted:
        return

    active = {
        m.user_id for m in GroupMember.query.filter(
            GroupMember.group_id == group_id,
            GroupMember.user_id.in_(wanted),
            GroupMember.is_active == True  # noqa: E712
        ).all()
    }

    missing = sorted(wanted - active)
    if missing:
        raise ValidationError(
            f"{role_label} {', '.join(str(u) for u in missing)} is not a member of group {group_id}"
        )


def _commit_effect(effect):
    """Write an effect through the store and check the zero-sum rule."""
    ledger_store.apply_effect(effect)
    if effect.reference_id is not None:
        ledger_store.record_effect(effect)
    ledger_store.assert_balanced(effect.group_id)


def _reverse_recorded(reference_type, reference_id):
    effect = ledger_store.load_effect(reference_type, reference_id)
    if effect is None:
        logger.critical(f"No ledger effect recorded for {reference_type} {reference_id}")
        raise InvariantViolation(
            f"No ledger effect recorded for {reference_type} {reference_id}; cannot reverse"
        )

    # A member who already left (with a zero balance) must not get a debt back
    require_active_members(effect.group_id, effect.member_ids)

    ledger_store.apply_effect(effect.negated())
    ledger_store.delete_effect(reference_type, reference_id)
    ledger_store.assert_balanced(effect.group_id)
    return effect


# ============================================================
# EXPENSES
# ============================================================

def apply_expense(group_id, payer_id, amount, shares, expense_id=None):
    """
    Apply the effect of an expense.

    Args:
        amount: total in minor units.
        shares: (user_id, amount) pairs or {user_id: amount}; must add up to amount.
        expense_id: when given the effect is recorded for later reversal.

    Returns: the applied LedgerEffect
    """
    effect = build_expense_effect(group_id, payer_id, amount, shares)
    share_members = [user_id for user_id, _ in (shares.items() if isinstance(shares, dict) else shares)]
    require_active_members(group_id, [payer_id], "Payer")
    require_active_members(group_id, share_members, "Split member")

    if expense_id is not None:
        effect = effect.with_reference(TransactionType.EXPENSE.value, expense_id)

    _commit_effect(effect)
    logger.info(
        f"Applied expense {expense_id} in group {group_id}: payer={payer_id} "
        f"amount={amount} deltas={effect.as_dict()}"
    )
    return effect


def reverse_expense(expense_id):
    """Undo the recorded effect of an expense. Returns the effect that was undone."""
    effect = _reverse_recorded(TransactionType.EXPENSE.value, expense_id)
    logger.info(f"Reversed expense {expense_id} in group {effect.group_id}: deltas={effect.as_dict()}")
    return effect


def replace_expense_effect(expense_id, group_id, payer_id, amount, shares):
    """
    Edit path: validate the new expense, reverse the old recorded effect,
    then apply and record the new one. Returns (old_effect, new_effect).
    """
    # Validate first so a bad edit never touches the ledger
    build_expense_effect(group_id, payer_id, amount, shares)

    old_effect = _reverse_recorded(TransactionType.EXPENSE.value, expense_id)
    new_effect = apply_expense(group_id, payer_id, amount, shares, expense_id=expense_id)
    return old_effect, new_effect


# ============================================================
# SETTLEMENTS
# ============================================================

def apply_settlement(group_id, from_user_id, to_user_id, amount, settlement_id=None):
    """Apply a payment of `amount` minor units from `from_user_id` to `to_user_id`."""
    effect = build_settlement_effect(group_id, from_user_id, to_user_id, amount)
    require_active_members(group_id, [from_user_id], "Payer")
    require_active_members(group_id, [to_user_id], "Payee")

    if settlement_id is not None:
        effect = effect.with_reference(TransactionType.SETTLEMENT.value, settlement_id)

    _commit_effect(effect)
    logger.info(
        f"Applied settlement {settlement_id} in group {group_id}: "
        f"{from_user_id} -> {to_user_id} amount={amount}"
    )
    return effect


def reverse_settlement(settlement_id):
    effect = _reverse_recorded(TransactionType.SETTLEMENT.value, settlement_id)
    logger.info(f"Reversed settlement {settlement_id} in group {effect.group_id}")
    return effect
