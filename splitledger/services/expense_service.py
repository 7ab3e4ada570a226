"""
EXPENSE SERVICE - ATOMIC EXPENSE OPERATIONS
===========================================

CRITICAL BUSINESS RULES:
1. Shares must add up to the amount exactly (minor units)
2. The expense row, its shares, its recorded ledger effect and the balance
   changes are committed together or not at all
3. Any member may add an expense; only the payer or the group admin may
   edit or delete it
4. Edit = reverse the recorded effect, then apply the new one
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from splitledger.extensions import db
from splitledger.models import Expense, ExpenseShare, User
from splitledger.services.authorization_service import (
    can_delete_expense, can_record_transaction, is_group_member,
    require_authorization, AuthorizationError
)
from splitledger.services.balance_service import (
    apply_expense, replace_expense_effect, reverse_expense
)
from splitledger.services.exceptions import LedgerError, StorageError, ValidationError
from splitledger.services.money import split_equally

logger = logging.getLogger(__name__)


class ExpenseError(Exception):
    """Raised when an expense cannot be found or handled"""
    pass


# ============================================================
# HELPERS
# ============================================================

def resolve_shares(amount, splits=None, split_between=None):
    """
    Turn request input into (user_id, amount) pairs.

    Either `splits` ({user_id: amount} or pairs) for a custom split, or
    `split_between` (list of user ids) for an equal split.
    """
    if isinstance(amount, bool) or not isinstance(amount, int) or amount <= 0:
        raise ValidationError("Expense amount must be greater than 0")

    if splits and split_between:
        raise ValidationError("Give either custom splits or members to split between, not both")

    if split_between:
        return split_equally(amount, list(split_between))

    if splits:
        return list(splits.items()) if isinstance(splits, dict) else list(splits)

    raise ValidationError("Expense must be split between at least one member")


def _replace_share_rows(expense, shares):
    expense.shares.clear()
    db.session.flush()
    for user_id, share_amount in shares:
        expense.shares.append(ExpenseShare(user_id=user_id, amount=share_amount))


def _get_expense_or_fail(expense_id):
    expense = db.session.get(Expense, expense_id)
    if not expense:
        raise ExpenseError(f"Expense {expense_id} not found")
    return expense


# ============================================================
# CREATE EXPENSE (ATOMIC)
# ============================================================

def create_expense(group_id, created_by, description, amount, paid_by,
                   splits=None, split_between=None, paid_at=None):
    """
    Record an expense and apply it to the group's balances.

    Args:
        amount: total in minor units.
        splits / split_between: see resolve_shares().

    Returns: Expense
    """
    try:
        require_authorization(can_record_transaction, created_by, group_id)

        description = (description or '').strip()
        if not description:
            raise ValidationError("Description is required")

        if paid_by is None:
            raise ValidationError("Payer is required")

        shares = resolve_shares(amount, splits, split_between)

        expense = Expense(
            group_id=group_id,
            paid_by=paid_by,
            created_by=created_by,
            description=description,
            amount=amount,
            paid_at=paid_at or datetime.utcnow()
        )
        db.session.add(expense)
        db.session.flush()

        apply_expense(group_id, paid_by, amount, shares, expense_id=expense.id)

        _replace_share_rows(expense, shares)
        expense.group.touch()

        db.session.commit()
        logger.info(f"Expense {expense.id} '{description}' created in group {group_id} by {created_by}")

        return expense

    except (AuthorizationError, LedgerError) as e:
        db.session.rollback()
        if isinstance(e, ValidationError):
            logger.warning(f"Expense rejected in group {group_id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception(f"Expense creation failed in group {group_id}")
        raise StorageError(f"Expense creation failed: {str(e)}") from e


# ============================================================
# UPDATE EXPENSE (ATOMIC - reverse old effect, apply new)
# ============================================================

def update_expense(expense_id, user_id, description=None, amount=None, paid_by=None,
                   splits=None, split_between=None, paid_at=None):
    """
    Edit an expense. Fields left as None keep their current value; when
    the amount changes, a new split must be given as well.
    """
    try:
        expense = _get_expense_or_fail(expense_id)
        require_authorization(can_delete_expense, user_id, expense_id)

        new_amount = expense.amount if amount is None else amount
        new_payer = expense.paid_by if paid_by is None else paid_by

        if splits is None and split_between is None:
            if new_amount != expense.amount:
                raise ValidationError("Changing the amount requires a new split")
            shares = [(share.user_id, share.amount) for share in expense.shares]
        else:
            shares = resolve_shares(new_amount, splits, split_between)

        replace_expense_effect(expense.id, expense.group_id, new_payer, new_amount, shares)

        if description is not None:
            description = description.strip()
            if not description:
                raise ValidationError("Description is required")
            expense.description = description

        expense.amount = new_amount
        expense.paid_by = new_payer
        if paid_at is not None:
            expense.paid_at = paid_at
        expense.updated_at = datetime.utcnow()
        _replace_share_rows(expense, shares)
        expense.group.touch()

        db.session.commit()
        logger.info(f"Expense {expense_id} updated by user {user_id}")

        return expense

    except (ExpenseError, AuthorizationError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception(f"Expense {expense_id} update failed")
        raise StorageError(f"Expense update failed: {str(e)}") from e


# ============================================================
# DELETE EXPENSE (ATOMIC)
# ============================================================

def delete_expense(expense_id, user_id):
    """Reverse the expense's recorded effect and delete it"""
    try:
        expense = _get_expense_or_fail(expense_id)
        require_authorization(can_delete_expense, user_id, expense_id)

        group_id = expense.group_id
        reverse_expense(expense.id)
        expense.group.touch()

        db.session.delete(expense)
        db.session.commit()
        logger.info(f"Expense {expense_id} deleted from group {group_id} by user {user_id}")

        return True

    except (ExpenseError, AuthorizationError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception(f"Expense {expense_id} deletion failed")
        raise StorageError(f"Expense deletion failed: {str(e)}") from e


# ============================================================
# LIST EXPENSES
# ============================================================

def list_group_expenses(group_id, requester_id):
    """Expenses of a group, newest first, with the requester's own share"""
    if not is_group_member(requester_id, group_id):
        raise AuthorizationError("You are not a member of this group")

    expenses = Expense.query.filter_by(group_id=group_id).order_by(
        Expense.paid_at.desc(), Expense.created_at.desc(), Expense.id.desc()
    ).all()

    user_ids = set()
    for expense in expenses:
        user_ids.add(expense.paid_by)
        user_ids.update(share.user_id for share in expense.shares)

    names = {
        u.id: u.name for u in User.query.filter(User.id.in_(user_ids)).all()
    } if user_ids else {}

    return [
        {
            'expense_id': expense.id,
            'description': expense.description,
            'amount': expense.amount,
            'payer_id': expense.paid_by,
            'payer_name': names.get(expense.paid_by, 'Unknown'),
            'my_share': expense.share_for(requester_id),
            'is_borrow': expense.paid_by != requester_id,
            'splits': [
                {'user_id': s.user_id, 'name': names.get(s.user_id, 'Unknown'), 'amount': s.amount}
                for s in expense.shares
            ],
            'paid_at': expense.paid_at,
            'created_at': expense.created_at,
        }
        for expense in expenses
    ]
