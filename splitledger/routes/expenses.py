"""
EXPENSE ROUTES
==============

Uses expense_service for all ledger changes.
Amounts travel as decimal strings ("12.50") and are stored in minor units.
"""

from flask import Blueprint
from flask_login import login_required, current_user

from splitledger.extensions import db
from splitledger.models import Group
from splitledger.routes import (
    fail, get_payload, iso, ok, parse_amount, parse_datetime, parse_user_id, show_amount
)
from splitledger.services.exceptions import ValidationError
from splitledger.services.expense_service import (
    create_expense, delete_expense, list_group_expenses, update_expense
)

expenses_bp = Blueprint('expenses', __name__, url_prefix='/api')


def _parse_splits(payload):
    """Returns (splits, split_between); at most one of them is set."""
    splits = payload.get('splits')
    split_between = payload.get('split_between')

    parsed_splits = None
    if splits is not None:
        if not isinstance(splits, list):
            raise ValidationError("'splits' must be a list")
        parsed_splits = []
        for item in splits:
            if not isinstance(item, dict):
                raise ValidationError("Each split needs 'user_id' and 'amount'")
            parsed_splits.append((
                parse_user_id(item.get('user_id')),
                parse_amount(item.get('amount'), 'splits.amount')
            ))

    parsed_between = None
    if split_between is not None:
        if not isinstance(split_between, list):
            raise ValidationError("'split_between' must be a list of user ids")
        parsed_between = [parse_user_id(uid, 'split_between') for uid in split_between]

    return parsed_splits, parsed_between


def expense_to_dict(expense):
    return {
        'expense_id': expense.id,
        'group_id': expense.group_id,
        'description': expense.description,
        'amount': show_amount(expense.amount),
        'payer_id': expense.paid_by,
        'payer_name': expense.payer.name if expense.payer else None,
        'splits': [
            {'user_id': s.user_id, 'amount': show_amount(s.amount)}
            for s in expense.shares
        ],
        'paid_at': iso(expense.paid_at),
        'created_at': iso(expense.created_at),
    }


# ============== ADD EXPENSE ==============
@expenses_bp.route('/groups/<int:group_id>/expenses', methods=['POST'])
@login_required
def add_expense(group_id):
    if not db.session.get(Group, group_id):
        return fail('group_not_found', 404)

    payload = get_payload()
    splits, split_between = _parse_splits(payload)

    expense = create_expense(
        group_id=group_id,
        created_by=current_user.id,
        description=payload.get('description'),
        amount=parse_amount(payload.get('amount')),
        paid_by=parse_user_id(payload.get('payer_id', current_user.id), 'payer_id'),
        splits=splits,
        split_between=split_between,
        paid_at=parse_datetime(payload.get('paid_at'), 'paid_at')
    )

    return ok(expense_to_dict(expense), 201)


# ============== LIST EXPENSES ==============
@expenses_bp.route('/groups/<int:group_id>/expenses', methods=['GET'])
@login_required
def get_expenses(group_id):
    if not db.session.get(Group, group_id):
        return fail('group_not_found', 404)

    expenses = list_group_expenses(group_id, current_user.id)
    for item in expenses:
        item['amount'] = show_amount(item['amount'])
        item['my_share'] = show_amount(item['my_share'])
        for split in item['splits']:
            split['amount'] = show_amount(split['amount'])
        item['paid_at'] = iso(item['paid_at'])
        item['created_at'] = iso(item['created_at'])

    return ok({'group_id': group_id, 'expenses': expenses})


# ============== EDIT EXPENSE ==============
@expenses_bp.route('/expenses/<int:expense_id>', methods=['PUT', 'PATCH'])
@login_required
def edit_expense(expense_id):
    payload = get_payload()
    splits, split_between = _parse_splits(payload)

    amount = payload.get('amount')
    payer_id = payload.get('payer_id')

    expense = update_expense(
        expense_id=expense_id,
        user_id=current_user.id,
        description=payload.get('description'),
        amount=parse_amount(amount) if amount is not None else None,
        paid_by=parse_user_id(payer_id, 'payer_id') if payer_id is not None else None,
        splits=splits,
        split_between=split_between,
        paid_at=parse_datetime(payload.get('paid_at'), 'paid_at')
    )

    return ok(expense_to_dict(expense))


# ============== DELETE EXPENSE ==============
@expenses_bp.route('/expenses/<int:expense_id>', methods=['DELETE'])
@login_required
def remove_expense(expense_id):
    delete_expense(expense_id, current_user.id)
    return ok({'expense_id': expense_id, 'deleted': True})
