"""
BALANCE ROUTES
==============

Read-only ledger views, plus the admin reconciliation check.
"""

from flask import Blueprint, current_app
from flask_login import login_required, current_user

from splitledger.extensions import db
from splitledger.models import Group
from splitledger.routes import fail, get_payload, minor_unit_digits, ok, show_amount
from splitledger.services import ledger_store
from splitledger.services.authorization_service import is_group_admin, is_group_member
from splitledger.services.ledger_queries import get_group_balances, get_member_balance

balances_bp = Blueprint('balances', __name__, url_prefix='/api/groups')


def _check_access(group_id):
    if not db.session.get(Group, group_id):
        return fail('group_not_found', 404)
    if not is_group_member(current_user.id, group_id):
        return fail('You are not a member of this group', 403)
    return None


# ============== GROUP BALANCES + SETTLE-UP PLAN ==============
@balances_bp.route('/<int:group_id>/balances', methods=['GET'])
@login_required
def group_balances(group_id):
    error = _check_access(group_id)
    if error:
        return error

    summary = get_group_balances(group_id, minor_unit_digits())
    summary['currency'] = current_app.config.get('LEDGER_CURRENCY')
    return ok(summary)


# ============== ONE MEMBER'S BALANCE ==============
@balances_bp.route('/<int:group_id>/balances/<int:user_id>', methods=['GET'])
@login_required
def member_balance(group_id, user_id):
    error = _check_access(group_id)
    if error:
        return error

    return ok({
        'group_id': group_id,
        'user_id': user_id,
        'balance': show_amount(get_member_balance(group_id, user_id)),
    })


# ============== RECONCILE (Admin) ==============
@balances_bp.route('/<int:group_id>/balances/reconcile', methods=['POST'])
@login_required
def reconcile(group_id):
    error = _check_access(group_id)
    if error:
        return error

    if not is_group_admin(current_user.id, group_id):
        return fail('Only admin can reconcile balances', 403)

    repair = bool(get_payload().get('repair', False))
    result = ledger_store.recompute_group_balances(group_id, repair=repair)

    return ok({
        'group_id': group_id,
        'was_corrected': result['was_corrected'],
        'drift': {str(uid): show_amount(diff) for uid, diff in result['drift'].items()},
        'expected_balances': {
            str(uid): show_amount(bal) for uid, bal in result['expected_balances'].items()
        },
    })
