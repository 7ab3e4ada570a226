"""
PERMISSION CHECKS
=================

Every "may this user do X in this group" decision is made here.

Checks return (allowed, reason) so routes can show the reason;
require_authorization() turns a refusal into an AuthorizationError.

The group owner is whoever holds the admin role. Group.created_by only
records who created the group and does not move on admin handover.
"""

from splitledger.extensions import db
from splitledger.models import Expense, GroupMember, MemberRole, Settlement
from splitledger.services import ledger_store


class AuthorizationError(Exception):
    """The acting user is not allowed to perform the operation"""
    pass


NOT_A_MEMBER = "You are not a member of this group"


# ============================================================
# MEMBERSHIP LOOKUPS
# ============================================================

def get_membership(user_id, group_id):
    """Active GroupMember row for the pair, or None"""
    return GroupMember.query.filter_by(
        group_id=group_id,
        user_id=user_id,
        is_active=True
    ).first()


def is_group_member(user_id, group_id):
    return get_membership(user_id, group_id) is not None


def is_group_admin(user_id, group_id):
    membership = get_membership(user_id, group_id)
    return bool(membership) and membership.role == MemberRole.ADMIN.value


def _count_admins(group_id):
    return GroupMember.query.filter_by(
        group_id=group_id,
        role=MemberRole.ADMIN.value,
        is_active=True
    ).count()


# ============================================================
# TRANSACTIONS
# ============================================================

def can_record_transaction(user_id, group_id):
    """Any active member may add expenses and settlements."""
    if not is_group_member(user_id, group_id):
        return False, NOT_A_MEMBER
    return True, None


def _payer_or_admin(user_id, group_id, payer_id, what):
    if not is_group_member(user_id, group_id):
        return False, NOT_A_MEMBER
    if user_id != payer_id and not is_group_admin(user_id, group_id):
        return False, f"Only the payer or the group admin can change this {what}"
    return True, None


def can_delete_expense(user_id, expense_id):
    """Editing and deleting an expense: its payer, or the group admin."""
    expense = db.session.get(Expense, expense_id)
    if not expense:
        return False, "Expense not found"
    return _payer_or_admin(user_id, expense.group_id, expense.paid_by, "expense")


def can_delete_settlement(user_id, settlement_id):
    settlement = db.session.get(Settlement, settlement_id)
    if not settlement:
        return False, "Settlement not found"
    return _payer_or_admin(user_id, settlement.group_id, settlement.from_user, "settlement")


# ============================================================
# LEAVING A GROUP
# ============================================================

def can_leave_group(user_id, group_id):
    """
    Leaving (or being removed) needs:
    - an active membership
    - a balance of exactly zero, so no debt is dropped with the member
    - another admin left behind when the member is an admin
    """
    membership = get_membership(user_id, group_id)
    if not membership:
        return False, NOT_A_MEMBER

    balance = ledger_store.get_balance(group_id, user_id)
    if balance < 0:
        return False, "You still owe money in this group. Settle up first."
    if balance > 0:
        return False, "Other members still owe you money. Settle up first."

    if membership.role == MemberRole.ADMIN.value and _count_admins(group_id) <= 1:
        return False, "You are the only admin. Hand admin rights to another member first."

    return True, None


# ============================================================
# ADMIN HANDOVER
# ============================================================

def can_transfer_admin(from_user_id, to_user_id, group_id):
    """Only an admin can hand over, and only to an active non-admin member."""
    if not is_group_admin(from_user_id, group_id):
        return False, "Only a group admin can hand over admin rights"

    target = get_membership(to_user_id, group_id)
    if not target:
        return False, "Target user is not a member of this group"
    if target.role == MemberRole.ADMIN.value:
        return False, "Target user is already an admin"

    return True, None


def require_authorization(check_func, *args, error_class=AuthorizationError):
    """
    Run a (allowed, reason) check and raise error_class on refusal.

        require_authorization(can_delete_expense, user_id, expense_id)
    """
    allowed, reason = check_func(*args)
    if not allowed:
        raise error_class(reason)
