"""
MEMBERSHIP SERVICE
==================

Handles:
- Creating groups (creator becomes admin/owner)
- Adding/removing members (every member gets a zero balance entry)
- Leave group (blocked while the member's balance is not zero)
- Admin transfer
"""

import logging

from sqlalchemy.exc import SQLAlchemyError

from splitledger.extensions import db
from splitledger.models import Group, GroupMember, MemberRole, User
from splitledger.services import ledger_store
from splitledger.services.authorization_service import (
    can_leave_group, can_transfer_admin, get_membership,
    is_group_admin, require_authorization, AuthorizationError
)
from splitledger.services.exceptions import LedgerError
from splitledger.services.ledger_queries import get_member_debts

logger = logging.getLogger(__name__)


class MembershipError(Exception):
    """Base exception for membership operations"""
    pass


# ============================================================
# CREATE GROUP
# ============================================================

def create_group(name, owner_id, description=None, member_ids=()):
    """Create a group with the owner as admin plus optional initial members"""
    try:
        name = (name or '').strip()
        if not name:
            raise MembershipError("Group name is required")

        if not db.session.get(User, owner_id):
            raise MembershipError(f"User {owner_id} not found")

        group = Group(
            name=name,
            description=(description or '').strip(),
            created_by=owner_id
        )
        db.session.add(group)
        db.session.flush()

        db.session.add(GroupMember(
            group_id=group.id,
            user_id=owner_id,
            role=MemberRole.ADMIN.value
        ))
        ledger_store.ensure_entry(group.id, owner_id)

        # Unknown ids are skipped, like invalid ids in the invite list
        extra_ids = sorted({uid for uid in member_ids if uid != owner_id})
        known_ids = {
            u.id for u in User.query.filter(User.id.in_(extra_ids)).all()
        } if extra_ids else set()

        for user_id in extra_ids:
            if user_id not in known_ids:
                continue
            db.session.add(GroupMember(group_id=group.id, user_id=user_id))
            ledger_store.ensure_entry(group.id, user_id)

        db.session.commit()
        logger.info(f"Group {group.id} '{name}' created by user {owner_id} with {len(known_ids) + 1} members")

        return group

    except (MembershipError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise MembershipError(f"Failed to create group: {str(e)}") from e


# ============================================================
# ADD MEMBER
# ============================================================

def add_member(group_id, user_id, added_by_user_id, role=MemberRole.MEMBER.value):
    """Add a new member to group (or re-activate a former member)"""
    try:
        # Check if adder is admin
        if not is_group_admin(added_by_user_id, group_id):
            raise AuthorizationError("Only admin can add members")

        if not db.session.get(User, user_id):
            raise MembershipError(f"User {user_id} not found")

        existing = GroupMember.query.filter_by(
            group_id=group_id,
            user_id=user_id
        ).first()

        if existing and existing.is_active:
            raise MembershipError("User is already a member")

        if existing:
            existing.reactivate(role=role)
            membership = existing
        else:
            membership = GroupMember(
                group_id=group_id,
                user_id=user_id,
                role=role
            )
            db.session.add(membership)

        ledger_store.ensure_entry(group_id, user_id)
        db.session.commit()
        logger.info(f"User {user_id} added to group {group_id} by {added_by_user_id}")

        return membership

    except (AuthorizationError, MembershipError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise MembershipError(f"Failed to add member: {str(e)}") from e


# ============================================================
# LEAVING / REMOVAL (soft delete, balance entry kept)
# ============================================================

def _deactivate(group_id, user_id, reason, refusal_prefix=""):
    """
    Soft delete an active membership once can_leave_group() agrees.
    A member can only go with a zero balance, so the kept entry is zero.
    """
    allowed, refusal = can_leave_group(user_id, group_id)
    if not allowed:
        raise MembershipError(f"{refusal_prefix}{refusal}")

    membership = get_membership(user_id, group_id)
    membership.soft_delete(reason=reason)
    db.session.commit()
    return membership


def leave_group(group_id, user_id, reason=None):
    """The member walks out. Refused while they owe or are owed money."""
    try:
        _deactivate(group_id, user_id, reason or "Member left voluntarily")
        logger.info(f"User {user_id} left group {group_id}")
        return True

    except (MembershipError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise MembershipError(f"Failed to leave group: {str(e)}") from e


def remove_member(group_id, user_id, removed_by_user_id, reason=None):
    """An admin removes someone else, under the same zero-balance rule."""
    try:
        if not is_group_admin(removed_by_user_id, group_id):
            raise AuthorizationError("Only admin can remove members")
        if user_id == removed_by_user_id:
            raise MembershipError("Admins leave through leave_group, not remove_member")

        _deactivate(group_id, user_id,
                    reason or f"Removed by admin {removed_by_user_id}",
                    refusal_prefix="Cannot remove: ")
        logger.info(f"User {user_id} removed from group {group_id} by {removed_by_user_id}")
        return True

    except (AuthorizationError, MembershipError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise MembershipError(f"Failed to remove member: {str(e)}") from e


# ============================================================
# ADMIN HANDOVER
# ============================================================

def transfer_admin(group_id, from_user_id, to_user_id):
    """Swap roles: the current admin becomes a member, the target becomes admin."""
    try:
        require_authorization(can_transfer_admin, from_user_id, to_user_id, group_id)

        outgoing = get_membership(from_user_id, group_id)
        incoming = get_membership(to_user_id, group_id)
        outgoing.role = MemberRole.MEMBER.value
        incoming.role = MemberRole.ADMIN.value

        db.session.commit()
        logger.info(f"Group {group_id}: admin handed from user {from_user_id} to {to_user_id}")
        return incoming

    except AuthorizationError:
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise MembershipError(f"Failed to transfer admin: {str(e)}") from e


# ============================================================
# GET MEMBER LIABILITIES
# ============================================================

def get_member_liabilities(user_id, group_id):
    """
    What stands between a member and leaving: their balance, the
    refusal reason (if any) and the payments the settle-up plan assigns them.
    """
    balance = ledger_store.get_balance(group_id, user_id)
    allowed, reason = can_leave_group(user_id, group_id)
    debts = get_member_debts(group_id, user_id)

    return {
        'can_leave': allowed,
        'reasons': [reason] if reason else [],
        'balance': balance,
        'owes': [
            {'to_user_id': t.to_user, 'amount': t.amount} for t in debts['owes']
        ],
        'owed_by': [
            {'from_user_id': t.from_user, 'amount': t.amount} for t in debts['owed_by']
        ],
    }
