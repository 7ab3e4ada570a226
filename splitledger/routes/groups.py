"""
GROUP MANAGEMENT ROUTES
=======================
Groups, membership and admin transfer. Ledger rules live in the services.
"""

from flask import Blueprint
from flask_login import login_required, current_user

from splitledger.extensions import db
from splitledger.models import Group, GroupMember, User
from splitledger.routes import (
    fail, get_payload, iso, ok, parse_user_id, show_amount
)
from splitledger.services import ledger_store
from splitledger.services.authorization_service import is_group_member
from splitledger.services.membership_service import (
    add_member, create_group, get_member_liabilities, leave_group,
    remove_member, transfer_admin
)

groups_bp = Blueprint('groups', __name__, url_prefix='/api/groups')


def _get_group_or_404(group_id):
    group = db.session.get(Group, group_id)
    if not group:
        return None, fail('group_not_found', 404)
    if not is_group_member(current_user.id, group_id):
        return None, fail('You are not a member of this group', 403)
    return group, None


# ============== LIST ALL MY GROUPS ==============
@groups_bp.route('', methods=['GET'])
@login_required
def list_groups():
    memberships = current_user.get_active_memberships().all()

    data = []
    for membership in memberships:
        group = membership.group
        data.append({
            'group_id': group.id,
            'name': group.name,
            'description': group.description,
            'member_count': group.get_member_count(),
            'role': membership.role,
            'your_balance': show_amount(ledger_store.get_balance(group.id, current_user.id)),
            'last_activity': iso(group.updated_at or group.created_at),
        })

    return ok(data)


# ============== CREATE NEW GROUP ==============
@groups_bp.route('', methods=['POST'])
@login_required
def create_group_route():
    payload = get_payload()
    member_ids = [parse_user_id(uid, 'members') for uid in payload.get('members') or []]

    group = create_group(
        name=payload.get('name'),
        owner_id=current_user.id,
        description=payload.get('description'),
        member_ids=member_ids
    )

    return ok(_group_to_dict(group), 201)


# ============== VIEW SINGLE GROUP ==============
@groups_bp.route('/<int:group_id>', methods=['GET'])
@login_required
def view_group(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error
    return ok(_group_to_dict(group))


# ============== ADD MEMBER ==============
@groups_bp.route('/<int:group_id>/members', methods=['POST'])
@login_required
def add_member_route(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    payload = get_payload()
    if payload.get('email'):
        user = User.query.filter_by(email=payload['email'].strip().lower()).first()
        if not user:
            return fail('User not found with this email', 404)
        user_id = user.id
    else:
        user_id = parse_user_id(payload.get('user_id'))

    membership = add_member(group_id, user_id, current_user.id)
    return ok({'group_id': group_id, 'user_id': membership.user_id, 'role': membership.role}, 201)


# ============== REMOVE MEMBER ==============
@groups_bp.route('/<int:group_id>/members/<int:user_id>', methods=['DELETE'])
@login_required
def remove_member_route(group_id, user_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    remove_member(group_id, user_id, current_user.id)
    return ok({'group_id': group_id, 'user_id': user_id, 'removed': True})


# ============== LEAVE GROUP ==============
@groups_bp.route('/<int:group_id>/leave', methods=['POST'])
@login_required
def leave_group_route(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    leave_group(group_id, current_user.id, reason=get_payload().get('reason'))
    return ok({'group_id': group_id, 'left': True})


# ============== LIABILITIES ==============
@groups_bp.route('/<int:group_id>/liabilities', methods=['GET'])
@login_required
def liabilities(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    result = get_member_liabilities(current_user.id, group_id)
    result['balance'] = show_amount(result['balance'])
    for entry in result['owes'] + result['owed_by']:
        entry['amount'] = show_amount(entry['amount'])
    return ok(result)


# ============== TRANSFER ADMIN ==============
@groups_bp.route('/<int:group_id>/transfer-admin', methods=['POST'])
@login_required
def transfer_admin_route(group_id):
    group, error = _get_group_or_404(group_id)
    if error:
        return error

    to_user_id = parse_user_id(get_payload().get('to_user_id'), 'to_user_id')
    transfer_admin(group_id, current_user.id, to_user_id)
    return ok({'group_id': group_id, 'admin_user_id': to_user_id})


def _group_to_dict(group):
    members = GroupMember.query.filter_by(group_id=group.id, is_active=True).order_by(
        GroupMember.joined_at, GroupMember.id
    ).all()

    return {
        'group_id': group.id,
        'name': group.name,
        'description': group.description,
        'created_by': group.created_by,
        'created_at': iso(group.created_at),
        'members': [
            {
                'user_id': m.user_id,
                'name': m.user.name,
                'email': m.user.email,
                'role': m.role,
            }
            for m in members
        ],
    }
