"""
SETTLEMENT ROUTES
=================
"""

from flask import Blueprint
from flask_login import login_required, current_user

from splitledger.extensions import db
from splitledger.models import Group
from splitledger.routes import (
    fail, get_payload, iso, ok, parse_amount, parse_datetime, parse_user_id, show_amount
)
from splitledger.services.settlement_service import (
    create_settlement, delete_settlement, list_group_settlements
)

settlements_bp = Blueprint('settlements', __name__, url_prefix='/api')


# ============== SETTLE UP ==============
@settlements_bp.route('/groups/<int:group_id>/settlements', methods=['POST'])
@login_required
def add_settlement(group_id):
    if not db.session.get(Group, group_id):
        return fail('group_not_found', 404)

    payload = get_payload()

    settlement = create_settlement(
        group_id=group_id,
        created_by=current_user.id,
        from_user_id=parse_user_id(payload.get('from_user_id', current_user.id), 'from_user_id'),
        to_user_id=parse_user_id(payload.get('to_user_id'), 'to_user_id'),
        amount=parse_amount(payload.get('amount')),
        note=payload.get('note'),
        settled_at=parse_datetime(payload.get('settled_at'), 'settled_at')
    )

    return ok({
        'settlement_id': settlement.id,
        'group_id': group_id,
        'from_user_id': settlement.from_user,
        'from_name': settlement.payer.name if settlement.payer else None,
        'to_user_id': settlement.to_user,
        'to_name': settlement.payee.name if settlement.payee else None,
        'amount': show_amount(settlement.amount),
        'note': settlement.note,
        'settled_at': iso(settlement.settled_at),
        'created_at': iso(settlement.created_at),
    }, 201)


# ============== LIST SETTLEMENTS ==============
@settlements_bp.route('/groups/<int:group_id>/settlements', methods=['GET'])
@login_required
def get_settlements(group_id):
    if not db.session.get(Group, group_id):
        return fail('group_not_found', 404)

    settlements = list_group_settlements(group_id, current_user.id)
    for item in settlements:
        item['amount'] = show_amount(item['amount'])
        item['settled_at'] = iso(item['settled_at'])
        item['created_at'] = iso(item['created_at'])

    return ok({'group_id': group_id, 'settlements': settlements})


# ============== DELETE SETTLEMENT ==============
@settlements_bp.route('/settlements/<int:settlement_id>', methods=['DELETE'])
@login_required
def remove_settlement(settlement_id):
    delete_settlement(settlement_id, current_user.id)
    return ok({'settlement_id': settlement_id, 'deleted': True})
