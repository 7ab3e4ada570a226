"""
SETTLEMENT SERVICE - ATOMIC SETTLE-UP OPERATIONS
================================================

CRITICAL BUSINESS RULES:
1. A settlement is a full payment of `amount` from payer to payee
2. Settlement row, recorded effect and balance changes commit together
3. Only the payer or the group admin may delete a settlement
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from splitledger.extensions import db
from splitledger.models import Settlement, User
from splitledger.services.authorization_service import (
    can_delete_settlement, can_record_transaction, is_group_member,
    require_authorization, AuthorizationError
)
from splitledger.services.balance_service import apply_settlement, reverse_settlement
from splitledger.services.exceptions import LedgerError, StorageError, ValidationError
from splitledger.services.ledger_effect import build_settlement_effect

logger = logging.getLogger(__name__)


class SettlementError(Exception):
    """Raised when a settlement cannot be found or handled"""
    pass


# ============================================================
# CREATE SETTLEMENT (ATOMIC)
# ============================================================

def create_settlement(group_id, created_by, from_user_id, to_user_id, amount,
                      note=None, settled_at=None):
    """
    Record a payment from `from_user_id` to `to_user_id` and apply it.

    Returns: Settlement
    """
    try:
        require_authorization(can_record_transaction, created_by, group_id)

        if from_user_id is None or to_user_id is None:
            raise ValidationError("Payer and payee are required")

        # Reject bad amounts and self-payments before the row is written
        build_settlement_effect(group_id, from_user_id, to_user_id, amount)

        settlement = Settlement(
            group_id=group_id,
            from_user=from_user_id,
            to_user=to_user_id,
            created_by=created_by,
            amount=amount,
            note=note.strip() if isinstance(note, str) else None,
            settled_at=settled_at or datetime.utcnow()
        )
        db.session.add(settlement)
        db.session.flush()

        apply_settlement(group_id, from_user_id, to_user_id, amount, settlement_id=settlement.id)
        settlement.group.touch()

        db.session.commit()
        logger.info(
            f"Settlement {settlement.id} in group {group_id}: "
            f"{from_user_id} paid {to_user_id} {amount}"
        )

        return settlement

    except (AuthorizationError, LedgerError) as e:
        db.session.rollback()
        if isinstance(e, ValidationError):
            logger.warning(f"Settlement rejected in group {group_id}: {e}")
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception(f"Settlement creation failed in group {group_id}")
        raise StorageError(f"Settlement creation failed: {str(e)}") from e


# ============================================================
# DELETE SETTLEMENT (ATOMIC)
# ============================================================

def delete_settlement(settlement_id, user_id):
    """Reverse the settlement's recorded effect and delete it"""
    try:
        settlement = db.session.get(Settlement, settlement_id)
        if not settlement:
            raise SettlementError(f"Settlement {settlement_id} not found")

        require_authorization(can_delete_settlement, user_id, settlement_id)

        group_id = settlement.group_id
        reverse_settlement(settlement.id)
        settlement.group.touch()

        db.session.delete(settlement)
        db.session.commit()
        logger.info(f"Settlement {settlement_id} deleted from group {group_id} by user {user_id}")

        return True

    except (SettlementError, AuthorizationError, LedgerError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        logger.exception(f"Settlement {settlement_id} deletion failed")
        raise StorageError(f"Settlement deletion failed: {str(e)}") from e


# ============================================================
# LIST SETTLEMENTS
# ============================================================

def list_group_settlements(group_id, requester_id):
    """Settlements of a group, newest first"""
    if not is_group_member(requester_id, group_id):
        raise AuthorizationError("You are not a member of this group")

    settlements = Settlement.query.filter_by(group_id=group_id).order_by(
        Settlement.settled_at.desc(), Settlement.created_at.desc(), Settlement.id.desc()
    ).all()

    user_ids = {s.from_user for s in settlements} | {s.to_user for s in settlements}
    names = {
        u.id: u.name for u in User.query.filter(User.id.in_(user_ids)).all()
    } if user_ids else {}

    return [
        {
            'settlement_id': s.id,
            'from_user_id': s.from_user,
            'from_name': names.get(s.from_user, 'Unknown'),
            'to_user_id': s.to_user,
            'to_name': names.get(s.to_user, 'Unknown'),
            'amount': s.amount,
            'note': s.note,
            'settled_at': s.settled_at,
            'created_at': s.created_at,
        }
        for s in settlements
    ]
