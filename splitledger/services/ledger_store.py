"""
LEDGER STORE - RUNNING BALANCES PER (GROUP, MEMBER)
===================================================

CRITICAL RULES:
1. MemberBalance.balance ONLY changes through apply_delta / apply_effect
2. Increments run as SQL `balance = balance + :delta`, never read-modify-write
3. Nothing here commits; the caller owns the transaction so a whole effect
   is applied or rolled back together
4. Reads use column queries so they always see the database value, not a
   stale ORM instance
"""

import logging
from datetime import datetime

from sqlalchemy.exc import SQLAlchemyError

from splitledger.extensions import db
from splitledger.models import Group, GroupMember, LedgerEffectEntry, MemberBalance
from splitledger.services.exceptions import InvariantViolation, StorageError
from splitledger.services.ledger_effect import LedgerEffect

logger = logging.getLogger(__name__)


# ============================================================
# POINT READS
# ============================================================

def get_balance(group_id, user_id):
    """Current balance in minor units; 0 for members without an entry."""
    try:
        balance = db.session.query(MemberBalance.balance).filter_by(
            group_id=group_id,
            user_id=user_id
        ).scalar()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to read balance: {e}") from e
    return int(balance or 0)


def list_balances(group_id):
    """Snapshot {user_id: balance} of every entry in the group."""
    try:
        rows = db.session.query(MemberBalance.user_id, MemberBalance.balance).filter_by(
            group_id=group_id
        ).order_by(MemberBalance.user_id).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to list balances: {e}") from e
    return {user_id: int(balance) for user_id, balance in rows}


def get_group_total(group_id):
    try:
        total = db.session.query(
            db.func.coalesce(db.func.sum(MemberBalance.balance), 0)
        ).filter(MemberBalance.group_id == group_id).scalar()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to sum balances: {e}") from e
    return int(total or 0)


# ============================================================
# WRITES (no commit)
# ============================================================

def ensure_entry(group_id, user_id):
    """Create a zero balance entry for a member if none exists."""
    try:
        exists = db.session.query(MemberBalance.id).filter_by(
            group_id=group_id,
            user_id=user_id
        ).first()
        if exists:
            return False

        db.session.add(MemberBalance(group_id=group_id, user_id=user_id, balance=0))
        db.session.flush()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to create balance entry: {e}") from e
    return True


def apply_delta(group_id, user_id, delta):
    """
    Add `delta` minor units to a member's balance.

    Creates the entry when it does not exist yet. A concurrent insert of the
    same entry fails the flush with IntegrityError, which surfaces as a
    StorageError and the caller retries the whole effect.
    """
    delta = int(delta)
    if delta == 0:
        return

    try:
        updated = MemberBalance.query.filter_by(
            group_id=group_id,
            user_id=user_id
        ).update(
            {
                MemberBalance.balance: MemberBalance.balance + delta,
                MemberBalance.updated_at: datetime.utcnow(),
            },
            synchronize_session=False
        )

        if not updated:
            db.session.add(MemberBalance(group_id=group_id, user_id=user_id, balance=delta))
            db.session.flush()

    except SQLAlchemyError as e:
        logger.exception(f"Balance update failed for user {user_id} in group {group_id}")
        raise StorageError(f"Failed to update balance: {e}") from e


def apply_effect(effect: LedgerEffect):
    """Apply every delta of an effect, in ascending member order."""
    for user_id, delta in effect.deltas:
        apply_delta(effect.group_id, user_id, delta)


def assert_balanced(group_id):
    """Raise InvariantViolation when the group's balances do not sum to zero."""
    total = get_group_total(group_id)
    if total != 0:
        logger.critical(
            f"LEDGER INVARIANT VIOLATED: group {group_id} balances sum to {total}, expected 0"
        )
        raise InvariantViolation(f"Group {group_id} balances sum to {total}, expected 0")


# ============================================================
# EFFECT RECORDS (kept beside each transaction for reversal)
# ============================================================

def record_effect(effect: LedgerEffect):
    """Persist the deltas of an applied effect. Needs reference_type/reference_id."""
    if effect.reference_type is None or effect.reference_id is None:
        raise ValueError("Effect must reference a transaction before it is recorded")

    try:
        for user_id, delta in effect.deltas:
            db.session.add(LedgerEffectEntry(
                group_id=effect.group_id,
                reference_type=effect.reference_type,
                reference_id=effect.reference_id,
                user_id=user_id,
                delta=delta
            ))
        db.session.flush()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to record ledger effect: {e}") from e


def load_effect(reference_type, reference_id):
    """Rebuild the effect exactly as it was recorded. None if nothing was recorded."""
    try:
        rows = LedgerEffectEntry.query.filter_by(
            reference_type=reference_type,
            reference_id=reference_id
        ).order_by(LedgerEffectEntry.user_id).all()
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to load ledger effect: {e}") from e

    if not rows:
        return None

    return LedgerEffect(
        group_id=rows[0].group_id,
        deltas=tuple((row.user_id, int(row.delta)) for row in rows),
        reference_type=reference_type,
        reference_id=reference_id
    )


def delete_effect(reference_type, reference_id):
    try:
        LedgerEffectEntry.query.filter_by(
            reference_type=reference_type,
            reference_id=reference_id
        ).delete(synchronize_session=False)
    except SQLAlchemyError as e:
        raise StorageError(f"Failed to delete ledger effect: {e}") from e


# ============================================================
# RECONCILIATION (AUDIT / REPAIR - NOT THE HOT PATH)
# ============================================================

def recompute_group_balances(group_id, repair=False):
    """
    Rebuild the group's balances from the recorded effects and compare
    them with the running balances.

    With repair=True drifted entries are overwritten and the result is
    committed. Returns a report dict.
    """
    group = db.session.get(Group, group_id)
    if not group:
        raise ValueError(f"Group {group_id} not found")

    try:
        rows = db.session.query(
            LedgerEffectEntry.user_id,
            db.func.sum(LedgerEffectEntry.delta)
        ).filter(
            LedgerEffectEntry.group_id == group_id
        ).group_by(LedgerEffectEntry.user_id).all()

        expected = {user_id: int(total or 0) for user_id, total in rows}

        # Every member ever in the group should have an entry
        member_ids = [m.user_id for m in GroupMember.query.filter_by(group_id=group_id).all()]
        for user_id in member_ids:
            expected.setdefault(user_id, 0)

        current = list_balances(group_id)

        drift = {}
        for user_id in sorted(set(expected) | set(current)):
            difference = expected.get(user_id, 0) - current.get(user_id, 0)
            if difference != 0:
                drift[user_id] = difference

        was_corrected = False
        if drift and repair:
            for user_id, difference in drift.items():
                apply_delta(group_id, user_id, difference)
            assert_balanced(group_id)
            db.session.commit()
            was_corrected = True

    except (InvariantViolation, StorageError):
        db.session.rollback()
        raise
    except SQLAlchemyError as e:
        db.session.rollback()
        raise StorageError(f"Reconciliation failed: {e}") from e

    if drift:
        logger.warning(
            f"Balance drift in group {group_id}: {drift} "
            f"({'corrected' if was_corrected else 'not corrected'})"
        )
    else:
        logger.info(f"Group {group_id} balances verified - no drift")

    return {
        'group_id': group_id,
        'expected_balances': expected,
        'previous_balances': current,
        'drift': drift,
        'was_corrected': was_corrected,
        'expected_total': sum(expected.values()),
    }
