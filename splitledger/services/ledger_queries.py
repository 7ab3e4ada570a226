"""
Read-only ledger views for routes and templates.
Nothing in this module writes or commits.
"""

from splitledger.models import GroupMember, User
from splitledger.services import ledger_store
from splitledger.services.debt_simplifier import simplify_debts
from splitledger.services.money import DEFAULT_MINOR_UNIT_DIGITS, format_amount


def get_simplified_debts(group_id):
    """Transfers that would settle the group, from the current balances."""
    return simplify_debts(ledger_store.list_balances(group_id))


def get_member_balance(group_id, user_id):
    return ledger_store.get_balance(group_id, user_id)


def get_member_debts(group_id, user_id):
    """Split the simplified plan into what `user_id` pays and receives."""
    transfers = get_simplified_debts(group_id)
    return {
        'owes': [t for t in transfers if t.from_user == user_id],
        'owed_by': [t for t in transfers if t.to_user == user_id],
    }


def get_group_balances(group_id, digits=DEFAULT_MINOR_UNIT_DIGITS):
    """
    Presentation summary of a group's ledger.

    Active members are always listed (zero if they have no entry yet);
    former members only while their balance is nonzero.
    """
    balances = ledger_store.list_balances(group_id)
    active_ids = {
        m.user_id for m in GroupMember.query.filter_by(group_id=group_id, is_active=True).all()
    }

    listed_ids = sorted(active_ids | {uid for uid, bal in balances.items() if bal != 0})
    names = {
        u.id: u.name for u in User.query.filter(User.id.in_(listed_ids)).all()
    } if listed_ids else {}

    transfers = simplify_debts(balances)

    return {
        'group_id': group_id,
        'member_balances': [
            {
                'user_id': user_id,
                'name': names.get(user_id),
                'balance': format_amount(balances.get(user_id, 0), digits),
                'is_active': user_id in active_ids,
            }
            for user_id in listed_ids
        ],
        'simplified_debts': [
            {
                'from_user_id': t.from_user,
                'from_name': names.get(t.from_user),
                'to_user_id': t.to_user,
                'to_name': names.get(t.to_user),
                'amount': format_amount(t.amount, digits),
            }
            for t in transfers
        ],
        'balance_sum': format_amount(sum(balances.values()), digits),
    }
