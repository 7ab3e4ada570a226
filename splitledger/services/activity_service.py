"""
ACTIVITY FEED
=============

Read-only view of what happened across every group a user belongs to:
- expenses added        (type "expense")
- settlements recorded  (type "payment")
- groups created and members joining (types "group_created", "member_added")

Newest first, paginated. Nothing here writes to the database.
"""

from splitledger.models import Expense, Group, GroupMember, Settlement
from splitledger.services.exceptions import ValidationError

ACTIVITY_FILTERS = ('all', 'expense', 'payment', 'group')

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 50


def _clamp_paging(page, limit):
    try:
        page = int(page) if page is not None else 1
        limit = int(limit) if limit is not None else DEFAULT_PAGE_SIZE
    except (TypeError, ValueError):
        raise ValidationError("page and limit must be whole numbers") from None
    return max(1, page), min(MAX_PAGE_SIZE, max(1, limit))


def _activity(activity_id, kind, description, group, user, timestamp, amount=None):
    return {
        'id': activity_id,
        'type': kind,
        'description': description,
        'amount': amount,
        'group_id': group.id,
        'group_name': group.name,
        'user_id': user.id if user else None,
        'user_name': user.name if user else 'Unknown',
        'timestamp': timestamp,
    }


# ============================================================
# COLLECTORS
# ============================================================

def _expense_activities(groups):
    expenses = Expense.query.filter(Expense.group_id.in_(list(groups))).all()
    return [
        _activity(f'expense_{e.id}', 'expense', f'added an expense "{e.description}"',
                  groups[e.group_id], e.payer, e.created_at, amount=e.amount)
        for e in expenses
    ]


def _payment_activities(groups):
    settlements = Settlement.query.filter(Settlement.group_id.in_(list(groups))).all()
    return [
        _activity(f'payment_{s.id}', 'payment', 'settled up',
                  groups[s.group_id], s.payer, s.created_at, amount=s.amount)
        for s in settlements
    ]


def _group_activities(groups):
    activities = []
    for group in groups.values():
        activities.append(_activity(
            f'group_created_{group.id}', 'group_created', 'created the group',
            group, group.creator, group.created_at
        ))

    members = GroupMember.query.filter(
        GroupMember.group_id.in_(list(groups)),
        GroupMember.is_active.is_(True)
    ).all()
    for member in members:
        group = groups[member.group_id]
        if member.user_id == group.created_by:
            continue
        activities.append(_activity(
            f'member_added_{group.id}_{member.user_id}', 'member_added', 'joined the group',
            group, member.user, member.joined_at
        ))
    return activities


# ============================================================
# RECENT ACTIVITIES
# ============================================================

def get_recent_activities(user_id, activity_filter=None, page=1, limit=DEFAULT_PAGE_SIZE):
    """
    Activities in the user's active groups, newest first.

    Args:
        activity_filter: 'all' (default), 'expense', 'payment' or 'group'.
        page / limit: 1-based page; limit is clamped to 1..50.

    Returns: {'activities': [...], 'pagination': {page, limit, total, has_more}}
    """
    activity_filter = activity_filter or 'all'
    if activity_filter not in ACTIVITY_FILTERS:
        raise ValidationError(f"Unknown activity filter '{activity_filter}'")
    page, limit = _clamp_paging(page, limit)

    group_ids = [
        m.group_id for m in GroupMember.query.filter_by(user_id=user_id, is_active=True).all()
    ]
    groups = {
        g.id: g for g in Group.query.filter(Group.id.in_(group_ids)).all()
    } if group_ids else {}

    activities = []
    if activity_filter in ('all', 'expense'):
        activities.extend(_expense_activities(groups))
    if activity_filter in ('all', 'payment'):
        activities.extend(_payment_activities(groups))
    if activity_filter in ('all', 'group'):
        activities.extend(_group_activities(groups))

    activities.sort(key=lambda a: (a['timestamp'], a['id']), reverse=True)

    start = (page - 1) * limit
    return {
        'activities': activities[start:start + limit],
        'pagination': {
            'page': page,
            'limit': limit,
            'total': len(activities),
            'has_more': start + limit < len(activities),
        },
    }
