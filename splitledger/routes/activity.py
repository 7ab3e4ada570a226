"""
ACTIVITY ROUTES
===============
Recent activity across all of the current user's groups.
"""

from flask import Blueprint, request
from flask_login import login_required, current_user

from splitledger.routes import iso, ok, show_amount
from splitledger.services.activity_service import get_recent_activities

activity_bp = Blueprint('activity', __name__, url_prefix='/api/activity')


# ============== RECENT ACTIVITY ==============
@activity_bp.route('', methods=['GET'])
@login_required
def recent_activity():
    feed = get_recent_activities(
        current_user.id,
        activity_filter=request.args.get('filter'),
        page=request.args.get('page'),
        limit=request.args.get('limit')
    )

    for item in feed['activities']:
        if item['amount'] is not None:
            item['amount'] = show_amount(item['amount'])
        item['timestamp'] = iso(item['timestamp'])

    return ok(feed)
