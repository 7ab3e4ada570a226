"""
Shared helpers for the JSON blueprints.

Responses use the envelope {"success": bool, "data"|"error": ...}.
Service exceptions are mapped to status codes in register_error_handlers().
"""

import logging
from datetime import datetime

from flask import current_app, jsonify, request

from splitledger.services.authorization_service import AuthorizationError
from splitledger.services.exceptions import InvariantViolation, StorageError, ValidationError
from splitledger.services.expense_service import ExpenseError
from splitledger.services.membership_service import MembershipError
from splitledger.services.money import format_amount, to_minor_units
from splitledger.services.settlement_service import SettlementError

logger = logging.getLogger(__name__)


def ok(data=None, status=200):
    return jsonify({'success': True, 'data': data}), status


def fail(error, status=400):
    return jsonify({'success': False, 'error': error}), status


def get_payload():
    return request.get_json(silent=True) or {}


def minor_unit_digits():
    return current_app.config.get('LEDGER_MINOR_UNIT_DIGITS', 2)


def parse_amount(value, field='amount'):
    """Decimal string from the request -> minor units"""
    if value is None or value == '':
        raise ValidationError(f"'{field}' is required")
    return to_minor_units(value, minor_unit_digits())


def show_amount(minor):
    return format_amount(minor, minor_unit_digits())


def parse_user_id(value, field='user_id'):
    if isinstance(value, bool):
        raise ValidationError(f"'{field}' must be a user id")
    try:
        return int(value)
    except (TypeError, ValueError):
        raise ValidationError(f"'{field}' must be a user id") from None


def parse_datetime(value, field):
    if not value:
        return None
    try:
        return datetime.fromisoformat(str(value).replace('Z', '+00:00'))
    except ValueError:
        raise ValidationError(f"'{field}' must be an ISO-8601 date") from None


def iso(dt):
    return dt.isoformat() if dt else None


def register_error_handlers(app):
    @app.errorhandler(ValidationError)
    def handle_validation_error(e):
        return fail(str(e), 400)

    @app.errorhandler(MembershipError)
    def handle_membership_error(e):
        return fail(str(e), 400)

    @app.errorhandler(AuthorizationError)
    def handle_authorization_error(e):
        return fail(str(e), 403)

    @app.errorhandler(ExpenseError)
    @app.errorhandler(SettlementError)
    def handle_not_found(e):
        return fail(str(e), 404)

    @app.errorhandler(StorageError)
    def handle_storage_error(e):
        logger.error(f"Storage error on {request.method} {request.path}: {e}")
        return fail('storage_unavailable', 503)

    @app.errorhandler(InvariantViolation)
    def handle_invariant_violation(e):
        # A defect, not a user error: alert and keep details out of the response
        logger.critical(f"Invariant violation on {request.method} {request.path}: {e}")
        return fail('server_error', 500)

    @app.errorhandler(404)
    def handle_404(e):
        return fail('not_found', 404)

    @app.errorhandler(405)
    def handle_405(e):
        return fail('method_not_allowed', 405)
