"""
AUTHENTICATION ROUTES
=====================
"""

from flask import Blueprint
from flask_login import login_user, logout_user, login_required, current_user

from splitledger.extensions import db
from splitledger.models import User
from splitledger.routes import fail, get_payload, iso, ok

auth_bp = Blueprint('auth', __name__, url_prefix='/api/auth')


def user_to_dict(user):
    return {
        'id': user.id,
        'name': user.name,
        'email': user.email,
        'created_at': iso(user.created_at),
    }


@auth_bp.route('/register', methods=['POST'])
def register():
    payload = get_payload()
    name = (payload.get('name') or '').strip()
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    # Validation
    if not name or not email or not password:
        return fail('missing_fields', 400)

    if len(password) < 6:
        return fail('Password must be at least 6 characters', 400)

    if User.query.filter_by(email=email).first():
        return fail('email_in_use', 409)

    new_user = User(name=name, email=email)
    new_user.set_password(password)

    db.session.add(new_user)
    db.session.commit()

    login_user(new_user)
    return ok(user_to_dict(new_user), 201)


@auth_bp.route('/login', methods=['POST'])
def login():
    payload = get_payload()
    email = (payload.get('email') or '').strip().lower()
    password = payload.get('password') or ''

    if not email or not password:
        return fail('missing_fields', 400)

    user = User.query.filter_by(email=email).first()
    if not user or not user.check_password(password):
        return fail('invalid_credentials', 401)

    login_user(user, remember=bool(payload.get('remember', False)))
    return ok(user_to_dict(user))


@auth_bp.route('/logout', methods=['POST'])
@login_required
def logout():
    logout_user()
    return ok({'status': 'logged_out'})


@auth_bp.route('/me')
@login_required
def me():
    return ok(user_to_dict(current_user))


# ============== UPDATE PROFILE ==============
@auth_bp.route('/me', methods=['PUT'])
@login_required
def update_me():
    payload = get_payload()
    changes = {}

    # Validate everything before touching the user row
    if 'name' in payload:
        name = payload['name']
        if not isinstance(name, str) or not name.strip():
            return fail('invalid_name', 400)
        changes['name'] = name.strip()

    if 'email' in payload:
        email = payload['email']
        if not isinstance(email, str) or not email.strip():
            return fail('invalid_email', 400)
        email = email.strip().lower()
        if User.query.filter(User.email == email, User.id != current_user.id).first():
            return fail('email_in_use', 409)
        changes['email'] = email

    new_password = payload.get('new_password')
    if new_password is not None:
        if not isinstance(new_password, str) or len(new_password) < 6:
            return fail('Password must be at least 6 characters', 400)
        current_password = payload.get('current_password')
        if not current_password or not isinstance(current_password, str):
            return fail('current_password_required', 400)
        if not current_user.check_password(current_password):
            return fail('invalid_current_password', 401)

    for field, value in changes.items():
        setattr(current_user, field, value)
    if new_password is not None:
        current_user.set_password(new_password)

    db.session.commit()
    return ok(user_to_dict(current_user))
