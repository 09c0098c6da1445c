import uuid
from datetime import datetime, timedelta, timezone

import jwt
from flask import current_app, jsonify, request, session

from . import auth_bp
from ..api_client import ApiError, get_client
from ..models import USER_TYPES, User


def _jwt_secret():
    return current_app.config.get('JWT_SECRET') or current_app.config['SECRET_KEY']


def create_jwt(user_id, role, expires_minutes=5):
    now = datetime.now(timezone.utc)
    payload = {
        'sub': str(user_id),
        'role': role,
        'iat': int(now.timestamp()),
        'exp': int((now + timedelta(minutes=expires_minutes)).timestamp()),
        'rnd': uuid.uuid4().hex,
    }
    return jwt.encode(payload, _jwt_secret(), algorithm='HS256')


@auth_bp.route('/login', methods=['POST'])
def login():
    """
    Sign in through the Ezitt API and open a portal session.
    Body (JSON or form): email, password
    Returns: { status, token, user }
    """
    data = request.get_json(silent=True) or request.form
    email = (data.get('email') or '').strip()
    password = data.get('password') or ''
    if not email or not password:
        return jsonify({'status': 'error', 'message': 'Email and password required'}), 400

    try:
        result = get_client().sign_in(email, password) or {}
    except ApiError as e:
        current_app.logger.warning(f"Sign-in failed for {email}: {e.message}")
        code = e.status_code if e.status_code in (400, 401, 403, 404) else 502
        return jsonify({'status': 'error', 'message': e.message or 'Failed to sign in'}), code

    user = User.from_dict(result.get('user') or {})
    if not user.id or user.user_type not in USER_TYPES:
        return jsonify({'status': 'error', 'message': 'Account has no portal role'}), 403

    session.clear()
    session.permanent = True
    session['user_id'] = user.id
    session['role'] = user.user_type
    session['email'] = user.email
    session['name'] = user.display_name
    session['api_token'] = result.get('token')

    token = create_jwt(user.id, user.user_type)
    current_app.logger.info(f"{user.user_type} {user.id} signed in")
    return jsonify({'status': 'success', 'token': token, 'user': user.to_dict()}), 200


@auth_bp.route('/logout', methods=['POST'])
def logout():
    session.clear()
    return jsonify({'status': 'success'}), 200


@auth_bp.route('/me', methods=['GET'])
def me():
    if not session.get('user_id'):
        return jsonify({'status': 'error', 'message': 'User not authenticated'}), 401
    return jsonify({
        'status': 'success',
        'user': {
            'id': session['user_id'],
            'user_type': session.get('role'),
            'email': session.get('email'),
            'name': session.get('name'),
        },
    }), 200
