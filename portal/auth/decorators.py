from functools import wraps
from flask import session, jsonify, current_app


def login_required(view_func):
    """Reject the request with 401 if no user session is present."""
    @wraps(view_func)
    def wrapper(*args, **kwargs):
        try:
            if not session.get('user_id'):
                return jsonify({'status': 'error', 'message': 'User not authenticated'}), 401
        except Exception as e:
            current_app.logger.error(f"Authentication error: {str(e)}")
            # Clear potentially corrupted session
            session.clear()
            return jsonify({'status': 'error', 'message': 'User not authenticated'}), 401
        return view_func(*args, **kwargs)
    return wrapper


def role_required(*roles):
    """Ensure the logged-in user has one of the required roles (e.g., 'merchant', 'admin')."""
    def decorator(view_func):
        @wraps(view_func)
        def wrapper(*args, **kwargs):
            role = session.get('role')
            if not session.get('user_id'):
                return jsonify({'status': 'error', 'message': 'User not authenticated'}), 401
            if not role or (roles and role not in roles):
                return jsonify({'status': 'error', 'message': 'Forbidden for this role'}), 403
            return view_func(*args, **kwargs)
        return wrapper
    return decorator
