"""Middleware for authentication context."""
from functools import wraps
from flask import session, g, jsonify, current_app
from quotedesk.database import get_session
from quotedesk.models import User, UserStatus


def load_user():
    """
    Load current user into g (Flask's per-request global).

    Called before each request; sets g.user and g.user_role when the session
    cookie identifies an active user.
    """
    g.user = None
    g.user_role = None

    user_id = session.get('user_id')
    if not user_id:
        return

    try:
        db_session = get_session()
        user = db_session.query(User).filter_by(id=user_id, status=UserStatus.ACTIVE).first()
    except Exception as e:
        current_app.logger.error(f"Error in load_user: {e}")
        raise

    if user:
        g.user = user
        g.user_role = user.role.value
    else:
        session.pop('user_id', None)


def require_login(f):
    """
    Decorator: Require user to be logged in.

    Returns a JSON 401 when no user is attached to the request.
    """
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if g.get('user') is None:
            return jsonify({'status': 'error', 'message': 'Authentication required'}), 401
        return f(*args, **kwargs)
    return decorated_function
