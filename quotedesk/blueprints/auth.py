"""Authentication blueprint - session-cookie login for the JSON API."""
from flask import Blueprint, request, session, jsonify, g, current_app
from flask_wtf.csrf import generate_csrf
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.services.auth_service import authenticate

auth_bp = Blueprint('auth', __name__, url_prefix='/auth')


@auth_bp.route('/login', methods=['POST'])
def login():
    """Validate email + password and start a session."""
    data = request.get_json(silent=True) or request.form
    user = authenticate(get_session(), data.get('email'), data.get('password'))

    session.clear()
    session['user_id'] = user.id
    session.permanent = True
    return jsonify({'status': 'ok', 'user': user.to_dict()})


@auth_bp.route('/logout', methods=['POST'])
def logout():
    """Clear the session."""
    if g.get('user'):
        current_app.logger.info(f"User {g.user.id} logged out")
    session.clear()
    return jsonify({'status': 'ok'})


@auth_bp.route('/me')
@require_login
def me():
    return jsonify({'status': 'ok', 'user': g.user.to_dict()})


@auth_bp.route('/csrf-token')
def csrf_token():
    """Token to send back in the X-CSRFToken header on mutating requests."""
    return jsonify({'csrf_token': generate_csrf()})
