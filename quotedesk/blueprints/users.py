"""
User management blueprint.

Lets admins list, create and deactivate accounts.
"""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import admin_only
from quotedesk.services import auth_service

users_bp = Blueprint('users', __name__, url_prefix='/users')


@users_bp.route('/')
@require_login
@admin_only
def list_users():
    include_inactive = request.args.get('all', '').lower() in ('1', 'true', 'yes')
    users = auth_service.list_users(get_session(), g.user, include_inactive=include_inactive)
    return jsonify({'users': [user.to_dict() for user in users]})


@users_bp.route('/', methods=['POST'])
@require_login
@admin_only
def create_user():
    data = request.get_json(silent=True) or {}
    user = auth_service.create_user(
        get_session(),
        email=data.get('email'),
        password=data.get('password'),
        name=data.get('name'),
        role=data.get('role') or 'user',
        created_by=g.user,
    )
    return jsonify({'user': user.to_dict()}), 201


@users_bp.route('/<int:user_id>', methods=['DELETE'])
@require_login
@admin_only
def remove_user(user_id):
    """Deactivate a user; the account stays on record."""
    user = auth_service.deactivate_user(get_session(), user_id, g.user)
    return jsonify({'status': 'ok', 'user': user.to_dict()})
