"""Settings blueprint - company info, numbering prefixes and payment term."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import require_permission, VIEW
from quotedesk.services.settings_service import get_all_settings, update_settings

settings_bp = Blueprint('settings', __name__, url_prefix='/settings')


@settings_bp.route('/')
@require_login
@require_permission(VIEW)
def get_settings():
    return jsonify({'settings': get_all_settings(get_session())})


@settings_bp.route('/', methods=['POST'])
@require_login
def save_settings():
    settings = update_settings(get_session(), request.get_json(silent=True) or {}, g.user)
    return jsonify({'settings': settings})
