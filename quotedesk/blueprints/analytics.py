"""Analytics blueprint."""
from flask import Blueprint, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.services.analytics_service import get_dashboard_data

analytics_bp = Blueprint('analytics', __name__, url_prefix='/analytics')


@analytics_bp.route('/dashboard')
@require_login
def dashboard():
    return jsonify({'dashboard': get_dashboard_data(get_session(), g.user)})
