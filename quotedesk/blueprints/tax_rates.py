"""Tax rates blueprint - regional tax presets quotes can apply."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import require_permission, VIEW
from quotedesk.services import tax_rate_service

tax_rates_bp = Blueprint('tax_rates', __name__, url_prefix='/tax-rates')


@tax_rates_bp.route('/')
@require_login
def list_tax_rates():
    active_only = request.args.get('active', '').lower() in ('1', 'true', 'yes')
    presets = tax_rate_service.list_presets(get_session(), g.user, active_only=active_only)
    return jsonify({'tax_rates': [preset.to_dict() for preset in presets]})


@tax_rates_bp.route('/region/<region>')
@require_login
@require_permission(VIEW)
def tax_rate_for_region(region):
    preset = tax_rate_service.preset_for_region(get_session(), region)
    return jsonify({'tax_rate': preset.to_dict()})


@tax_rates_bp.route('/', methods=['POST'])
@require_login
def create_tax_rate():
    preset = tax_rate_service.create_preset(get_session(), request.get_json(silent=True) or {}, g.user)
    return jsonify({'tax_rate': preset.to_dict()}), 201


@tax_rates_bp.route('/<int:preset_id>', methods=['PATCH'])
@require_login
def update_tax_rate(preset_id):
    preset = tax_rate_service.update_preset(
        get_session(), preset_id, request.get_json(silent=True) or {}, g.user
    )
    return jsonify({'tax_rate': preset.to_dict()})


@tax_rates_bp.route('/<int:preset_id>', methods=['DELETE'])
@require_login
def delete_tax_rate(preset_id):
    tax_rate_service.delete_preset(get_session(), preset_id, g.user)
    return jsonify({'status': 'ok'})
