"""Clients blueprint."""
from flask import Blueprint, request, jsonify, g
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import require_permission, VIEW, MANAGE_CLIENTS
from quotedesk.services import client_service

clients_bp = Blueprint('clients', __name__, url_prefix='/clients')


@clients_bp.route('/')
@require_login
def list_clients():
    clients = client_service.list_clients(get_session(), g.user, search=request.args.get('q'))
    return jsonify({'clients': [client.to_dict() for client in clients]})


@clients_bp.route('/', methods=['POST'])
@require_login
@require_permission(MANAGE_CLIENTS)
def create_client():
    client = client_service.create_client(get_session(), request.get_json(silent=True) or {}, g.user)
    return jsonify({'client': client.to_dict()}), 201


@clients_bp.route('/<int:client_id>')
@require_login
@require_permission(VIEW)
def get_client(client_id):
    client = client_service.get_client(get_session(), client_id)
    return jsonify({'client': client.to_dict()})


@clients_bp.route('/<int:client_id>', methods=['PATCH'])
@require_login
def update_client(client_id):
    client = client_service.update_client(
        get_session(), client_id, request.get_json(silent=True) or {}, g.user
    )
    return jsonify({'client': client.to_dict()})


@clients_bp.route('/<int:client_id>', methods=['DELETE'])
@require_login
def delete_client(client_id):
    deleted = client_service.delete_client(get_session(), client_id, g.user)
    return jsonify({'status': 'ok', 'deleted': deleted, 'deactivated': not deleted})
