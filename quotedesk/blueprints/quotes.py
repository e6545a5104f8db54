"""Quotes blueprint - quote CRUD, pricing preview, workflow actions and conversion."""
from flask import Blueprint, request, jsonify, g, send_file
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import require_permission, VIEW
from quotedesk.exceptions import ValidationError
from quotedesk.services import quote_service
from quotedesk.services.audit_service import get_entity_history
from quotedesk.services.invoice_service import convert_to_invoice
from quotedesk.services.snapshot_service import quote_snapshot, issuer_from_settings
from quotedesk.services.document_service import render_document_pdf, document_filename
from quotedesk.services.workflow_service import QUOTE

quotes_bp = Blueprint('quotes', __name__, url_prefix='/quotes')


@quotes_bp.route('/')
@require_login
def list_quotes():
    """List quotes with filters (?status=, ?client_id=, ?q=)."""
    quotes = quote_service.list_quotes(
        get_session(),
        g.user,
        status=request.args.get('status'),
        client_id=request.args.get('client_id', type=int),
        search=request.args.get('q'),
    )
    return jsonify({'quotes': [quote.to_dict(include_items=False) for quote in quotes]})


@quotes_bp.route('/', methods=['POST'])
@require_login
def create_quote():
    quote = quote_service.create_quote(get_session(), request.get_json(silent=True) or {}, g.user)
    return jsonify({'quote': quote.to_dict()}), 201


@quotes_bp.route('/preview', methods=['POST'])
@require_login
def preview():
    """Price a payload without saving anything."""
    breakdown = quote_service.preview_totals(request.get_json(silent=True) or {}, get_session())
    return jsonify({'totals': breakdown.to_dict()})


@quotes_bp.route('/<int:quote_id>')
@require_login
@require_permission(VIEW)
def view_quote(quote_id):
    quote = quote_service.get_quote(get_session(), quote_id)
    return jsonify({'quote': quote.to_dict()})


@quotes_bp.route('/<int:quote_id>', methods=['PATCH'])
@require_login
def update_quote(quote_id):
    quote = quote_service.update_quote(get_session(), quote_id, request.get_json(silent=True) or {}, g.user)
    return jsonify({'quote': quote.to_dict()})


@quotes_bp.route('/<int:quote_id>', methods=['DELETE'])
@require_login
def delete_quote(quote_id):
    quote_service.delete_quote(get_session(), quote_id, g.user)
    return jsonify({'status': 'ok'})


@quotes_bp.route('/<int:quote_id>/status', methods=['POST'])
@require_login
def change_status(quote_id):
    """Apply a workflow action: {"action": "send" | "approve" | "reject"}."""
    data = request.get_json(silent=True) or {}
    action = data.get('action')
    if not action:
        raise ValidationError('action', 'is required')
    quote = quote_service.change_quote_status(get_session(), quote_id, action, g.user)
    return jsonify({'quote': quote.to_dict()})


@quotes_bp.route('/<int:quote_id>/convert', methods=['POST'])
@require_login
def convert(quote_id):
    """Convert an approved quote into an invoice."""
    data = request.get_json(silent=True) or {}
    invoice = convert_to_invoice(
        get_session(), quote_id, g.user, payment_term_days=data.get('payment_term_days')
    )
    return jsonify({'invoice': invoice.to_dict()}), 201


@quotes_bp.route('/<int:quote_id>/pdf')
@require_login
@require_permission(VIEW)
def quote_pdf(quote_id):
    db_session = get_session()
    quote = quote_service.get_quote(db_session, quote_id)
    snapshot = quote_snapshot(quote, issuer_from_settings(db_session))
    return send_file(
        render_document_pdf(snapshot),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=document_filename(snapshot),
    )


@quotes_bp.route('/<int:quote_id>/history')
@require_login
@require_permission(VIEW)
def history(quote_id):
    """Audit trail of the quote, oldest entry first."""
    db_session = get_session()
    quote_service.get_quote(db_session, quote_id)
    entries = get_entity_history(db_session, QUOTE, quote_id)
    return jsonify({'history': [entry.to_dict() for entry in entries]})
