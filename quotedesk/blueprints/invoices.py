"""Invoices blueprint - listing, payments, PDF and email."""
from datetime import date
from flask import Blueprint, request, jsonify, g, send_file
from quotedesk.database import get_session
from quotedesk.middleware import require_login
from quotedesk.decorators.permissions import require_permission, VIEW, EMAIL_DOCUMENTS
from quotedesk.exceptions import ValidationError
from quotedesk.services.invoice_service import get_invoice, list_invoices
from quotedesk.services.payment_service import register_invoice_payment
from quotedesk.services.invoice_alerts_service import get_invoice_alert_counts
from quotedesk.services.audit_service import log_action, get_entity_history
from quotedesk.services.snapshot_service import invoice_snapshot, issuer_from_settings
from quotedesk.services.document_service import render_document_pdf, document_filename
from quotedesk.services.email_service import send_document_email
from quotedesk.services.workflow_service import INVOICE
from quotedesk.models import AuditAction

invoices_bp = Blueprint('invoices', __name__, url_prefix='/invoices')


def _parse_date(value, field):
    if not value:
        return None
    try:
        return date.fromisoformat(value)
    except (TypeError, ValueError):
        raise ValidationError(field, 'must be an ISO date (YYYY-MM-DD)')


@invoices_bp.route('/')
@require_login
def list_all():
    invoices = list_invoices(
        get_session(), g.user,
        payment_status=request.args.get('status'),
        search=request.args.get('q'),
    )
    return jsonify({'invoices': [invoice.to_dict(include_lines=False) for invoice in invoices]})


@invoices_bp.route('/alerts')
@require_login
@require_permission(VIEW)
def alerts():
    return jsonify({'alerts': get_invoice_alert_counts(get_session(), date.today())})


@invoices_bp.route('/<int:invoice_id>')
@require_login
@require_permission(VIEW)
def view_invoice(invoice_id):
    db_session = get_session()
    invoice = get_invoice(db_session, invoice_id)
    data = invoice.to_dict()
    data['history'] = [entry.to_dict() for entry in get_entity_history(db_session, INVOICE, invoice_id)]
    return jsonify({'invoice': data})


@invoices_bp.route('/<int:invoice_id>/payments', methods=['POST'])
@require_login
def record_payment(invoice_id):
    """Record a partial or full payment."""
    data = request.get_json(silent=True) or {}
    if data.get('amount') in (None, ''):
        raise ValidationError('amount', 'is required')

    db_session = get_session()
    payment = register_invoice_payment(
        db_session,
        invoice_id,
        data.get('amount'),
        data.get('payment_method'),
        g.user,
        payment_date=_parse_date(data.get('payment_date'), 'payment_date'),
        transaction_id=data.get('transaction_id'),
        notes=data.get('notes'),
    )
    invoice = get_invoice(db_session, invoice_id)
    return jsonify({'payment': payment.to_dict(), 'invoice': invoice.to_dict()}), 201


@invoices_bp.route('/<int:invoice_id>/pdf')
@require_login
@require_permission(VIEW)
def invoice_pdf(invoice_id):
    db_session = get_session()
    snapshot = invoice_snapshot(get_invoice(db_session, invoice_id), issuer_from_settings(db_session))
    return send_file(
        render_document_pdf(snapshot),
        mimetype='application/pdf',
        as_attachment=True,
        download_name=document_filename(snapshot),
    )


@invoices_bp.route('/<int:invoice_id>/email', methods=['POST'])
@require_login
@require_permission(EMAIL_DOCUMENTS)
def email_invoice(invoice_id):
    """Email the invoice PDF to the client (or to {"to": ...})."""
    db_session = get_session()
    data = request.get_json(silent=True) or {}
    snapshot = invoice_snapshot(get_invoice(db_session, invoice_id), issuer_from_settings(db_session))
    pdf = render_document_pdf(snapshot).getvalue()

    sent = send_document_email(snapshot, pdf, data.get('to'))
    if not sent:
        return jsonify({'status': 'error', 'message': 'Email could not be sent'}), 502

    try:
        log_action(db_session, AuditAction.INVOICE_EMAILED, g.user, INVOICE, invoice_id,
                   details={'to': data.get('to') or snapshot.client_email})
        db_session.commit()
    except Exception:
        db_session.rollback()
        raise
    return jsonify({'status': 'ok'})
