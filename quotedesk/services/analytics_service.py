"""
Dashboard analytics.
Aggregated quote pipeline and receivables figures for the dashboard view.
"""
from decimal import Decimal
from sqlalchemy import func

from quotedesk.models import Quote, QuoteStatus, Invoice, PaymentStatus, InvoicePayment
from quotedesk.decorators.permissions import check_permission, VIEW
from quotedesk.services.invoice_alerts_service import get_invoice_alert_counts


def _decimal(value) -> Decimal:
    return Decimal(str(value)) if value is not None else Decimal('0')


def get_dashboard_data(session, actor, today=None) -> dict:
    """
    Get all dashboard data.

    Returns:
        dict with keys:
            - quotes_by_status: {status: count} for every quote status
            - total_quotes: int
            - conversion_rate: percent of decided quotes that were invoiced
            - total_invoiced / total_collected / total_outstanding: str amounts
            - invoices_by_status: {status: count}
            - alerts: invoice alert counts
    """
    check_permission(actor, VIEW)

    # 1. Quote pipeline
    counts = dict(
        session.query(Quote.status, func.count(Quote.id)).group_by(Quote.status).all()
    )
    quotes_by_status = {status.value: counts.get(status, 0) for status in QuoteStatus}
    total_quotes = sum(quotes_by_status.values())

    # Quotes that reached a decision: approved, rejected or already invoiced
    invoiced = quotes_by_status[QuoteStatus.INVOICED.value]
    decided = invoiced + quotes_by_status[QuoteStatus.APPROVED.value] + quotes_by_status[QuoteStatus.REJECTED.value]
    conversion_rate = (
        (Decimal(invoiced) * 100 / Decimal(decided)).quantize(Decimal('0.1')) if decided else Decimal('0.0')
    )

    # 2. Receivables
    total_invoiced = _decimal(session.query(func.coalesce(func.sum(Invoice.total), 0)).scalar())
    total_collected = _decimal(session.query(func.coalesce(func.sum(InvoicePayment.amount), 0)).scalar())

    invoice_counts = dict(
        session.query(Invoice.payment_status, func.count(Invoice.id)).group_by(Invoice.payment_status).all()
    )

    return {
        'quotes_by_status': quotes_by_status,
        'total_quotes': total_quotes,
        'conversion_rate': str(conversion_rate),
        'total_invoiced': str(total_invoiced.quantize(Decimal('0.01'))),
        'total_collected': str(total_collected.quantize(Decimal('0.01'))),
        'total_outstanding': str((total_invoiced - total_collected).quantize(Decimal('0.01'))),
        'invoices_by_status': {status.value: invoice_counts.get(status, 0) for status in PaymentStatus},
        'alerts': get_invoice_alert_counts(session, today),
    }
