"""
Service for invoice alerts and the overdue sweep.
"""
import logging
from datetime import date, timedelta

from sqlalchemy import and_

from quotedesk.models import Invoice, PaymentStatus
from quotedesk.services.workflow_service import INVOICE, SYSTEM_ACTOR, transition
from quotedesk.services.audit_service import record_transition
from quotedesk.blueprints.metrics import record_transition_metric

logger = logging.getLogger(__name__)

# Statuses that still expect money and can fall overdue
OPEN_STATUSES = (PaymentStatus.PENDING, PaymentStatus.PARTIAL)


def get_invoice_alert_counts(session, today: date = None):
    """
    Get counts of critical invoices (due tomorrow or overdue).

    Returns:
        dict with keys:
            - due_tomorrow_count: int
            - overdue_count: int
            - total_critical: int
    """
    if today is None:
        today = date.today()

    tomorrow = today + timedelta(days=1)

    due_tomorrow_count = session.query(Invoice).filter(
        and_(
            Invoice.payment_status.in_(OPEN_STATUSES),
            Invoice.due_date == tomorrow
        )
    ).count()

    # Already marked overdue, plus open invoices the sweep has not reached yet
    overdue_count = session.query(Invoice).filter(
        (Invoice.payment_status == PaymentStatus.OVERDUE)
        | and_(Invoice.payment_status.in_(OPEN_STATUSES), Invoice.due_date < today)
    ).count()

    return {
        'due_tomorrow_count': due_tomorrow_count,
        'overdue_count': overdue_count,
        'total_critical': due_tomorrow_count + overdue_count
    }


def is_invoice_overdue(invoice, today: date = None):
    """True if the invoice is marked overdue or is open past its due date."""
    if invoice.payment_status == PaymentStatus.OVERDUE:
        return True
    return invoice.is_past_due(today)


def is_invoice_due_tomorrow(invoice, today: date = None):
    if today is None:
        today = date.today()

    return (
        invoice.payment_status in OPEN_STATUSES and
        invoice.due_date == today + timedelta(days=1)
    )


def mark_overdue_invoices(session, today: date = None, actor=None):
    """
    Move every open invoice past its due date to overdue.

    Each change goes through the payment workflow and is audited; the whole
    sweep commits once.

    Returns:
        list of invoices that were marked overdue
    """
    if today is None:
        today = date.today()
    actor = actor or SYSTEM_ACTOR

    try:
        invoices = (
            session.query(Invoice)
            .filter(Invoice.payment_status.in_(OPEN_STATUSES), Invoice.due_date < today)
            .order_by(Invoice.id.asc())
            .with_for_update()
            .all()
        )
        records = []
        for invoice in invoices:
            record = transition(INVOICE, invoice.payment_status, PaymentStatus.OVERDUE, actor,
                                entity_id=invoice.id)
            invoice.payment_status = PaymentStatus.OVERDUE
            record_transition(session, record, details={'due_date': invoice.due_date.isoformat()})
            records.append(record)
        session.commit()
    except Exception:
        session.rollback()
        raise

    for record in records:
        record_transition_metric(INVOICE, record.from_state, record.to_state)
    if invoices:
        logger.info(f"Marked {len(invoices)} invoice(s) overdue as of {today.isoformat()}")
    return invoices
