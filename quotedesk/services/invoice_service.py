"""Invoice service - converts approved quotes into immutable invoices."""
import logging
from datetime import date, timedelta
from typing import Optional

from sqlalchemy.exc import IntegrityError

from quotedesk.models import (
    Invoice, InvoiceLine, Quote, QuoteStatus, PaymentStatus, AuditAction
)
from quotedesk.decorators.permissions import check_permission, CONVERT_QUOTES, VIEW
from quotedesk.exceptions import ConversionError, NotFoundError, ValidationError
from quotedesk.services.workflow_service import QUOTE, INVOICE, transition
from quotedesk.services.audit_service import record_transition, log_action
from quotedesk.services.settings_service import get_setting, get_payment_term_days
from quotedesk.services.snapshot_service import (
    DocumentSnapshot, INVOICE_DOCUMENT, quote_snapshot
)
from quotedesk.utils.numbering import allocate_document_number
from quotedesk.blueprints.metrics import invoices_created_total, record_transition_metric

logger = logging.getLogger(__name__)


def build_invoice_snapshot(quote: Quote, invoice_number: str, issue_date: date,
                           due_date: date) -> DocumentSnapshot:
    """
    Freeze a quote's persisted totals, tax lines and items as invoice data.

    The figures are copied as stored on the quote; nothing is re-priced.
    """
    snapshot = quote_snapshot(quote)
    return DocumentSnapshot(
        kind=INVOICE_DOCUMENT,
        number=invoice_number,
        status=PaymentStatus.PENDING.value,
        issue_date=issue_date,
        due_date=due_date,
        client_name=snapshot.client_name,
        client_email=snapshot.client_email,
        client_address=snapshot.client_address,
        lines=snapshot.lines,
        subtotal=snapshot.subtotal,
        discount=snapshot.discount,
        taxes=snapshot.taxes,
        tax_total=snapshot.tax_total,
        shipping=snapshot.shipping,
        total=snapshot.total,
    )


def _payment_term(session, payment_term_days) -> int:
    if payment_term_days is None:
        return get_payment_term_days(session)
    try:
        days = int(payment_term_days)
    except (TypeError, ValueError):
        raise ValidationError('payment_term_days', 'must be a whole number of days')
    if days < 0:
        raise ValidationError('payment_term_days', 'cannot be negative')
    return days


def _existing_invoice_id(session, quote_id):
    row = session.query(Invoice.id).filter(Invoice.quote_id == quote_id).first()
    return row[0] if row else None


def convert_to_invoice(session, quote_id: int, actor, payment_term_days: Optional[int] = None,
                       today: Optional[date] = None) -> Invoice:
    """
    Convert an approved quote into an invoice.

    Steps (single transaction):
    1. Lock the quote row and re-read it
    2. Require status approved and no existing invoice
    3. Snapshot totals, tax lines and items into a new invoice
    4. Move the quote to invoiced and write both audit entries
    5. Commit

    Raises:
        ConversionError: quote not approved, already invoiced, or converted
            concurrently
    """
    check_permission(actor, CONVERT_QUOTES)
    today = today or date.today()

    try:
        quote = (
            session.query(Quote)
            .filter(Quote.id == quote_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not quote:
            raise NotFoundError(f'Quote {quote_id} not found')

        if _existing_invoice_id(session, quote.id) is not None:
            raise ConversionError(
                quote.id, f'Quote {quote.quote_number} already has an invoice', quote.status
            )
        if quote.status != QuoteStatus.APPROVED:
            raise ConversionError(
                quote.id,
                f'Only approved quotes can be converted (quote {quote.quote_number} is {quote.status.value})',
                quote.status,
            )

        record = transition(QUOTE, quote.status, QuoteStatus.INVOICED, actor, entity_id=quote.id)

        term = _payment_term(session, payment_term_days)
        prefix = get_setting(session, 'invoicePrefix', 'INV')
        snapshot = build_invoice_snapshot(
            quote,
            invoice_number=allocate_document_number(session, Invoice.invoice_number, prefix),
            issue_date=today,
            due_date=today + timedelta(days=term),
        )

        invoice = Invoice(
            invoice_number=snapshot.number,
            quote_id=quote.id,
            client_name=snapshot.client_name,
            subtotal=snapshot.subtotal,
            discount_amount=snapshot.discount,
            tax_total=snapshot.tax_total,
            shipping=snapshot.shipping,
            total=snapshot.total,
            tax_lines=snapshot.tax_lines_json(),
            payment_status=PaymentStatus.PENDING,
            paid_amount=0,
            issue_date=snapshot.issue_date,
            due_date=snapshot.due_date,
        )
        invoice.lines = [
            InvoiceLine(
                description=line.description,
                quantity=line.quantity,
                unit_price=line.unit_price,
                line_total=line.line_total,
                sort_order=index,
            )
            for index, line in enumerate(snapshot.lines)
        ]
        session.add(invoice)
        quote.status = QuoteStatus.INVOICED
        session.flush()

        record_transition(session, record, details={
            'quote_number': quote.quote_number,
            'invoice_number': invoice.invoice_number,
        })
        log_action(session, AuditAction.INVOICE_CREATED, actor, INVOICE, invoice.id, details={
            'quote_id': quote.id,
            'invoice_number': invoice.invoice_number,
            'total': invoice.total,
        })

        # Nothing to collect on a zero-total invoice
        settled = None
        if snapshot.total <= 0:
            settled = transition(INVOICE, PaymentStatus.PENDING, PaymentStatus.PAID, actor,
                                 entity_id=invoice.id)
            invoice.payment_status = PaymentStatus.PAID
            invoice.paid_at = today
            record_transition(session, settled, details={'reason': 'zero total'})

        session.commit()
    except IntegrityError:
        session.rollback()
        if _existing_invoice_id(session, quote_id) is not None:
            logger.warning(f"Concurrent conversion of quote {quote_id} rejected")
            raise ConversionError(quote_id, f'Quote {quote_id} was already converted to an invoice',
                                  QuoteStatus.INVOICED)
        raise
    except Exception:
        session.rollback()
        raise

    invoices_created_total.inc()
    record_transition_metric(QUOTE, record.from_state, record.to_state)
    if settled:
        record_transition_metric(INVOICE, settled.from_state, settled.to_state)
    logger.info(
        f"Quote {quote.quote_number} converted to invoice {invoice.invoice_number} "
        f"(total {invoice.total}, due {invoice.due_date})"
    )
    return invoice


def get_invoice(session, invoice_id: int) -> Invoice:
    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError(f'Invoice {invoice_id} not found')
    return invoice


def list_invoices(session, actor, payment_status: Optional[str] = None, search: Optional[str] = None):
    """List invoices, newest first, optionally filtered by payment status."""
    check_permission(actor, VIEW)
    query = session.query(Invoice)

    if payment_status:
        try:
            query = query.filter(Invoice.payment_status == PaymentStatus(payment_status.lower()))
        except ValueError:
            raise ValidationError('payment_status', f'unknown payment status {payment_status!r}')
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(
            Invoice.invoice_number.ilike(pattern) | Invoice.client_name.ilike(pattern)
        )
    return query.order_by(Invoice.issue_date.desc(), Invoice.id.desc()).all()
