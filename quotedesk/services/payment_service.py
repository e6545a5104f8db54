"""Payment service for invoice payment processing."""
import logging
from datetime import date
from decimal import Decimal

from quotedesk.models import (
    Invoice, InvoicePayment, PaymentStatus, AuditAction, normalize_payment_method
)
from quotedesk.decorators.permissions import check_permission, RECORD_PAYMENTS
from quotedesk.exceptions import BusinessLogicError, NotFoundError, ValidationError
from quotedesk.services.pricing_service import CENT, to_decimal
from quotedesk.services.workflow_service import INVOICE, transition
from quotedesk.services.audit_service import record_transition, log_action
from quotedesk.utils.formatters import format_money
from quotedesk.blueprints.metrics import payments_recorded_total, record_transition_metric

logger = logging.getLogger(__name__)


def _payment_amount(amount) -> Decimal:
    value = to_decimal(amount, 'amount')
    if value <= 0:
        raise ValidationError('amount', 'must be greater than 0')
    if value != value.quantize(CENT):
        raise ValidationError('amount', 'cannot have more than 2 decimal places')
    return value


def register_invoice_payment(
    session,
    invoice_id: int,
    amount,
    payment_method: str,
    actor,
    payment_date: date = None,
    transaction_id: str = None,
    notes: str = None,
) -> InvoicePayment:
    """
    Register a payment for an invoice (partial or full).

    The payment status moves through the payment workflow: pending or
    overdue invoices become partial or paid; a further partial payment on a
    partial invoice leaves the status unchanged.

    Returns:
        InvoicePayment object
    """
    check_permission(actor, RECORD_PAYMENTS)
    payment_date = payment_date or date.today()

    try:
        # Step 1: Lock invoice row
        invoice = (
            session.query(Invoice)
            .filter(Invoice.id == invoice_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if not invoice:
            raise NotFoundError(f'Invoice {invoice_id} not found')

        # Step 2: Validate status
        if invoice.payment_status == PaymentStatus.PAID:
            raise BusinessLogicError(f'Invoice {invoice.invoice_number} is already fully paid',
                                     status_code=409)

        # Step 3: Validate amount
        value = _payment_amount(amount)
        pending_amount = invoice.balance_due
        if value > pending_amount:
            raise ValidationError(
                'amount',
                f'payment of {format_money(value)} exceeds the balance due of {format_money(pending_amount)}',
            )

        method = normalize_payment_method(payment_method)
        if method is None:
            raise ValidationError('payment_method', f'unsupported payment method {payment_method!r}')

        # Step 4: Drive the payment workflow
        new_paid = Decimal(invoice.paid_amount or 0) + value
        target = PaymentStatus.PAID if new_paid >= Decimal(invoice.total) else PaymentStatus.PARTIAL
        record = None
        if target != invoice.payment_status:
            record = transition(INVOICE, invoice.payment_status, target, actor, entity_id=invoice.id)

        # Step 5: Create payment record and update invoice
        payment = InvoicePayment(
            invoice_id=invoice.id,
            amount=value,
            payment_method=method,
            transaction_id=transaction_id,
            notes=notes,
            payment_date=payment_date,
            recorded_by=getattr(actor, 'id', None),
        )
        session.add(payment)

        invoice.paid_amount = new_paid
        invoice.payment_status = target
        if target == PaymentStatus.PAID and invoice.paid_at is None:
            invoice.paid_at = payment_date
        session.flush()

        if record:
            record_transition(session, record, details={'payment_id': payment.id})
        log_action(session, AuditAction.PAYMENT_RECORDED, actor, INVOICE, invoice.id, details={
            'payment_id': payment.id,
            'amount': value,
            'payment_method': method,
        })
        session.commit()
    except Exception:
        session.rollback()
        raise

    payments_recorded_total.labels(payment_method=method).inc()
    if record:
        record_transition_metric(INVOICE, record.from_state, record.to_state)
    logger.info(
        f"Payment {payment.id} of {value} recorded on invoice {invoice.invoice_number} "
        f"({invoice.payment_status.value}, balance {invoice.balance_due})"
    )
    return payment


def pay_invoice_in_full(session, invoice_id: int, actor, payment_method: str = 'cash',
                        payment_date: date = None) -> InvoicePayment:
    """Record a single payment covering the remaining balance."""
    invoice = session.query(Invoice).filter(Invoice.id == invoice_id).first()
    if not invoice:
        raise NotFoundError(f'Invoice {invoice_id} not found')

    amount = invoice.balance_due
    if amount <= 0:
        raise BusinessLogicError(f'Invoice {invoice.invoice_number} is already paid', status_code=409)

    return register_invoice_payment(
        session, invoice_id, amount, payment_method, actor, payment_date=payment_date
    )


def get_payment_history(session, invoice_id: int):
    """Payments recorded against an invoice, oldest first."""
    return (
        session.query(InvoicePayment)
        .filter(InvoicePayment.invoice_id == invoice_id)
        .order_by(InvoicePayment.payment_date.asc(), InvoicePayment.id.asc())
        .all()
    )
