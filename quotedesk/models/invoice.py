"""Invoice model and its frozen line snapshot."""
import enum
from datetime import date
from decimal import Decimal
from sqlalchemy import Column, Integer, String, Numeric, Date, DateTime, Text, ForeignKey, Enum, JSON, event, inspect
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, Id, enum_values
from quotedesk.exceptions import BusinessLogicError


class PaymentStatus(enum.Enum):
    """Invoice payment status enum."""
    PENDING = "pending"
    PARTIAL = "partial"
    PAID = "paid"
    OVERDUE = "overdue"


# Columns copied from the quote at conversion time
SNAPSHOT_COLUMNS = (
    'quote_id', 'invoice_number', 'client_name', 'subtotal', 'discount_amount',
    'tax_total', 'shipping', 'total', 'tax_lines', 'issue_date',
)


class Invoice(Base):
    """
    Invoice generated from an approved quote.

    Financial fields are a snapshot of the quote at conversion time and never
    change afterwards; only payment tracking columns are mutable.
    """

    __tablename__ = 'invoice'

    id = Column(Id, primary_key=True, autoincrement=True)
    invoice_number = Column(String(64), nullable=False, unique=True)
    quote_id = Column(Id, ForeignKey('quote.id'), nullable=False, unique=True)
    client_name = Column(String(200), nullable=False)

    subtotal = Column(Numeric(14, 2), nullable=False)
    discount_amount = Column(Numeric(14, 2), nullable=False)
    tax_total = Column(Numeric(14, 2), nullable=False)
    shipping = Column(Numeric(14, 2), nullable=False)
    total = Column(Numeric(14, 2), nullable=False)
    tax_lines = Column(JSON, nullable=False, default=list)

    payment_status = Column(Enum(PaymentStatus, name='payment_status', values_callable=enum_values),
                            nullable=False, default=PaymentStatus.PENDING)
    paid_amount = Column(Numeric(14, 2), nullable=False, default=0)
    issue_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=False)
    paid_at = Column(Date, nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    quote = relationship('Quote', back_populates='invoice')
    lines = relationship('InvoiceLine', back_populates='invoice', cascade='all, delete-orphan',
                         order_by='InvoiceLine.sort_order')
    payments = relationship('InvoicePayment', back_populates='invoice', cascade='all, delete-orphan',
                            order_by='InvoicePayment.payment_date')

    @property
    def balance_due(self):
        return Decimal(self.total) - Decimal(self.paid_amount or 0)

    def is_past_due(self, today=None):
        today = today or date.today()
        return (
            self.payment_status in (PaymentStatus.PENDING, PaymentStatus.PARTIAL)
            and self.due_date is not None
            and self.due_date < today
        )

    def to_dict(self, include_lines=True):
        data = {
            'id': self.id,
            'invoice_number': self.invoice_number,
            'quote_id': self.quote_id,
            'client_name': self.client_name,
            'subtotal': str(self.subtotal),
            'discount_amount': str(self.discount_amount),
            'tax_total': str(self.tax_total),
            'tax_lines': list(self.tax_lines or []),
            'shipping': str(self.shipping),
            'total': str(self.total),
            'payment_status': self.payment_status.value,
            'paid_amount': str(self.paid_amount),
            'balance_due': str(self.balance_due),
            'issue_date': self.issue_date.isoformat(),
            'due_date': self.due_date.isoformat(),
            'paid_at': self.paid_at.isoformat() if self.paid_at else None,
        }
        if include_lines:
            data['lines'] = [line.to_dict() for line in self.lines]
            data['payments'] = [payment.to_dict() for payment in self.payments]
        return data

    def __repr__(self):
        return f"<Invoice(id={self.id}, number='{self.invoice_number}', status={self.payment_status.value})>"


class InvoiceLine(Base):
    """Line copied from the originating quote item."""

    __tablename__ = 'invoice_line'

    id = Column(Id, primary_key=True, autoincrement=True)
    invoice_id = Column(Id, ForeignKey('invoice.id', ondelete='CASCADE'), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    line_total = Column(Numeric(14, 2), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    invoice = relationship('Invoice', back_populates='lines')

    def to_dict(self):
        return {
            'description': self.description,
            'quantity': str(self.quantity),
            'unit_price': str(self.unit_price),
            'line_total': str(self.line_total),
        }


@event.listens_for(Invoice, 'before_update')
def _freeze_invoice_snapshot(mapper, connection, target):
    state = inspect(target)
    changed = [name for name in SNAPSHOT_COLUMNS if state.attrs[name].history.has_changes()]
    if changed:
        raise BusinessLogicError(
            f"Invoice {target.invoice_number} is immutable; cannot change {', '.join(changed)}",
            status_code=409,
        )
