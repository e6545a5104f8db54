"""Invoice Payment model."""
import enum
from sqlalchemy import Column, String, Numeric, Date, DateTime, ForeignKey, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, Id


class PaymentMethod(enum.Enum):
    """Accepted payment methods."""
    CASH = 'cash'
    BANK_TRANSFER = 'bank_transfer'
    CARD = 'card'
    UPI = 'upi'
    CHEQUE = 'cheque'


def normalize_payment_method(value):
    """Map free-form input ('Bank Transfer', 'CARD') onto a PaymentMethod value."""
    if isinstance(value, PaymentMethod):
        return value.value
    normalized = str(value or '').strip().lower().replace(' ', '_').replace('-', '_')
    for method in PaymentMethod:
        if normalized == method.value:
            return method.value
    return None


class InvoicePayment(Base):
    """Payment recorded against an invoice."""

    __tablename__ = 'invoice_payment'

    id = Column(Id, primary_key=True, autoincrement=True)
    invoice_id = Column(Id, ForeignKey('invoice.id'), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    payment_method = Column(String(20), nullable=False)
    transaction_id = Column(String(100), nullable=True)
    notes = Column(Text, nullable=True)
    payment_date = Column(Date, nullable=False)
    recorded_by = Column(Id, ForeignKey('app_user.id'), nullable=True)
    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())

    # Relationships
    invoice = relationship('Invoice', back_populates='payments')
    user = relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'amount': str(self.amount),
            'payment_method': self.payment_method,
            'transaction_id': self.transaction_id,
            'notes': self.notes,
            'payment_date': self.payment_date.isoformat(),
            'recorded_by': self.recorded_by,
            'recorded_by_name': self.user.name if self.user else None,
        }

    def __repr__(self):
        return f"<InvoicePayment(id={self.id}, amount={self.amount}, invoice={self.invoice_id})>"
