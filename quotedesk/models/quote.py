"""Quote model for commercial offers."""
import enum
from datetime import date, timedelta
from sqlalchemy import Column, Integer, String, Numeric, DateTime, Text, ForeignKey, Enum
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from quotedesk.database import Base, Id, enum_values


class QuoteStatus(enum.Enum):
    """Quote status enum."""
    DRAFT = "draft"
    SENT = "sent"
    APPROVED = "approved"
    REJECTED = "rejected"
    INVOICED = "invoiced"


class DiscountType(enum.Enum):
    """How the quote discount value is interpreted."""
    PERCENT = "percent"
    AMOUNT = "amount"


class Quote(Base):
    """
    Quote.

    Money columns hold the rounded output of the pricing engine and are
    rewritten whenever items, taxes, discount or shipping change. Once an
    approved quote is converted its status becomes INVOICED and `invoice`
    is populated.
    """

    __tablename__ = 'quote'

    id = Column(Id, primary_key=True, autoincrement=True)
    quote_number = Column(String(64), nullable=False, unique=True)
    client_id = Column(Id, ForeignKey('client.id'), nullable=False)
    created_by = Column(Id, ForeignKey('app_user.id'), nullable=False)
    status = Column(Enum(QuoteStatus, name='quote_status', values_callable=enum_values),
                    nullable=False, default=QuoteStatus.DRAFT)
    validity_days = Column(Integer, nullable=False, default=30)
    quote_date = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    reference_number = Column(String(100), nullable=True)
    attention_to = Column(String(200), nullable=True)
    notes = Column(Text, nullable=True)
    terms_and_conditions = Column(Text, nullable=True)

    discount_type = Column(Enum(DiscountType, name='discount_type', values_callable=enum_values),
                           nullable=False, default=DiscountType.PERCENT)
    discount_value = Column(Numeric(12, 2), nullable=False, default=0)

    subtotal = Column(Numeric(14, 2), nullable=False, default=0)
    discount_amount = Column(Numeric(14, 2), nullable=False, default=0)
    tax_total = Column(Numeric(14, 2), nullable=False, default=0)
    shipping = Column(Numeric(14, 2), nullable=False, default=0)
    total = Column(Numeric(14, 2), nullable=False, default=0)

    created_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at = Column(DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now())

    # Relationships
    client = relationship('Client', back_populates='quotes')
    owner = relationship('User', back_populates='quotes')
    items = relationship('QuoteItem', back_populates='quote', cascade='all, delete-orphan',
                         order_by='QuoteItem.sort_order')
    taxes = relationship('QuoteTax', back_populates='quote', cascade='all, delete-orphan',
                         order_by='QuoteTax.sort_order')
    invoice = relationship('Invoice', back_populates='quote', uselist=False)

    def __repr__(self):
        return f"<Quote(id={self.id}, number='{self.quote_number}', status='{self.status}', total={self.total})>"

    @property
    def valid_until(self):
        if not self.quote_date:
            return None
        return self.quote_date.date() + timedelta(days=self.validity_days or 0)

    @property
    def is_expired(self):
        """Check if quote is expired (calculated, not stored)."""
        if self.status in (QuoteStatus.DRAFT, QuoteStatus.SENT) and self.valid_until:
            return date.today() > self.valid_until
        return False

    @property
    def is_editable(self):
        return self.status == QuoteStatus.DRAFT

    @property
    def is_convertible(self):
        """Check if quote can be converted to an invoice."""
        return self.status == QuoteStatus.APPROVED and self.invoice is None

    def to_dict(self, include_items=True):
        data = {
            'id': self.id,
            'quote_number': self.quote_number,
            'client_id': self.client_id,
            'client_name': self.client.name if self.client else None,
            'created_by': self.created_by,
            'status': self.status.value,
            'quote_date': self.quote_date.isoformat() if self.quote_date else None,
            'validity_days': self.validity_days,
            'valid_until': self.valid_until.isoformat() if self.valid_until else None,
            'is_expired': self.is_expired,
            'reference_number': self.reference_number,
            'attention_to': self.attention_to,
            'notes': self.notes,
            'terms_and_conditions': self.terms_and_conditions,
            'discount': {'type': self.discount_type.value, 'value': str(self.discount_value)},
            'subtotal': str(self.subtotal),
            'discount_amount': str(self.discount_amount),
            'tax_total': str(self.tax_total),
            'shipping': str(self.shipping),
            'total': str(self.total),
            'invoice_id': self.invoice.id if self.invoice else None,
        }
        if include_items:
            data['items'] = [item.to_dict() for item in self.items]
            data['taxes'] = [tax.to_dict() for tax in self.taxes]
        return data


class QuoteItem(Base):
    """Quote line item."""

    __tablename__ = 'quote_item'

    id = Column(Id, primary_key=True, autoincrement=True)
    quote_id = Column(Id, ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)
    description = Column(Text, nullable=False)
    quantity = Column(Numeric(12, 3), nullable=False)
    unit_price = Column(Numeric(14, 2), nullable=False)
    subtotal = Column(Numeric(14, 2), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    quote = relationship('Quote', back_populates='items')

    def to_dict(self):
        return {
            'id': self.id,
            'description': self.description,
            'quantity': str(self.quantity),
            'unit_price': str(self.unit_price),
            'subtotal': str(self.subtotal),
            'sort_order': self.sort_order,
        }

    def __repr__(self):
        return f"<QuoteItem(id={self.id}, quote_id={self.quote_id}, qty={self.quantity}, subtotal={self.subtotal})>"


class QuoteTax(Base):
    """Named tax applied to a quote's discounted subtotal (CGST, SGST, VAT...)."""

    __tablename__ = 'quote_tax'

    id = Column(Id, primary_key=True, autoincrement=True)
    quote_id = Column(Id, ForeignKey('quote.id', ondelete='CASCADE'), nullable=False)
    name = Column(String(50), nullable=False)
    rate = Column(Numeric(6, 3), nullable=False)
    amount = Column(Numeric(14, 2), nullable=False)
    sort_order = Column(Integer, nullable=False, default=0)

    quote = relationship('Quote', back_populates='taxes')

    def to_dict(self):
        return {'name': self.name, 'rate': str(self.rate), 'amount': str(self.amount)}

    def __repr__(self):
        return f"<QuoteTax(quote_id={self.quote_id}, name='{self.name}', rate={self.rate})>"
