"""Models package - exports all SQLAlchemy models."""
from quotedesk.models.user import User, UserRole, UserStatus
from quotedesk.models.client import Client
from quotedesk.models.quote import Quote, QuoteItem, QuoteTax, QuoteStatus, DiscountType
from quotedesk.models.invoice import Invoice, InvoiceLine, PaymentStatus
from quotedesk.models.invoice_payment import InvoicePayment, PaymentMethod, normalize_payment_method
from quotedesk.models.audit_log import AuditLog, AuditAction
from quotedesk.models.setting import Setting
from quotedesk.models.tax_rate_preset import TaxRatePreset

__all__ = [
    'User', 'UserRole', 'UserStatus',
    'Client',
    'Quote', 'QuoteItem', 'QuoteTax', 'QuoteStatus', 'DiscountType',
    'Invoice', 'InvoiceLine', 'PaymentStatus',
    'InvoicePayment', 'PaymentMethod', 'normalize_payment_method',
    'AuditLog', 'AuditAction',
    'Setting',
    'TaxRatePreset',
]
