"""
Frozen document snapshots.

PDF rendering and email delivery never read ORM objects directly; they take a
DocumentSnapshot built here, so a document always shows the figures that were
persisted when it was produced.
"""
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional, Tuple

from quotedesk.services.pricing_service import CENT
from quotedesk.services.settings_service import get_setting

QUOTE_DOCUMENT = 'quote'
INVOICE_DOCUMENT = 'invoice'


def _money(value) -> Decimal:
    return Decimal(str(value if value is not None else 0)).quantize(CENT)


@dataclass(frozen=True)
class Issuer:
    name: str
    address: Optional[str] = None
    phone: Optional[str] = None
    email: Optional[str] = None


@dataclass(frozen=True)
class SnapshotLine:
    description: str
    quantity: Decimal
    unit_price: Decimal
    line_total: Decimal


@dataclass(frozen=True)
class SnapshotTax:
    name: str
    rate: Decimal
    amount: Decimal


@dataclass(frozen=True)
class DocumentSnapshot:
    """Everything needed to render or send one quote or invoice."""
    kind: str
    number: str
    status: str
    issue_date: date
    # valid-until for quotes, due date for invoices
    due_date: Optional[date]
    client_name: str
    client_email: Optional[str]
    client_address: Optional[str]
    lines: Tuple[SnapshotLine, ...]
    subtotal: Decimal
    discount: Decimal
    taxes: Tuple[SnapshotTax, ...]
    tax_total: Decimal
    shipping: Decimal
    total: Decimal
    paid_amount: Decimal = Decimal('0.00')
    notes: Optional[str] = None
    terms: Optional[str] = None
    issuer: Optional[Issuer] = None

    @property
    def balance_due(self) -> Decimal:
        return self.total - self.paid_amount

    @property
    def title(self) -> str:
        return f"{self.kind.capitalize()} {self.number}"

    def tax_lines_json(self):
        """Tax lines as stored in invoice.tax_lines."""
        return [
            {'name': tax.name, 'rate': str(tax.rate), 'amount': str(tax.amount)}
            for tax in self.taxes
        ]

    def with_issuer(self, issuer: Issuer) -> 'DocumentSnapshot':
        return replace(self, issuer=issuer)


def issuer_from_settings(session) -> Issuer:
    return Issuer(
        name=get_setting(session, 'companyName', '') or '',
        address=get_setting(session, 'companyAddress'),
        phone=get_setting(session, 'companyPhone'),
        email=get_setting(session, 'companyEmail'),
    )


def quote_snapshot(quote, issuer: Issuer = None) -> DocumentSnapshot:
    """Snapshot of a quote's persisted totals, items and tax lines."""
    client = quote.client
    issue = quote.quote_date.date() if quote.quote_date else date.today()
    return DocumentSnapshot(
        kind=QUOTE_DOCUMENT,
        number=quote.quote_number,
        status=quote.status.value,
        issue_date=issue,
        due_date=issue + timedelta(days=quote.validity_days or 0),
        client_name=client.name if client else '',
        client_email=client.email if client else None,
        client_address=client.billing_address if client else None,
        lines=tuple(
            SnapshotLine(item.description, Decimal(str(item.quantity)),
                         _money(item.unit_price), _money(item.subtotal))
            for item in quote.items
        ),
        subtotal=_money(quote.subtotal),
        discount=_money(quote.discount_amount),
        taxes=tuple(
            SnapshotTax(tax.name, Decimal(str(tax.rate)), _money(tax.amount))
            for tax in quote.taxes
        ),
        tax_total=_money(quote.tax_total),
        shipping=_money(quote.shipping),
        total=_money(quote.total),
        notes=quote.notes,
        terms=quote.terms_and_conditions,
        issuer=issuer,
    )


def invoice_snapshot(invoice, issuer: Issuer = None) -> DocumentSnapshot:
    """Snapshot of an invoice, read only from its frozen columns and lines."""
    client = invoice.quote.client if invoice.quote else None
    return DocumentSnapshot(
        kind=INVOICE_DOCUMENT,
        number=invoice.invoice_number,
        status=invoice.payment_status.value,
        issue_date=invoice.issue_date,
        due_date=invoice.due_date,
        client_name=invoice.client_name,
        client_email=client.email if client else None,
        client_address=client.billing_address if client else None,
        lines=tuple(
            SnapshotLine(line.description, Decimal(str(line.quantity)),
                         _money(line.unit_price), _money(line.line_total))
            for line in invoice.lines
        ),
        subtotal=_money(invoice.subtotal),
        discount=_money(invoice.discount_amount),
        taxes=tuple(
            SnapshotTax(tax['name'], Decimal(str(tax['rate'])), _money(tax['amount']))
            for tax in (invoice.tax_lines or [])
        ),
        tax_total=_money(invoice.tax_total),
        shipping=_money(invoice.shipping),
        total=_money(invoice.total),
        paid_amount=_money(invoice.paid_amount),
        issuer=issuer,
    )
