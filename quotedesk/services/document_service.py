"""PDF rendering of quote and invoice snapshots."""
import logging
from io import BytesIO
from xml.sax.saxutils import escape

from flask import current_app, has_app_context
from reportlab.lib.pagesizes import A4
from reportlab.lib import colors
from reportlab.lib.units import inch
from reportlab.platypus import SimpleDocTemplate, Table, TableStyle, Paragraph, Spacer
from reportlab.lib.styles import getSampleStyleSheet, ParagraphStyle
from reportlab.lib.enums import TA_CENTER

from quotedesk.services.snapshot_service import DocumentSnapshot, INVOICE_DOCUMENT
from quotedesk.utils.formatters import format_money, format_quantity, format_date

logger = logging.getLogger(__name__)


def _pdf_currency_symbol() -> str:
    symbol = current_app.config.get('CURRENCY_SYMBOL', '') if has_app_context() else ''
    # Built-in Type 1 fonts only cover latin-1
    try:
        symbol.encode('latin-1')
    except UnicodeEncodeError:
        return current_app.config.get('PDF_CURRENCY_FALLBACK', 'Rs. ')
    return symbol


def render_document_pdf(snapshot: DocumentSnapshot) -> BytesIO:
    """
    Render a quote or invoice snapshot to an A4 PDF.

    Only the snapshot is read, so the output matches the persisted figures
    even if the source rows change later.
    """
    symbol = _pdf_currency_symbol()

    def money(value):
        return format_money(value, symbol)

    buffer = BytesIO()
    doc = SimpleDocTemplate(
        buffer,
        pagesize=A4,
        rightMargin=0.75*inch,
        leftMargin=0.75*inch,
        topMargin=0.75*inch,
        bottomMargin=0.75*inch,
        title=snapshot.title,
    )

    elements = []
    styles = getSampleStyleSheet()

    title_style = ParagraphStyle(
        'DocTitle',
        parent=styles['Heading1'],
        fontSize=24,
        textColor=colors.HexColor('#2C3E50'),
        spaceAfter=12,
        alignment=TA_CENTER,
        fontName='Helvetica-Bold'
    )

    header_style = ParagraphStyle(
        'DocHeader',
        parent=styles['Normal'],
        fontSize=10,
        textColor=colors.HexColor('#7F8C8D'),
        alignment=TA_CENTER,
        spaceAfter=6
    )

    # 1. Title and issuer header
    is_invoice = snapshot.kind == INVOICE_DOCUMENT
    elements.append(Paragraph("INVOICE" if is_invoice else "QUOTATION", title_style))

    issuer = snapshot.issuer
    if issuer and issuer.name:
        elements.append(Paragraph(f"<b>{escape(issuer.name)}</b>", header_style))
    if issuer and issuer.address:
        elements.append(Paragraph(escape(issuer.address), header_style))

    contact_parts = []
    if issuer and issuer.phone:
        contact_parts.append(f"Tel: {escape(issuer.phone)}")
    if issuer and issuer.email:
        contact_parts.append(f"Email: {escape(issuer.email)}")
    if contact_parts:
        elements.append(Paragraph(" | ".join(contact_parts), header_style))

    elements.append(Spacer(1, 0.3*inch))

    # 2. Metadata table
    info_data = [
        ['Invoice No:' if is_invoice else 'Quote No:', snapshot.number],
        ['Date:', format_date(snapshot.issue_date)],
    ]
    if snapshot.due_date:
        info_data.append(['Due Date:' if is_invoice else 'Valid Until:', format_date(snapshot.due_date)])
    info_data.append(['Bill To:', snapshot.client_name])
    if snapshot.client_address:
        info_data.append(['Address:', snapshot.client_address])
    info_data.append(['Status:', snapshot.status.capitalize()])

    info_table = Table(info_data, colWidths=[2*inch, 4*inch])
    info_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (0, -1), 'RIGHT'),
        ('ALIGN', (1, 0), (1, -1), 'LEFT'),
        ('FONTNAME', (0, 0), (0, -1), 'Helvetica-Bold'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('TEXTCOLOR', (0, 0), (-1, -1), colors.HexColor('#34495E')),
    ]))
    elements.append(info_table)
    elements.append(Spacer(1, 0.3*inch))

    # 3. Items table
    table_data = [['Description', 'Qty', 'Unit Price', 'Amount']]
    for line in snapshot.lines:
        table_data.append([
            Paragraph(escape(line.description), styles['Normal']),
            format_quantity(line.quantity),
            money(line.unit_price),
            money(line.line_total),
        ])

    items_table = Table(table_data, colWidths=[3.4*inch, 0.8*inch, 1.2*inch, 1.3*inch])
    items_table.setStyle(TableStyle([
        ('BACKGROUND', (0, 0), (-1, 0), colors.HexColor('#3498DB')),
        ('TEXTCOLOR', (0, 0), (-1, 0), colors.whitesmoke),
        ('ALIGN', (0, 0), (-1, 0), 'CENTER'),
        ('FONTNAME', (0, 0), (-1, 0), 'Helvetica-Bold'),
        ('BOTTOMPADDING', (0, 0), (-1, 0), 12),
        ('ALIGN', (1, 1), (1, -1), 'CENTER'),
        ('ALIGN', (2, 1), (3, -1), 'RIGHT'),
        ('VALIGN', (0, 0), (-1, -1), 'MIDDLE'),
        ('GRID', (0, 0), (-1, -1), 0.5, colors.HexColor('#BDC3C7')),
        ('ROWBACKGROUNDS', (0, 1), (-1, -1), [colors.white, colors.HexColor('#ECF0F1')]),
    ]))
    elements.append(items_table)
    elements.append(Spacer(1, 0.2*inch))

    # 4. Totals
    totals_data = [['Subtotal:', money(snapshot.subtotal)]]
    if snapshot.discount:
        totals_data.append(['Discount:', f"-{money(snapshot.discount)}"])
    for tax in snapshot.taxes:
        totals_data.append([f"{tax.name} ({format_quantity(tax.rate)}%):", money(tax.amount)])
    if snapshot.shipping:
        totals_data.append(['Shipping:', money(snapshot.shipping)])
    total_row = len(totals_data)
    totals_data.append(['TOTAL:', money(snapshot.total)])
    if is_invoice and snapshot.paid_amount:
        totals_data.append(['Paid:', money(snapshot.paid_amount)])
        totals_data.append(['Balance Due:', money(snapshot.balance_due)])

    totals_table = Table(totals_data, colWidths=[5.2*inch, 1.5*inch])
    totals_table.setStyle(TableStyle([
        ('ALIGN', (0, 0), (-1, -1), 'RIGHT'),
        ('FONTSIZE', (0, 0), (-1, -1), 10),
        ('FONTNAME', (0, total_row), (-1, total_row), 'Helvetica-Bold'),
        ('FONTSIZE', (0, total_row), (-1, total_row), 14),
        ('TEXTCOLOR', (0, total_row), (-1, total_row), colors.HexColor('#27AE60')),
        ('BACKGROUND', (0, total_row), (-1, total_row), colors.HexColor('#E8F8F5')),
        ('BOX', (0, total_row), (-1, total_row), 2, colors.HexColor('#27AE60')),
    ]))
    elements.append(totals_table)
    elements.append(Spacer(1, 0.4*inch))

    # 5. Footer
    footer_style = ParagraphStyle('Footer', parent=styles['Normal'], fontSize=9,
                                  textColor=colors.HexColor('#95A5A6'), alignment=TA_CENTER)
    footer_parts = []
    if snapshot.terms:
        footer_parts.append(f"<b>Terms &amp; Conditions:</b><br/>{escape(snapshot.terms)}")
    if snapshot.notes:
        footer_parts.append(f"<b>Notes:</b> {escape(snapshot.notes)}")
    if not is_invoice:
        footer_parts.append("<i>This quotation is not an invoice.</i>")
    if footer_parts:
        elements.append(Paragraph("<br/><br/>".join(footer_parts), footer_style))

    doc.build(elements)
    buffer.seek(0)
    logger.info(f"Rendered PDF for {snapshot.title}")
    return buffer


def document_filename(snapshot: DocumentSnapshot) -> str:
    return f"{snapshot.kind}_{snapshot.number}.pdf"
