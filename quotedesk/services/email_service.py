"""
Email delivery of quote and invoice documents.
Uses Flask-Mail for SMTP integration with UTF-8 support.
"""
import logging
from flask import current_app
from flask_mail import Mail, Message

from quotedesk.exceptions import ValidationError
from quotedesk.services.snapshot_service import DocumentSnapshot, INVOICE_DOCUMENT
from quotedesk.services.document_service import document_filename
from quotedesk.utils.formatters import format_money, format_date

logger = logging.getLogger(__name__)

mail = Mail()


def init_mail(app):
    """Initialize Flask-Mail with app."""
    mail.init_app(app)


def _mail_enabled() -> bool:
    """
    Check if mail is properly configured and enabled.
    Prevents 500 errors in dev or misconfigured environments.
    """
    cfg = current_app.config
    return bool(
        not cfg.get("MAIL_SUPPRESS_SEND", False)
        and cfg.get("MAIL_SERVER")
        and cfg.get("MAIL_USERNAME")
    )


def _document_bodies(snapshot: DocumentSnapshot):
    issuer = snapshot.issuer.name if snapshot.issuer and snapshot.issuer.name else current_app.config.get('BUSINESS_NAME', '')
    if snapshot.kind == INVOICE_DOCUMENT:
        due_line = f"Amount due: {format_money(snapshot.balance_due)} by {format_date(snapshot.due_date)}"
    else:
        due_line = f"Total: {format_money(snapshot.total)}, valid until {format_date(snapshot.due_date)}"

    text_body = f"""
Dear {snapshot.client_name},

Please find attached {snapshot.kind} {snapshot.number}.
{due_line}

Regards,
{issuer}
"""
    html_body = f"""
    <p>Dear <strong>{snapshot.client_name}</strong>,</p>
    <p>Please find attached {snapshot.kind} <strong>{snapshot.number}</strong>.</p>
    <p>{due_line}</p>
    <p>Regards,<br/>{issuer}</p>
    """
    return text_body, html_body


def send_document_email(snapshot: DocumentSnapshot, pdf_bytes: bytes, to_email: str = None) -> bool:
    """
    Email a rendered document to the client.

    Args:
        snapshot: Frozen document being sent
        pdf_bytes: Rendered PDF attached to the message
        to_email: Recipient; defaults to the client's email on the snapshot

    Returns:
        True if sent (or skipped because mail is disabled), False on SMTP errors
    """
    recipient = to_email or snapshot.client_email
    if not recipient or '@' not in recipient:
        raise ValidationError('to', 'a recipient email is required')

    if not _mail_enabled():
        logger.warning(f"[MAIL DISABLED] {snapshot.title} email skipped for {recipient}")
        return True

    try:
        text_body, html_body = _document_bodies(snapshot)
        msg = Message(
            subject=f"{snapshot.title} from {current_app.config.get('BUSINESS_NAME', '')}".strip(),
            recipients=[recipient],
            body=text_body,
            html=html_body,
        )
        msg.attach(document_filename(snapshot), 'application/pdf', pdf_bytes)
        mail.send(msg)
        logger.info(f"[EMAIL] {snapshot.title} sent to {recipient}")
        return True

    except Exception as e:
        logger.exception(f"[EMAIL] Error sending {snapshot.title} to {recipient}: {e}")
        return False
