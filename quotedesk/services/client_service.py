"""Client service - client records with ownership rules."""
import logging

from quotedesk.models import Client, Quote, AuditAction
from quotedesk.decorators.permissions import (
    check_permission, check_ownership, MANAGE_CLIENTS, VIEW
)
from quotedesk.exceptions import NotFoundError, ValidationError
from quotedesk.services.audit_service import log_action

logger = logging.getLogger(__name__)

EDITABLE_FIELDS = (
    'name', 'email', 'phone', 'billing_address', 'shipping_address',
    'tax_id', 'contact_person',
)


def _clean(payload: dict, partial=False) -> dict:
    data = {}
    for field in EDITABLE_FIELDS:
        if field in payload:
            value = payload[field]
            data[field] = value.strip() if isinstance(value, str) else value

    if not partial or 'name' in data:
        if not data.get('name'):
            raise ValidationError('name', 'client name is required')
    if not partial or 'email' in data:
        email = data.get('email') or ''
        if '@' not in email:
            raise ValidationError('email', 'a valid email is required')
    return data


def get_client(session, client_id: int, include_inactive=False) -> Client:
    query = session.query(Client).filter(Client.id == client_id)
    if not include_inactive:
        query = query.filter(Client.active.is_(True))
    client = query.first()
    if not client:
        raise NotFoundError(f'Client {client_id} not found')
    return client


def list_clients(session, actor, search: str = None):
    check_permission(actor, VIEW)
    query = session.query(Client).filter(Client.active.is_(True))
    if search:
        pattern = f'%{search.strip()}%'
        query = query.filter(Client.name.ilike(pattern) | Client.email.ilike(pattern))
    return query.order_by(Client.name.asc()).all()


def create_client(session, payload: dict, actor) -> Client:
    """Create a client owned by `actor`."""
    check_permission(actor, MANAGE_CLIENTS)
    data = _clean(payload)

    try:
        client = Client(created_by=actor.id, **data)
        session.add(client)
        session.flush()
        log_action(session, AuditAction.CLIENT_CREATED, actor, 'client', client.id,
                   details={'name': client.name})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Client {client.id} created by user {actor.id}")
    return client


def update_client(session, client_id: int, payload: dict, actor) -> Client:
    check_permission(actor, MANAGE_CLIENTS)
    client = get_client(session, client_id)
    check_ownership(actor, client.created_by, 'client')
    data = _clean(payload, partial=True)

    try:
        for field, value in data.items():
            setattr(client, field, value)
        log_action(session, AuditAction.CLIENT_UPDATED, actor, 'client', client.id,
                   details={'fields': sorted(data)})
        session.commit()
    except Exception:
        session.rollback()
        raise
    return client


def delete_client(session, client_id: int, actor) -> bool:
    """
    Delete a client.

    Clients referenced by quotes are deactivated instead of removed.

    Returns:
        True if the row was hard-deleted, False if it was soft-deleted
    """
    check_permission(actor, MANAGE_CLIENTS)
    client = get_client(session, client_id)
    check_ownership(actor, client.created_by, 'client')

    try:
        has_quotes = session.query(Quote.id).filter(Quote.client_id == client.id).first() is not None
        if has_quotes:
            client.active = False
        else:
            session.delete(client)
        log_action(session, AuditAction.CLIENT_DELETED, actor, 'client', client_id,
                   details={'soft': has_quotes})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Client {client_id} {'deactivated' if has_quotes else 'deleted'} by user {actor.id}")
    return not has_quotes
