"""Quote service for building, pricing and moving quotes through the workflow."""

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from flask import current_app, has_app_context
from sqlalchemy import or_

from quotedesk.models import (
    Quote, QuoteItem, QuoteTax, QuoteStatus, DiscountType, Client, AuditAction
)
from quotedesk.decorators.permissions import (
    check_permission, check_ownership, QUOTE_ACTION_PERMISSIONS,
    VIEW, CREATE_QUOTES, EDIT_QUOTES, DELETE_QUOTES,
)
from quotedesk.exceptions import BusinessLogicError, NotFoundError, ValidationError
from quotedesk.services import pricing_service, tax_rate_service
from quotedesk.services.pricing_service import Breakdown, Discount, TaxRate, LineItem
from quotedesk.services.workflow_service import QUOTE, transition, quote_target_for_action
from quotedesk.services.audit_service import record_transition, log_action
from quotedesk.services.settings_service import get_setting
from quotedesk.utils.numbering import allocate_document_number
from quotedesk.blueprints.metrics import record_transition_metric

logger = logging.getLogger(__name__)

# Pricing input -> request keys that may carry it
PRICING_ALIASES = {
    'items': ('items',),
    'discount': ('discount',),
    'tax_rates': ('tax_rates', 'taxes'),
    'shipping': ('shipping', 'shipping_charges'),
}
HEADER_FIELDS = ('reference_number', 'attention_to', 'notes', 'terms_and_conditions')
DELETABLE_STATUSES = (QuoteStatus.DRAFT, QuoteStatus.REJECTED)


def _pricing_inputs(payload: Dict[str, Any]) -> Dict[str, Any]:
    return {
        'items': payload.get('items') or [],
        'discount': payload.get('discount'),
        'tax_rates': payload.get('tax_rates', payload.get('taxes')) or [],
        'shipping': payload.get('shipping', payload.get('shipping_charges', 0)),
    }


def _with_tax_preset(session, payload: Dict[str, Any]) -> Dict[str, Any]:
    """Replace `tax_rate_preset_id` with the preset's rates."""
    if payload.get('tax_rate_preset_id') is None:
        return payload
    if any(key in payload for key in PRICING_ALIASES['tax_rates']):
        raise ValidationError('tax_rate_preset_id', 'cannot be combined with explicit tax_rates')
    resolved = dict(payload)
    resolved['tax_rates'] = tax_rate_service.resolve_tax_rates(session, resolved.pop('tax_rate_preset_id'))
    return resolved


def preview_totals(payload: Dict[str, Any], session=None) -> Breakdown:
    """Price a request payload without writing to the database."""
    if session is not None:
        payload = _with_tax_preset(session, payload)
    elif payload.get('tax_rate_preset_id') is not None:
        raise ValidationError('tax_rate_preset_id', 'tax rate presets need a database session')
    return pricing_service.compute_totals(**_pricing_inputs(payload))


def _current_pricing_inputs(quote: Quote) -> Dict[str, Any]:
    """Pricing inputs reconstructed from a persisted quote."""
    return {
        'items': [LineItem(i.description, i.quantity, i.unit_price) for i in quote.items],
        'discount': Discount(quote.discount_type.value, quote.discount_value),
        'tax_rates': [TaxRate(t.name, t.rate) for t in quote.taxes],
        'shipping': quote.shipping,
    }


def _apply_pricing(quote: Quote, inputs: Dict[str, Any]) -> Breakdown:
    """
    Recompute totals and replace the quote's items and tax lines.

    Items and taxes are rebuilt from scratch; the old rows are removed by the
    delete-orphan cascade.
    """
    items = [pricing_service.coerce_item(raw, i) for i, raw in enumerate(inputs['items'])]
    discount = pricing_service.coerce_discount(inputs['discount'])
    breakdown = pricing_service.compute_totals(
        items, discount, inputs['tax_rates'], inputs['shipping']
    )
    view = breakdown.rounded()

    quote.items = [
        QuoteItem(
            description=item.description,
            quantity=item.quantity,
            unit_price=item.unit_price,
            subtotal=line_subtotal,
            sort_order=index,
        )
        for index, (item, line_subtotal) in enumerate(zip(items, view.line_subtotals))
    ]
    quote.taxes = [
        QuoteTax(name=tax.name, rate=tax.rate, amount=tax.amount, sort_order=index)
        for index, tax in enumerate(view.taxes)
    ]
    quote.discount_type = DiscountType(discount.kind) if discount else DiscountType.PERCENT
    quote.discount_value = discount.value if discount else 0
    quote.subtotal = view.subtotal
    quote.discount_amount = view.discount
    quote.tax_total = view.tax_total
    quote.shipping = view.shipping
    quote.total = view.total
    return breakdown


def _validity_days(payload) -> int:
    if payload.get('validity_days') is None:
        if has_app_context():
            return int(current_app.config.get('QUOTE_VALIDITY_DAYS', 30))
        return 30
    try:
        days = int(payload['validity_days'])
    except (TypeError, ValueError):
        raise ValidationError('validity_days', 'must be a whole number of days')
    if days < 0:
        raise ValidationError('validity_days', 'cannot be negative')
    return days


def _active_client(session, client_id) -> Client:
    if client_id is None:
        raise ValidationError('client_id', 'client is required')
    client = session.query(Client).filter(Client.id == client_id, Client.active.is_(True)).first()
    if not client:
        raise NotFoundError(f'Client {client_id} not found')
    return client


def get_quote(session, quote_id: int) -> Quote:
    quote = session.query(Quote).filter(Quote.id == quote_id).first()
    if not quote:
        raise NotFoundError(f'Quote {quote_id} not found')
    return quote


def _lock_quote(session, quote_id: int) -> Quote:
    """Load a quote with a row lock, refreshing any stale identity-map copy."""
    quote = (
        session.query(Quote)
        .filter(Quote.id == quote_id)
        .with_for_update()
        .populate_existing()
        .first()
    )
    if not quote:
        raise NotFoundError(f'Quote {quote_id} not found')
    return quote


def list_quotes(session, actor, status: Optional[str] = None, client_id: Optional[int] = None,
                search: Optional[str] = None):
    """List quotes, most recent first."""
    check_permission(actor, VIEW)
    query = session.query(Quote)

    if status:
        try:
            query = query.filter(Quote.status == QuoteStatus(status.lower()))
        except ValueError:
            raise ValidationError('status', f'unknown quote status {status!r}')
    if client_id:
        query = query.filter(Quote.client_id == client_id)
    if search:
        pattern = f'%{search.strip()}%'
        query = query.join(Quote.client).filter(
            or_(
                Quote.quote_number.ilike(pattern),
                Quote.reference_number.ilike(pattern),
                Client.name.ilike(pattern),
            )
        )
    return query.order_by(Quote.quote_date.desc(), Quote.id.desc()).all()


def create_quote(session, payload: Dict[str, Any], actor) -> Quote:
    """Create a draft quote with its items and computed totals."""
    check_permission(actor, CREATE_QUOTES)

    try:
        payload = _with_tax_preset(session, payload)
        client = _active_client(session, payload.get('client_id'))
        prefix = get_setting(session, 'quotePrefix', 'QT')

        quote = Quote(
            quote_number=allocate_document_number(session, Quote.quote_number, prefix),
            client_id=client.id,
            created_by=actor.id,
            status=QuoteStatus.DRAFT,
            quote_date=datetime.now(),
            validity_days=_validity_days(payload),
        )
        for field in HEADER_FIELDS:
            if payload.get(field) is not None:
                setattr(quote, field, payload[field])

        _apply_pricing(quote, _pricing_inputs(payload))
        session.add(quote)
        session.flush()

        log_action(session, AuditAction.QUOTE_CREATED, actor, QUOTE, quote.id,
                   details={'quote_number': quote.quote_number, 'total': quote.total})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Quote {quote.quote_number} created by user {actor.id} (total {quote.total})")
    return quote


def update_quote(session, quote_id: int, payload: Dict[str, Any], actor) -> Quote:
    """
    Edit a draft quote.

    Any pricing key in the payload (items, discount, tax_rates, shipping)
    triggers a full recomputation; omitted pricing keys keep their current
    values.
    """
    check_permission(actor, EDIT_QUOTES)

    try:
        quote = _lock_quote(session, quote_id)
        check_ownership(actor, quote.created_by, QUOTE)

        if not quote.is_editable:
            raise BusinessLogicError(
                f'Quote {quote.quote_number} is {quote.status.value} and can no longer be edited',
                status_code=409,
            )

        if 'client_id' in payload:
            quote.client_id = _active_client(session, payload['client_id']).id
        if 'validity_days' in payload:
            quote.validity_days = _validity_days(payload)
        for field in HEADER_FIELDS:
            if field in payload:
                setattr(quote, field, payload[field])

        fields = list(payload)
        payload = _with_tax_preset(session, payload)
        provided = [key for key, aliases in PRICING_ALIASES.items() if any(a in payload for a in aliases)]
        if provided:
            inputs = _current_pricing_inputs(quote)
            requested = _pricing_inputs(payload)
            inputs.update({key: requested[key] for key in provided})
            _apply_pricing(quote, inputs)

        log_action(session, AuditAction.QUOTE_UPDATED, actor, QUOTE, quote.id,
                   details={'fields': sorted(fields)})
        session.commit()
    except Exception:
        session.rollback()
        raise

    return quote


def change_quote_status(session, quote_id: int, action: str, actor) -> Quote:
    """
    Apply a workflow action ('send', 'approve', 'reject') to a quote.

    The capability check runs first, then the workflow validates the edge;
    the status change and its audit entry are committed together.
    """
    target = quote_target_for_action(action)
    check_permission(actor, QUOTE_ACTION_PERMISSIONS[action.strip().lower()])

    try:
        quote = _lock_quote(session, quote_id)
        if target == QuoteStatus.SENT:
            check_ownership(actor, quote.created_by, QUOTE)
            if not quote.items:
                raise BusinessLogicError(f'Quote {quote.quote_number} has no items to send')

        record = transition(QUOTE, quote.status, target, actor, entity_id=quote.id)
        quote.status = target
        record_transition(session, record, details={'quote_number': quote.quote_number})
        session.commit()
    except Exception:
        session.rollback()
        raise

    record_transition_metric(QUOTE, record.from_state, record.to_state)
    logger.info(f"Quote {quote.quote_number}: {record.from_state} -> {record.to_state}")
    return quote


def delete_quote(session, quote_id: int, actor) -> None:
    """Delete a draft or rejected quote together with its items."""
    check_permission(actor, DELETE_QUOTES)

    try:
        quote = _lock_quote(session, quote_id)
        check_ownership(actor, quote.created_by, QUOTE)

        if quote.status not in DELETABLE_STATUSES:
            raise BusinessLogicError(
                f'Only draft or rejected quotes can be deleted (quote is {quote.status.value})',
                status_code=409,
            )

        number = quote.quote_number
        session.delete(quote)
        log_action(session, AuditAction.QUOTE_DELETED, actor, QUOTE, quote_id,
                   details={'quote_number': number})
        session.commit()
    except Exception:
        session.rollback()
        raise

    logger.info(f"Quote {number} deleted by user {actor.id}")
