"""
Integration tests for quote creation, editing and the quote workflow.
"""

import pytest
from decimal import Decimal

from quotedesk.exceptions import (
    BusinessLogicError, InvalidTransitionError, NotFoundError, UnauthorizedError, ValidationError
)
from quotedesk.models import AuditLog, AuditAction, Quote, QuoteStatus, Setting
from quotedesk.services import quote_service
from quotedesk.services.audit_service import get_entity_history
from quotedesk.services.workflow_service import QUOTE


class TestCreateQuote:

    def test_totals_persisted(self, quote):
        assert quote.status == QuoteStatus.DRAFT
        assert quote.quote_number == 'QT-0001'
        assert quote.subtotal == Decimal('2000.00')
        assert quote.discount_amount == Decimal('100.00')
        assert quote.tax_total == Decimal('342.00')
        assert quote.shipping == Decimal('50.00')
        assert quote.total == Decimal('2292.00')
        assert [item.subtotal for item in quote.items] == [Decimal('1000.00'), Decimal('1000.00')]
        assert [(tax.name, tax.amount) for tax in quote.taxes] == [
            ('CGST', Decimal('171.00')), ('SGST', Decimal('171.00'))
        ]

    def test_numbers_are_sequential(self, session, quote, user, customer):
        second = quote_service.create_quote(session, {'client_id': customer.id}, user)
        assert second.quote_number == 'QT-0002'

    def test_prefix_from_settings(self, session, user, customer):
        session.add(Setting(key='quotePrefix', value='EST'))
        session.commit()
        created = quote_service.create_quote(session, {'client_id': customer.id}, user)
        assert created.quote_number == 'EST-0001'

    def test_default_validity(self, quote):
        assert quote.validity_days == 30
        assert quote.valid_until is not None
        assert quote.is_expired is False

    def test_invalid_item_rolls_back(self, session, user, customer):
        with pytest.raises(ValidationError) as exc:
            quote_service.create_quote(session, {
                'client_id': customer.id,
                'items': [{'quantity': 0, 'unit_price': 10}],
            }, user)
        assert exc.value.field == 'items[0].quantity'
        assert session.query(Quote).count() == 0

    def test_unknown_client(self, session, user):
        with pytest.raises(NotFoundError):
            quote_service.create_quote(session, {'client_id': 999}, user)

    def test_viewer_cannot_create(self, session, viewer, customer):
        with pytest.raises(UnauthorizedError):
            quote_service.create_quote(session, {'client_id': customer.id}, viewer)

    def test_creation_is_logged(self, session, quote):
        entries = get_entity_history(session, QUOTE, quote.id)
        assert [entry.action for entry in entries] == [AuditAction.QUOTE_CREATED]


class TestUpdateQuote:

    def test_replacing_items_recomputes(self, session, quote, user):
        updated = quote_service.update_quote(session, quote.id, {
            'items': [{'description': 'Audit', 'quantity': 1, 'unit_price': 1000}],
        }, user)
        # Discount, taxes and shipping are kept
        assert updated.subtotal == Decimal('1000.00')
        assert updated.discount_amount == Decimal('50.00')
        assert updated.tax_total == Decimal('171.00')
        assert updated.total == Decimal('1171.00')
        assert len(updated.items) == 1

    def test_removing_discount_and_taxes(self, session, quote, user):
        updated = quote_service.update_quote(session, quote.id, {
            'discount': None, 'tax_rates': [], 'shipping': 0,
        }, user)
        assert updated.total == Decimal('2000.00')
        assert updated.taxes == []

    def test_header_only_edit_keeps_totals(self, session, quote, user):
        updated = quote_service.update_quote(session, quote.id, {'notes': 'Net 15'}, user)
        assert updated.notes == 'Net 15'
        assert updated.total == Decimal('2292.00')

    def test_sent_quote_is_locked(self, session, quote, user):
        quote_service.change_quote_status(session, quote.id, 'send', user)
        with pytest.raises(BusinessLogicError) as exc:
            quote_service.update_quote(session, quote.id, {'notes': 'late edit'}, user)
        assert exc.value.status_code == 409

    def test_other_user_cannot_edit(self, session, quote, other_user):
        with pytest.raises(UnauthorizedError):
            quote_service.update_quote(session, quote.id, {'notes': 'x'}, other_user)

    def test_manager_can_edit(self, session, quote, manager):
        updated = quote_service.update_quote(session, quote.id, {'shipping': 100}, manager)
        assert updated.total == Decimal('2342.00')


class TestQuoteStatus:

    def test_full_happy_path(self, session, quote, user, manager):
        quote_service.change_quote_status(session, quote.id, 'send', user)
        approved = quote_service.change_quote_status(session, quote.id, 'approve', manager)
        assert approved.status == QuoteStatus.APPROVED

        entries = [e for e in get_entity_history(session, QUOTE, quote.id)
                   if e.action == AuditAction.STATUS_CHANGED]
        assert [(e.from_state, e.to_state) for e in entries] == [('draft', 'sent'), ('sent', 'approved')]
        assert entries[0].actor_id == user.id
        assert entries[1].actor_role == 'manager'

    def test_reject_then_approve_fails(self, session, quote, user, manager):
        quote_service.change_quote_status(session, quote.id, 'send', user)
        quote_service.change_quote_status(session, quote.id, 'reject', manager)

        with pytest.raises(InvalidTransitionError):
            quote_service.change_quote_status(session, quote.id, 'approve', manager)
        assert quote_service.get_quote(session, quote.id).status == QuoteStatus.REJECTED

    def test_draft_cannot_be_approved(self, session, quote, manager):
        with pytest.raises(InvalidTransitionError) as exc:
            quote_service.change_quote_status(session, quote.id, 'approve', manager)
        assert exc.value.payload['from_state'] == 'draft'

    def test_user_cannot_approve(self, session, quote, user):
        quote_service.change_quote_status(session, quote.id, 'send', user)
        with pytest.raises(UnauthorizedError):
            quote_service.change_quote_status(session, quote.id, 'approve', user)

    def test_failed_transition_writes_no_audit(self, session, quote, manager):
        before = session.query(AuditLog).count()
        with pytest.raises(InvalidTransitionError):
            quote_service.change_quote_status(session, quote.id, 'reject', manager)
        assert session.query(AuditLog).count() == before

    def test_empty_quote_cannot_be_sent(self, session, user, customer):
        empty = quote_service.create_quote(session, {'client_id': customer.id}, user)
        with pytest.raises(BusinessLogicError):
            quote_service.change_quote_status(session, empty.id, 'send', user)


class TestDeleteQuote:

    def test_delete_draft(self, session, quote, user):
        quote_id = quote.id
        quote_service.delete_quote(session, quote_id, user)
        assert session.query(Quote).filter_by(id=quote_id).first() is None
        actions = [e.action for e in get_entity_history(session, QUOTE, quote_id)]
        assert AuditAction.QUOTE_DELETED in actions

    def test_delete_rejected(self, session, quote, user, manager):
        quote_id = quote.id
        quote_service.change_quote_status(session, quote_id, 'send', user)
        quote_service.change_quote_status(session, quote_id, 'reject', manager)
        quote_service.delete_quote(session, quote_id, user)
        assert session.query(Quote).filter_by(id=quote_id).first() is None

    def test_cannot_delete_approved(self, session, approved_quote, user):
        with pytest.raises(BusinessLogicError):
            quote_service.delete_quote(session, approved_quote.id, user)


class TestPreview:

    def test_preview_does_not_persist(self, session):
        breakdown = quote_service.preview_totals({
            'items': [{'quantity': 2, 'unit_price': '19.99'}],
            'taxes': [18],
        })
        assert breakdown.rounded().total == Decimal('47.18')
        assert session.query(Quote).count() == 0


class TestStoredPricing:

    def test_unstorable_quantity_rejected(self, session, user, customer):
        with pytest.raises(ValidationError) as exc:
            quote_service.create_quote(session, {
                'client_id': customer.id,
                'items': [{'quantity': '0.0001', 'unit_price': 10}],
            }, user)
        assert exc.value.field == 'items[0].quantity'
        assert session.query(Quote).count() == 0

    def test_shipping_edit_keeps_subtotal(self, session, user, customer):
        created = quote_service.create_quote(session, {
            'client_id': customer.id,
            'items': [{'quantity': '0.333', 'unit_price': '3.33'}],
        }, user)
        assert created.subtotal == Decimal('1.11')

        updated = quote_service.update_quote(session, created.id, {'shipping': 5}, user)
        assert updated.subtotal == Decimal('1.11')
        assert updated.total == Decimal('6.11')

    def test_stored_figures_add_up(self, session, user, customer):
        created = quote_service.create_quote(session, {
            'client_id': customer.id,
            'items': [{'quantity': 1, 'unit_price': '1.00'}],
            'tax_rates': [{'name': 'A', 'rate': '0.5'}, {'name': 'B', 'rate': '0.5'}],
        }, user)
        assert [tax.amount for tax in created.taxes] == [Decimal('0.01'), Decimal('0.00')]
        assert created.tax_total == Decimal('0.01')
        assert created.total == Decimal('1.01')
        assert created.total == (created.subtotal - created.discount_amount
                                 + sum(tax.amount for tax in created.taxes) + created.shipping)
