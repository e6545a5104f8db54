"""
Integration tests for client records and application settings.
"""

import pytest

from quotedesk.exceptions import NotFoundError, UnauthorizedError, ValidationError
from quotedesk.models import AuditLog, AuditAction, Client
from quotedesk.services import client_service
from quotedesk.services.settings_service import (
    get_setting, get_all_settings, get_payment_term_days, update_settings
)


class TestClientService:

    def test_create_and_list(self, session, user):
        created = client_service.create_client(session, {'name': ' Globex ', 'email': 'ap@globex.test'}, user)
        assert created.name == 'Globex'
        assert created.created_by == user.id
        assert [c.name for c in client_service.list_clients(session, user, search='glob')] == ['Globex']

    def test_required_fields(self, session, user):
        with pytest.raises(ValidationError) as exc:
            client_service.create_client(session, {'name': 'No Mail'}, user)
        assert exc.value.field == 'email'

    def test_viewer_cannot_create(self, session, viewer):
        with pytest.raises(UnauthorizedError):
            client_service.create_client(session, {'name': 'X', 'email': 'x@x.test'}, viewer)

    def test_only_owner_updates(self, session, customer, user, other_user):
        with pytest.raises(UnauthorizedError):
            client_service.update_client(session, customer.id, {'phone': '123'}, other_user)
        updated = client_service.update_client(session, customer.id, {'phone': '123'}, user)
        assert updated.phone == '123'

    def test_unused_client_is_removed(self, session, customer, user):
        client_id = customer.id
        assert client_service.delete_client(session, client_id, user) is True
        assert session.query(Client).filter_by(id=client_id).first() is None

    def test_client_with_quotes_is_deactivated(self, session, quote, customer, user):
        client_id = customer.id
        assert client_service.delete_client(session, client_id, user) is False
        with pytest.raises(NotFoundError):
            client_service.get_client(session, client_id)
        assert client_service.get_client(session, client_id, include_inactive=True).active is False

    def test_deletion_is_audited(self, session, customer, user):
        client_service.delete_client(session, customer.id, user)
        assert session.query(AuditLog).filter_by(action=AuditAction.CLIENT_DELETED).count() == 1


class TestSettings:

    def test_config_defaults(self, session):
        assert get_setting(session, 'quotePrefix') == 'QT'
        assert get_setting(session, 'invoicePrefix') == 'INV'
        assert get_payment_term_days(session) == 30

    def test_admin_updates(self, session, admin):
        values = update_settings(session, {'invoicePrefix': ' BILL ', 'paymentTermDays': 45}, admin)
        assert values['invoicePrefix'] == 'BILL'
        assert get_payment_term_days(session) == 45
        assert get_all_settings(session)['quotePrefix'] == 'QT'

    def test_manager_cannot_update(self, session, manager):
        with pytest.raises(UnauthorizedError):
            update_settings(session, {'quotePrefix': 'EST'}, manager)

    @pytest.mark.parametrize('values, field', [
        ({'paymentTermDays': '-3'}, 'paymentTermDays'),
        ({'quotePrefix': ''}, 'quotePrefix'),
        ({'favouriteColour': 'teal'}, 'favouriteColour'),
    ])
    def test_invalid_values(self, session, admin, values, field):
        with pytest.raises(ValidationError) as exc:
            update_settings(session, values, admin)
        assert exc.value.field == field
