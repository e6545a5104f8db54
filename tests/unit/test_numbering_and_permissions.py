"""
Unit tests for document numbering, role permissions and display formatting.
"""

import pytest

from quotedesk.exceptions import UnauthorizedError
from quotedesk.decorators.permissions import (
    has_permission, check_permission, check_ownership,
    VIEW, CONVERT_QUOTES, APPROVE_QUOTES, SEND_QUOTES, EDIT_SETTINGS, RECORD_PAYMENTS,
)
from quotedesk.models import UserRole
from quotedesk.services.workflow_service import Actor
from quotedesk.utils.numbering import next_document_number
from quotedesk.utils.formatters import format_money, format_quantity, format_amount


class TestNumbering:

    def test_first_number(self):
        assert next_document_number('QT') == 'QT-0001'
        assert next_document_number('INV', None) == 'INV-0001'

    def test_increments(self):
        assert next_document_number('QT', 'QT-0041') == 'QT-0042'

    def test_grows_past_four_digits(self):
        assert next_document_number('INV', 'INV-9999') == 'INV-10000'


class TestPermissions:

    @pytest.mark.parametrize('role, permission, allowed', [
        ('admin', EDIT_SETTINGS, True),
        ('manager', CONVERT_QUOTES, True),
        ('manager', EDIT_SETTINGS, False),
        ('user', SEND_QUOTES, True),
        ('user', APPROVE_QUOTES, False),
        ('user', RECORD_PAYMENTS, False),
        ('viewer', VIEW, True),
        ('viewer', SEND_QUOTES, False),
        ('system', VIEW, False),
    ])
    def test_capability_table(self, role, permission, allowed):
        assert has_permission(role, permission) is allowed

    def test_enum_roles(self):
        assert has_permission(UserRole.MANAGER, APPROVE_QUOTES)

    def test_check_permission_raises_403(self):
        with pytest.raises(UnauthorizedError) as exc:
            check_permission(Actor(1, 'viewer'), CONVERT_QUOTES)
        assert exc.value.status_code == 403
        assert exc.value.payload == {'permission': CONVERT_QUOTES}

    def test_owner_may_act(self):
        check_ownership(Actor(5, 'user'), 5, 'quote')

    def test_manager_may_act_on_other_quotes(self):
        check_ownership(Actor(1, 'manager'), 5, 'quote')

    def test_manager_may_not_edit_other_clients(self):
        with pytest.raises(UnauthorizedError):
            check_ownership(Actor(1, 'manager'), 5, 'client')

    def test_user_may_not_touch_other_quotes(self):
        with pytest.raises(UnauthorizedError):
            check_ownership(Actor(1, 'user'), 5, 'quote')


class TestFormatters:

    def test_money(self):
        assert format_money(2292, '₹') == '₹2,292.00'
        assert format_money('-5', '$') == '-$5.00'
        assert format_money(None, '$') == '-'

    def test_amount(self):
        assert format_amount('1234567.891') == '1,234,567.89'

    def test_quantity(self):
        assert format_quantity('10.000') == '10'
        assert format_quantity('2.500') == '2.5'
