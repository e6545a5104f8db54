"""
End-to-end tests of the JSON API through the Flask test client.
"""

import pytest

QUOTE_BODY = {
    'items': [
        {'description': 'Consulting hours', 'quantity': 10, 'unit_price': 100},
        {'description': 'Design package', 'quantity': 5, 'unit_price': 200},
    ],
    'discount': {'type': 'percent', 'value': 5},
    'tax_rates': [{'name': 'CGST', 'rate': 9}, {'name': 'SGST', 'rate': 9}],
    'shipping': 50,
}


@pytest.fixture
def as_user(login, user):
    user_id = user.id
    login(user_id)
    return user_id


class TestAuthApi:

    def test_login_with_password(self, client, user):
        response = client.post('/auth/login', json={'email': 'user@test.com', 'password': 'password123'})
        assert response.status_code == 200
        assert response.get_json()['user']['email'] == 'user@test.com'

        me = client.get('/auth/me')
        assert me.status_code == 200

    def test_wrong_password(self, client, user):
        response = client.post('/auth/login', json={'email': 'user@test.com', 'password': 'nope'})
        assert response.status_code == 403
        assert response.get_json()['status'] == 'error'

    def test_login_required(self, client):
        assert client.get('/quotes/').status_code == 401
        assert client.get('/auth/me').status_code == 401

    def test_logout(self, client, as_user):
        client.post('/auth/logout')
        assert client.get('/auth/me').status_code == 401


class TestQuoteApi:

    def test_create_client_and_quote(self, client, as_user):
        response = client.post('/clients/', json={'name': 'Globex', 'email': 'ap@globex.test'})
        assert response.status_code == 201
        client_id = response.get_json()['client']['id']

        response = client.post('/quotes/', json=dict(QUOTE_BODY, client_id=client_id))
        assert response.status_code == 201
        data = response.get_json()['quote']
        assert data['status'] == 'draft'
        assert data['total'] == '2292.00'
        assert data['tax_total'] == '342.00'
        assert len(data['items']) == 2

    def test_validation_error_payload(self, client, as_user, customer):
        response = client.post('/quotes/', json={
            'client_id': customer.id,
            'items': [{'quantity': 1, 'unit_price': 'ten'}],
        })
        assert response.status_code == 400
        assert response.get_json()['field'] == 'items[0].unit_price'

    def test_preview(self, client, as_user):
        response = client.post('/quotes/preview', json={
            'items': [{'quantity': 2, 'unit_price': '19.99'}],
            'taxes': [18],
        })
        assert response.status_code == 200
        assert response.get_json()['totals']['total'] == '47.18'

    def test_status_actions_and_history(self, client, login, quote, manager):
        quote_id, manager_id, owner_id = quote.id, manager.id, quote.created_by

        login(owner_id)
        assert client.post(f'/quotes/{quote_id}/status', json={'action': 'send'}).status_code == 200
        forbidden = client.post(f'/quotes/{quote_id}/status', json={'action': 'approve'})
        assert forbidden.status_code == 403

        login(manager_id)
        response = client.post(f'/quotes/{quote_id}/status', json={'action': 'approve'})
        assert response.get_json()['quote']['status'] == 'approved'

        illegal = client.post(f'/quotes/{quote_id}/status', json={'action': 'reject'})
        assert illegal.status_code == 409
        assert illegal.get_json()['from_state'] == 'approved'

        history = client.get(f'/quotes/{quote_id}/history').get_json()['history']
        assert [(h['from_state'], h['to_state']) for h in history if h['action'] == 'STATUS_CHANGED'] == [
            ('draft', 'sent'), ('sent', 'approved')
        ]

    def test_quote_pdf(self, client, as_user, quote):
        response = client.get(f'/quotes/{quote.id}/pdf')
        assert response.status_code == 200
        assert response.mimetype == 'application/pdf'
        assert response.data.startswith(b'%PDF')

    def test_missing_quote(self, client, as_user):
        assert client.get('/quotes/999').status_code == 404


class TestInvoiceApi:

    def test_convert_pay_and_alerts(self, client, login, approved_quote, manager):
        quote_id, manager_id = approved_quote.id, manager.id
        login(manager_id)

        response = client.post(f'/quotes/{quote_id}/convert', json={'payment_term_days': 15})
        assert response.status_code == 201
        invoice = response.get_json()['invoice']
        assert invoice['total'] == '2292.00'
        assert invoice['payment_status'] == 'pending'

        again = client.post(f'/quotes/{quote_id}/convert')
        assert again.status_code == 409
        assert again.get_json()['quote_id'] == quote_id

        paid = client.post(f"/invoices/{invoice['id']}/payments",
                           json={'amount': '292.00', 'payment_method': 'UPI'})
        assert paid.status_code == 201
        assert paid.get_json()['invoice']['payment_status'] == 'partial'
        assert paid.get_json()['invoice']['balance_due'] == '2000.00'

        over = client.post(f"/invoices/{invoice['id']}/payments",
                           json={'amount': '5000', 'payment_method': 'cash'})
        assert over.status_code == 400
        assert over.get_json()['field'] == 'amount'

        alerts = client.get('/invoices/alerts').get_json()['alerts']
        assert set(alerts) == {'due_tomorrow_count', 'overdue_count', 'total_critical'}

        pdf = client.get(f"/invoices/{invoice['id']}/pdf")
        assert pdf.mimetype == 'application/pdf'

        listing = client.get('/invoices/?status=partial').get_json()['invoices']
        assert [i['invoice_number'] for i in listing] == ['INV-0001']

    def test_draft_conversion_conflict(self, client, login, quote, manager):
        quote_id = quote.id
        login(manager.id)
        response = client.post(f'/quotes/{quote_id}/convert')
        assert response.status_code == 409
        assert response.get_json()['current_status'] == 'draft'

    def test_payment_amount_required(self, client, login, approved_quote, manager):
        quote_id, manager_id = approved_quote.id, manager.id
        login(manager_id)
        invoice_id = client.post(f'/quotes/{quote_id}/convert').get_json()['invoice']['id']
        response = client.post(f'/invoices/{invoice_id}/payments', json={'payment_method': 'cash'})
        assert response.status_code == 400


class TestAccessControl:

    def test_viewer_is_read_only(self, client, login, viewer, quote):
        quote_id = quote.id
        login(viewer.id)
        assert client.get(f'/quotes/{quote_id}').status_code == 200
        assert client.post(f'/quotes/{quote_id}/status', json={'action': 'send'}).status_code == 403

    def test_settings_admin_only(self, client, login, admin, manager):
        admin_id, manager_id = admin.id, manager.id

        login(manager_id)
        assert client.get('/settings/').status_code == 200
        assert client.post('/settings/', json={'quotePrefix': 'EST'}).status_code == 403

        login(admin_id)
        response = client.post('/settings/', json={'quotePrefix': 'EST', 'paymentTermDays': '45'})
        assert response.status_code == 200
        assert response.get_json()['settings']['quotePrefix'] == 'EST'

        bad = client.post('/settings/', json={'paymentTermDays': 'soon'})
        assert bad.status_code == 400

    def test_dashboard(self, client, as_user, quote):
        response = client.get('/analytics/dashboard')
        assert response.status_code == 200
        data = response.get_json()['dashboard']
        assert data['quotes_by_status']['draft'] == 1
        assert data['conversion_rate'] == '0.0'

    def test_metrics_endpoint(self, client):
        response = client.get('/metrics')
        assert response.status_code == 200
        assert b'quotedesk' in response.data
