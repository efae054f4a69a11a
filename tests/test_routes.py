import pytest

from lexledger.models import PortalActivity

from .conftest import PORTAL_EMAIL, PORTAL_PASSWORD, STAFF_EMAIL


def open_account(auth_client, name='Main IOLTA'):
    response = auth_client.post('/api/trust/accounts', json={
        'account_name': name, 'bank_name': 'First Community Bank', 'account_number': '000123456789'})
    assert response.status_code == 201
    return response.get_json()['account']['id']


def open_ledger(auth_client, account_id, client_id):
    response = auth_client.post(f'/api/trust/accounts/{account_id}/ledgers', json={'client_id': client_id})
    assert response.status_code == 201
    return response.get_json()['ledger']['id']


class TestStaffSession:
    def test_staff_routes_require_login(self, client):
        response = client.post('/api/conflicts/check', json={'names': ['John Smith']})
        assert response.status_code == 401
        assert response.get_json() == {'error': 'Not authenticated'}
        assert client.get('/api/trust/accounts').status_code == 401

    def test_login_and_logout(self, client):
        assert client.get('/api/session').status_code == 401
        bad = client.post('/api/auth/login', json={'email': STAFF_EMAIL, 'password': 'wrong'})
        assert bad.status_code == 401
        response = client.post('/api/auth/login', json={'email': STAFF_EMAIL.upper(), 'password': 'secret123'})
        assert response.status_code == 200
        assert response.get_json()['user']['email'] == STAFF_EMAIL
        assert client.get('/api/session').status_code == 204
        assert client.post('/api/auth/logout').status_code == 200
        assert client.get('/api/session').status_code == 401

    def test_login_requires_credentials(self, client):
        assert client.post('/api/auth/login', json={}).status_code == 400

    def test_unknown_route_is_json_404(self, client):
        response = client.get('/api/nothing-here')
        assert response.status_code == 404
        assert response.get_json() == {'error': 'Resource not found'}


class TestConflictRoutes:
    def test_check_then_waive(self, auth_client):
        party = auth_client.post('/api/conflicts/parties', json={
            'name': 'John Smith', 'party_type': 'opposing_party', 'relationship': 'opposing'})
        assert party.status_code == 201

        response = auth_client.post('/api/conflicts/check', json={'names': ['john smith']})
        assert response.status_code == 201
        body = response.get_json()
        assert body['status'] == 'conflict_found'
        assert body['check']['conflict_count'] == 1
        assert body['conflicts'][0]['name'] == 'John Smith'
        check_id = body['check']['id']

        waiver = auth_client.post(f'/api/conflicts/{check_id}/waivers', json={
            'waiver_text': 'Informed consent signed', 'obtained_from': 'Client',
            'obtained_date': '2026-03-02'})
        assert waiver.status_code == 201
        assert waiver.get_json()['check']['status'] == 'waived'

        detail = auth_client.get(f'/api/conflicts/{check_id}').get_json()
        assert detail['status'] == 'waived'
        assert len(detail['waivers']) == 1
        assert len(auth_client.get('/api/conflicts/waivers').get_json()) == 1

    def test_waiving_a_clear_check_is_a_conflict_error(self, auth_client):
        check_id = auth_client.post('/api/conflicts/check', json={'names': ['Nobody Known']}).get_json()['check']['id']
        response = auth_client.post(f'/api/conflicts/{check_id}/waiver', json={})
        assert response.status_code == 409
        assert "status 'clear'" in response.get_json()['error']

    def test_check_validation_and_missing_rows(self, auth_client):
        response = auth_client.post('/api/conflicts/check', json={'names': []})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'names'
        assert auth_client.get('/api/conflicts/missing').status_code == 404

    @pytest.mark.parametrize('names', [5, {'first': 'John'}, ['John Smith', 7]])
    def test_malformed_names_are_400(self, auth_client, names):
        response = auth_client.post('/api/conflicts/check', json={'names': names})
        assert response.status_code == 400
        assert response.get_json() == {
            'error': 'names must be a string or a list of strings', 'field': 'names'}

    def test_short_names_get_a_length_message(self, auth_client):
        response = auth_client.post('/api/conflicts/check', json={'names': ['J']})
        assert response.status_code == 400
        assert response.get_json()['error'] == 'Names must be at least 2 characters long'

    def test_form_post_alias(self, auth_client):
        response = auth_client.post('/conflicts/new', data={'names': 'Maria Gonzalez', 'check_type': 'new_client'})
        assert response.status_code == 201
        assert response.get_json()['status'] == 'clear'

    def test_history_and_stats(self, auth_client):
        for _ in range(2):
            auth_client.post('/api/conflicts/check', json={'names': ['Maria Gonzalez']})
        history = auth_client.get('/api/conflicts/history?per_page=1').get_json()
        assert history['total'] == 2
        assert len(history['items']) == 1
        stats = auth_client.get('/api/conflicts/stats').get_json()
        assert stats['total_checks'] == 2
        assert stats['clear_count'] == 2

    def test_parties_crud_and_case_extraction(self, auth_client, factory):
        client_id = factory.client()
        case_id = factory.case(client_id, opposing_party='Northwind Logistics', opposing_counsel='Sarah Kimura')

        extracted = auth_client.post(f'/api/cases/{case_id}/extract-parties')
        assert extracted.status_code == 200
        assert len(extracted.get_json()['partiesAdded']) == 2

        parties = auth_client.get('/api/conflicts/parties?search=northwind').get_json()
        assert [p['name'] for p in parties] == ['Northwind Logistics']
        assert auth_client.delete(f"/api/conflicts/parties/{parties[0]['id']}").status_code == 200
        assert auth_client.get('/api/conflicts/parties?search=northwind').get_json() == []


class TestTrustRoutes:
    def test_deposit_withdraw_overdraw(self, auth_client, factory):
        account_id = open_account(auth_client)
        ledger_id = open_ledger(auth_client, account_id, factory.client())

        deposit = auth_client.post(f'/trust/accounts/{account_id}/deposit',
                                   json={'ledger_id': ledger_id, 'amount': '5000'})
        assert deposit.status_code == 201
        assert deposit.get_json()['transaction']['balance_after'] == '5000.00'

        withdraw = auth_client.post(f'/trust/accounts/{account_id}/withdraw',
                                    json={'ledger_id': ledger_id, 'amount': '2000', 'payee': 'Court Clerk'})
        assert withdraw.get_json()['transaction']['amount'] == '-2000.00'

        overdraw = auth_client.post(f'/api/trust/accounts/{account_id}/transactions', json={
            'ledger_id': ledger_id, 'transaction_type': 'withdrawal', 'amount': '4000'})
        assert overdraw.status_code == 409
        assert overdraw.get_json() == {
            'error': 'insufficient trust funds: available $3,000.00, requested $4,000.00',
            'available': '3000.00',
            'requested': '4000.00',
        }

        detail = auth_client.get(f'/api/trust/accounts/{account_id}').get_json()
        assert detail['current_balance'] == '3000.00'
        assert detail['ledgers'][0]['current_balance'] == '3000.00'
        assert len(detail['transactions']) == 2

    def test_invalid_amount_is_400(self, auth_client, factory):
        account_id = open_account(auth_client)
        ledger_id = open_ledger(auth_client, account_id, factory.client())
        response = auth_client.post(f'/trust/accounts/{account_id}/deposit',
                                    json={'ledger_id': ledger_id, 'amount': '-5'})
        assert response.status_code == 400
        assert response.get_json()['field'] == 'amount'

    def test_transfer_reverse_and_client_balance(self, auth_client, factory):
        account_id = open_account(auth_client)
        alice = factory.client()
        ben = factory.client('Ben', 'Ortiz')
        source = open_ledger(auth_client, account_id, alice)
        target = open_ledger(auth_client, account_id, ben)
        auth_client.post(f'/trust/accounts/{account_id}/deposit', json={'ledger_id': source, 'amount': '1000'})

        transfer = auth_client.post('/api/trust/transfers', json={
            'source_ledger_id': source, 'target_ledger_id': target, 'amount': '250'})
        assert transfer.status_code == 201
        out_leg, in_leg = transfer.get_json()['transactions']
        assert out_leg['transfer_group_id'] == in_leg['transfer_group_id']
        out_id, in_id = out_leg['id'], in_leg['id']

        reverse = auth_client.post(f'/api/trust/transactions/{out_id}/reverse', json={'reason': 'Entered in error'})
        assert reverse.status_code == 201
        again = auth_client.post(f'/api/trust/transactions/{out_id}/reverse', json={})
        assert again.status_code == 409
        assert auth_client.post(f'/api/trust/transactions/{in_id}/reverse', json={}).status_code == 409

        balance = auth_client.get(f'/api/clients/{alice}/trust-balance').get_json()
        assert balance['totalBalance'] == '1000.00'
        history = auth_client.get(f'/api/trust/ledgers/{target}/transactions').get_json()
        assert history['ledger']['current_balance'] == '0.00'
        assert len(history['transactions']) == 2
        account = auth_client.get(f'/api/trust/accounts/{account_id}').get_json()
        assert account['current_balance'] == '1000.00'

    def test_reconcile_and_verify(self, auth_client, factory):
        account_id = open_account(auth_client)
        ledger_id = open_ledger(auth_client, account_id, factory.client())
        auth_client.post(f'/trust/accounts/{account_id}/deposit', json={'ledger_id': ledger_id, 'amount': '1200'})

        rec = auth_client.post(f'/api/trust/accounts/{account_id}/reconciliations', json={
            'statement_balance': '1150.00', 'statement_date': '2026-01-31'})
        assert rec.status_code == 201
        body = rec.get_json()
        assert body['isBalanced'] is False
        assert body['reconciliation']['adjusted_balance'] == '-50.00'
        assert len(auth_client.get(f'/api/trust/accounts/{account_id}/reconciliations').get_json()) == 1

        verify = auth_client.get(f'/api/trust/accounts/{account_id}/verify').get_json()
        assert verify['is_consistent'] is True
        assert verify['book_balance'] == '1200.00'

    def test_deactivate_with_balance_is_rejected(self, auth_client, factory):
        account_id = open_account(auth_client)
        ledger_id = open_ledger(auth_client, account_id, factory.client())
        auth_client.post(f'/trust/accounts/{account_id}/deposit', json={'ledger_id': ledger_id, 'amount': '10'})
        assert auth_client.post(f'/api/trust/accounts/{account_id}/deactivate').status_code == 409

    def test_missing_account_is_404(self, auth_client):
        assert auth_client.get('/api/trust/accounts/missing').status_code == 404

    def test_missing_ledger_ids_are_400(self, auth_client):
        account_id = open_account(auth_client)
        deposit = auth_client.post(f'/trust/accounts/{account_id}/deposit', json={'amount': '10'})
        assert deposit.status_code == 400
        assert deposit.get_json()['field'] == 'ledger_id'
        transfer = auth_client.post('/api/trust/transfers', json={'target_ledger_id': 'x', 'amount': '10'})
        assert transfer.status_code == 400
        assert transfer.get_json()['field'] == 'source_ledger_id'


class TestPortal:
    def test_portal_sees_own_trust_balance_only(self, app, auth_client, factory):
        alice = factory.client()
        account_id = open_account(auth_client)
        ledger_id = open_ledger(auth_client, account_id, alice)
        auth_client.post(f'/trust/accounts/{account_id}/deposit', json={
            'ledger_id': ledger_id, 'amount': '750', 'check_number': '1042'})
        factory.portal_user(alice)

        portal = app.test_client()
        assert portal.get('/api/portal/trust').status_code == 401
        login = portal.post('/api/portal/login', json={'email': PORTAL_EMAIL, 'password': PORTAL_PASSWORD})
        assert login.status_code == 200

        body = portal.get('/api/portal/trust').get_json()
        assert body['totalBalance'] == '750.00'
        assert body['ledgers'][0]['account_name'] == 'Main IOLTA'
        txn = body['ledgers'][0]['transactions'][0]
        assert set(txn) == {'transaction_date', 'transaction_type', 'amount', 'balance_after', 'description'}

        activity = auth_client.get(f'/api/clients/{alice}/portal-activity').get_json()
        assert {a['action'] for a in activity} == {'login_success', 'viewed_trust_balance'}

    def test_portal_lockout(self, app, factory):
        alice = factory.client()
        factory.portal_user(alice)
        portal = app.test_client()
        for _ in range(app.config['PORTAL_MAX_FAILED_LOGINS']):
            response = portal.post('/api/portal/login', json={'email': PORTAL_EMAIL, 'password': 'nope'})
            assert response.status_code == 401
        locked = portal.post('/api/portal/login', json={'email': PORTAL_EMAIL, 'password': PORTAL_PASSWORD})
        assert locked.status_code == 423

        with app.app_context():
            failures = PortalActivity.query.filter_by(client_id=alice, action='login_failed').count()
        assert failures == app.config['PORTAL_MAX_FAILED_LOGINS']

    def test_portal_access_disabled(self, app, factory):
        factory.portal_user(factory.client(), portal_access=False)
        response = app.test_client().post('/api/portal/login', json={
            'email': PORTAL_EMAIL, 'password': PORTAL_PASSWORD})
        assert response.status_code == 403
