from flask import Blueprint, current_app, g, jsonify, request

from .auth import current_user_id, log_portal_activity, login_required, portal_login_required
from .errors import NotFoundError
from .models import Client, PortalActivity, db
from .services import ConflictService, TrustLedgerService

bp = Blueprint('main', __name__)

PORTAL_TRANSACTION_FIELDS = ('transaction_date', 'transaction_type', 'amount', 'balance_after', 'description')


def _conflicts():
    return ConflictService(db.session, current_app.config['CONFLICT_MIN_TERM_LENGTH'])


def _trust():
    return TrustLedgerService(db.session)


def _payload():
    """JSON body, or form fields for plain form posts."""
    data = request.get_json(silent=True)
    if data is not None:
        return data if isinstance(data, dict) else {}
    form = request.form.to_dict(flat=False)
    return {k: (v[0] if len(v) == 1 else v) for k, v in form.items()}


# ---- Conflict checks ----
@bp.route('/api/conflicts/check', methods=['POST'])
@bp.route('/conflicts/new', methods=['POST'])
@login_required
def api_conflict_check():
    data = _payload()
    check = _conflicts().run_check(
        names=data.get('names'),
        companies=data.get('companies'),
        check_type=data.get('check_type') or 'new_matter',
        client_id=data.get('client_id') or None,
        case_id=data.get('case_id') or None,
        user_id=current_user_id(),
    )
    return jsonify({
        'success': True,
        'check': check.to_dict(),
        'conflicts': check.results or [],
        'status': check.status,
    }), 201


@bp.route('/api/conflicts/history', methods=['GET'])
@bp.route('/conflicts/history', methods=['GET'])
@login_required
def api_conflict_history():
    result = _conflicts().list_checks(
        page=request.args.get('page', 1),
        per_page=request.args.get('per_page', 20),
        status=request.args.get('status') or None,
    )
    return jsonify({
        'items': [c.to_dict() for c in result['items']],
        'total': result['total'],
        'page': result['page'],
        'per_page': result['per_page'],
    })


@bp.route('/api/conflicts/stats', methods=['GET'])
@login_required
def api_conflict_stats():
    return jsonify(_conflicts().stats())


@bp.route('/api/conflicts/waivers', methods=['GET'])
@login_required
def api_conflict_waivers():
    return jsonify([w.to_dict() for w in _conflicts().list_waivers()])


@bp.route('/api/conflicts/parties', methods=['GET'])
@login_required
def api_conflict_parties():
    parties = _conflicts().list_parties(
        search=request.args.get('search'),
        party_type=request.args.get('party_type'),
        relationship=request.args.get('role'),
    )
    return jsonify([p.to_dict() for p in parties])


@bp.route('/api/conflicts/parties', methods=['POST'])
@login_required
def api_conflict_party_create():
    data = _payload()
    party = _conflicts().add_party(
        name=data.get('name'),
        party_type=data.get('party_type'),
        user_id=current_user_id(),
        aliases=data.get('aliases'),
        email=data.get('email'),
        phone=data.get('phone'),
        company=data.get('company'),
        address=data.get('address'),
        case_id=data.get('case_id') or None,
        client_id=data.get('client_id') or None,
        relationship=data.get('relationship'),
        notes=data.get('notes'),
    )
    return jsonify({'success': True, 'party': party.to_dict()}), 201


@bp.route('/api/conflicts/parties/<party_id>', methods=['DELETE'])
@login_required
def api_conflict_party_delete(party_id):
    _conflicts().delete_party(party_id)
    return jsonify({'success': True})


@bp.route('/api/cases/<case_id>/extract-parties', methods=['POST'])
@login_required
def api_case_extract_parties(case_id):
    added = _conflicts().extract_case_parties(case_id, user_id=current_user_id())
    return jsonify({'success': True, 'partiesAdded': [p.to_dict() for p in added]})


@bp.route('/api/conflicts/<check_id>', methods=['GET'])
@login_required
def api_conflict_detail(check_id):
    check = _conflicts().get_check(check_id)
    return jsonify(check.to_dict(include_waivers=True))


@bp.route('/api/conflicts/<check_id>/waivers', methods=['POST'])
@bp.route('/api/conflicts/<check_id>/waiver', methods=['POST'])
@login_required
def api_conflict_waiver_create(check_id):
    data = _payload()
    service = _conflicts()
    waiver = service.create_waiver(
        check_id,
        waiver_type=data.get('waiver_type') or 'informed_consent',
        parties_involved=data.get('parties_involved'),
        waiver_text=data.get('waiver_text'),
        obtained_from=data.get('obtained_from'),
        obtained_date=data.get('obtained_date'),
    )
    return jsonify({
        'success': True,
        'waiver': waiver.to_dict(),
        'check': service.get_check(check_id).to_dict(),
    }), 201


# ---- Trust accounts ----
@bp.route('/api/trust/accounts', methods=['GET'])
@login_required
def api_trust_accounts():
    accounts = _trust().list_accounts(include_inactive=request.args.get('active') != 'true')
    return jsonify([a.to_dict() for a in accounts])


@bp.route('/api/trust/accounts', methods=['POST'])
@login_required
def api_trust_account_create():
    data = _payload()
    account = _trust().create_account(
        account_name=data.get('account_name'),
        user_id=current_user_id(),
        bank_name=data.get('bank_name'),
        account_number=data.get('account_number') or data.get('account_number_last4'),
        routing_number=data.get('routing_number') or data.get('routing_number_last4'),
        account_type=data.get('account_type') or 'iolta',
    )
    return jsonify({'success': True, 'account': account.to_dict()}), 201


@bp.route('/api/trust/accounts/<account_id>', methods=['GET'])
@login_required
def api_trust_account_detail(account_id):
    service = _trust()
    account = service.get_account(account_id)
    result = account.to_dict()
    result['ledgers'] = [l.to_dict() for l in account.ledgers]
    result['transactions'] = [t.to_dict() for t in service.account_transactions(account_id)]
    return jsonify(result)


@bp.route('/api/trust/accounts/<account_id>/deactivate', methods=['POST'])
@login_required
def api_trust_account_deactivate(account_id):
    account = _trust().deactivate_account(account_id)
    return jsonify({'success': True, 'account': account.to_dict()})


@bp.route('/api/trust/accounts/<account_id>/ledgers', methods=['POST'])
@login_required
def api_trust_ledger_create(account_id):
    data = _payload()
    ledger = _trust().open_ledger(account_id, data.get('client_id'), data.get('case_id') or None)
    return jsonify({'success': True, 'ledger': ledger.to_dict()}), 201


def _record(account_id, transaction_type, data):
    txn = _trust().record_transaction(
        account_id,
        data.get('ledger_id') or data.get('client_trust_ledger_id'),
        transaction_type,
        data.get('amount'),
        user_id=current_user_id(),
        description=data.get('description'),
        reference_number=data.get('reference_number'),
        check_number=data.get('check_number'),
        payee=data.get('payee'),
        transaction_date=data.get('transaction_date'),
        direction=data.get('direction') or 'out',
    )
    return jsonify({'success': True, 'transaction': txn.to_dict()}), 201


@bp.route('/api/trust/accounts/<account_id>/transactions', methods=['POST'])
@login_required
def api_trust_transaction_create(account_id):
    data = _payload()
    return _record(account_id, data.get('transaction_type'), data)


@bp.route('/trust/accounts/<account_id>/deposit', methods=['POST'])
@login_required
def trust_deposit(account_id):
    return _record(account_id, 'deposit', _payload())


@bp.route('/trust/accounts/<account_id>/withdraw', methods=['POST'])
@login_required
def trust_withdraw(account_id):
    return _record(account_id, 'withdrawal', _payload())


@bp.route('/api/trust/transfers', methods=['POST'])
@login_required
def api_trust_transfer():
    data = _payload()
    out_txn, in_txn = _trust().transfer_funds(
        data.get('source_ledger_id'),
        data.get('target_ledger_id'),
        data.get('amount'),
        user_id=current_user_id(),
        description=data.get('description'),
        reference_number=data.get('reference_number'),
        transaction_date=data.get('transaction_date'),
    )
    return jsonify({'success': True, 'transactions': [out_txn.to_dict(), in_txn.to_dict()]}), 201


@bp.route('/api/trust/transactions/<transaction_id>/reverse', methods=['POST'])
@login_required
def api_trust_transaction_reverse(transaction_id):
    data = _payload()
    txn = _trust().reverse_transaction(transaction_id, user_id=current_user_id(),
                                       reason=data.get('reason'))
    return jsonify({'success': True, 'transaction': txn.to_dict()}), 201


@bp.route('/api/trust/ledgers/<ledger_id>/transactions', methods=['GET'])
@login_required
def api_trust_ledger_transactions(ledger_id):
    service = _trust()
    ledger = service.get_ledger(ledger_id)
    return jsonify({
        'ledger': ledger.to_dict(),
        'transactions': [t.to_dict() for t in service.ledger_transactions(ledger_id)],
    })


@bp.route('/api/trust/accounts/<account_id>/reconciliations', methods=['POST'])
@login_required
def api_trust_reconcile(account_id):
    data = _payload()
    reconciliation = _trust().reconcile(
        account_id,
        data.get('statement_balance'),
        data.get('statement_date'),
        user_id=current_user_id(),
        notes=data.get('notes'),
    )
    return jsonify({
        'success': True,
        'reconciliation': reconciliation.to_dict(),
        'isBalanced': reconciliation.is_balanced,
    }), 201


@bp.route('/api/trust/accounts/<account_id>/reconciliations', methods=['GET'])
@login_required
def api_trust_reconciliations(account_id):
    return jsonify([r.to_dict() for r in _trust().list_reconciliations(account_id)])


@bp.route('/api/trust/accounts/<account_id>/verify', methods=['GET'])
@login_required
def api_trust_verify(account_id):
    report = _trust().verify_account(account_id)
    for key in ('book_balance', 'ledger_total', 'transaction_total'):
        report[key] = str(report[key])
    return jsonify(report)


@bp.route('/api/clients/<client_id>/trust-balance', methods=['GET'])
@login_required
def api_client_trust_balance(client_id):
    balances = _trust().client_balances(client_id)
    return jsonify({
        'success': True,
        'ledgers': [l.to_dict() for l in balances['ledgers']],
        'totalBalance': str(balances['total_balance']),
    })


@bp.route('/api/clients/<client_id>/portal-activity', methods=['GET'])
@login_required
def api_client_portal_activity(client_id):
    if db.session.get(Client, client_id) is None:
        raise NotFoundError('Client not found', client_id=client_id)
    activity = (
        PortalActivity.query
        .filter_by(client_id=client_id)
        .order_by(PortalActivity.created_at.desc())
        .limit(100)
        .all()
    )
    return jsonify([a.to_dict() for a in activity])


# ---- Client Portal JSON APIs ----
@bp.route('/api/portal/trust', methods=['GET'])
@portal_login_required
def api_portal_trust():
    client_id = g.portal_client['client_id']
    service = _trust()
    balances = service.client_balances(client_id)
    ledgers = []
    for ledger in balances['ledgers']:
        item = ledger.to_dict()
        item['account_name'] = ledger.trust_account.account_name
        # Internal references (check numbers, staff ids) stay out of the portal view
        item['transactions'] = [
            {k: v for k, v in t.to_dict().items() if k in PORTAL_TRANSACTION_FIELDS}
            for t in service.ledger_transactions(ledger.id)
        ]
        ledgers.append(item)
    log_portal_activity(client_id, 'viewed_trust_balance')
    return jsonify({'ledgers': ledgers, 'totalBalance': str(balances['total_balance'])})
