"""
Trust (IOLTA) ledger bookkeeping.

Every financial event is one append-only TrustTransaction. Posting a
transaction is the only way a ClientTrustLedger balance changes, and the
parent TrustAccount balance is always recomputed as the sum of its ledgers in
the same database transaction. Account and ledger rows are locked
(SELECT ... FOR UPDATE) before the balance check so concurrent postings
serialize; lock order is accounts first, then ledgers, each sorted by id.
"""
import logging
from datetime import date
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy import func

from ..errors import (
    InsufficientTrustFundsError,
    InvalidStateError,
    NotFoundError,
    ValidationError,
)
from ..models import (
    Case,
    Client,
    ClientTrustLedger,
    TrustAccount,
    TrustReconciliation,
    TrustTransaction,
    generate_uuid,
)
from ..utils import last_four, parse_amount, parse_balance, parse_date, to_money
from .base import atomic

logger = logging.getLogger(__name__)

TRANSFER_DIRECTIONS = ('out', 'in')

# Entry type used to offset each kind of transaction
REVERSAL_TYPES = {
    'deposit': 'withdrawal',
    'withdrawal': 'deposit',
    'fee': 'deposit',
    'transfer': 'transfer',
}


def signed_delta(transaction_type: str, amount: Decimal, direction: str = 'out') -> Decimal:
    """Signed change to a ledger balance for a positive amount."""
    if transaction_type == 'deposit':
        return amount
    if transaction_type == 'transfer' and direction == 'in':
        return amount
    return -amount


class TrustLedgerService:
    """Trust accounts, client ledgers, transactions and reconciliations."""

    def __init__(self, session):
        self.session = session

    # ---------------------------------------------------------------- accounts

    def create_account(self, account_name: str, user_id: Optional[str] = None,
                       bank_name: Optional[str] = None, account_number=None,
                       routing_number=None, account_type: str = 'iolta') -> TrustAccount:
        account_name = (account_name or '').strip()
        if not account_name:
            raise ValidationError('account_name is required', field='account_name')
        account_type = account_type or 'iolta'
        if account_type not in TrustAccount.ACCOUNT_TYPES:
            raise ValidationError(
                f"account_type must be one of {', '.join(TrustAccount.ACCOUNT_TYPES)}",
                field='account_type')

        account = TrustAccount(
            user_id=user_id,
            account_name=account_name,
            bank_name=bank_name,
            account_number_last4=last_four(account_number),
            routing_number_last4=last_four(routing_number),
            account_type=account_type,
            current_balance=Decimal('0.00'),
            is_active=True,
        )
        with atomic(self.session):
            self.session.add(account)
        logger.info("Trust account %s created (%s)", account.id, account_type)
        return account

    def get_account(self, trust_account_id: str) -> TrustAccount:
        account = self.session.get(TrustAccount, trust_account_id)
        if account is None:
            raise NotFoundError('Trust account not found', trust_account_id=trust_account_id)
        return account

    def list_accounts(self, include_inactive: bool = True) -> List[TrustAccount]:
        query = self.session.query(TrustAccount)
        if not include_inactive:
            query = query.filter(TrustAccount.is_active.is_(True))
        return query.order_by(TrustAccount.created_at.desc()).all()

    def deactivate_account(self, trust_account_id: str) -> TrustAccount:
        with atomic(self.session):
            account = self._lock_account(trust_account_id)
            if to_money(account.current_balance) != 0:
                raise InvalidStateError('Cannot deactivate an account with a non-zero balance',
                                        current_balance=str(to_money(account.current_balance)))
            account.is_active = False
        logger.info("Trust account %s deactivated", trust_account_id)
        return account

    # ----------------------------------------------------------------- ledgers

    def open_ledger(self, trust_account_id: str, client_id: str,
                    case_id: Optional[str] = None) -> ClientTrustLedger:
        if not client_id:
            raise ValidationError('client_id is required', field='client_id')
        account = self.get_account(trust_account_id)
        if not account.is_active:
            raise InvalidStateError('Trust account is inactive', trust_account_id=trust_account_id)
        if self.session.get(Client, client_id) is None:
            raise NotFoundError('Client not found', client_id=client_id)
        if case_id and self.session.get(Case, case_id) is None:
            raise NotFoundError('Case not found', case_id=case_id)

        existing = self.session.query(ClientTrustLedger).filter_by(
            trust_account_id=account.id, client_id=client_id).first()
        if existing is not None:
            raise ValidationError('Ledger already exists for this client', field='client_id')

        ledger = ClientTrustLedger(trust_account_id=account.id, client_id=client_id,
                                   case_id=case_id, current_balance=Decimal('0.00'))
        with atomic(self.session):
            self.session.add(ledger)
        return ledger

    def get_ledger(self, ledger_id: str) -> ClientTrustLedger:
        ledger = self.session.get(ClientTrustLedger, ledger_id)
        if ledger is None:
            raise NotFoundError('Client ledger not found', ledger_id=ledger_id)
        return ledger

    def client_balances(self, client_id: str) -> dict:
        if self.session.get(Client, client_id) is None:
            raise NotFoundError('Client not found', client_id=client_id)
        ledgers = (
            self.session.query(ClientTrustLedger)
            .filter(ClientTrustLedger.client_id == client_id)
            .order_by(ClientTrustLedger.created_at)
            .all()
        )
        total = sum((to_money(l.current_balance) for l in ledgers), Decimal('0.00'))
        return {'ledgers': ledgers, 'total_balance': total}

    def ledger_transactions(self, ledger_id: str) -> List[TrustTransaction]:
        ledger = self.get_ledger(ledger_id)
        return (
            self.session.query(TrustTransaction)
            .filter(TrustTransaction.client_trust_ledger_id == ledger.id)
            .order_by(TrustTransaction.transaction_date.desc(), TrustTransaction.created_at.desc())
            .all()
        )

    def account_transactions(self, trust_account_id: str, limit: int = 50) -> List[TrustTransaction]:
        account = self.get_account(trust_account_id)
        return (
            self.session.query(TrustTransaction)
            .filter(TrustTransaction.trust_account_id == account.id)
            .order_by(TrustTransaction.transaction_date.desc(), TrustTransaction.created_at.desc())
            .limit(limit)
            .all()
        )

    # ------------------------------------------------------------ transactions

    def record_transaction(self, trust_account_id: str, ledger_id: str, transaction_type: str,
                           amount, user_id: Optional[str] = None, description: Optional[str] = None,
                           reference_number: Optional[str] = None, check_number: Optional[str] = None,
                           payee: Optional[str] = None, transaction_date=None,
                           direction: str = 'out') -> TrustTransaction:
        """
        Post one deposit, withdrawal, fee or transfer against a client ledger.

        Raises InsufficientTrustFundsError when the ledger would go negative;
        in that case nothing is written.
        """
        if not ledger_id:
            raise ValidationError('ledger_id is required', field='ledger_id')
        if transaction_type not in TrustTransaction.TRANSACTION_TYPES:
            raise ValidationError(
                f"transaction_type must be one of {', '.join(TrustTransaction.TRANSACTION_TYPES)}",
                field='transaction_type')
        direction = direction or 'out'
        if direction not in TRANSFER_DIRECTIONS:
            raise ValidationError("direction must be 'in' or 'out'", field='direction')
        amount = parse_amount(amount)
        transaction_date = parse_date(transaction_date, field='transaction_date', default=date.today())
        delta = signed_delta(transaction_type, amount, direction)

        with atomic(self.session):
            account = self._lock_account(trust_account_id)
            self._require_active(account)
            ledger = self._lock_ledger(ledger_id, account.id)
            txn = self._post(account, ledger, transaction_type, delta,
                             description=description, reference_number=reference_number,
                             check_number=check_number, payee=payee,
                             transaction_date=transaction_date, created_by=user_id)
            self._refresh_account_balance(account)

        logger.info("Trust %s of %s on ledger %s (balance %s)",
                    transaction_type, amount, ledger_id, txn.balance_after)
        return txn

    def transfer_funds(self, source_ledger_id: str, target_ledger_id: str, amount,
                       user_id: Optional[str] = None, description: Optional[str] = None,
                       reference_number: Optional[str] = None,
                       transaction_date=None) -> Tuple[TrustTransaction, TrustTransaction]:
        """Move funds between two client ledgers as a paired transfer-out / transfer-in."""
        if not source_ledger_id:
            raise ValidationError('source_ledger_id is required', field='source_ledger_id')
        if not target_ledger_id:
            raise ValidationError('target_ledger_id is required', field='target_ledger_id')
        if source_ledger_id == target_ledger_id:
            raise ValidationError('Source and target ledgers must differ', field='target_ledger_id')
        amount = parse_amount(amount)
        transaction_date = parse_date(transaction_date, field='transaction_date', default=date.today())

        source = self.get_ledger(source_ledger_id)
        target = self.get_ledger(target_ledger_id)
        account_ids = sorted({source.trust_account_id, target.trust_account_id})
        description = description or 'Ledger transfer'
        group_id = generate_uuid()

        with atomic(self.session):
            accounts = {aid: self._lock_account(aid) for aid in account_ids}
            for account in accounts.values():
                self._require_active(account)
            ledgers = {
                lid: self._lock_ledger(lid)
                for lid in sorted((source_ledger_id, target_ledger_id))
            }
            source, target = ledgers[source_ledger_id], ledgers[target_ledger_id]

            out_txn = self._post(accounts[source.trust_account_id], source, 'transfer', -amount,
                                 description=description, reference_number=reference_number,
                                 payee=target.client.full_name if target.client else None,
                                 transaction_date=transaction_date, created_by=user_id,
                                 transfer_group_id=group_id)
            in_txn = self._post(accounts[target.trust_account_id], target, 'transfer', amount,
                                description=description, reference_number=reference_number,
                                transaction_date=transaction_date, created_by=user_id,
                                transfer_group_id=group_id)
            for account in accounts.values():
                self._refresh_account_balance(account)

        logger.info("Trust transfer of %s from ledger %s to ledger %s",
                    amount, source_ledger_id, target_ledger_id)
        return out_txn, in_txn

    def reverse_transaction(self, transaction_id: str, user_id: Optional[str] = None,
                            reason: Optional[str] = None) -> TrustTransaction:
        """
        Offset a posted transaction with a new entry; the original is left untouched.

        Either leg of a ledger-to-ledger transfer reverses both legs in one unit
        of work. The returned entry offsets the requested transaction.
        """
        original = self.session.get(TrustTransaction, transaction_id)
        if original is None:
            raise NotFoundError('Transaction not found', transaction_id=transaction_id)
        if original.reverses_transaction_id is not None:
            raise InvalidStateError('A reversal entry cannot itself be reversed')

        if original.transfer_group_id is not None:
            legs = (
                self.session.query(TrustTransaction)
                .filter(TrustTransaction.transfer_group_id == original.transfer_group_id,
                        TrustTransaction.reverses_transaction_id.is_(None))
                .order_by(TrustTransaction.id)
                .all()
            )
        else:
            legs = [original]
        leg_ids = [leg.id for leg in legs]
        group_id = generate_uuid() if len(legs) > 1 else None

        with atomic(self.session):
            accounts = {
                aid: self._lock_account(aid)
                for aid in sorted({leg.trust_account_id for leg in legs})
            }
            for account in accounts.values():
                self._require_active(account)
            ledgers = {
                lid: self._lock_ledger(lid)
                for lid in sorted({leg.client_trust_ledger_id for leg in legs})
            }
            already = self.session.query(TrustTransaction.id).filter(
                TrustTransaction.reverses_transaction_id.in_(leg_ids)).first()
            if already is not None:
                raise InvalidStateError('Transaction has already been reversed',
                                        reversal_id=already[0])

            reversals = {}
            for leg in legs:
                reversals[leg.id] = self._post(
                    accounts[leg.trust_account_id], ledgers[leg.client_trust_ledger_id],
                    REVERSAL_TYPES[leg.transaction_type], -to_money(leg.amount),
                    description=reason or f"Reversal of transaction {leg.id}",
                    reference_number=leg.reference_number,
                    transaction_date=date.today(), created_by=user_id,
                    reverses_transaction_id=leg.id, transfer_group_id=group_id)
            for account in accounts.values():
                self._refresh_account_balance(account)

        txn = reversals[original.id]
        logger.info("Trust transaction(s) %s reversed", ', '.join(leg_ids))
        return txn

    # ---------------------------------------------------------- reconciliation

    def reconcile(self, trust_account_id: str, statement_balance, statement_date,
                  user_id: Optional[str] = None, notes: Optional[str] = None) -> TrustReconciliation:
        """Record a bank statement comparison; balances are never adjusted."""
        statement_balance = parse_balance(statement_balance)
        statement_date = parse_date(statement_date, field='statement_date')
        if statement_date is None:
            raise ValidationError('statement_date is required', field='statement_date')

        account = self.get_account(trust_account_id)
        book_balance = to_money(account.current_balance)
        ledger_total = self._ledger_total(account.id)
        reconciliation = TrustReconciliation(
            trust_account_id=account.id,
            statement_date=statement_date,
            statement_balance=statement_balance,
            book_balance=book_balance,
            ledger_total=ledger_total,
            adjusted_balance=statement_balance - book_balance,
            is_balanced=statement_balance == book_balance,
            notes=notes,
            reconciled_by=user_id,
        )
        with atomic(self.session):
            self.session.add(reconciliation)

        if not reconciliation.is_balanced:
            logger.warning("Trust account %s out of balance on %s: statement %s, book %s",
                           account.id, statement_date, statement_balance, book_balance)
        return reconciliation

    def list_reconciliations(self, trust_account_id: str, limit: int = 12) -> List[TrustReconciliation]:
        account = self.get_account(trust_account_id)
        return (
            self.session.query(TrustReconciliation)
            .filter(TrustReconciliation.trust_account_id == account.id)
            .order_by(TrustReconciliation.statement_date.desc())
            .limit(limit)
            .all()
        )

    def verify_account(self, trust_account_id: str) -> dict:
        """Compare the cached account balance with its ledgers and transaction log."""
        account = self.get_account(trust_account_id)
        book_balance = to_money(account.current_balance)
        ledger_total = self._ledger_total(account.id)
        transaction_total = to_money(
            self.session.query(func.coalesce(func.sum(TrustTransaction.amount), 0))
            .filter(TrustTransaction.trust_account_id == account.id)
            .scalar()
        )

        sums = dict(
            self.session.query(TrustTransaction.client_trust_ledger_id, func.sum(TrustTransaction.amount))
            .filter(TrustTransaction.trust_account_id == account.id)
            .group_by(TrustTransaction.client_trust_ledger_id)
            .all()
        )
        mismatched = []
        for ledger in account.ledgers:
            balance = to_money(ledger.current_balance)
            posted = to_money(sums.get(ledger.id))
            if balance != posted or balance < 0:
                mismatched.append({'ledger_id': ledger.id, 'current_balance': str(balance),
                                   'transaction_total': str(posted)})

        return {
            'trust_account_id': account.id,
            'book_balance': book_balance,
            'ledger_total': ledger_total,
            'transaction_total': transaction_total,
            'mismatched_ledgers': mismatched,
            'is_consistent': book_balance == ledger_total == transaction_total and not mismatched,
        }

    # ---------------------------------------------------------------- internal

    def _lock_account(self, trust_account_id: str) -> TrustAccount:
        account = (
            self.session.query(TrustAccount)
            .filter(TrustAccount.id == trust_account_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if account is None:
            raise NotFoundError('Trust account not found', trust_account_id=trust_account_id)
        return account

    def _lock_ledger(self, ledger_id: str, trust_account_id: Optional[str] = None) -> ClientTrustLedger:
        query = self.session.query(ClientTrustLedger).filter(ClientTrustLedger.id == ledger_id)
        if trust_account_id is not None:
            query = query.filter(ClientTrustLedger.trust_account_id == trust_account_id)
        ledger = query.with_for_update().populate_existing().first()
        if ledger is None:
            raise NotFoundError('Client ledger not found', ledger_id=ledger_id)
        return ledger

    @staticmethod
    def _require_active(account: TrustAccount) -> None:
        if not account.is_active:
            raise InvalidStateError('Trust account is inactive', trust_account_id=account.id)

    def _post(self, account: TrustAccount, ledger: ClientTrustLedger, transaction_type: str,
              delta: Decimal, **fields) -> TrustTransaction:
        """Write one entry and move the ledger balance. Caller holds the row locks."""
        current = to_money(ledger.current_balance)
        new_balance = current + delta
        if new_balance < 0:
            logger.warning("Rejected trust %s on ledger %s: available %s, requested %s",
                           transaction_type, ledger.id, current, -delta)
            raise InsufficientTrustFundsError(available=current, requested=-delta)

        txn = TrustTransaction(
            trust_account_id=account.id,
            client_trust_ledger_id=ledger.id,
            transaction_type=transaction_type,
            amount=delta,
            balance_after=new_balance,
            **fields,
        )
        self.session.add(txn)
        ledger.current_balance = new_balance
        return txn

    def _ledger_total(self, trust_account_id: str) -> Decimal:
        return to_money(
            self.session.query(func.coalesce(func.sum(ClientTrustLedger.current_balance), 0))
            .filter(ClientTrustLedger.trust_account_id == trust_account_id)
            .scalar()
        )

    def _refresh_account_balance(self, account: TrustAccount) -> None:
        self.session.flush()
        account.current_balance = self._ledger_total(account.id)
