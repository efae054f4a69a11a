import sys

from sqlalchemy import inspect

from app import app, db
from lexledger.models import (
    Case, Client, ClientTrustLedger, ConflictCheck, ConflictParty, TrustAccount,
    TrustTransaction, User,
)
from lexledger.services import TrustLedgerService


def verify_database():
    """Print table counts and check every trust account for drift. Returns False on drift."""
    with app.app_context():
        print("\n=== Database Tables ===")
        print(inspect(db.engine).get_table_names())

        print("\n=== Record Counts ===")
        print(f"Users: {User.query.count()}")
        print(f"Clients: {Client.query.count()}")
        print(f"Cases: {Case.query.count()}")
        print(f"Conflict parties: {ConflictParty.query.count()}")
        print(f"Conflict checks: {ConflictCheck.query.count()}")
        print(f"Trust accounts: {TrustAccount.query.count()}")
        print(f"Client ledgers: {ClientTrustLedger.query.count()}")
        print(f"Trust transactions: {TrustTransaction.query.count()}")

        print("\n=== Trust Balances ===")
        service = TrustLedgerService(db.session)
        consistent = True
        for account in service.list_accounts():
            report = service.verify_account(account.id)
            flag = "OK" if report['is_consistent'] else "DRIFT"
            print(f"- {account.account_name}: book {report['book_balance']}, "
                  f"ledgers {report['ledger_total']}, "
                  f"transactions {report['transaction_total']} [{flag}]")
            for mismatch in report['mismatched_ledgers']:
                print(f"    ledger {mismatch['ledger_id']}: balance {mismatch['current_balance']}, "
                      f"posted {mismatch['transaction_total']}")
            consistent = consistent and report['is_consistent']
        return consistent


if __name__ == '__main__':
    print("Verifying database...")
    ok = verify_database()
    print("\nVerification complete!" if ok else "\nTrust balances do not reconcile!")
    sys.exit(0 if ok else 1)
