import random
from datetime import date, timedelta

from flask_migrate import upgrade

from app import app, db
from init_db import ensure_admin
from lexledger.models import (
    Case, Client, ClientTrustLedger, ClientUser, ConflictCheck, ConflictParty, TrustAccount,
)
from lexledger.services import ConflictService, TrustLedgerService

FIRST_NAMES = [
    "James", "Mary", "Robert", "Patricia", "John", "Jennifer", "Michael", "Linda",
    "William", "Elizabeth", "David", "Barbara", "Richard", "Susan", "Joseph", "Jessica",
]
LAST_NAMES = [
    "Smith", "Johnson", "Williams", "Brown", "Jones", "Garcia", "Miller", "Davis",
    "Rodriguez", "Martinez", "Hernandez", "Lopez", "Gonzalez", "Wilson", "Anderson", "Thomas",
]

# (title, opposing party, opposing counsel)
SAMPLE_CASES = [
    ("Slip and Fall at Grocery Store", "FreshMart Grocers Inc.", "Dana Whitfield"),
    ("Rear-end Collision on Highway", "Gregory Palmer", "Okafor & Reyes LLP"),
    ("Employment Discrimination Claim", "Northwind Logistics", "Sarah Kimura"),
    ("Landlord-Tenant Lease Dispute", "Maple Property Management", None),
    ("Contract Dispute with Supplier", "Acme Corporation", "Baxter Lane"),
]

PORTAL_EMAIL = "client@example.com"
PORTAL_PASSWORD = "client123"


def random_phone():
    return f"({random.randint(200, 989)}) {random.randint(200, 989)}-{random.randint(1000, 9999)}"


def seed():
    with app.app_context():
        upgrade()
        admin, _ = ensure_admin()

        existing = Client.query.count()
        if existing >= len(FIRST_NAMES):
            clients = Client.query.order_by(Client.created_at.asc()).limit(len(FIRST_NAMES)).all()
            print(f"Clients already present ({existing}). Reusing first {len(clients)}.")
        else:
            clients = []
            for i, (fn, ln) in enumerate(zip(FIRST_NAMES, LAST_NAMES)):
                c = Client(
                    user_id=admin.id,
                    first_name=fn,
                    last_name=ln,
                    email=f"{fn.lower()}.{ln.lower()}{i + 1}@example.com",
                    phone=random_phone(),
                )
                db.session.add(c)
                clients.append(c)
            db.session.commit()

        # Sample cases with opposing parties for the conflict database
        conflicts = ConflictService(db.session)
        for i, (title, opposing_party, opposing_counsel) in enumerate(SAMPLE_CASES):
            cl = clients[i]
            case = Case.query.filter_by(client_id=cl.id, title=title).first()
            if case is None:
                case = Case(
                    case_number=f"2026-{1000 + i}",
                    title=title,
                    client_id=cl.id,
                    user_id=admin.id,
                    opposing_party=opposing_party,
                    opposing_counsel=opposing_counsel,
                )
                db.session.add(case)
                db.session.commit()
            added = conflicts.extract_case_parties(case.id, user_id=admin.id)
            if added:
                print(f"Added {len(added)} conflict part{'y' if len(added) == 1 else 'ies'} from {title}")

        if not ConflictParty.query.filter_by(name='Victor Hale').first():
            conflicts.add_party('Victor Hale', 'witness', user_id=admin.id,
                                aliases=['Vic Hale'], company='Hale Consulting',
                                notes='Expert witness retained by opposing side in 2025')

        if ConflictCheck.query.count() == 0:
            for names in (['Gregory Palmer'], ['Helen Marsh']):
                check = conflicts.run_check(names, user_id=admin.id)
                print(f"Conflict check for {names[0]}: {check.status} ({check.conflict_count} match(es))")

        # Trust account with a few client ledgers
        trust = TrustLedgerService(db.session)
        account = TrustAccount.query.filter_by(account_name='Main IOLTA Account').first()
        if account is None:
            account = trust.create_account('Main IOLTA Account', user_id=admin.id,
                                           bank_name='First Community Bank',
                                           account_number='000123456789',
                                           routing_number='021000021')
            print(f"Created trust account {account.account_name}")

        start = date.today() - timedelta(days=30)
        for i, cl in enumerate(clients[:4]):
            if ClientTrustLedger.query.filter_by(trust_account_id=account.id, client_id=cl.id).first():
                continue
            ledger = trust.open_ledger(account.id, cl.id)
            retainer = random.choice(['2500.00', '5000.00', '7500.00'])
            trust.record_transaction(account.id, ledger.id, 'deposit', retainer, user_id=admin.id,
                                     description='Retainer deposit', reference_number=f"DEP-{i + 1:04d}",
                                     transaction_date=start + timedelta(days=i))
            trust.record_transaction(account.id, ledger.id, 'fee', '450.00', user_id=admin.id,
                                     description='Earned fees transferred to operating',
                                     transaction_date=start + timedelta(days=i + 10))

        # Portal user for the first client
        portal_client = clients[0]
        cu = ClientUser.query.filter(db.func.lower(ClientUser.email) == PORTAL_EMAIL).first()
        if not cu:
            cu = ClientUser(client_id=portal_client.id, email=PORTAL_EMAIL)
            db.session.add(cu)
        cu.set_password(PORTAL_PASSWORD)
        db.session.commit()

        report = trust.verify_account(account.id)
        print(f"Trust account balance: {report['book_balance']} "
              f"({'consistent' if report['is_consistent'] else 'DRIFT'})")
        print(f"Portal user: {PORTAL_EMAIL} / {PORTAL_PASSWORD}")
        print("Seed complete: clients, sample cases, conflict parties, trust ledgers and portal user ensured.")


if __name__ == '__main__':
    seed()
