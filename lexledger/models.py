import uuid
from datetime import datetime, timedelta

from flask_login import UserMixin
from flask_sqlalchemy import SQLAlchemy
from werkzeug.security import generate_password_hash, check_password_hash

db = SQLAlchemy()

MONEY = db.Numeric(12, 2)


def generate_uuid():
    return str(uuid.uuid4())


def _iso(value):
    return value.isoformat() if value else None


def _money(value):
    return str(value) if value is not None else None


class User(UserMixin, db.Model):
    """Staff user (attorney, paralegal, admin)"""
    __tablename__ = 'user'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    role = db.Column(db.String(20), default='staff')  # 'admin', 'attorney', 'staff', 'paralegal'
    is_active = db.Column(db.Boolean, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'role': self.role,
            'is_active': self.is_active
        }


class Client(db.Model):
    """Client information model"""
    __tablename__ = 'client'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)  # responsible attorney
    first_name = db.Column(db.String(50), nullable=False)
    last_name = db.Column(db.String(50), nullable=False)
    company_name = db.Column(db.String(200), nullable=True)
    email = db.Column(db.String(120), unique=True, nullable=True)
    phone = db.Column(db.String(20), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    cases = db.relationship('Case', back_populates='client', cascade='all, delete-orphan')
    attorney = db.relationship('User')

    @property
    def full_name(self):
        return f"{self.first_name} {self.last_name}".strip()

    def to_dict(self):
        return {
            'id': self.id,
            'first_name': self.first_name,
            'last_name': self.last_name,
            'company_name': self.company_name,
            'email': self.email,
            'phone': self.phone,
        }


class Case(db.Model):
    """Case (matter) information model"""
    __tablename__ = 'case'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    case_number = db.Column(db.String(50), unique=True, nullable=True)
    title = db.Column(db.String(200), nullable=False)
    status = db.Column(db.String(50), default='open')
    opposing_party = db.Column(db.String(200), nullable=True)
    opposing_counsel = db.Column(db.String(200), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client_id = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=False)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)

    client = db.relationship('Client', back_populates='cases')

    def to_dict(self):
        return {
            'id': self.id,
            'case_number': self.case_number,
            'title': self.title,
            'status': self.status,
            'client_id': self.client_id,
            'opposing_party': self.opposing_party,
            'opposing_counsel': self.opposing_counsel,
        }


# ==================== CLIENT PORTAL ====================

class ClientUser(db.Model):
    """Separate authentication for client portal access"""
    __tablename__ = 'client_user'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=False, unique=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    password_hash = db.Column(db.String(256), nullable=False)
    portal_access = db.Column(db.Boolean, default=True)

    # Activity tracking
    last_login = db.Column(db.DateTime)
    login_count = db.Column(db.Integer, default=0)

    # Security
    failed_login_attempts = db.Column(db.Integer, default=0)
    locked_until = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    client = db.relationship('Client', backref=db.backref('portal_user', uselist=False))

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)

    def is_locked(self):
        if self.locked_until and self.locked_until > datetime.utcnow():
            return True
        return False

    def record_failed_login(self, max_attempts=5, lockout_minutes=30):
        self.failed_login_attempts = (self.failed_login_attempts or 0) + 1
        if self.failed_login_attempts >= max_attempts:
            self.locked_until = datetime.utcnow() + timedelta(minutes=lockout_minutes)

    def record_successful_login(self):
        self.failed_login_attempts = 0
        self.locked_until = None
        self.last_login = datetime.utcnow()
        self.login_count = (self.login_count or 0) + 1

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'email': self.email,
            'portal_access': self.portal_access,
            'last_login': _iso(self.last_login)
        }


class PortalActivity(db.Model):
    """Append-only log of what a client did in the portal"""
    __tablename__ = 'client_portal_activity'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    client_id = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=True)
    action = db.Column(db.String(100), nullable=False)
    details = db.Column(db.JSON, default=dict)
    ip_address = db.Column(db.String(64))
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    def to_dict(self):
        return {
            'id': self.id,
            'client_id': self.client_id,
            'action': self.action,
            'details': self.details or {},
            'ip_address': self.ip_address,
            'created_at': _iso(self.created_at),
        }


# ==================== CONFLICT CHECKING ====================

class ConflictParty(db.Model):
    """A person or organization screened by conflict checks"""
    __tablename__ = 'conflict_parties'

    PARTY_TYPES = ('individual', 'business', 'opposing_party', 'witness', 'related_party')

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    party_type = db.Column(db.String(30), nullable=False)
    name = db.Column(db.String(200), nullable=False)
    aliases = db.Column(db.JSON, default=list)
    email = db.Column(db.String(120))
    phone = db.Column(db.String(30))
    company = db.Column(db.String(200))
    address = db.Column(db.String(300))
    case_id = db.Column(db.String(36), db.ForeignKey('case.id', ondelete='SET NULL'), nullable=True)
    client_id = db.Column(db.String(36), db.ForeignKey('client.id', ondelete='SET NULL'), nullable=True)
    relationship = db.Column(db.String(50))  # e.g. 'opposing', 'opposing_counsel', 'spouse'
    notes = db.Column(db.Text)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'party_type': self.party_type,
            'name': self.name,
            'aliases': self.aliases or [],
            'email': self.email,
            'phone': self.phone,
            'company': self.company,
            'address': self.address,
            'case_id': self.case_id,
            'client_id': self.client_id,
            'relationship': self.relationship,
            'notes': self.notes,
            'created_at': _iso(self.created_at),
        }


class ConflictCheck(db.Model):
    """One conflict screening run; an immutable historical record"""
    __tablename__ = 'conflict_checks'

    CHECK_TYPES = ('new_client', 'new_matter')
    STATUS_PENDING = 'pending'
    STATUS_CLEAR = 'clear'
    STATUS_CONFLICT_FOUND = 'conflict_found'
    STATUS_WAIVED = 'waived'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    check_type = db.Column(db.String(30), nullable=False, default='new_matter')
    search_terms = db.Column(db.JSON, nullable=False)  # {'names': [...], 'companies': [...]}
    status = db.Column(db.String(30), nullable=False, default=STATUS_PENDING, index=True)
    results = db.Column(db.JSON, default=list)
    conflict_count = db.Column(db.Integer, nullable=False, default=0)
    checked_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    case_id = db.Column(db.String(36), db.ForeignKey('case.id', ondelete='SET NULL'), nullable=True)
    client_id = db.Column(db.String(36), db.ForeignKey('client.id', ondelete='SET NULL'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    waivers = db.relationship('ConflictWaiver', back_populates='conflict_check',
                              order_by='ConflictWaiver.created_at')

    def to_dict(self, include_waivers=False):
        data = {
            'id': self.id,
            'check_type': self.check_type,
            'search_terms': self.search_terms,
            'status': self.status,
            'results': self.results or [],
            'conflict_count': self.conflict_count,
            'checked_by': self.checked_by,
            'case_id': self.case_id,
            'client_id': self.client_id,
            'created_at': _iso(self.created_at),
        }
        if include_waivers:
            data['waivers'] = [w.to_dict() for w in self.waivers]
        return data


class ConflictWaiver(db.Model):
    """Informed-consent waiver for a check that found a conflict"""
    __tablename__ = 'conflict_waivers'

    WAIVER_TYPES = ('informed_consent', 'advance_waiver')

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    conflict_check_id = db.Column(db.String(36), db.ForeignKey('conflict_checks.id'), nullable=False, index=True)
    waiver_type = db.Column(db.String(30), nullable=False, default='informed_consent')
    parties_involved = db.Column(db.JSON, default=list)
    waiver_text = db.Column(db.Text)
    obtained_from = db.Column(db.String(200))
    obtained_date = db.Column(db.Date)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    conflict_check = db.relationship('ConflictCheck', back_populates='waivers')

    def to_dict(self):
        return {
            'id': self.id,
            'conflict_check_id': self.conflict_check_id,
            'waiver_type': self.waiver_type,
            'parties_involved': self.parties_involved or [],
            'waiver_text': self.waiver_text,
            'obtained_from': self.obtained_from,
            'obtained_date': _iso(self.obtained_date),
            'created_at': _iso(self.created_at),
        }


# ==================== TRUST ACCOUNTING (IOLTA) ====================

class TrustAccount(db.Model):
    """Firm bank account holding client funds; current_balance is the sum of its ledgers"""
    __tablename__ = 'trust_accounts'

    ACCOUNT_TYPES = ('iolta', 'client_trust', 'operating')

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    user_id = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    account_name = db.Column(db.String(200), nullable=False)
    bank_name = db.Column(db.String(200))

    # Last 4 digits only; full numbers are never stored
    account_number_last4 = db.Column(db.String(4))
    routing_number_last4 = db.Column(db.String(4))

    account_type = db.Column(db.String(30), nullable=False, default='iolta')
    current_balance = db.Column(MONEY, nullable=False, default=0)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    ledgers = db.relationship('ClientTrustLedger', back_populates='trust_account')

    def to_dict(self):
        return {
            'id': self.id,
            'account_name': self.account_name,
            'bank_name': self.bank_name,
            'account_number_last4': self.account_number_last4,
            'routing_number_last4': self.routing_number_last4,
            'account_type': self.account_type,
            'current_balance': _money(self.current_balance),
            'is_active': self.is_active,
            'created_at': _iso(self.created_at),
        }


class ClientTrustLedger(db.Model):
    """A client's sub-balance inside a trust account; never negative"""
    __tablename__ = 'client_trust_ledgers'
    __table_args__ = (
        db.UniqueConstraint('trust_account_id', 'client_id', name='uq_ledger_account_client'),
        db.CheckConstraint('current_balance >= 0', name='ck_ledger_balance_non_negative'),
    )

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    trust_account_id = db.Column(db.String(36), db.ForeignKey('trust_accounts.id'), nullable=False, index=True)
    client_id = db.Column(db.String(36), db.ForeignKey('client.id'), nullable=False, index=True)
    case_id = db.Column(db.String(36), db.ForeignKey('case.id'), nullable=True)
    current_balance = db.Column(MONEY, nullable=False, default=0)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    trust_account = db.relationship('TrustAccount', back_populates='ledgers')
    client = db.relationship('Client')
    case = db.relationship('Case')

    def to_dict(self):
        return {
            'id': self.id,
            'trust_account_id': self.trust_account_id,
            'client_id': self.client_id,
            'case_id': self.case_id,
            'client_name': self.client.full_name if self.client else None,
            'current_balance': _money(self.current_balance),
            'created_at': _iso(self.created_at),
        }


class TrustTransaction(db.Model):
    """Append-only ledger entry; amount is signed by type"""
    __tablename__ = 'trust_transactions'

    TRANSACTION_TYPES = ('deposit', 'withdrawal', 'transfer', 'fee')

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    trust_account_id = db.Column(db.String(36), db.ForeignKey('trust_accounts.id'), nullable=False, index=True)
    client_trust_ledger_id = db.Column(db.String(36), db.ForeignKey('client_trust_ledgers.id'), nullable=False, index=True)
    transaction_type = db.Column(db.String(20), nullable=False)
    amount = db.Column(MONEY, nullable=False)
    balance_after = db.Column(MONEY, nullable=False)
    description = db.Column(db.Text)
    reference_number = db.Column(db.String(100))
    check_number = db.Column(db.String(50))
    payee = db.Column(db.String(200))
    transaction_date = db.Column(db.Date, nullable=False)
    reverses_transaction_id = db.Column(db.String(36), db.ForeignKey('trust_transactions.id'),
                                        nullable=True, unique=True)
    # Shared by the two legs of a ledger-to-ledger transfer
    transfer_group_id = db.Column(db.String(36), nullable=True, index=True)
    created_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow, index=True)

    ledger = db.relationship('ClientTrustLedger')

    def to_dict(self):
        return {
            'id': self.id,
            'trust_account_id': self.trust_account_id,
            'client_trust_ledger_id': self.client_trust_ledger_id,
            'transaction_type': self.transaction_type,
            'amount': _money(self.amount),
            'balance_after': _money(self.balance_after),
            'description': self.description,
            'reference_number': self.reference_number,
            'check_number': self.check_number,
            'payee': self.payee,
            'transaction_date': _iso(self.transaction_date),
            'reverses_transaction_id': self.reverses_transaction_id,
            'transfer_group_id': self.transfer_group_id,
            'created_by': self.created_by,
            'created_at': _iso(self.created_at),
        }


class TrustReconciliation(db.Model):
    """Bank statement comparison; a record only, balances are never adjusted"""
    __tablename__ = 'trust_reconciliations'

    id = db.Column(db.String(36), primary_key=True, default=generate_uuid)
    trust_account_id = db.Column(db.String(36), db.ForeignKey('trust_accounts.id'), nullable=False, index=True)
    statement_date = db.Column(db.Date, nullable=False)
    statement_balance = db.Column(MONEY, nullable=False)
    book_balance = db.Column(MONEY, nullable=False)
    ledger_total = db.Column(MONEY, nullable=False)
    adjusted_balance = db.Column(MONEY, nullable=False)  # statement - book
    is_balanced = db.Column(db.Boolean, nullable=False)
    notes = db.Column(db.Text)
    reconciled_by = db.Column(db.String(36), db.ForeignKey('user.id'), nullable=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)

    def to_dict(self):
        return {
            'id': self.id,
            'trust_account_id': self.trust_account_id,
            'statement_date': _iso(self.statement_date),
            'statement_balance': _money(self.statement_balance),
            'book_balance': _money(self.book_balance),
            'ledger_total': _money(self.ledger_total),
            'adjusted_balance': _money(self.adjusted_balance),
            'is_balanced': self.is_balanced,
            'notes': self.notes,
            'reconciled_by': self.reconciled_by,
            'created_at': _iso(self.created_at),
        }
