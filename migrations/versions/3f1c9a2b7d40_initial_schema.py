"""initial schema: staff, clients, conflict checks, trust accounting

Revision ID: 3f1c9a2b7d40
Revises:
Create Date: 2026-10-18 09:12:44.517203

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '3f1c9a2b7d40'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table('user',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=120), nullable=False),
    sa.Column('password_hash', sa.String(length=256), nullable=False),
    sa.Column('first_name', sa.String(length=50), nullable=False),
    sa.Column('last_name', sa.String(length=50), nullable=False),
    sa.Column('role', sa.String(length=20), nullable=True),
    sa.Column('is_active', sa.Boolean(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('client',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('first_name', sa.String(length=50), nullable=False),
    sa.Column('last_name', sa.String(length=50), nullable=False),
    sa.Column('company_name', sa.String(length=200), nullable=True),
    sa.Column('email', sa.String(length=120), nullable=True),
    sa.Column('phone', sa.String(length=20), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('case',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('case_number', sa.String(length=50), nullable=True),
    sa.Column('title', sa.String(length=200), nullable=False),
    sa.Column('status', sa.String(length=50), nullable=True),
    sa.Column('opposing_party', sa.String(length=200), nullable=True),
    sa.Column('opposing_counsel', sa.String(length=200), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.Column('client_id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ),
    sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('case_number')
    )
    op.create_table('client_user',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('client_id', sa.String(length=36), nullable=False),
    sa.Column('email', sa.String(length=120), nullable=False),
    sa.Column('password_hash', sa.String(length=256), nullable=False),
    sa.Column('portal_access', sa.Boolean(), nullable=True),
    sa.Column('last_login', sa.DateTime(), nullable=True),
    sa.Column('login_count', sa.Integer(), nullable=True),
    sa.Column('failed_login_attempts', sa.Integer(), nullable=True),
    sa.Column('locked_until', sa.DateTime(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('client_id'),
    sa.UniqueConstraint('email')
    )
    op.create_table('client_portal_activity',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('client_id', sa.String(length=36), nullable=True),
    sa.Column('action', sa.String(length=100), nullable=False),
    sa.Column('details', sa.JSON(), nullable=True),
    sa.Column('ip_address', sa.String(length=64), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('client_portal_activity', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_client_portal_activity_created_at'), ['created_at'], unique=False)

    op.create_table('conflict_parties',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('party_type', sa.String(length=30), nullable=False),
    sa.Column('name', sa.String(length=200), nullable=False),
    sa.Column('aliases', sa.JSON(), nullable=True),
    sa.Column('email', sa.String(length=120), nullable=True),
    sa.Column('phone', sa.String(length=30), nullable=True),
    sa.Column('company', sa.String(length=200), nullable=True),
    sa.Column('address', sa.String(length=300), nullable=True),
    sa.Column('case_id', sa.String(length=36), nullable=True),
    sa.Column('client_id', sa.String(length=36), nullable=True),
    sa.Column('relationship', sa.String(length=50), nullable=True),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['case_id'], ['case.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('conflict_checks',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('check_type', sa.String(length=30), nullable=False),
    sa.Column('search_terms', sa.JSON(), nullable=False),
    sa.Column('status', sa.String(length=30), nullable=False),
    sa.Column('results', sa.JSON(), nullable=True),
    sa.Column('conflict_count', sa.Integer(), nullable=False),
    sa.Column('checked_by', sa.String(length=36), nullable=True),
    sa.Column('case_id', sa.String(length=36), nullable=True),
    sa.Column('client_id', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['case_id'], ['case.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['checked_by'], ['user.id'], ),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ondelete='SET NULL'),
    sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('conflict_checks', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_conflict_checks_created_at'), ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_conflict_checks_status'), ['status'], unique=False)

    op.create_table('conflict_waivers',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('conflict_check_id', sa.String(length=36), nullable=False),
    sa.Column('waiver_type', sa.String(length=30), nullable=False),
    sa.Column('parties_involved', sa.JSON(), nullable=True),
    sa.Column('waiver_text', sa.Text(), nullable=True),
    sa.Column('obtained_from', sa.String(length=200), nullable=True),
    sa.Column('obtained_date', sa.Date(), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['conflict_check_id'], ['conflict_checks.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('conflict_waivers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_conflict_waivers_conflict_check_id'), ['conflict_check_id'], unique=False)

    op.create_table('trust_accounts',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('user_id', sa.String(length=36), nullable=True),
    sa.Column('account_name', sa.String(length=200), nullable=False),
    sa.Column('bank_name', sa.String(length=200), nullable=True),
    sa.Column('account_number_last4', sa.String(length=4), nullable=True),
    sa.Column('routing_number_last4', sa.String(length=4), nullable=True),
    sa.Column('account_type', sa.String(length=30), nullable=False),
    sa.Column('current_balance', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('is_active', sa.Boolean(), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['user_id'], ['user.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    op.create_table('client_trust_ledgers',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('trust_account_id', sa.String(length=36), nullable=False),
    sa.Column('client_id', sa.String(length=36), nullable=False),
    sa.Column('case_id', sa.String(length=36), nullable=True),
    sa.Column('current_balance', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.Column('updated_at', sa.DateTime(), nullable=True),
    sa.CheckConstraint('current_balance >= 0', name='ck_ledger_balance_non_negative'),
    sa.ForeignKeyConstraint(['case_id'], ['case.id'], ),
    sa.ForeignKeyConstraint(['client_id'], ['client.id'], ),
    sa.ForeignKeyConstraint(['trust_account_id'], ['trust_accounts.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('trust_account_id', 'client_id', name='uq_ledger_account_client')
    )
    with op.batch_alter_table('client_trust_ledgers', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_client_trust_ledgers_client_id'), ['client_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_client_trust_ledgers_trust_account_id'), ['trust_account_id'], unique=False)

    op.create_table('trust_transactions',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('trust_account_id', sa.String(length=36), nullable=False),
    sa.Column('client_trust_ledger_id', sa.String(length=36), nullable=False),
    sa.Column('transaction_type', sa.String(length=20), nullable=False),
    sa.Column('amount', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('balance_after', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('description', sa.Text(), nullable=True),
    sa.Column('reference_number', sa.String(length=100), nullable=True),
    sa.Column('check_number', sa.String(length=50), nullable=True),
    sa.Column('payee', sa.String(length=200), nullable=True),
    sa.Column('transaction_date', sa.Date(), nullable=False),
    sa.Column('reverses_transaction_id', sa.String(length=36), nullable=True),
    sa.Column('created_by', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['client_trust_ledger_id'], ['client_trust_ledgers.id'], ),
    sa.ForeignKeyConstraint(['created_by'], ['user.id'], ),
    sa.ForeignKeyConstraint(['reverses_transaction_id'], ['trust_transactions.id'], ),
    sa.ForeignKeyConstraint(['trust_account_id'], ['trust_accounts.id'], ),
    sa.PrimaryKeyConstraint('id'),
    sa.UniqueConstraint('reverses_transaction_id')
    )
    with op.batch_alter_table('trust_transactions', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_trust_transactions_client_trust_ledger_id'), ['client_trust_ledger_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_trust_transactions_created_at'), ['created_at'], unique=False)
        batch_op.create_index(batch_op.f('ix_trust_transactions_trust_account_id'), ['trust_account_id'], unique=False)

    op.create_table('trust_reconciliations',
    sa.Column('id', sa.String(length=36), nullable=False),
    sa.Column('trust_account_id', sa.String(length=36), nullable=False),
    sa.Column('statement_date', sa.Date(), nullable=False),
    sa.Column('statement_balance', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('book_balance', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('ledger_total', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('adjusted_balance', sa.Numeric(precision=12, scale=2), nullable=False),
    sa.Column('is_balanced', sa.Boolean(), nullable=False),
    sa.Column('notes', sa.Text(), nullable=True),
    sa.Column('reconciled_by', sa.String(length=36), nullable=True),
    sa.Column('created_at', sa.DateTime(), nullable=True),
    sa.ForeignKeyConstraint(['reconciled_by'], ['user.id'], ),
    sa.ForeignKeyConstraint(['trust_account_id'], ['trust_accounts.id'], ),
    sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('trust_reconciliations', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_trust_reconciliations_trust_account_id'), ['trust_account_id'], unique=False)


def downgrade():
    with op.batch_alter_table('trust_reconciliations', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_trust_reconciliations_trust_account_id'))

    op.drop_table('trust_reconciliations')
    with op.batch_alter_table('trust_transactions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_trust_transactions_trust_account_id'))
        batch_op.drop_index(batch_op.f('ix_trust_transactions_created_at'))
        batch_op.drop_index(batch_op.f('ix_trust_transactions_client_trust_ledger_id'))

    op.drop_table('trust_transactions')
    with op.batch_alter_table('client_trust_ledgers', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_client_trust_ledgers_trust_account_id'))
        batch_op.drop_index(batch_op.f('ix_client_trust_ledgers_client_id'))

    op.drop_table('client_trust_ledgers')
    op.drop_table('trust_accounts')
    with op.batch_alter_table('conflict_waivers', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_conflict_waivers_conflict_check_id'))

    op.drop_table('conflict_waivers')
    with op.batch_alter_table('conflict_checks', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_conflict_checks_status'))
        batch_op.drop_index(batch_op.f('ix_conflict_checks_created_at'))

    op.drop_table('conflict_checks')
    op.drop_table('conflict_parties')
    with op.batch_alter_table('client_portal_activity', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_client_portal_activity_created_at'))

    op.drop_table('client_portal_activity')
    op.drop_table('client_user')
    op.drop_table('case')
    op.drop_table('client')
    op.drop_table('user')
