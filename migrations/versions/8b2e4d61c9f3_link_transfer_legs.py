"""link the two legs of a ledger transfer

Revision ID: 8b2e4d61c9f3
Revises: 3f1c9a2b7d40
Create Date: 2026-10-18 15:40:02.118930

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '8b2e4d61c9f3'
down_revision = '3f1c9a2b7d40'
branch_labels = None
depends_on = None


def upgrade():
    with op.batch_alter_table('trust_transactions', schema=None) as batch_op:
        batch_op.add_column(sa.Column('transfer_group_id', sa.String(length=36), nullable=True))
        batch_op.create_index(batch_op.f('ix_trust_transactions_transfer_group_id'), ['transfer_group_id'], unique=False)


def downgrade():
    with op.batch_alter_table('trust_transactions', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_trust_transactions_transfer_group_id'))
        batch_op.drop_column('transfer_group_id')
