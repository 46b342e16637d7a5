"""create users and weight_entries

Revision ID: 0001
Revises:
Create Date: 2026-10-19 00:00:00

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '0001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('username', sa.String(length=150), nullable=False),
        sa.Column('password_credential', sa.String(length=128), nullable=False),
        sa.PrimaryKeyConstraint('username')
    )
    op.create_table(
        'weight_entries',
        sa.Column('id', sa.Integer(), autoincrement=True, nullable=False),
        sa.Column('owner_username', sa.String(length=150), nullable=False),
        sa.Column('recorded_at', sa.BigInteger(), nullable=False),
        sa.Column('weight_value', sa.Float(), nullable=False),
        sa.ForeignKeyConstraint(['owner_username'], ['users.username']),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_index('ix_weight_entries_owner_username', 'weight_entries', ['owner_username'])
    op.create_index('ix_weight_entries_recorded_at', 'weight_entries', ['recorded_at'])


def downgrade():
    op.drop_index('ix_weight_entries_recorded_at', table_name='weight_entries')
    op.drop_index('ix_weight_entries_owner_username', table_name='weight_entries')
    op.drop_table('weight_entries')
    op.drop_table('users')
