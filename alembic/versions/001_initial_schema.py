"""Initial schema: payments, transfers and event cursor checkpoints.

Revision ID: 001_initial
Revises:
Create Date: 2026-01-20

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Payments table
    op.create_table(
        'payments',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('from_address', sa.String(56), nullable=False),
        sa.Column('merchant_id', sa.String(64), nullable=False),
        sa.Column('send_asset', sa.String(70), nullable=False),
        sa.Column('send_amount', sa.Numeric(39, 0), nullable=False),
        sa.Column('min_receive', sa.Numeric(39, 0), nullable=True),
        sa.Column('receive_amount', sa.Numeric(39, 0), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('memo', sa.String(28), nullable=True),
        sa.Column('tx_hash', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash')
    )
    op.create_index('ix_payments_from_address', 'payments', ['from_address'])
    op.create_index('ix_payments_merchant_id', 'payments', ['merchant_id'])
    op.create_index('ix_payments_match', 'payments', ['merchant_id', 'from_address', 'status'])

    # Transfers table
    op.create_table(
        'transfers',
        sa.Column('id', sa.String(36), nullable=False),
        sa.Column('from_user_id', sa.String(64), nullable=True),
        sa.Column('to_user_id', sa.String(64), nullable=True),
        sa.Column('from_address', sa.String(56), nullable=False),
        sa.Column('to_address', sa.String(56), nullable=False),
        sa.Column('asset', sa.String(70), nullable=False),
        sa.Column('amount', sa.Numeric(39, 0), nullable=False),
        sa.Column('receive_amount', sa.Numeric(39, 0), nullable=True),
        sa.Column('status', sa.String(20), nullable=False),
        sa.Column('memo', sa.String(28), nullable=True),
        sa.Column('tx_hash', sa.String(64), nullable=True),
        sa.Column('error_message', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('tx_hash')
    )
    op.create_index('ix_transfers_from_address', 'transfers', ['from_address'])
    op.create_index('ix_transfers_to_address', 'transfers', ['to_address'])
    op.create_index('ix_transfers_match', 'transfers', ['to_address', 'from_address', 'status'])

    # Event cursor checkpoints
    op.create_table(
        'event_cursors',
        sa.Column('name', sa.String(64), nullable=False),
        sa.Column('ledger', sa.Integer(), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False),
        sa.PrimaryKeyConstraint('name')
    )


def downgrade() -> None:
    op.drop_table('event_cursors')
    op.drop_table('transfers')
    op.drop_table('payments')
