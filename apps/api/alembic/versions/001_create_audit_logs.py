"""Create audit_logs ledger and audit_sequence counter.

Revision ID: 001
Revises: 
Create Date: 2026-10-19
"""
from datetime import datetime

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'audit_logs',
        sa.Column('sequence_number', sa.BigInteger(), autoincrement=False, nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('actor_id', sa.String(length=255), nullable=True),
        sa.Column('action', sa.String(length=100), nullable=False),
        sa.Column('entity_type', sa.String(length=100), nullable=False),
        sa.Column('entity_id', sa.String(length=255), nullable=False),
        sa.Column('payload', sa.JSON(), nullable=True),
        sa.Column('previous_hash', sa.String(length=64), nullable=False),
        sa.Column('current_hash', sa.String(length=64), nullable=False),
        sa.PrimaryKeyConstraint('sequence_number'),
        sa.UniqueConstraint('current_hash', name='uq_audit_logs_current_hash'),
    )
    # Recent-window lookups resolve created_at -> min(sequence_number)
    op.create_index('ix_audit_logs_created_at', 'audit_logs', ['created_at'])
    op.create_index('ix_audit_logs_actor_id', 'audit_logs', ['actor_id'])
    op.create_index('ix_audit_logs_action', 'audit_logs', ['action'])
    op.create_index('ix_audit_logs_entity_type', 'audit_logs', ['entity_type'])

    op.create_table(
        'audit_sequence',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('last_sequence', sa.BigInteger(), nullable=False),
        sa.Column('last_hash', sa.String(length=64), nullable=True),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    # Appenders lock this row; it must exist before the first append
    op.bulk_insert(
        sa.table(
            'audit_sequence',
            sa.column('id', sa.Integer()),
            sa.column('last_sequence', sa.BigInteger()),
            sa.column('last_hash', sa.String()),
            sa.column('updated_at', sa.DateTime()),
        ),
        [{'id': 1, 'last_sequence': 0, 'last_hash': None, 'updated_at': datetime.utcnow()}],
    )


def downgrade() -> None:
    op.drop_table('audit_sequence')
    op.drop_index('ix_audit_logs_entity_type', table_name='audit_logs')
    op.drop_index('ix_audit_logs_action', table_name='audit_logs')
    op.drop_index('ix_audit_logs_actor_id', table_name='audit_logs')
    op.drop_index('ix_audit_logs_created_at', table_name='audit_logs')
    op.drop_table('audit_logs')
