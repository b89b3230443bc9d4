"""Create organizations, org_members and distribution_events.

Revision ID: 001
Revises:
Create Date: 2025-01-15
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '001'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('status', sa.String(length=50), nullable=False, server_default='active'),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_organizations_id', 'organizations', ['id'])
    op.create_index('ix_organizations_name', 'organizations', ['name'], unique=True)

    op.create_table(
        'org_members',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'user_id', name='uq_org_members_org_user'),
    )
    op.create_index('ix_org_members_id', 'org_members', ['id'])
    op.create_index('ix_org_members_org_id', 'org_members', ['org_id'])
    op.create_index('ix_org_members_user_id', 'org_members', ['user_id'])

    op.create_table(
        'distribution_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('org_id', sa.Integer(), nullable=False),
        sa.Column('actor_id', sa.String(length=255), nullable=False),
        sa.Column('kind', sa.String(length=16), nullable=False),
        sa.Column('counterparty_name', sa.String(length=255), nullable=True),
        sa.Column('counterparty_id_number', sa.String(length=255), nullable=True),
        sa.Column('counterparty_email', sa.String(length=255), nullable=True),
        sa.Column('recipient_address', sa.String(length=255), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('item_ids', sa.Text(), nullable=False),
        sa.Column('external_commit_id', sa.String(length=255), nullable=False),
        sa.Column('sequence', sa.BigInteger(), nullable=False),
        sa.Column('previous_event_hash', sa.String(length=64), nullable=True),
        sa.Column('event_hash', sa.String(length=64), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['org_id'], ['organizations.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('org_id', 'sequence', name='uq_distribution_events_org_sequence'),
        sa.CheckConstraint('quantity > 0', name='ck_distribution_events_quantity_positive'),
    )
    op.create_index('ix_distribution_events_id', 'distribution_events', ['id'])
    op.create_index('ix_distribution_events_org_id', 'distribution_events', ['org_id'])
    op.create_index('ix_distribution_events_actor_id', 'distribution_events', ['actor_id'])
    op.create_index('ix_distribution_events_kind', 'distribution_events', ['kind'])
    op.create_index('ix_distribution_events_external_commit_id', 'distribution_events', ['external_commit_id'])
    op.create_index('ix_distribution_events_event_hash', 'distribution_events', ['event_hash'], unique=True)
    op.create_index('ix_distribution_events_created_at', 'distribution_events', ['created_at'])
    # Range queries always filter by org first
    op.create_index('ix_distribution_events_org_created', 'distribution_events', ['org_id', 'created_at'])


def downgrade() -> None:
    op.drop_index('ix_distribution_events_org_created', table_name='distribution_events')
    op.drop_index('ix_distribution_events_created_at', table_name='distribution_events')
    op.drop_index('ix_distribution_events_event_hash', table_name='distribution_events')
    op.drop_index('ix_distribution_events_external_commit_id', table_name='distribution_events')
    op.drop_index('ix_distribution_events_kind', table_name='distribution_events')
    op.drop_index('ix_distribution_events_actor_id', table_name='distribution_events')
    op.drop_index('ix_distribution_events_org_id', table_name='distribution_events')
    op.drop_index('ix_distribution_events_id', table_name='distribution_events')
    op.drop_table('distribution_events')
    op.drop_index('ix_org_members_user_id', table_name='org_members')
    op.drop_index('ix_org_members_org_id', table_name='org_members')
    op.drop_index('ix_org_members_id', table_name='org_members')
    op.drop_table('org_members')
    op.drop_index('ix_organizations_name', table_name='organizations')
    op.drop_index('ix_organizations_id', table_name='organizations')
    op.drop_table('organizations')
