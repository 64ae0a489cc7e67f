"""Initial contract versioning schema.

Revision ID: 001
Revises: 
Create Date: 2026-10-18
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
        'users',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('wallet_address', sa.String(length=128), nullable=True),
        sa.Column('role_title', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_users_email', 'users', ['email'], unique=True)

    op.create_table(
        'contracts',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('title', sa.String(length=500), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('status', sa.String(length=50), nullable=False),
        sa.Column('current_version', sa.String(length=36), nullable=True),
        sa.Column('onchain_contract_id', sa.String(length=255), nullable=True),
        sa.Column('created_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_contracts_status', 'contracts', ['status'])
    op.create_index('ix_contracts_created_by', 'contracts', ['created_by'])

    op.create_table(
        'contract_members',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('contract_id', sa.String(length=36), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('role_in_contract', sa.String(length=100), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('joined_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('contract_id', 'user_id', name='uq_contract_member'),
    )
    op.create_index('ix_contract_members_contract_id', 'contract_members', ['contract_id'])
    op.create_index('ix_contract_members_user_id', 'contract_members', ['user_id'])

    op.create_table(
        'contract_versions',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('contract_id', sa.String(length=36), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('version_number', sa.Integer(), nullable=False),
        sa.Column('parent_version_id', sa.String(length=36), sa.ForeignKey('contract_versions.id'), nullable=True),
        sa.Column('author_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('content_ref', sa.String(length=255), nullable=False),
        sa.Column('content_store', sa.String(length=20), nullable=False),
        sa.Column('diff_summary', sa.String(length=255), nullable=True),
        sa.Column('commit_message', sa.Text(), nullable=False),
        sa.Column('merged', sa.Boolean(), nullable=False),
        sa.Column('approval_status', sa.String(length=20), nullable=False),
        sa.Column('approval_score', sa.Integer(), nullable=False),
        sa.Column('content_hash', sa.String(length=64), nullable=True),
        sa.Column('onchain_tx_hash', sa.String(length=255), nullable=True),
        sa.Column('anchor_error', sa.Text(), nullable=True),
        sa.Column('anchored_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('merged_at', sa.DateTime(), nullable=True),
        sa.UniqueConstraint('contract_id', 'version_number', name='uq_contract_version_number'),
    )
    op.create_index('ix_contract_versions_contract_id', 'contract_versions', ['contract_id'])
    op.create_index('ix_contract_versions_author_id', 'contract_versions', ['author_id'])
    op.create_index('ix_contract_versions_approval_status', 'contract_versions', ['approval_status'])

    op.create_table(
        'contract_approvals',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('version_id', sa.String(length=36), sa.ForeignKey('contract_versions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('vote', sa.String(length=10), nullable=False),
        sa.Column('comment', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('version_id', 'user_id', name='uq_approval_version_user'),
    )
    op.create_index('ix_contract_approvals_version_id', 'contract_approvals', ['version_id'])
    op.create_index('ix_contract_approvals_user_id', 'contract_approvals', ['user_id'])

    op.create_table(
        'contract_diffs',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('version_from_id', sa.String(length=36), sa.ForeignKey('contract_versions.id'), nullable=False),
        sa.Column('version_to_id', sa.String(length=36), sa.ForeignKey('contract_versions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('diff_json', sa.JSON(), nullable=False),
        sa.Column('summary', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.UniqueConstraint('version_from_id', 'version_to_id', name='uq_diff_pair'),
    )
    op.create_index('ix_contract_diffs_version_from_id', 'contract_diffs', ['version_from_id'])
    op.create_index('ix_contract_diffs_version_to_id', 'contract_diffs', ['version_to_id'])

    op.create_table(
        'contract_comments',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('version_id', sa.String(length=36), sa.ForeignKey('contract_versions.id', ondelete='CASCADE'), nullable=False),
        sa.Column('user_id', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('comment', sa.Text(), nullable=False),
        sa.Column('parent_comment_id', sa.String(length=36), sa.ForeignKey('contract_comments.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_contract_comments_version_id', 'contract_comments', ['version_id'])

    op.create_table(
        'content_blobs',
        sa.Column('reference', sa.String(length=80), primary_key=True),
        sa.Column('data', sa.LargeBinary(), nullable=False),
        sa.Column('size', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )

    op.create_table(
        'ledger_events',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('event_hash', sa.String(length=64), nullable=False),
        sa.Column('previous_event_hash', sa.String(length=64), nullable=True),
        sa.Column('stream', sa.String(length=100), nullable=False),
        sa.Column('event_type', sa.String(length=100), nullable=False),
        sa.Column('payload_json', sa.JSON(), nullable=False),
        sa.Column('event_timestamp', sa.String(length=40), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_ledger_events_id', 'ledger_events', ['id'])
    op.create_index('ix_ledger_events_event_hash', 'ledger_events', ['event_hash'], unique=True)
    op.create_index('ix_ledger_events_previous_event_hash', 'ledger_events', ['previous_event_hash'])
    op.create_index('ix_ledger_events_stream', 'ledger_events', ['stream'])
    op.create_index('ix_ledger_events_event_type', 'ledger_events', ['event_type'])
    op.create_index('ix_ledger_events_created_at', 'ledger_events', ['created_at'])


def downgrade() -> None:
    op.drop_table('ledger_events')
    op.drop_table('content_blobs')
    op.drop_table('contract_comments')
    op.drop_table('contract_diffs')
    op.drop_table('contract_approvals')
    op.drop_table('contract_versions')
    op.drop_table('contract_members')
    op.drop_table('contracts')
    op.drop_table('users')
