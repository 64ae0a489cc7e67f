"""Contract invitations.

Revision ID: 002
Revises: 001
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = '002'
down_revision = '001'
branch_labels = None
depends_on = None


def upgrade() -> None:
    op.create_table(
        'contract_invitations',
        sa.Column('id', sa.String(length=36), primary_key=True),
        sa.Column('contract_id', sa.String(length=36), sa.ForeignKey('contracts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('wallet_address', sa.String(length=128), nullable=True),
        sa.Column('role_in_contract', sa.String(length=100), nullable=False),
        sa.Column('weight', sa.Float(), nullable=False),
        sa.Column('invitation_token', sa.String(length=64), nullable=False),
        sa.Column('invited_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('expires_at', sa.DateTime(), nullable=False),
        sa.Column('accepted_by', sa.String(length=36), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('accepted_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
    )
    op.create_index('ix_contract_invitations_contract_id', 'contract_invitations', ['contract_id'])
    op.create_index('ix_contract_invitations_email', 'contract_invitations', ['email'])
    op.create_index('ix_contract_invitations_invitation_token', 'contract_invitations', ['invitation_token'], unique=True)
    op.create_index('ix_contract_invitations_status', 'contract_invitations', ['status'])


def downgrade() -> None:
    op.drop_table('contract_invitations')
