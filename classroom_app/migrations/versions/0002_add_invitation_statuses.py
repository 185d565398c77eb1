"""add invitation statuses

Revision ID: 0002_add_invitation_statuses
Revises: 0001_initial
Create Date: 2026-10-02 09:30:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = '0002_add_invitation_statuses'
down_revision = '0001_initial'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'invitation_statuses',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('invitation_id', sa.Integer(), sa.ForeignKey('assignment_invitations.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('status', sa.String(length=32), nullable=False, server_default='unaccepted'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('invitation_id', 'user_id', name='uq_invitation_statuses_invitation_user'),
    )
    op.create_index('ix_invitation_statuses_invitation_id', 'invitation_statuses', ['invitation_id'], unique=False)
    op.create_index('ix_invitation_statuses_user_id', 'invitation_statuses', ['user_id'], unique=False)


def downgrade():
    op.drop_index('ix_invitation_statuses_user_id', table_name='invitation_statuses')
    op.drop_index('ix_invitation_statuses_invitation_id', table_name='invitation_statuses')
    op.drop_table('invitation_statuses')
