"""add feature flags

Revision ID: 0003_add_feature_flags
Revises: 0002_add_invitation_statuses
Create Date: 2026-10-06 14:10:00.000000
"""
from alembic import op
import sqlalchemy as sa

revision = '0003_add_feature_flags'
down_revision = '0002_add_invitation_statuses'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'feature_flags',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('name', sa.String(length=64), nullable=False),
        sa.Column('enabled', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('name'),
    )
    op.create_index('ix_feature_flags_name', 'feature_flags', ['name'], unique=False)


def downgrade():
    op.drop_index('ix_feature_flags_name', table_name='feature_flags')
    op.drop_table('feature_flags')
