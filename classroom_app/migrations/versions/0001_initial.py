"""initial schema

Revision ID: 0001_initial
Revises: 
Create Date: 2026-09-28 00:00:00.000000
"""

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '0001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('uid', sa.BigInteger(), nullable=False),
        sa.Column('login', sa.String(length=255), nullable=False),
        sa.Column('token', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('uid'),
    )
    op.create_index('ix_users_uid', 'users', ['uid'], unique=False)
    op.create_index('ix_users_login', 'users', ['login'], unique=False)

    op.create_table(
        'rosters',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('identifier_name', sa.String(length=255), nullable=False, server_default='email'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        'roster_entries',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('roster_id', sa.Integer(), sa.ForeignKey('rosters.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=True),
        sa.Column('identifier', sa.String(length=255), nullable=False),
    )
    op.create_index('ix_roster_entries_roster_id', 'roster_entries', ['roster_id'], unique=False)
    op.create_index('ix_roster_entries_user_id', 'roster_entries', ['user_id'], unique=False)

    op.create_table(
        'organizations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('github_id', sa.BigInteger(), nullable=False),
        sa.Column('login', sa.String(length=255), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('roster_id', sa.Integer(), sa.ForeignKey('rosters.id'), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('github_id'),
    )
    op.create_index('ix_organizations_github_id', 'organizations', ['github_id'], unique=False)

    op.create_table(
        'assignments',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('organization_id', sa.Integer(), sa.ForeignKey('organizations.id'), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('starter_code_repo_id', sa.BigInteger(), nullable=False),
        sa.Column('group_assignment', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('private', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
    )
    op.create_index('ix_assignments_organization_id', 'assignments', ['organization_id'], unique=False)

    op.create_table(
        'assignment_invitations',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('key', sa.String(length=64), nullable=False),
        sa.Column('assignment_id', sa.Integer(), sa.ForeignKey('assignments.id'), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('key'),
    )
    op.create_index('ix_assignment_invitations_key', 'assignment_invitations', ['key'], unique=False)
    op.create_index('ix_assignment_invitations_assignment_id', 'assignment_invitations', ['assignment_id'], unique=False)

    op.create_table(
        'assignment_repos',
        sa.Column('id', sa.Integer(), primary_key=True),
        sa.Column('assignment_id', sa.Integer(), sa.ForeignKey('assignments.id'), nullable=False),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id'), nullable=False),
        sa.Column('github_repo_id', sa.BigInteger(), nullable=False),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('assignment_id', 'user_id', name='uq_assignment_repos_assignment_user'),
    )
    op.create_index('ix_assignment_repos_assignment_id', 'assignment_repos', ['assignment_id'], unique=False)
    op.create_index('ix_assignment_repos_user_id', 'assignment_repos', ['user_id'], unique=False)
    op.create_index('ix_assignment_repos_github_repo_id', 'assignment_repos', ['github_repo_id'], unique=False)


def downgrade():
    op.drop_table('assignment_repos')
    op.drop_table('assignment_invitations')
    op.drop_table('assignments')
    op.drop_table('organizations')
    op.drop_table('roster_entries')
    op.drop_table('rosters')
    op.drop_table('users')
