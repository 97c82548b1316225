"""create users and tracked_projects tables

Revision ID: 4a1f0c2d9b3e
Revises: 
Create Date: 2026-09-28 10:12:41.208311

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '4a1f0c2d9b3e'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_table('users',
        sa.Column('id', sa.String(length=64), nullable=False),
        sa.Column('github_username', sa.String(length=255), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    op.create_table('tracked_projects',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('owner_user_id', sa.String(length=64), nullable=False),
        sa.Column('github_id', sa.BigInteger(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=False),
        sa.Column('url', sa.String(length=255), nullable=False),
        sa.Column('homepage', sa.String(length=255), nullable=False),
        sa.Column('language', sa.String(length=100), nullable=False),
        sa.Column('stars', sa.Integer(), nullable=False),
        sa.Column('forks', sa.Integer(), nullable=False),
        sa.Column('is_private', sa.Boolean(), nullable=False),
        sa.Column('topics', sa.JSON(), nullable=False),
        sa.Column('github_created_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('last_push_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('progress', sa.Integer(), nullable=False),
        sa.Column('notes', sa.Text(), nullable=False),
        sa.Column('tech_stack', sa.JSON(), nullable=False),
        sa.Column('starred', sa.Boolean(), nullable=False),
        sa.Column('active', sa.Boolean(), nullable=False),
        sa.Column('last_synced_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('owner_user_id', 'github_id', name='uq_tracked_projects_owner_github_id'),
        sa.CheckConstraint('progress >= 0 AND progress <= 100', name='ck_tracked_projects_progress')
    )
    op.create_index(op.f('ix_tracked_projects_owner_user_id'), 'tracked_projects', ['owner_user_id'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index(op.f('ix_tracked_projects_owner_user_id'), table_name='tracked_projects')
    op.drop_table('tracked_projects')
    op.drop_table('users')
