"""add_tracked_project_query_indexes

Revision ID: 7c2e5b81d4a0
Revises: 4a1f0c2d9b3e
Create Date: 2026-10-02 16:40:03.551920

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '7c2e5b81d4a0'
down_revision: Union[str, None] = '4a1f0c2d9b3e'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Upgrade schema."""
    op.create_index('ix_tracked_projects_owner_status', 'tracked_projects', ['owner_user_id', 'status'], unique=False)
    op.create_index('ix_tracked_projects_owner_starred', 'tracked_projects', ['owner_user_id', 'starred'], unique=False)
    op.create_index('ix_tracked_projects_owner_active', 'tracked_projects', ['owner_user_id', 'active'], unique=False)


def downgrade() -> None:
    """Downgrade schema."""
    op.drop_index('ix_tracked_projects_owner_active', table_name='tracked_projects')
    op.drop_index('ix_tracked_projects_owner_starred', table_name='tracked_projects')
    op.drop_index('ix_tracked_projects_owner_status', table_name='tracked_projects')
