"""profiles, preferences and role membership source

Revision ID: 0002
Revises: 0001
Create Date: 2026-10-19 14:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = '0002'
down_revision: Union[str, None] = '0001'
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Existing memberships were all granted by hand or at provisioning
    op.add_column(
        'user_roles',
        sa.Column('source', sa.String(20), nullable=False, server_default='manual'),
    )

    op.create_table(
        'user_profiles',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('avatar_id', sa.String(50), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', name='uq_user_profiles_user'),
    )

    op.create_table(
        'user_preferences',
        sa.Column('id', sa.Integer(), primary_key=True, autoincrement=True),
        sa.Column('user_id', sa.Integer(), sa.ForeignKey('users.id', ondelete='CASCADE'), nullable=False),
        sa.Column('theme_id', sa.String(50), nullable=False, server_default='white'),
        sa.Column('table_row_size', sa.String(10), nullable=False, server_default='md'),
        sa.Column('created_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint('user_id', name='uq_user_preferences_user'),
    )


def downgrade() -> None:
    op.drop_table('user_preferences')
    op.drop_table('user_profiles')
    op.drop_column('user_roles', 'source')
