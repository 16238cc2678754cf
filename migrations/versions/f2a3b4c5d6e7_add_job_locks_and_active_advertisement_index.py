"""add job locks and one active position per advertisement

Revision ID: f2a3b4c5d6e7
Revises: e1f2a3b4c5d6
Create Date: 2026-02-16 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'f2a3b4c5d6e7'
down_revision = 'e1f2a3b4c5d6'
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'job_locks',
        sa.Column('name', sa.String(length=80), nullable=False),
        sa.Column('holder', sa.String(length=64), nullable=True),
        sa.Column('acquired_at', sa.DateTime(), nullable=True),
        sa.Column('locked_until', sa.DateTime(), nullable=True),
        sa.PrimaryKeyConstraint('name')
    )

    op.create_index(
        'uq_home_banner_active_advertisement',
        'home_banner_slots',
        ['advertisement_id'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )


def downgrade():
    op.drop_index('uq_home_banner_active_advertisement', table_name='home_banner_slots')
    op.drop_table('job_locks')
