"""create slot allocation tables

Revision ID: e1f2a3b4c5d6
Revises:
Create Date: 2026-02-02 00:00:00.000000

"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'e1f2a3b4c5d6'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('full_name', sa.String(length=120), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_users_email'), ['email'], unique=True)

    op.create_table(
        'roles',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=50), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name')
    )

    op.create_table(
        'user_roles',
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('role_id', sa.Integer(), nullable=False),
        sa.ForeignKeyConstraint(['role_id'], ['roles.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('user_id', 'role_id')
    )

    op.create_table(
        'audit_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('action', sa.String(length=80), nullable=False),
        sa.Column('entity', sa.String(length=80), nullable=True),
        sa.Column('entity_id', sa.String(length=80), nullable=True),
        sa.Column('ip', sa.String(length=64), nullable=True),
        sa.Column('user_agent', sa.String(length=255), nullable=True),
        sa.Column('metadata_json', sa.Text(), nullable=True),
        sa.Column('timestamp', sa.DateTime(), nullable=False),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_audit_logs_timestamp'), ['timestamp'], unique=False)
        batch_op.create_index('ix_audit_logs_action_timestamp', ['action', 'timestamp'], unique=False)

    op.create_table(
        'advertisements',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('category', sa.String(length=80), nullable=False),
        sa.Column('slot_type', sa.String(length=20), nullable=False),
        sa.Column('selected_plan', sa.String(length=20), nullable=False),
        sa.Column('plan_hours', sa.Integer(), nullable=True),
        sa.Column('plan_days', sa.Integer(), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('published_at', sa.DateTime(), nullable=True),
        sa.Column('expires_at', sa.DateTime(), nullable=True),
        sa.Column('expiry_warned_at', sa.DateTime(), nullable=True),
        sa.Column('published_content_type', sa.String(length=80), nullable=True),
        sa.Column('published_content_id', sa.String(length=80), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.Column('updated_at', sa.DateTime(), nullable=False),
        sa.CheckConstraint(
            'expires_at IS NULL OR published_at IS NULL OR expires_at > published_at',
            name='ck_advertisement_expires_after_publish'
        ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('advertisements', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_advertisements_user_id'), ['user_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_advertisements_expires_at'), ['expires_at'], unique=False)
        batch_op.create_index('ix_advertisements_status_expires_at', ['status', 'expires_at'], unique=False)

    op.create_table(
        'home_banner_slots',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('position', sa.Integer(), nullable=False),
        sa.Column('advertisement_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False),
        sa.Column('published_at', sa.DateTime(), nullable=False),
        sa.Column('released_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['advertisement_id'], ['advertisements.id'], ),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('home_banner_slots', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_home_banner_slots_position'), ['position'], unique=False)
        batch_op.create_index(batch_op.f('ix_home_banner_slots_advertisement_id'), ['advertisement_id'], unique=False)
        batch_op.create_index(batch_op.f('ix_home_banner_slots_user_id'), ['user_id'], unique=False)
        batch_op.create_index('ix_home_banner_slots_active_published', ['is_active', 'published_at'], unique=False)
    # one active occupant per position; inactive history rows are not constrained
    op.create_index(
        'uq_home_banner_active_position',
        'home_banner_slots',
        ['position'],
        unique=True,
        sqlite_where=sa.text('is_active = 1'),
        postgresql_where=sa.text('is_active'),
    )

    op.create_table(
        'slot_notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('is_notified', sa.Boolean(), nullable=False),
        sa.Column('notified_at', sa.DateTime(), nullable=True),
        sa.Column('created_at', sa.DateTime(), nullable=False),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id')
    )
    with op.batch_alter_table('slot_notifications', schema=None) as batch_op:
        batch_op.create_index(batch_op.f('ix_slot_notifications_user_id'), ['user_id'], unique=False)
        batch_op.create_index('ix_slot_notifications_pending_fifo', ['is_notified', 'created_at'], unique=False)
    op.create_index(
        'uq_slot_notification_pending_user',
        'slot_notifications',
        ['user_id'],
        unique=True,
        sqlite_where=sa.text('is_notified = 0'),
        postgresql_where=sa.text('NOT is_notified'),
    )


def downgrade():
    op.drop_index('uq_slot_notification_pending_user', table_name='slot_notifications')
    with op.batch_alter_table('slot_notifications', schema=None) as batch_op:
        batch_op.drop_index('ix_slot_notifications_pending_fifo')
        batch_op.drop_index(batch_op.f('ix_slot_notifications_user_id'))
    op.drop_table('slot_notifications')

    op.drop_index('uq_home_banner_active_position', table_name='home_banner_slots')
    with op.batch_alter_table('home_banner_slots', schema=None) as batch_op:
        batch_op.drop_index('ix_home_banner_slots_active_published')
        batch_op.drop_index(batch_op.f('ix_home_banner_slots_user_id'))
        batch_op.drop_index(batch_op.f('ix_home_banner_slots_advertisement_id'))
        batch_op.drop_index(batch_op.f('ix_home_banner_slots_position'))
    op.drop_table('home_banner_slots')

    with op.batch_alter_table('advertisements', schema=None) as batch_op:
        batch_op.drop_index('ix_advertisements_status_expires_at')
        batch_op.drop_index(batch_op.f('ix_advertisements_expires_at'))
        batch_op.drop_index(batch_op.f('ix_advertisements_user_id'))
    op.drop_table('advertisements')

    with op.batch_alter_table('audit_logs', schema=None) as batch_op:
        batch_op.drop_index('ix_audit_logs_action_timestamp')
        batch_op.drop_index(batch_op.f('ix_audit_logs_timestamp'))
    op.drop_table('audit_logs')

    op.drop_table('user_roles')
    op.drop_table('roles')

    with op.batch_alter_table('users', schema=None) as batch_op:
        batch_op.drop_index(batch_op.f('ix_users_email'))
    op.drop_table('users')
