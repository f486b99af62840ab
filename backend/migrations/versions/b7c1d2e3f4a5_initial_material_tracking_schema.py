"""initial material tracking schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-17 00:00:00.000000

Creates the four tables of the tracker:
- users: directory of people who request and approve
- items: tracked tools/materials with lifecycle status and version counter
- pending_requests: open borrow/return requests, one per (item, user, type)
- histories: append-only audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('username', sa.String(length=64), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.CheckConstraint("role IN ('admin', 'manager', 'employee')", name='ck_users_valid_role'),
        sa.CheckConstraint("status IN ('active', 'deactive')", name='ck_users_valid_status'),
        sa.PrimaryKeyConstraint('id', name='pk_users'),
        sa.UniqueConstraint('username', name='uq_users_username'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_users_username', 'users', ['username'])

    # ============================================================================
    # items: version_id backs the compare-and-swap on status transitions
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('material', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('serial_number', sa.String(length=128), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False),
        sa.Column('last_used_by', sa.Integer(), nullable=True),
        sa.Column('changed_by', sa.Integer(), nullable=True),
        sa.Column('archived_reason', sa.Text(), nullable=True),
        sa.Column('archived_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "status IN ('available', 'used', 'pending_borrow', 'pending_return', 'archived')",
            name='ck_items_valid_status',
        ),
        sa.ForeignKeyConstraint(['last_used_by'], ['users.id'], name='fk_items_last_used_by_users'),
        sa.ForeignKeyConstraint(['changed_by'], ['users.id'], name='fk_items_changed_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_items'),
        sa.UniqueConstraint('serial_number', name='uq_items_serial_number'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_status', 'items', ['status'])
    op.create_index('ix_items_last_used_by', 'items', ['last_used_by'])

    op.create_table(
        'pending_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('type', sa.String(length=16), nullable=False),
        sa.Column('requested_by', sa.Integer(), nullable=False),
        sa.Column('requested_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint("type IN ('use', 'return')", name='ck_pending_requests_valid_type'),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name='fk_pending_requests_item_id_items'),
        sa.ForeignKeyConstraint(['requested_by'], ['users.id'], name='fk_pending_requests_requested_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_pending_requests'),
        sa.UniqueConstraint('item_id', 'requested_by', 'type', name='uq_pending_requests_item_user_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_pending_requests_item_id', 'pending_requests', ['item_id'])
    op.create_index('ix_pending_requests_requested_by', 'pending_requests', ['requested_by'])

    # ============================================================================
    # histories: append-only; request_id deliberately has no FK
    # ============================================================================
    op.create_table(
        'histories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=False),
        sa.Column('action', sa.String(length=32), nullable=False),
        sa.Column('performed_by', sa.Integer(), nullable=False),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('details', sa.Text(), nullable=True),
        sa.Column('previous_status', sa.String(length=16), nullable=True),
        sa.Column('new_status', sa.String(length=16), nullable=True),
        sa.Column('request_id', sa.Integer(), nullable=True),
        sa.CheckConstraint(
            "action IN ('created', 'edited', 'borrowed', 'returned', 'archived', "
            "'rejected', 'requested_borrow', 'requested_return')",
            name='ck_histories_valid_action',
        ),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], name='fk_histories_item_id_items'),
        sa.ForeignKeyConstraint(['performed_by'], ['users.id'], name='fk_histories_performed_by_users'),
        sa.PrimaryKeyConstraint('id', name='pk_histories'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_histories_item_id', 'histories', ['item_id'])
    op.create_index('ix_histories_performed_by', 'histories', ['performed_by'])
    op.create_index('ix_histories_request_id', 'histories', ['request_id'])
    op.create_index('ix_histories_item_timestamp', 'histories', ['item_id', 'timestamp'])


def downgrade():
    op.drop_table('histories')
    op.drop_table('pending_requests')
    op.drop_table('items')
    op.drop_table('users')
