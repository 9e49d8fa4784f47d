"""initial transfer schema

Revision ID: b7c1d2e3f4a5
Revises:
Create Date: 2026-10-19 00:00:00.000000

This migration creates the complete inter-branch transfer schema:
- branches / users / user_branches: directory and branch role assignments
- products / inventory: per (product, branch) stock ledger
- transfer_requests: pending/approved/rejected workflow rows with revision
- notifications: per-user and branch-wide rows, deduplicated per event
- security_events: append-only audit of denied transfer actions
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 'b7c1d2e3f4a5'
down_revision = None
branch_labels = None
depends_on = None


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
    ]


def upgrade():
    # ============================================================================
    # branches
    # ============================================================================
    op.create_table(
        'branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('code', sa.String(length=32), nullable=True),
        sa.Column('type', sa.String(length=8), nullable=False),
        sa.Column('address', sa.Text(), nullable=True),
        *_timestamps(),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('name', name='uq_branches_name'),
        sa.CheckConstraint("type IN ('main', 'sub')", name='ck_branches_type'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_branches_code', 'branches', ['code'])
    op.create_index('ix_branches_type', 'branches', ['type'])

    # ============================================================================
    # users
    # ============================================================================
    op.create_table(
        'users',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=120), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email', name='uq_users_email'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # user_branches: role per branch, main admin flag
    # ============================================================================
    op.create_table(
        'user_branches',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('role', sa.String(length=16), nullable=False),
        sa.Column('is_main_admin', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('is_active', sa.Boolean(), nullable=False, server_default=sa.true()),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('user_id', 'branch_id', name='uq_user_branches_user_branch'),
        sa.CheckConstraint("role IN ('admin', 'manager', 'staff', 'cashier')", name='ck_user_branches_role'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_user_branches_user_id', 'user_branches', ['user_id'])
    op.create_index('ix_user_branches_branch_id', 'user_branches', ['branch_id'])
    op.create_index('ix_user_branches_is_active', 'user_branches', ['is_active'])
    op.create_index('ix_user_branches_branch_role', 'user_branches', ['branch_id', 'role'])

    # ============================================================================
    # products
    # ============================================================================
    op.create_table(
        'products',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('sku', sa.String(length=64), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('sku', name='uq_products_sku'),
        sqlite_autoincrement=True
    )

    # ============================================================================
    # inventory: quantity on hand per (product, branch)
    # ============================================================================
    op.create_table(
        'inventory',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('min_stock', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('product_id', 'branch_id', name='uq_inventory_product_branch'),
        sa.CheckConstraint('quantity >= 0', name='ck_inventory_quantity_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inventory_product_id', 'inventory', ['product_id'])
    op.create_index('ix_inventory_branch_id', 'inventory', ['branch_id'])

    # ============================================================================
    # transfer_requests
    # ============================================================================
    op.create_table(
        'transfer_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('source_branch_id', sa.Integer(), nullable=False),
        sa.Column('target_branch_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('created_by_user_id', sa.Integer(), nullable=False),
        sa.Column('approved_by_user_id', sa.Integer(), nullable=True),
        sa.Column('revision', sa.Integer(), nullable=False, server_default='0'),
        *_timestamps(),
        sa.Column('decided_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['products.id'], ),
        sa.ForeignKeyConstraint(['source_branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['target_branch_id'], ['branches.id'], ),
        sa.ForeignKeyConstraint(['created_by_user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['approved_by_user_id'], ['users.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_transfer_requests_quantity_positive'),
        sa.CheckConstraint('source_branch_id <> target_branch_id', name='ck_transfer_requests_distinct_branches'),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name='ck_transfer_requests_status',
        ),
        sqlite_autoincrement=True
    )
    op.create_index('ix_transfer_requests_product_id', 'transfer_requests', ['product_id'])
    op.create_index('ix_transfer_requests_created_by_user_id', 'transfer_requests', ['created_by_user_id'])
    op.create_index('ix_transfer_requests_status_created', 'transfer_requests', ['status', 'created_at'])
    op.create_index('ix_transfer_requests_source_status', 'transfer_requests', ['source_branch_id', 'status'])
    op.create_index('ix_transfer_requests_target_status', 'transfer_requests', ['target_branch_id', 'status'])

    # ============================================================================
    # notifications: user_id NULL = branch-wide row
    # ============================================================================
    op.create_table(
        'notifications',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('type', sa.String(length=64), nullable=False),
        sa.Column('data', sa.JSON(), nullable=False),
        sa.Column('is_read', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('event_key', sa.String(length=128), nullable=False),
        sa.Column('recipient_key', sa.String(length=64), nullable=False),
        *_timestamps(),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('event_key', 'recipient_key', name='uq_notifications_event_recipient'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_notifications_user_id', 'notifications', ['user_id'])
    op.create_index('ix_notifications_type', 'notifications', ['type'])
    op.create_index('ix_notifications_event_key', 'notifications', ['event_key'])
    op.create_index('ix_notifications_user_read', 'notifications', ['user_id', 'is_read'])
    op.create_index('ix_notifications_branch_created', 'notifications', ['branch_id', 'created_at'])

    # ============================================================================
    # security_events: append-only audit
    # ============================================================================
    op.create_table(
        'security_events',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('branch_id', sa.Integer(), nullable=True),
        sa.Column('event_type', sa.String(length=64), nullable=False),
        sa.Column('resource', sa.String(length=128), nullable=True),
        sa.Column('action', sa.String(length=64), nullable=True),
        sa.Column('success', sa.Boolean(), nullable=False),
        sa.Column('reason', sa.Text(), nullable=True),
        sa.Column('occurred_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['user_id'], ['users.id'], ),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id'], ),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_security_events_user_id', 'security_events', ['user_id'])
    op.create_index('ix_security_events_branch_id', 'security_events', ['branch_id'])
    op.create_index('ix_security_events_event_type', 'security_events', ['event_type'])
    op.create_index('ix_security_events_success', 'security_events', ['success'])
    op.create_index('ix_security_events_occurred_at', 'security_events', ['occurred_at'])
    op.create_index('ix_security_events_user_type', 'security_events', ['user_id', 'event_type'])


def downgrade():
    """Drop all tables (destructive operation)."""
    op.drop_table('security_events')
    op.drop_table('notifications')
    op.drop_table('transfer_requests')
    op.drop_table('inventory')
    op.drop_table('products')
    op.drop_table('user_branches')
    op.drop_table('users')
    op.drop_table('branches')
