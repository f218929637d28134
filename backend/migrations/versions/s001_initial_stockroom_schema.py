"""initial stockroom schema

Revision ID: s001_initial
Revises:
Create Date: 2026-10-19 00:00:00.000000

Creates the complete schema from scratch:
- categories: self-referencing classification tree
- items: stored quantity counters with optimistic-lock version_id
- outbound_records / inbound_records: stock ledgers
- approval_requests: deferred inbound/outbound intents
- operation_logs: best-effort audit trail
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = 's001_initial'
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    # ============================================================================
    # categories: parent_id fixed at creation, level = parent.level + 1
    # ============================================================================
    op.create_table(
        'categories',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=128), nullable=False),
        sa.Column('parent_id', sa.Integer(), nullable=True),
        sa.Column('level', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('sort_order', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_stackable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['parent_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_categories_parent_id', 'categories', ['parent_id'])
    op.create_index('ix_categories_level_sort', 'categories', ['level', 'sort_order', 'id'])

    # ============================================================================
    # items
    # ============================================================================
    op.create_table(
        'items',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('unique_code', sa.String(length=128), nullable=True),
        sa.Column('category_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('model', sa.String(length=128), nullable=True),
        sa.Column('specification', sa.String(length=255), nullable=True),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('is_stackable', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('current_quantity', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_in', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('total_out', sa.Integer(), nullable=False, server_default='0'),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='out_of_stock'),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['category_id'], ['categories.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('unique_code', name='uq_items_unique_code'),
        sa.CheckConstraint('current_quantity >= 0', name='ck_items_quantity_non_negative'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_items_category_id', 'items', ['category_id'])
    op.create_index('ix_items_status', 'items', ['status'])
    op.create_index('ix_items_created_at', 'items', ['created_at'])
    op.create_index('ix_items_category_status', 'items', ['category_id', 'status'])

    # ============================================================================
    # outbound_records (before inbound_records, which references it)
    # ============================================================================
    op.create_table(
        'outbound_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('unique_code_snapshot', sa.String(length=128), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('outbound_type', sa.String(length=16), nullable=False),
        sa.Column('borrower_name', sa.String(length=128), nullable=True),
        sa.Column('borrower_phone', sa.String(length=64), nullable=True),
        sa.Column('borrower_email', sa.String(length=255), nullable=True),
        sa.Column('expected_return_date', sa.Date(), nullable=True),
        sa.Column('is_returned', sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column('actual_return_date', sa.Date(), nullable=True),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_outbound_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_outbound_records_item_id', 'outbound_records', ['item_id'])
    op.create_index('ix_outbound_records_outbound_type', 'outbound_records', ['outbound_type'])
    op.create_index('ix_outbound_records_expected_return_date', 'outbound_records', ['expected_return_date'])
    op.create_index('ix_outbound_records_operator_id', 'outbound_records', ['operator_id'])
    op.create_index('ix_outbound_records_created_at', 'outbound_records', ['created_at'])
    op.create_index('ix_outbound_type_returned', 'outbound_records', ['outbound_type', 'is_returned'])
    op.create_index('ix_outbound_operator_type', 'outbound_records', ['operator_id', 'outbound_type'])

    # ============================================================================
    # inbound_records
    # ============================================================================
    op.create_table(
        'inbound_records',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('item_id', sa.Integer(), nullable=True),
        sa.Column('unique_code_snapshot', sa.String(length=128), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('inbound_type', sa.String(length=16), nullable=False),
        sa.Column('related_outbound_id', sa.Integer(), nullable=True),
        sa.Column('operator_id', sa.Integer(), nullable=False),
        sa.Column('remarks', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.ForeignKeyConstraint(['item_id'], ['items.id'], ondelete='SET NULL'),
        sa.ForeignKeyConstraint(['related_outbound_id'], ['outbound_records.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.CheckConstraint('quantity > 0', name='ck_inbound_quantity_positive'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_inbound_records_item_id', 'inbound_records', ['item_id'])
    op.create_index('ix_inbound_records_inbound_type', 'inbound_records', ['inbound_type'])
    op.create_index('ix_inbound_records_related_outbound_id', 'inbound_records', ['related_outbound_id'])
    op.create_index('ix_inbound_records_operator_id', 'inbound_records', ['operator_id'])
    op.create_index('ix_inbound_records_created_at', 'inbound_records', ['created_at'])
    op.create_index('ix_inbound_item_created', 'inbound_records', ['item_id', 'created_at'])

    # ============================================================================
    # approval_requests
    # ============================================================================
    op.create_table(
        'approval_requests',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('request_type', sa.String(length=16), nullable=False),
        sa.Column('requester_id', sa.Integer(), nullable=False),
        sa.Column('request_data', sa.JSON(), nullable=False),
        sa.Column('status', sa.String(length=16), nullable=False, server_default='pending'),
        sa.Column('reviewer_id', sa.Integer(), nullable=True),
        sa.Column('review_comment', sa.Text(), nullable=True),
        sa.Column('version_id', sa.Integer(), nullable=False, server_default='1'),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('reviewed_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_approval_requests_request_type', 'approval_requests', ['request_type'])
    op.create_index('ix_approval_requests_requester_id', 'approval_requests', ['requester_id'])
    op.create_index('ix_approval_requests_status', 'approval_requests', ['status'])
    op.create_index('ix_approval_status_created', 'approval_requests', ['status', 'created_at'])

    # ============================================================================
    # operation_logs
    # ============================================================================
    op.create_table(
        'operation_logs',
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('operation_type', sa.String(length=32), nullable=False),
        sa.Column('operator_id', sa.Integer(), nullable=True),
        sa.Column('target_type', sa.String(length=32), nullable=True),
        sa.Column('target_id', sa.Integer(), nullable=True),
        sa.Column('detail', sa.JSON(), nullable=True),
        sa.Column('ip_address', sa.String(length=64), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False,
                  server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.PrimaryKeyConstraint('id'),
        sqlite_autoincrement=True
    )
    op.create_index('ix_operation_logs_operation_type', 'operation_logs', ['operation_type'])
    op.create_index('ix_operation_logs_operator_id', 'operation_logs', ['operator_id'])
    op.create_index('ix_operation_logs_created_at', 'operation_logs', ['created_at'])
    op.create_index('ix_operation_logs_target', 'operation_logs', ['target_type', 'target_id'])


def downgrade():
    op.drop_table('operation_logs')
    op.drop_table('approval_requests')
    op.drop_table('inbound_records')
    op.drop_table('outbound_records')
    op.drop_table('items')
    op.drop_table('categories')
