"""create_inventory_ledger_tables

Revision ID: a1c4e2b7d9f0
Revises:
Create Date: 2026-10-19 10:12:44.318205

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c4e2b7d9f0'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def audit_columns():
    return [
        sa.Column('id', sa.Integer(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.Column('created_by', sa.Integer(), nullable=True),
        sa.Column('updated_by', sa.Integer(), nullable=True),
    ]


movement_type = sa.Enum('PURCHASE', 'SALE', 'RETURN', 'ADJUSTMENT', 'TRANSFER_OUT', 'TRANSFER_IN', name='stockmovementtype')
reference_kind = sa.Enum('PURCHASE', 'ADJUSTMENT', 'TRANSFER', 'RETURN', 'SALE', name='referencekind')
adjustment_reason = sa.Enum('DAMAGED', 'EXPIRED', 'THEFT', 'COUNT_ERROR', 'LOST', 'FOUND', 'OTHER', name='adjustmentreason')
adjustment_type = sa.Enum('INCREASE', 'DECREASE', name='adjustmenttype')
transfer_status = sa.Enum('PENDING', 'APPROVED', 'IN_TRANSIT', 'COMPLETED', 'CANCELLED', name='transferstatus')
purchase_status = sa.Enum('DRAFT', 'ORDERED', 'PARTIALLY_RECEIVED', 'RECEIVED', 'CANCELLED', name='purchasestatus')


def upgrade():
    op.create_table(
        'businesses',
        *audit_columns(),
        sa.Column('name', sa.String(length=200), nullable=False),
        sa.Column('base_currency', sa.String(length=3), nullable=False),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_businesses_id'), 'businesses', ['id'], unique=False)

    op.create_table(
        'branches',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=100), nullable=False),
        sa.Column('code', sa.String(length=20), nullable=True),
        sa.Column('address', sa.Text(), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_branches_id'), 'branches', ['id'], unique=False)
    op.create_index(op.f('ix_branches_business_id'), 'branches', ['business_id'], unique=False)

    op.create_table(
        'products',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('sku', sa.String(length=100), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('track_inventory', sa.Boolean(), nullable=False),
        sa.Column('allow_negative_stock', sa.Boolean(), nullable=False),
        sa.Column('minimum_stock_level', sa.Numeric(14, 3), nullable=True),
        sa.Column('is_active', sa.Boolean(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'sku', name='uq_products_business_sku'),
    )
    op.create_index(op.f('ix_products_id'), 'products', ['id'], unique=False)
    op.create_index(op.f('ix_products_business_id'), 'products', ['business_id'], unique=False)

    op.create_table(
        'stocks',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('reserved_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=False),
        sa.Column('last_restocked_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'branch_id', 'product_id', name='uq_stocks_business_branch_product'),
    )
    op.create_index(op.f('ix_stocks_id'), 'stocks', ['id'], unique=False)

    op.create_table(
        'purchases',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('supplier_id', sa.Integer(), nullable=False),
        sa.Column('purchase_number', sa.String(length=50), nullable=False),
        sa.Column('purchase_date', sa.Date(), nullable=False),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('subtotal', sa.Numeric(14, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('exchange_rate', sa.Numeric(18, 8), nullable=False),
        sa.Column('tax_inclusive', sa.Boolean(), nullable=False),
        sa.Column('status', purchase_status, nullable=False),
        sa.Column('invoice_number', sa.String(length=100), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('received_by', sa.Integer(), nullable=True),
        sa.Column('received_date', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'purchase_number', name='uq_purchases_business_number'),
    )
    op.create_index(op.f('ix_purchases_id'), 'purchases', ['id'], unique=False)
    op.create_index(op.f('ix_purchases_business_id'), 'purchases', ['business_id'], unique=False)

    op.create_table(
        'purchase_items',
        *audit_columns(),
        sa.Column('purchase_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_ordered', sa.Numeric(14, 3), nullable=False),
        sa.Column('quantity_received', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=False),
        sa.Column('tax_rate', sa.Numeric(5, 2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(14, 2), nullable=False),
        sa.ForeignKeyConstraint(['purchase_id'], ['purchases.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_purchase_items_id'), 'purchase_items', ['id'], unique=False)
    op.create_index(op.f('ix_purchase_items_purchase_id'), 'purchase_items', ['purchase_id'], unique=False)

    op.create_table(
        'stock_batches',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('purchase_item_id', sa.Integer(), nullable=True),
        sa.Column('batch_number', sa.String(length=50), nullable=False),
        sa.Column('purchase_reference', sa.String(length=50), nullable=True),
        sa.Column('quantity_received', sa.Numeric(14, 3), nullable=False),
        sa.Column('quantity_remaining', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=False),
        sa.Column('received_date', sa.Date(), nullable=False),
        sa.Column('expiry_date', sa.Date(), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['purchase_item_id'], ['purchase_items.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_batches_id'), 'stock_batches', ['id'], unique=False)
    op.create_index(op.f('ix_stock_batches_batch_number'), 'stock_batches', ['batch_number'], unique=False)
    op.create_index('ix_stock_batches_fifo', 'stock_batches', ['stock_id', 'received_date', 'id'], unique=False)

    op.create_table(
        'stock_movements',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('stock_id', sa.Integer(), nullable=False),
        sa.Column('user_id', sa.Integer(), nullable=True),
        sa.Column('movement_type', movement_type, nullable=False),
        sa.Column('quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('previous_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('new_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=False),
        sa.Column('reference_type', reference_kind, nullable=False),
        sa.Column('reference_id', sa.Integer(), nullable=False),
        sa.Column('reason', adjustment_reason, nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('movement_date', sa.DateTime(timezone=True), server_default=sa.text('(CURRENT_TIMESTAMP)'), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.ForeignKeyConstraint(['stock_id'], ['stocks.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_movements_id'), 'stock_movements', ['id'], unique=False)
    op.create_index(op.f('ix_stock_movements_stock_id'), 'stock_movements', ['stock_id'], unique=False)
    op.create_index('ix_stock_movements_reference', 'stock_movements', ['reference_type', 'reference_id'], unique=False)
    op.create_index('ix_stock_movements_ledger_key', 'stock_movements', ['business_id', 'branch_id', 'product_id'], unique=False)

    op.create_table(
        'stock_adjustments',
        *audit_columns(),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('branch_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('adjusted_by', sa.Integer(), nullable=False),
        sa.Column('adjustment_type', adjustment_type, nullable=False),
        sa.Column('quantity_adjusted', sa.Numeric(14, 3), nullable=False),
        sa.Column('before_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('after_quantity', sa.Numeric(14, 3), nullable=False),
        sa.Column('reason', adjustment_reason, nullable=False),
        sa.Column('cost_impact', sa.Numeric(14, 2), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('is_approved', sa.Boolean(), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_adjustments_id'), 'stock_adjustments', ['id'], unique=False)

    op.create_table(
        'stock_transfers',
        *audit_columns(),
        sa.Column('transfer_number', sa.String(length=50), nullable=False),
        sa.Column('business_id', sa.Integer(), nullable=False),
        sa.Column('from_branch_id', sa.Integer(), nullable=False),
        sa.Column('to_branch_id', sa.Integer(), nullable=False),
        sa.Column('status', transfer_status, nullable=False),
        sa.Column('transfer_date', sa.Date(), nullable=False),
        sa.Column('expected_delivery_date', sa.Date(), nullable=True),
        sa.Column('transfer_reason', sa.String(length=255), nullable=True),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('cancellation_reason', sa.Text(), nullable=True),
        sa.Column('initiated_by', sa.Integer(), nullable=False),
        sa.Column('approved_by', sa.Integer(), nullable=True),
        sa.Column('sent_by', sa.Integer(), nullable=True),
        sa.Column('received_by', sa.Integer(), nullable=True),
        sa.Column('approved_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        sa.ForeignKeyConstraint(['business_id'], ['businesses.id']),
        sa.ForeignKeyConstraint(['from_branch_id'], ['branches.id']),
        sa.ForeignKeyConstraint(['to_branch_id'], ['branches.id']),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('business_id', 'transfer_number', name='uq_stock_transfers_business_number'),
    )
    op.create_index(op.f('ix_stock_transfers_id'), 'stock_transfers', ['id'], unique=False)
    op.create_index(op.f('ix_stock_transfers_business_id'), 'stock_transfers', ['business_id'], unique=False)

    op.create_table(
        'stock_transfer_items',
        *audit_columns(),
        sa.Column('stock_transfer_id', sa.Integer(), nullable=False),
        sa.Column('product_id', sa.Integer(), nullable=False),
        sa.Column('quantity_requested', sa.Numeric(14, 3), nullable=False),
        sa.Column('quantity_sent', sa.Numeric(14, 3), nullable=False),
        sa.Column('quantity_received', sa.Numeric(14, 3), nullable=False),
        sa.Column('unit_cost', sa.Numeric(14, 4), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.ForeignKeyConstraint(['stock_transfer_id'], ['stock_transfers.id']),
        sa.ForeignKeyConstraint(['product_id'], ['products.id']),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(op.f('ix_stock_transfer_items_id'), 'stock_transfer_items', ['id'], unique=False)
    op.create_index(op.f('ix_stock_transfer_items_stock_transfer_id'), 'stock_transfer_items', ['stock_transfer_id'], unique=False)


def downgrade():
    op.drop_table('stock_transfer_items')
    op.drop_table('stock_transfers')
    op.drop_table('stock_adjustments')
    op.drop_table('stock_movements')
    op.drop_table('stock_batches')
    op.drop_table('purchase_items')
    op.drop_table('purchases')
    op.drop_table('stocks')
    op.drop_table('products')
    op.drop_table('branches')
    op.drop_table('businesses')

    bind = op.get_bind()
    for enum in (purchase_status, transfer_status, adjustment_type, adjustment_reason, reference_kind, movement_type):
        enum.drop(bind, checkfirst=True)
