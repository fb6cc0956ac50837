"""Create procurement and stock ledger tables

Revision ID: 001_procurement_stock
Revises:
Create Date: 2026-10-18
"""
from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects.postgresql import UUID

# revision identifiers
revision = '001_procurement_stock'
down_revision = None
branch_labels = None
depends_on = None


def timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
    ]


def upgrade():
    """Create purchase-to-pay documents, stock ledger and document counters"""

    # ====================
    # DOCUMENT SEQUENCES
    # ====================
    op.create_table(
        'document_sequences',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('document_type', sa.String(10), nullable=False, comment='PO, GRN, INV, PAY'),
        sa.Column('year', sa.Integer, nullable=False),
        sa.Column('current_number', sa.Integer, server_default='0', nullable=False),
        sa.Column('padding_length', sa.Integer, server_default='3', nullable=False),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'document_type', 'year', name='uq_document_sequence_tenant_type_year'),
    )

    # ====================
    # PURCHASE ORDERS
    # ====================
    op.create_table(
        'purchase_orders',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('po_number', sa.String(30), nullable=False, comment='PO-YYYY-NNN'),
        sa.Column('po_date', sa.Date, server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('status', sa.String(50), server_default='draft', nullable=False),
        sa.Column('supplier_id', UUID(as_uuid=True), nullable=False),
        sa.Column('warehouse_id', UUID(as_uuid=True), nullable=False),
        sa.Column('expected_delivery_date', sa.Date, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'po_number', name='uq_po_tenant_number'),
    )
    op.create_index('ix_purchase_orders_tenant_id', 'purchase_orders', ['tenant_id'])
    op.create_index('ix_purchase_orders_supplier_id', 'purchase_orders', ['supplier_id'])
    op.create_index('ix_po_tenant_status', 'purchase_orders', ['tenant_id', 'status'])

    op.create_table(
        'purchase_order_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('purchase_order_id', UUID(as_uuid=True),
                  sa.ForeignKey('purchase_orders.id', ondelete='CASCADE'), nullable=False),
        sa.Column('line_number', sa.Integer, server_default='1', nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('variant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('ordered_quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.CheckConstraint('ordered_quantity > 0', name='ck_po_item_ordered_positive'),
    )
    op.create_index('ix_purchase_order_items_purchase_order_id', 'purchase_order_items', ['purchase_order_id'])

    # ====================
    # GOODS RECEIPTS
    # ====================
    op.create_table(
        'goods_receipts',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('grn_number', sa.String(30), nullable=False, comment='GRN-YYYY-NNN'),
        sa.Column('purchase_order_id', UUID(as_uuid=True),
                  sa.ForeignKey('purchase_orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('warehouse_id', UUID(as_uuid=True), nullable=False),
        sa.Column('status', sa.String(50), server_default='pending', nullable=False),
        sa.Column('received_date', sa.Date, server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('total_received_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('received_by', sa.String(100), nullable=True),
        sa.Column('completed_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'grn_number', name='uq_grn_tenant_number'),
    )
    op.create_index('ix_goods_receipts_tenant_id', 'goods_receipts', ['tenant_id'])
    op.create_index('ix_grn_po_status', 'goods_receipts', ['purchase_order_id', 'status'])

    op.create_table(
        'goods_receipt_items',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('goods_receipt_id', UUID(as_uuid=True),
                  sa.ForeignKey('goods_receipts.id', ondelete='CASCADE'), nullable=False),
        sa.Column('purchase_order_item_id', UUID(as_uuid=True),
                  sa.ForeignKey('purchase_order_items.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('quantity_received', sa.Integer, nullable=False),
        sa.Column('quantity_accepted', sa.Integer, server_default='0', nullable=False),
        sa.Column('quantity_rejected', sa.Integer, server_default='0', nullable=False),
        sa.Column('unit_price', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('rejection_reason', sa.String(255), nullable=True),
        sa.CheckConstraint('quantity_received >= 0', name='ck_grn_item_received_non_negative'),
        sa.CheckConstraint('quantity_accepted >= 0', name='ck_grn_item_accepted_non_negative'),
    )
    op.create_index('ix_goods_receipt_items_goods_receipt_id', 'goods_receipt_items', ['goods_receipt_id'])
    op.create_index('ix_goods_receipt_items_purchase_order_item_id', 'goods_receipt_items', ['purchase_order_item_id'])

    # ====================
    # PURCHASE INVOICES
    # ====================
    op.create_table(
        'purchase_invoices',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('invoice_number', sa.String(30), nullable=False, comment='INV-YYYY-NNN'),
        sa.Column('supplier_invoice_number', sa.String(50), nullable=True),
        sa.Column('goods_receipt_id', UUID(as_uuid=True),
                  sa.ForeignKey('goods_receipts.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('purchase_order_id', UUID(as_uuid=True),
                  sa.ForeignKey('purchase_orders.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('supplier_id', UUID(as_uuid=True), nullable=False),
        sa.Column('subtotal', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('tax_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('discount_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('paid_amount', sa.Numeric(14, 2), server_default='0', nullable=False),
        sa.Column('status', sa.String(50), server_default='pending', nullable=False),
        sa.Column('invoice_date', sa.Date, server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('due_date', sa.Date, nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'invoice_number', name='uq_invoice_tenant_number'),
        sa.UniqueConstraint('goods_receipt_id', name='uq_invoice_goods_receipt'),
    )
    op.create_index('ix_purchase_invoices_tenant_id', 'purchase_invoices', ['tenant_id'])
    op.create_index('ix_purchase_invoices_supplier_id', 'purchase_invoices', ['supplier_id'])
    op.create_index('ix_invoice_tenant_status', 'purchase_invoices', ['tenant_id', 'status'])

    # ====================
    # SUPPLIER PAYMENTS
    # ====================
    op.create_table(
        'supplier_payments',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('payment_number', sa.String(30), nullable=False, comment='PAY-YYYY-NNN'),
        sa.Column('purchase_invoice_id', UUID(as_uuid=True),
                  sa.ForeignKey('purchase_invoices.id', ondelete='RESTRICT'), nullable=False),
        sa.Column('supplier_id', UUID(as_uuid=True), nullable=False),
        sa.Column('amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('payment_method', sa.String(30), nullable=False),
        sa.Column('payment_date', sa.Date, server_default=sa.text('CURRENT_DATE'), nullable=False),
        sa.Column('reference_number', sa.String(100), nullable=True),
        sa.Column('status', sa.String(50), server_default='pending', nullable=False),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'payment_number', name='uq_payment_tenant_number'),
        sa.CheckConstraint('amount > 0', name='ck_payment_amount_positive'),
    )
    op.create_index('ix_supplier_payments_tenant_id', 'supplier_payments', ['tenant_id'])
    op.create_index('ix_supplier_payments_supplier_id', 'supplier_payments', ['supplier_id'])
    op.create_index('ix_payment_invoice_status', 'supplier_payments', ['purchase_invoice_id', 'status'])

    # ====================
    # STOCK LEDGER
    # ====================
    op.create_table(
        'stock_movements',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('warehouse_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('variant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('movement_type', sa.String(30), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False, comment='Signed: + in, - out'),
        sa.Column('balance_after', sa.Integer, server_default='0', nullable=False),
        sa.Column('reference_type', sa.String(50), nullable=True),
        sa.Column('reference_id', UUID(as_uuid=True), nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_by', sa.String(100), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.text('NOW()'), nullable=False),
        sa.CheckConstraint('quantity <> 0', name='ck_movement_quantity_non_zero'),
    )
    op.create_index('ix_movement_key', 'stock_movements', ['tenant_id', 'warehouse_id', 'product_id', 'variant_id'])
    op.create_index('ix_movement_reference', 'stock_movements', ['reference_type', 'reference_id'])

    op.create_table(
        'warehouse_inventory',
        sa.Column('id', UUID(as_uuid=True), primary_key=True, server_default=sa.text('gen_random_uuid()')),
        sa.Column('tenant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('warehouse_id', UUID(as_uuid=True), nullable=False),
        sa.Column('product_id', UUID(as_uuid=True), nullable=False),
        sa.Column('variant_id', UUID(as_uuid=True), nullable=False),
        sa.Column('stock_count', sa.Integer, server_default='0', nullable=False),
        sa.Column('last_movement_at', sa.DateTime(timezone=True), nullable=True),
        *timestamps(),
        sa.UniqueConstraint('tenant_id', 'warehouse_id', 'product_id', 'variant_id',
                            name='uq_warehouse_inventory_key'),
    )


def downgrade():
    """Drop all tables in reverse dependency order"""
    op.drop_table('warehouse_inventory')
    op.drop_table('stock_movements')
    op.drop_table('supplier_payments')
    op.drop_table('purchase_invoices')
    op.drop_table('goods_receipt_items')
    op.drop_table('goods_receipts')
    op.drop_table('purchase_order_items')
    op.drop_table('purchase_orders')
    op.drop_table('document_sequences')
