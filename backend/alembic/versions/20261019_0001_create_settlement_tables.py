"""create settlement tables

Revision ID: 1f2e3d4c5b6a
Revises:
Create Date: 2026-10-19 00:01:00.000000

"""
from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision = '1f2e3d4c5b6a'
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    # Products (catalog, read by the engine)
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('vendor_id', sa.String(36), nullable=False),
        sa.Column('name', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('category_name', sa.String(255), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_order_quantity', sa.Integer, nullable=False, server_default='1'),
        sa.Column('stock_quantity', sa.Integer, nullable=False, server_default='0'),
        sa.Column('views', sa.Integer, nullable=False, server_default='0'),
        sa.Column('rating', sa.Numeric(3, 2), nullable=False, server_default='0'),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_products_vendor_id', 'products', ['vendor_id'])

    # RFQs
    op.create_table(
        'rfqs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=True),
        sa.Column('title', sa.String(200), nullable=False),
        sa.Column('description', sa.Text, nullable=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('target_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('deadline', sa.TIMESTAMP, nullable=True),
        sa.Column('status', sa.String(20), nullable=False, server_default='open'),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_rfqs_buyer_id', 'rfqs', ['buyer_id'])
    op.create_index('ix_rfqs_product_id', 'rfqs', ['product_id'])
    op.create_index('ix_rfqs_status', 'rfqs', ['status'])

    # Quotes: one per (rfq, vendor)
    op.create_table(
        'quotes',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id', ondelete='CASCADE'), nullable=False),
        sa.Column('vendor_id', sa.String(36), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('delivery_time', sa.String(100), nullable=True),
        sa.Column('valid_until', sa.TIMESTAMP, nullable=True),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('is_accepted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('rfq_id', 'vendor_id', name='uq_quotes_rfq_vendor'),
    )
    op.create_index('ix_quotes_rfq_id', 'quotes', ['rfq_id'])
    op.create_index('ix_quotes_vendor_id', 'quotes', ['vendor_id'])

    # Negotiations
    op.create_table(
        'negotiations',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('rfq_id', sa.String(36), sa.ForeignKey('rfqs.id', ondelete='SET NULL'), nullable=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), nullable=False),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('vendor_id', sa.String(36), nullable=False),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('initial_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('current_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('final_price', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_active', sa.Boolean, nullable=False, server_default=sa.true()),
        sa.Column('is_accepted', sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_negotiations_product_id', 'negotiations', ['product_id'])
    op.create_index('ix_negotiations_buyer_id', 'negotiations', ['buyer_id'])
    op.create_index('ix_negotiations_vendor_id', 'negotiations', ['vendor_id'])
    op.create_index('ix_negotiations_is_active', 'negotiations', ['is_active'])

    # Negotiation messages: append-only, ordered by sequence
    op.create_table(
        'negotiation_messages',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('negotiation_id', sa.String(36), sa.ForeignKey('negotiations.id', ondelete='CASCADE'), nullable=False),
        sa.Column('sequence', sa.Integer, nullable=False),
        sa.Column('sender', sa.String(10), nullable=False),
        sa.Column('sender_id', sa.String(36), nullable=False),
        sa.Column('message', sa.Text, nullable=False, server_default=''),
        sa.Column('offer', sa.Numeric(12, 2), nullable=True),
        sa.Column('ai_data', sa.JSON, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.UniqueConstraint('negotiation_id', 'sequence', name='uq_negotiation_messages_sequence'),
    )
    op.create_index('ix_negotiation_messages_negotiation_id', 'negotiation_messages', ['negotiation_id'])

    # Orders: at most one per quote and per negotiation
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_number', sa.String(40), nullable=False, unique=True),
        sa.Column('buyer_id', sa.String(36), nullable=False),
        sa.Column('vendor_id', sa.String(36), nullable=False),
        sa.Column('product_id', sa.String(36), nullable=True),
        sa.Column('rfq_id', sa.String(36), nullable=True),
        sa.Column('quote_id', sa.String(36), nullable=True, unique=True),
        sa.Column('negotiation_id', sa.String(36), nullable=True, unique=True),
        sa.Column('quantity', sa.Integer, nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('total_amount', sa.Numeric(14, 2), nullable=False),
        sa.Column('status', sa.String(20), nullable=False, server_default='pending'),
        sa.Column('notes', sa.Text, nullable=True),
        sa.Column('created_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
        sa.Column('updated_at', sa.TIMESTAMP, nullable=False, server_default=sa.text('CURRENT_TIMESTAMP')),
    )
    op.create_index('ix_orders_buyer_id', 'orders', ['buyer_id'])
    op.create_index('ix_orders_vendor_id', 'orders', ['vendor_id'])
    op.create_index('ix_orders_rfq_id', 'orders', ['rfq_id'])
    op.create_index('ix_orders_status', 'orders', ['status'])


def downgrade() -> None:
    op.drop_table('orders')
    op.drop_table('negotiation_messages')
    op.drop_table('negotiations')
    op.drop_table('quotes')
    op.drop_table('rfqs')
    op.drop_table('products')
