"""Initial wholesale schema: catalog, pricing, accounts, carts, orders, jobs, sync audit.

Revision ID: 001_initial
Revises:
Create Date: 2026-10-18

"""
from typing import Sequence, Union

import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

from alembic import op

# revision identifiers, used by Alembic.
revision: str = '001_initial'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    ]


def upgrade() -> None:
    # ### Price lists ###
    op.create_table(
        'price_lists',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('zoho_price_list_id', sa.Text(), unique=True, nullable=False),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('price_list_type', sa.Text()),
        sa.Column('currency_code', sa.String(8), server_default='USD'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
        sa.Column('zoho_last_synced_at', sa.DateTime(timezone=True)),
    )

    # ### Users ###
    op.create_table(
        'users',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('email', sa.Text(), unique=True, nullable=False),
        sa.Column('password', sa.Text(), nullable=False),
        sa.Column('role', sa.String(20), server_default='pending'),
        sa.Column('status', sa.String(20), server_default='pending', index=True),
        sa.Column('business_name', sa.Text()),
        sa.Column('contact_name', sa.Text()),
        sa.Column('phone', sa.Text()),
        sa.Column('address', sa.Text()),
        sa.Column('city', sa.Text()),
        sa.Column('state', sa.Text()),
        sa.Column('zip_code', sa.Text()),
        sa.Column('zoho_customer_id', sa.Text(), index=True),
        sa.Column('price_list_id', sa.String(36), sa.ForeignKey('price_lists.id', ondelete='SET NULL')),
        sa.Column('zoho_is_active', sa.Boolean(), server_default=sa.true()),
        sa.Column('zoho_last_checked_at', sa.DateTime(timezone=True)),
        *_timestamps(),
        sa.Column('last_login_at', sa.DateTime(timezone=True)),
    )

    # ### Categories ###
    op.create_table(
        'categories',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('slug', sa.Text(), unique=True, nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('zoho_category_id', sa.Text(), unique=True),
        sa.Column('display_order', sa.Integer(), server_default='0'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true()),
        *_timestamps(),
    )

    # ### Products ###
    op.create_table(
        'products',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sku', sa.Text(), unique=True, nullable=False, index=True),
        sa.Column('name', sa.Text(), nullable=False),
        sa.Column('description', sa.Text()),
        sa.Column('category', sa.Text(), nullable=False, index=True),
        sa.Column('subcategory', sa.Text()),
        sa.Column('brand', sa.Text()),
        sa.Column('tags', postgresql.JSONB()),
        sa.Column('base_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('compare_at_price', sa.Numeric(precision=10, scale=2)),
        sa.Column('min_order_quantity', sa.Integer(), server_default='1'),
        sa.Column('case_pack_size', sa.Integer(), server_default='1'),
        sa.Column('stock_quantity', sa.Integer(), server_default='0'),
        sa.Column('low_stock_threshold', sa.Integer(), server_default='10'),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), index=True),
        sa.Column('is_online', sa.Boolean(), server_default=sa.false(), index=True),
        sa.Column('image_url', sa.Text()),
        sa.Column('image_source', sa.String(20), server_default='none'),
        sa.Column('zoho_item_id', sa.Text(), unique=True),
        sa.Column('zoho_category_id', sa.Text()),
        sa.Column('zoho_group_id', sa.Text(), index=True),
        sa.Column('zoho_group_name', sa.Text()),
        sa.Column('zoho_last_sync_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    # ### Product groups ###
    op.create_table(
        'product_groups',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('zoho_group_id', sa.Text(), unique=True, nullable=False),
        sa.Column('zoho_group_name', sa.Text(), nullable=False),
        sa.Column('is_online', sa.Boolean(), server_default=sa.true(), index=True),
        *_timestamps(),
    )

    # ### Customer prices ###
    op.create_table(
        'customer_prices',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('price_list_id', sa.String(36), sa.ForeignKey('price_lists.id', ondelete='CASCADE'), index=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id', ondelete='CASCADE'), index=True),
        sa.Column('zoho_item_id', sa.Text()),
        sa.Column('custom_price', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
    )
    op.create_index(
        'customer_prices_unique_idx',
        'customer_prices',
        ['price_list_id', 'product_id'],
        unique=True,
    )

    # ### Carts ###
    op.create_table(
        'carts',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), index=True),
        sa.Column('item_count', sa.Integer(), server_default='0'),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), server_default='0'),
        *_timestamps(),
    )

    op.create_table(
        'cart_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('cart_id', sa.String(36), sa.ForeignKey('carts.id', ondelete='CASCADE'), index=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id'), index=True),
        sa.Column('quantity', sa.Integer(), server_default='1'),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('line_total', sa.Numeric(precision=10, scale=2), nullable=False),
        *_timestamps(),
    )

    # ### Orders ###
    op.create_table(
        'orders',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_number', sa.Text(), unique=True, nullable=False),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), index=True),
        sa.Column('status', sa.String(32), server_default='pending_approval', index=True),
        sa.Column('subtotal', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('tax_amount', sa.Numeric(precision=10, scale=2), server_default='0'),
        sa.Column('shipping_amount', sa.Numeric(precision=10, scale=2), server_default='0'),
        sa.Column('total_amount', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('shipping_address', sa.Text()),
        sa.Column('shipping_city', sa.Text()),
        sa.Column('shipping_state', sa.Text()),
        sa.Column('shipping_zip_code', sa.Text()),
        sa.Column('approved_by', sa.String(36), sa.ForeignKey('users.id')),
        sa.Column('approved_at', sa.DateTime(timezone=True)),
        sa.Column('rejected_by', sa.String(36), sa.ForeignKey('users.id')),
        sa.Column('rejected_at', sa.DateTime(timezone=True)),
        sa.Column('rejection_reason', sa.Text()),
        sa.Column('zoho_sales_order_id', sa.Text()),
        sa.Column('zoho_pushed_at', sa.DateTime(timezone=True)),
        *_timestamps(),
    )

    op.create_table(
        'order_items',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id', ondelete='CASCADE'), index=True),
        sa.Column('product_id', sa.String(36), sa.ForeignKey('products.id')),
        sa.Column('sku', sa.Text(), nullable=False),
        sa.Column('product_name', sa.Text(), nullable=False),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('line_total', sa.Numeric(precision=10, scale=2), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now()),
    )

    # ### Jobs ###
    op.create_table(
        'jobs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('job_type', sa.String(50), nullable=False, index=True),
        sa.Column('status', sa.String(20), server_default='pending', index=True),
        sa.Column('user_id', sa.String(36), sa.ForeignKey('users.id'), index=True),
        sa.Column('order_id', sa.String(36), sa.ForeignKey('orders.id'), index=True),
        sa.Column('payload', sa.Text()),
        sa.Column('error_message', sa.Text()),
        sa.Column('attempts', sa.Integer(), server_default='0'),
        sa.Column('max_attempts', sa.Integer(), server_default='3'),
        *_timestamps(),
        sa.Column('last_attempt_at', sa.DateTime(timezone=True)),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
    )

    # ### Sync audit ###
    op.create_table(
        'sync_runs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('sync_type', sa.String(32), nullable=False, index=True),
        sa.Column('sync_mode', sa.String(16)),
        sa.Column('status', sa.String(16), server_default='running'),
        sa.Column('total_processed', sa.Integer(), server_default='0'),
        sa.Column('created', sa.Integer(), server_default='0'),
        sa.Column('updated', sa.Integer(), server_default='0'),
        sa.Column('skipped', sa.Integer(), server_default='0'),
        sa.Column('delisted', sa.Integer(), server_default='0'),
        sa.Column('errors', sa.Integer(), server_default='0'),
        sa.Column('started_at', sa.DateTime(timezone=True), nullable=False, index=True),
        sa.Column('completed_at', sa.DateTime(timezone=True)),
        sa.Column('duration_ms', sa.Integer()),
        sa.Column('error_messages', postgresql.JSONB()),
        sa.Column('triggered_by', sa.String(64)),
    )

    op.create_table(
        'zoho_api_logs',
        sa.Column('id', sa.String(36), primary_key=True),
        sa.Column('endpoint', sa.Text(), nullable=False, index=True),
        sa.Column('method', sa.String(10), nullable=False),
        sa.Column('status_code', sa.Integer()),
        sa.Column('success', sa.Boolean(), server_default=sa.true()),
        sa.Column('error_message', sa.Text()),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), index=True),
    )


def downgrade() -> None:
    op.drop_table('zoho_api_logs')
    op.drop_table('sync_runs')
    op.drop_table('jobs')
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('cart_items')
    op.drop_table('carts')
    op.drop_index('customer_prices_unique_idx', table_name='customer_prices')
    op.drop_table('customer_prices')
    op.drop_table('product_groups')
    op.drop_table('products')
    op.drop_table('categories')
    op.drop_table('users')
    op.drop_table('price_lists')
