"""create_store_tables

Revision ID: 5c0e1a7d2b9f
Revises:
Create Date: 2026-10-18 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql


# revision identifiers, used by Alembic.
revision: str = '5c0e1a7d2b9f'
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


ORDER_STATUS = postgresql.ENUM(
    'pending', 'confirmed', 'paid', 'processing', 'shipped',
    'out_for_delivery', 'delivered', 'cod_collected', 'cancelled',
    name='store_order_status_enum', create_type=False,
)
PAYMENT_METHOD = postgresql.ENUM(
    'cod', 'card', name='store_payment_method_enum', create_type=False
)
DISCOUNT_TYPE = postgresql.ENUM(
    'percentage', 'fixed', name='store_discount_type_enum', create_type=False
)
OUTBOX_STATUS = postgresql.ENUM(
    'pending', 'sent', 'failed', name='store_outbox_status_enum', create_type=False
)
AUDIT_ENTITY = postgresql.ENUM(
    'order', 'coupon', 'user_profile',
    name='store_audit_entity_type_enum', create_type=False,
)
USER_ROLE = postgresql.ENUM(
    'customer', 'seller', 'architect', 'content_moderator',
    'platform_admin', 'admin', 'super_admin',
    name='store_user_role_enum', create_type=False,
)
ENUMS = (ORDER_STATUS, PAYMENT_METHOD, DISCOUNT_TYPE, OUTBOX_STATUS, AUDIT_ENTITY, USER_ROLE)


def upgrade() -> None:
    """Upgrade schema - Create store order, coupon and outbox tables."""
    bind = op.get_bind()
    for enum in ENUMS:
        enum.create(bind, checkfirst=True)

    op.create_table(
        'store_products',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('name', sa.String(length=255), nullable=False),
        sa.Column('slug', sa.String(length=255), nullable=False),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('slug'),
    )

    op.create_table(
        'store_product_variants',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('height', sa.String(length=50), nullable=True),
        sa.Column('price', sa.Numeric(12, 2), nullable=True),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_product_variants_product_id', 'store_product_variants', ['product_id'])

    op.create_table(
        'store_coupons',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('title', sa.String(length=255), nullable=False),
        sa.Column('description', sa.Text(), nullable=True),
        sa.Column('code', sa.String(length=50), nullable=False),
        sa.Column('discount_type', DISCOUNT_TYPE, nullable=False),
        sa.Column('discount_value', sa.Numeric(12, 2), nullable=False),
        sa.Column('min_order_value', sa.Numeric(12, 2), nullable=True),
        sa.Column('max_discount', sa.Numeric(12, 2), nullable=True),
        sa.Column('max_usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('max_usage_per_user', sa.Integer(), server_default='1', nullable=False),
        sa.Column('current_usage_count', sa.Integer(), server_default='0', nullable=False),
        sa.Column('valid_from', sa.DateTime(timezone=True), nullable=False),
        sa.Column('valid_until', sa.DateTime(timezone=True), nullable=False),
        sa.Column('is_active', sa.Boolean(), server_default=sa.true(), nullable=False),
        sa.Column('badge', sa.String(length=50), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('discount_value >= 0', name='coupon_non_negative_value'),
        sa.CheckConstraint('current_usage_count >= 0', name='coupon_non_negative_usage'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('code'),
    )

    op.create_table(
        'store_orders',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=False),
        sa.Column('member_auth_id', sa.String(length=255), nullable=True),
        sa.Column('customer_name', sa.String(length=255), nullable=False),
        sa.Column('customer_email', sa.String(length=255), nullable=False),
        sa.Column('customer_phone', sa.String(length=50), nullable=True),
        sa.Column('currency', sa.String(length=3), nullable=False),
        sa.Column('subtotal', sa.Numeric(12, 2), nullable=False),
        sa.Column('discount_amount', sa.Numeric(12, 2), server_default='0', nullable=False),
        sa.Column('total_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('coupon_id', sa.Uuid(), nullable=True),
        sa.Column('coupon_code', sa.String(length=50), nullable=True),
        sa.Column('payment_method', PAYMENT_METHOD, nullable=False),
        sa.Column('payment_session_id', sa.String(length=255), nullable=True),
        sa.Column('payment_intent_id', sa.String(length=255), nullable=True),
        sa.Column('paid_at', sa.DateTime(timezone=True), nullable=True),
        sa.Column('delivery_address', postgresql.JSONB(), nullable=True),
        sa.Column('estimated_delivery', sa.DateTime(timezone=True), nullable=True),
        sa.Column('tracking_number', sa.String(length=100), nullable=True),
        sa.Column('courier_service', sa.String(length=50), nullable=True),
        sa.Column('status', ORDER_STATUS, nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.Column('version', sa.Integer(), nullable=False),
        sa.Column('order_date', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint('subtotal >= 0', name='order_non_negative_subtotal'),
        sa.CheckConstraint('discount_amount >= 0', name='order_non_negative_discount'),
        sa.CheckConstraint('discount_amount <= subtotal', name='order_discount_le_subtotal'),
        sa.CheckConstraint('total_price >= 0', name='order_non_negative_total'),
        sa.ForeignKeyConstraint(['coupon_id'], ['store_coupons.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_orders_order_number', 'store_orders', ['order_number'], unique=True)
    op.create_index('ix_store_orders_member_auth_id', 'store_orders', ['member_auth_id'])
    op.create_index('ix_store_orders_coupon_id', 'store_orders', ['coupon_id'])
    op.create_index('ix_store_orders_payment_session_id', 'store_orders', ['payment_session_id'])
    op.create_index('ix_store_orders_status_order_date', 'store_orders', ['status', 'order_date'])

    op.create_table(
        'store_order_items',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('product_id', sa.Uuid(), nullable=False),
        sa.Column('variant_id', sa.Uuid(), nullable=True),
        sa.Column('product_name', sa.String(length=255), nullable=False),
        sa.Column('size', sa.String(length=50), nullable=True),
        sa.Column('height', sa.String(length=50), nullable=True),
        sa.Column('quantity', sa.Integer(), nullable=False),
        sa.Column('unit_price', sa.Numeric(12, 2), nullable=False),
        sa.Column('line_total', sa.Numeric(12, 2), nullable=False),
        sa.CheckConstraint('quantity > 0', name='order_item_positive_qty'),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.ForeignKeyConstraint(['product_id'], ['store_products.id']),
        sa.ForeignKeyConstraint(['variant_id'], ['store_product_variants.id'], ondelete='SET NULL'),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_order_items_order_id', 'store_order_items', ['order_id'])

    op.create_table(
        'store_order_updates',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('order_id', sa.Uuid(), nullable=False),
        sa.Column('sequence', sa.Integer(), nullable=False),
        sa.Column('status', ORDER_STATUS, nullable=False),
        sa.Column('message', sa.Text(), nullable=False),
        sa.Column('location', sa.String(length=255), nullable=True),
        sa.Column('timestamp', sa.DateTime(timezone=True), nullable=False),
        sa.Column('performed_by', sa.String(length=255), nullable=True),
        sa.ForeignKeyConstraint(['order_id'], ['store_orders.id'], ondelete='CASCADE'),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('order_id', 'sequence', name='unique_order_update_sequence'),
    )

    op.create_table(
        'store_email_subscribers',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=False),
        sa.Column('customer_name', sa.String(length=255), nullable=True),
        sa.Column('source', sa.String(length=50), nullable=False),
        sa.Column('order_number', sa.String(length=32), nullable=True),
        sa.Column('status', sa.String(length=20), nullable=False),
        sa.Column('metadata', postgresql.JSONB(), nullable=True),
        sa.Column('subscribed_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
        sa.UniqueConstraint('email'),
    )

    op.create_table(
        'store_outbox_events',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('event_type', sa.String(length=50), nullable=False),
        sa.Column('aggregate_id', sa.Uuid(), nullable=True),
        sa.Column('payload', postgresql.JSONB(), nullable=False),
        sa.Column('status', OUTBOX_STATUS, nullable=False),
        sa.Column('attempts', sa.Integer(), server_default='0', nullable=False),
        sa.Column('last_error', sa.Text(), nullable=True),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('sent_at', sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index(
        'ix_store_outbox_events_status_created_at',
        'store_outbox_events',
        ['status', 'created_at'],
    )

    op.create_table(
        'store_audit_logs',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('entity_type', AUDIT_ENTITY, nullable=False),
        sa.Column('entity_id', sa.String(length=64), nullable=False),
        sa.Column('action', sa.String(length=50), nullable=False),
        sa.Column('old_value', postgresql.JSONB(), nullable=True),
        sa.Column('new_value', postgresql.JSONB(), nullable=True),
        sa.Column('performed_by', sa.String(length=255), nullable=False),
        sa.Column('performed_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('notes', sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_audit_logs_entity', 'store_audit_logs', ['entity_type', 'entity_id'])
    op.create_index('ix_store_audit_logs_performed_at', 'store_audit_logs', ['performed_at'])

    op.create_table(
        'store_user_profiles',
        sa.Column('id', sa.Uuid(), nullable=False),
        sa.Column('auth_id', sa.String(length=255), nullable=False),
        sa.Column('email', sa.String(length=255), nullable=True),
        sa.Column('full_name', sa.String(length=255), nullable=True),
        sa.Column('role', USER_ROLE, nullable=False),
        sa.Column('created_at', sa.DateTime(timezone=True), nullable=False),
        sa.Column('updated_at', sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint('id'),
    )
    op.create_index('ix_store_user_profiles_auth_id', 'store_user_profiles', ['auth_id'], unique=True)


def downgrade() -> None:
    """Downgrade schema - Drop store tables."""
    op.drop_table('store_user_profiles')
    op.drop_table('store_audit_logs')
    op.drop_table('store_outbox_events')
    op.drop_table('store_email_subscribers')
    op.drop_table('store_order_updates')
    op.drop_table('store_order_items')
    op.drop_table('store_orders')
    op.drop_table('store_coupons')
    op.drop_table('store_product_variants')
    op.drop_table('store_products')

    bind = op.get_bind()
    for enum in reversed(ENUMS):
        enum.drop(bind, checkfirst=True)
