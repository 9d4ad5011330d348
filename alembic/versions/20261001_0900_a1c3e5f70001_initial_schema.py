"""Initial schema: tenants, users, customers, products, delivery templates, orders

Revision ID: a1c3e5f70001
Revises:
Create Date: 2026-10-01 09:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision: str = 'a1c3e5f70001'
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None

BigIntPK = sa.BigInteger().with_variant(sa.Integer(), "sqlite")
Money = sa.Numeric(18, 2)


def _timestamps():
    return [
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='记录创建时间'),
        sa.Column('updated_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='记录更新时间'),
    ]


def _tenant_fk():
    return sa.Column(
        'tenant_id', BigIntPK,
        sa.ForeignKey('tenants.id', ondelete='CASCADE'),
        nullable=False, comment='租户ID'
    )


def upgrade() -> None:
    op.create_table('tenants',
        sa.Column('id', BigIntPK, primary_key=True, comment='租户ID'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='租户名称'),
        sa.Column('order_seq', sa.Integer(), nullable=False, server_default='0', comment='订单号序列'),
        *_timestamps(),
    )

    op.create_table('users',
        sa.Column('id', BigIntPK, primary_key=True, comment='用户ID'),
        sa.Column('tenant_id', BigIntPK, sa.ForeignKey('tenants.id', ondelete='CASCADE'), nullable=False, comment='所属租户'),
        sa.Column('email', sa.String(length=255), nullable=False, comment='邮箱地址'),
        sa.Column('name', sa.String(length=200), nullable=False, comment='姓名'),
        sa.Column('password_hash', sa.String(length=255), nullable=False, comment='密码哈希'),
        sa.Column('role', sa.String(length=20), nullable=False, comment='角色：OWNER/MANAGER/CASHIER'),
        *_timestamps(),
        sa.UniqueConstraint('email'),
        sa.CheckConstraint("role IN ('OWNER','MANAGER','CASHIER')", name='ck_users_role'),
    )
    op.create_index('ix_users_tenant_id', 'users', ['tenant_id'])

    op.create_table('customers',
        sa.Column('id', BigIntPK, primary_key=True),
        _tenant_fk(),
        sa.Column('name', sa.String(length=200), nullable=False, comment='客户姓名'),
        sa.Column('phone', sa.String(length=50), nullable=False, comment='电话'),
        sa.Column('address', sa.Text(), nullable=True, comment='地址'),
        sa.Column('city', sa.String(length=100), nullable=True, comment='城市'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'phone', name='uq_customers_tenant_phone'),
    )
    op.create_index('ix_customers_tenant_id', 'customers', ['tenant_id'])
    op.create_index('ix_customers_created_at', 'customers', ['created_at'])

    op.create_table('products',
        sa.Column('id', BigIntPK, primary_key=True),
        _tenant_fk(),
        sa.Column('name', sa.String(length=200), nullable=False, comment='商品名称'),
        sa.Column('sku', sa.String(length=100), nullable=False, comment='商品SKU'),
        sa.Column('category', sa.String(length=100), nullable=True, comment='分类'),
        sa.Column('price', Money, nullable=False, comment='销售单价'),
        sa.Column('cost', Money, nullable=False, comment='成本价'),
        sa.Column('unit', sa.String(length=20), nullable=False, comment='计量单位'),
        sa.Column('stock', sa.Integer(), nullable=False, comment='现有库存'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'sku', name='uq_products_tenant_sku'),
        sa.CheckConstraint('price >= 0', name='ck_products_price'),
        sa.CheckConstraint('cost >= 0', name='ck_products_cost'),
        sa.CheckConstraint('stock >= 0', name='ck_products_stock'),
    )
    op.create_index('ix_products_tenant_id', 'products', ['tenant_id'])
    op.create_index('ix_products_tenant_stock', 'products', ['tenant_id', 'stock'])

    op.create_table('inventory_history',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('product_id', BigIntPK, sa.ForeignKey('products.id', ondelete='CASCADE'), nullable=False, comment='商品ID'),
        sa.Column('change', sa.Integer(), nullable=False, comment='库存变化量（有符号）'),
        sa.Column('reason', sa.Text(), nullable=False, comment='变化原因'),
        sa.Column('created_at', sa.DateTime(timezone=True), server_default=sa.func.now(), nullable=False, comment='记录时间'),
    )
    op.create_index('ix_inventory_history_product', 'inventory_history', ['product_id', 'created_at'])

    op.create_table('delivery_templates',
        sa.Column('id', BigIntPK, primary_key=True),
        _tenant_fk(),
        sa.Column('name', sa.String(length=100), nullable=False, comment='模板名称'),
        sa.Column('first_kg_price', Money, nullable=False, comment='首公斤价格'),
        sa.Column('extra_kg_price', Money, nullable=False, comment='续重每公斤价格'),
        sa.Column('is_default', sa.Boolean(), nullable=False, comment='是否默认模板'),
        *_timestamps(),
        sa.CheckConstraint('first_kg_price >= 0', name='ck_delivery_templates_first_kg'),
        sa.CheckConstraint('extra_kg_price >= 0', name='ck_delivery_templates_extra_kg'),
    )
    op.create_index('ix_delivery_templates_tenant_id', 'delivery_templates', ['tenant_id'])
    op.create_index('ix_delivery_templates_tenant_default', 'delivery_templates', ['tenant_id', 'is_default'])

    op.create_table('orders',
        sa.Column('id', BigIntPK, primary_key=True),
        _tenant_fk(),
        sa.Column('order_number', sa.Integer(), nullable=False, comment='订单号'),
        sa.Column('customer_id', BigIntPK, sa.ForeignKey('customers.id'), nullable=False, comment='客户ID'),
        sa.Column('delivery_template_id', BigIntPK, sa.ForeignKey('delivery_templates.id'), nullable=True, comment='配送模板ID'),
        sa.Column('status', sa.String(length=20), nullable=False, comment='订单状态'),
        sa.Column('discount', Money, nullable=False, comment='折扣'),
        sa.Column('delivery_fee', Money, nullable=False, comment='配送费'),
        sa.Column('total_amount', Money, nullable=False, comment='订单总额'),
        sa.Column('total_weight', sa.Numeric(10, 3), nullable=True, comment='总重量（公斤）'),
        sa.Column('payment_method', sa.String(length=50), nullable=False, comment='支付方式'),
        sa.Column('order_source', sa.String(length=50), nullable=False, comment='订单来源'),
        *_timestamps(),
        sa.UniqueConstraint('tenant_id', 'order_number', name='uq_orders_tenant_number'),
        sa.CheckConstraint(
            "status IN ('PENDING','CONFIRMED','READY','DISPATCHED','DELIVERED','CANCELLED')",
            name='ck_orders_status'
        ),
        sa.CheckConstraint('discount >= 0', name='ck_orders_discount'),
    )
    op.create_index('ix_orders_tenant_id', 'orders', ['tenant_id'])
    op.create_index('ix_orders_tenant_status', 'orders', ['tenant_id', 'status'])
    op.create_index('ix_orders_tenant_created', 'orders', ['tenant_id', 'created_at'])

    op.create_table('order_items',
        sa.Column('id', BigIntPK, primary_key=True),
        sa.Column('order_id', BigIntPK, sa.ForeignKey('orders.id', ondelete='CASCADE'), nullable=False, comment='关联订单ID'),
        sa.Column('product_id', BigIntPK, sa.ForeignKey('products.id'), nullable=False, comment='商品ID'),
        sa.Column('quantity', sa.Integer(), nullable=False, comment='数量'),
        sa.Column('price', Money, nullable=False, comment='下单时单价'),
        sa.CheckConstraint('quantity > 0', name='ck_order_items_quantity'),
        sa.CheckConstraint('price >= 0', name='ck_order_items_price'),
    )
    op.create_index('ix_order_items_order', 'order_items', ['order_id'])
    op.create_index('ix_order_items_product', 'order_items', ['product_id'])


def downgrade() -> None:
    op.drop_table('order_items')
    op.drop_table('orders')
    op.drop_table('delivery_templates')
    op.drop_table('inventory_history')
    op.drop_table('products')
    op.drop_table('customers')
    op.drop_table('users')
    op.drop_table('tenants')
