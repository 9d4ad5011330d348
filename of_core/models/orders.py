"""
订单相关数据模型
订单创建后只有 status 可变
"""
import enum
from decimal import Decimal
from typing import Dict, FrozenSet, List, Optional

from sqlalchemy import (
    ForeignKey, Integer, String, Numeric,
    CheckConstraint, UniqueConstraint, Index
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, Money, TimestampMixin, TenantOwnedMixin


class OrderStatus(str, enum.Enum):
    """订单状态"""
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    READY = "READY"
    DISPATCHED = "DISPATCHED"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @property
    def is_terminal(self) -> bool:
        return self in (OrderStatus.DELIVERED, OrderStatus.CANCELLED)

    def can_transition_to(self, target: "OrderStatus") -> bool:
        """重复写入当前状态视为无操作"""
        if target == self:
            return True
        return target in STATUS_TRANSITIONS[self]


STATUS_TRANSITIONS: Dict[OrderStatus, FrozenSet[OrderStatus]] = {
    OrderStatus.PENDING: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.DISPATCHED, OrderStatus.CANCELLED}),
    OrderStatus.DISPATCHED: frozenset({OrderStatus.DELIVERED, OrderStatus.CANCELLED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

_STATUS_VALUES = ",".join(f"'{s.value}'" for s in OrderStatus)


class Order(Base, TimestampMixin, TenantOwnedMixin):
    """订单表"""
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)

    # 租户内连续编号
    order_number: Mapped[int] = mapped_column(Integer, nullable=False, comment="订单号")

    customer_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("customers.id"),
        nullable=False,
        comment="客户ID"
    )
    delivery_template_id: Mapped[Optional[int]] = mapped_column(
        BigIntPK,
        ForeignKey("delivery_templates.id"),
        nullable=True,
        comment="配送模板ID"
    )

    status: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint(f"status IN ({_STATUS_VALUES})", name="ck_orders_status"),
        nullable=False,
        default=OrderStatus.PENDING.value,
        comment="订单状态"
    )

    # 金额（必须使用 Decimal）
    discount: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("discount >= 0", name="ck_orders_discount"),
        nullable=False,
        default=Decimal("0"),
        comment="折扣"
    )
    delivery_fee: Mapped[Decimal] = mapped_column(Money, nullable=False, default=Decimal("0"), comment="配送费")
    total_amount: Mapped[Decimal] = mapped_column(Money, nullable=False, comment="订单总额")
    total_weight: Mapped[Optional[Decimal]] = mapped_column(Numeric(10, 3), nullable=True, comment="总重量（公斤）")

    payment_method: Mapped[str] = mapped_column(String(50), nullable=False, comment="支付方式")
    order_source: Mapped[str] = mapped_column(String(50), nullable=False, comment="订单来源")

    __table_args__ = (
        UniqueConstraint('tenant_id', 'order_number', name='uq_orders_tenant_number'),
        Index('ix_orders_tenant_status', 'tenant_id', 'status'),
        Index('ix_orders_tenant_created', 'tenant_id', 'created_at'),
    )

    # 关系
    items: Mapped[List["OrderItem"]] = relationship(
        "OrderItem",
        back_populates="order",
        cascade="all, delete-orphan",
        order_by="OrderItem.id"
    )
    customer: Mapped["Customer"] = relationship("Customer", back_populates="orders")
    delivery_template: Mapped[Optional["DeliveryTemplate"]] = relationship("DeliveryTemplate")

    @property
    def subtotal(self) -> Decimal:
        return sum((item.line_total for item in self.items), Decimal("0"))


class OrderItem(Base):
    """订单行：下单时的商品、数量和单价快照"""
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    order_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("orders.id", ondelete="CASCADE"),
        nullable=False,
        comment="关联订单ID"
    )
    product_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("products.id"),
        nullable=False,
        comment="商品ID"
    )
    quantity: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("quantity > 0", name="ck_order_items_quantity"),
        nullable=False,
        comment="数量"
    )
    price: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("price >= 0", name="ck_order_items_price"),
        nullable=False,
        comment="下单时单价"
    )

    __table_args__ = (
        Index('ix_order_items_order', 'order_id'),
        Index('ix_order_items_product', 'product_id'),
    )

    order: Mapped["Order"] = relationship("Order", back_populates="items")
    product: Mapped["Product"] = relationship("Product")

    @property
    def line_total(self) -> Decimal:
        return self.price * self.quantity
