"""
商品与库存流水数据模型
"""
from datetime import datetime
from decimal import Decimal
from typing import List, Optional

from sqlalchemy import (
    DateTime, ForeignKey, Integer, String, Text,
    CheckConstraint, UniqueConstraint, Index, func
)
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, Money, TimestampMixin, TenantOwnedMixin, utcnow


class Product(Base, TimestampMixin, TenantOwnedMixin):
    """商品表"""
    __tablename__ = "products"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="商品名称")
    sku: Mapped[str] = mapped_column(String(100), nullable=False, comment="商品SKU")
    category: Mapped[Optional[str]] = mapped_column(String(100), comment="分类")

    price: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("price >= 0", name="ck_products_price"),
        nullable=False,
        comment="销售单价"
    )
    cost: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("cost >= 0", name="ck_products_cost"),
        nullable=False,
        default=Decimal("0"),
        comment="成本价"
    )
    unit: Mapped[str] = mapped_column(String(20), nullable=False, default="pcs", comment="计量单位")

    # 只通过下单和库存调整修改
    stock: Mapped[int] = mapped_column(
        Integer,
        CheckConstraint("stock >= 0", name="ck_products_stock"),
        nullable=False,
        default=0,
        comment="现有库存"
    )

    __table_args__ = (
        # 租户+SKU 唯一
        UniqueConstraint('tenant_id', 'sku', name='uq_products_tenant_sku'),
        Index('ix_products_tenant_stock', 'tenant_id', 'stock'),
    )

    history: Mapped[List["InventoryHistory"]] = relationship(
        "InventoryHistory",
        back_populates="product",
        order_by="desc(InventoryHistory.id)",
        cascade="all, delete-orphan"
    )

    def __repr__(self) -> str:
        return f"<Product(id={self.id}, sku={self.sku}, stock={self.stock})>"


class InventoryHistory(Base):
    """库存流水（只追加）"""
    __tablename__ = "inventory_history"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    product_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("products.id", ondelete="CASCADE"),
        nullable=False,
        comment="商品ID"
    )
    change: Mapped[int] = mapped_column(Integer, nullable=False, comment="库存变化量（有符号）")
    reason: Mapped[str] = mapped_column(Text, nullable=False, comment="变化原因")
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="记录时间"
    )

    __table_args__ = (
        Index('ix_inventory_history_product', 'product_id', 'created_at'),
    )

    product: Mapped["Product"] = relationship("Product", back_populates="history")
