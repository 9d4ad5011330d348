"""
客户数据模型
"""
from typing import List, Optional

from sqlalchemy import String, Text, UniqueConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin, TenantOwnedMixin


class Customer(Base, TimestampMixin, TenantOwnedMixin):
    """客户表"""
    __tablename__ = "customers"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="客户姓名")
    phone: Mapped[str] = mapped_column(String(50), nullable=False, comment="电话")
    address: Mapped[Optional[str]] = mapped_column(Text, comment="地址")
    city: Mapped[Optional[str]] = mapped_column(String(100), comment="城市")

    __table_args__ = (
        # 电话在租户内唯一
        UniqueConstraint('tenant_id', 'phone', name='uq_customers_tenant_phone'),
        Index('ix_customers_created_at', 'created_at'),
    )

    orders: Mapped[List["Order"]] = relationship("Order", back_populates="customer")
