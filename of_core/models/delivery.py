"""
配送计价模板数据模型
"""
from decimal import Decimal

from sqlalchemy import Boolean, String, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, BigIntPK, Money, TimestampMixin, TenantOwnedMixin


class DeliveryTemplate(Base, TimestampMixin, TenantOwnedMixin):
    """配送模板：首重价 + 续重价

    每个租户至多一个默认模板，由写入时清除旧默认值保证。
    """
    __tablename__ = "delivery_templates"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True)
    name: Mapped[str] = mapped_column(String(100), nullable=False, comment="模板名称")
    first_kg_price: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("first_kg_price >= 0", name="ck_delivery_templates_first_kg"),
        nullable=False,
        comment="首公斤价格"
    )
    extra_kg_price: Mapped[Decimal] = mapped_column(
        Money,
        CheckConstraint("extra_kg_price >= 0", name="ck_delivery_templates_extra_kg"),
        nullable=False,
        comment="续重每公斤价格"
    )
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, comment="是否默认模板")

    __table_args__ = (
        Index('ix_delivery_templates_tenant_default', 'tenant_id', 'is_default'),
    )
