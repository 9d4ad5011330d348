"""
租户与用户数据模型
"""
from typing import List

from sqlalchemy import BigInteger, ForeignKey, Integer, String, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from .base import Base, BigIntPK, TimestampMixin


class Tenant(Base, TimestampMixin):
    """租户（独立的商家组织）"""
    __tablename__ = "tenants"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, comment="租户ID")
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="租户名称")

    # 已发放的最后一个订单号，订单号在租户内连续递增
    order_seq: Mapped[int] = mapped_column(
        Integer,
        nullable=False,
        default=0,
        server_default="0",
        comment="订单号序列"
    )

    users: Mapped[List["User"]] = relationship("User", back_populates="tenant")

    def __repr__(self) -> str:
        return f"<Tenant(id={self.id}, name={self.name})>"


class User(Base, TimestampMixin):
    """租户员工账号"""
    __tablename__ = "users"

    id: Mapped[int] = mapped_column(BigIntPK, primary_key=True, comment="用户ID")
    tenant_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="所属租户"
    )
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, comment="邮箱地址")
    name: Mapped[str] = mapped_column(String(200), nullable=False, comment="姓名")
    password_hash: Mapped[str] = mapped_column(String(255), nullable=False, comment="密码哈希")
    role: Mapped[str] = mapped_column(
        String(20),
        CheckConstraint("role IN ('OWNER','MANAGER','CASHIER')", name="ck_users_role"),
        nullable=False,
        default="CASHIER",
        comment="角色：OWNER/MANAGER/CASHIER"
    )

    tenant: Mapped["Tenant"] = relationship("Tenant", back_populates="users")

    def to_dict(self) -> dict:
        """转换为字典（不含密码哈希）"""
        data = super().to_dict()
        data.pop("password_hash", None)
        return data
