"""
OrderFlow 数据库基础模型
遵循约束：UTC 时间、Decimal 金额、统一命名规范
"""
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Dict

from sqlalchemy import BigInteger, DateTime, ForeignKey, Integer, Numeric, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column

# SQLite 只对 INTEGER PRIMARY KEY 自增
BigIntPK = BigInteger().with_variant(Integer(), "sqlite")

# 金额统一两位小数
Money = Numeric(18, 2, asdecimal=True)


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class Base(DeclarativeBase):
    """数据库模型基类"""

    # 统一类型映射
    type_annotation_map = {
        datetime: DateTime(timezone=True),  # 强制使用 timezone-aware datetime
    }

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典"""
        result = {}
        for column in self.__table__.columns:
            value = getattr(self, column.name)

            if isinstance(value, Decimal):
                result[column.name] = str(value)
            elif isinstance(value, datetime):
                result[column.name] = value.isoformat()
            else:
                result[column.name] = value

        return result


class TimestampMixin:
    """创建/更新时间

    时间在应用侧生成，避免异步会话中因服务端默认值触发懒加载。
    """

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        comment="记录创建时间"
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=utcnow,
        server_default=func.now(),
        onupdate=utcnow,
        comment="记录更新时间"
    )


class TenantOwnedMixin:
    """租户数据：所有读写都必须经过 TenantScope"""

    tenant_id: Mapped[int] = mapped_column(
        BigIntPK,
        ForeignKey("tenants.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
        comment="租户ID"
    )


def as_utc(value: datetime) -> datetime:
    """统一为 UTC；不带时区的时间视为 UTC"""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)
