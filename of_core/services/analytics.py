"""
经营分析服务
看板统计、营收趋势、热销商品（已取消订单不计入）
"""
from collections import OrderedDict
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import desc, func, select

from of_core.config import get_settings
from of_core.models import Customer, Order, OrderItem, OrderStatus, Product
from of_core.models.base import as_utc, utcnow
from of_core.tenancy import TenantScope
from of_core.utils.errors import ValidationError
from .base import BaseService, ServiceResult

# 统计周期 -> 回看天数
REVENUE_PERIODS = {
    "daily": 30,
    "weekly": 90,
    "monthly": 365,
}


def bucket_key(moment: datetime, period: str) -> str:
    """按周期归桶：日期、ISO周的周一、年月"""
    day = as_utc(moment).date()
    if period == "daily":
        return day.isoformat()
    if period == "weekly":
        return (day - timedelta(days=day.weekday())).isoformat()
    return f"{day.year:04d}-{day.month:02d}"


def _month_start(day: date, months_back: int) -> date:
    month_index = day.year * 12 + day.month - 1 - months_back
    return date(month_index // 12, month_index % 12 + 1, 1)


class AnalyticsService(BaseService):
    """经营分析服务"""

    def __init__(self):
        super().__init__()
        self.settings = get_settings()

    async def dashboard(self, tenant_id: int) -> ServiceResult[Dict[str, Any]]:
        """看板：各状态订单数、营收、低库存商品数、客户数"""
        async def _query(scope: TenantScope) -> Dict[str, Any]:
            result = await scope.session.execute(
                select(Order.status, func.count())
                .where(scope.owned(Order))
                .group_by(Order.status)
            )
            by_status = {status.value: 0 for status in OrderStatus}
            for status, count in result.all():
                by_status[status] = int(count)

            revenue = await scope.session.scalar(
                select(func.coalesce(func.sum(Order.total_amount), 0))
                .where(scope.owned(Order), Order.status != OrderStatus.CANCELLED.value)
            )

            return {
                "orders": {
                    "total": sum(by_status.values()),
                    "by_status": by_status,
                },
                "revenue": str(Decimal(str(revenue)).quantize(Decimal("0.01"))),
                "low_stock_products": await scope.count(
                    Product, Product.stock <= self.settings.low_stock_threshold
                ),
                "customers": await scope.count(Customer),
            }

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def revenue(self, tenant_id: int, period: str = "daily") -> ServiceResult[List[Dict[str, Any]]]:
        """营收趋势

        daily 最近30天按天，weekly 最近90天按周（周一日期），monthly 最近12个月按月。
        归桶在应用侧完成，PostgreSQL 与 SQLite 结果一致。
        """
        if period not in REVENUE_PERIODS:
            raise ValidationError(
                code="INVALID_PERIOD",
                detail=f"Period must be one of {', '.join(REVENUE_PERIODS)}, got: {period}"
            )

        now = utcnow()
        if period == "monthly":
            since_day = _month_start(now.date(), 11)
            since = datetime(since_day.year, since_day.month, since_day.day, tzinfo=now.tzinfo)
        else:
            since = now - timedelta(days=REVENUE_PERIODS[period])

        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            result = await scope.session.execute(
                select(Order.created_at, Order.total_amount)
                .where(
                    scope.owned(Order),
                    Order.status != OrderStatus.CANCELLED.value,
                    Order.created_at >= since,
                )
                .order_by(Order.created_at)
            )

            buckets: "OrderedDict[str, Dict[str, Any]]" = OrderedDict()
            for created_at, total_amount in result.all():
                key = bucket_key(created_at, period)
                bucket = buckets.setdefault(key, {"revenue": Decimal("0"), "orders": 0})
                bucket["revenue"] += total_amount
                bucket["orders"] += 1

            return [
                {"period": key, "revenue": str(value["revenue"]), "orders": value["orders"]}
                for key, value in sorted(buckets.items())
            ]

        rows = await self.execute_with_session(tenant_id, _query)
        return ServiceResult.ok(rows, metadata={"period": period, "since": since.isoformat()})

    async def most_sold(self, tenant_id: int, limit: Optional[int] = 10) -> ServiceResult[List[Dict[str, Any]]]:
        """热销商品：按售出数量降序"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            quantity = func.sum(OrderItem.quantity).label("quantity")
            revenue = func.sum(OrderItem.quantity * OrderItem.price).label("revenue")
            stmt = (
                select(Product.id, Product.name, Product.sku, quantity, revenue)
                .join(OrderItem, OrderItem.product_id == Product.id)
                .join(Order, Order.id == OrderItem.order_id)
                .where(
                    scope.owned(Order),
                    scope.owned(Product),
                    Order.status != OrderStatus.CANCELLED.value,
                )
                .group_by(Product.id, Product.name, Product.sku)
                .order_by(desc(quantity), Product.id)
            )
            if limit:
                stmt = stmt.limit(limit)

            result = await scope.session.execute(stmt)
            return [
                {
                    "product_id": row.id,
                    "name": row.name,
                    "sku": row.sku,
                    "quantity": int(row.quantity),
                    "revenue": str(Decimal(str(row.revenue)).quantize(Decimal("0.01"))),
                }
                for row in result.all()
            ]

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))
