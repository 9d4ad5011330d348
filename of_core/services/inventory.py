"""
库存变更
所有库存变化都经过条件原子更新，并追加一条库存流水
"""
from typing import List, Optional

from sqlalchemy import desc, select

from of_core.models import InventoryHistory, Product
from of_core.tenancy import TenantScope
from of_core.utils.errors import InsufficientStockError
from of_core.utils.logger import get_logger

logger = get_logger(__name__)


async def apply_stock_change(scope: TenantScope, product: Product, change: int, reason: str) -> InventoryHistory:
    """原子地修改库存

    UPDATE 带 stock + change >= 0 条件，未命中则说明库存不足（可能已被并发订单扣减），
    抛出 InsufficientStockError，由外层事务整体回滚。
    """
    stmt = (
        scope.update(Product, Product.id == product.id, Product.stock + change >= 0)
        .values(stock=Product.stock + change)
    )
    result = await scope.session.execute(stmt)

    if result.rowcount != 1:
        await scope.session.refresh(product, attribute_names=["stock"])
        logger.warning(
            "Stock change rejected",
            product_id=product.id,
            change=change,
            available=product.stock
        )
        raise InsufficientStockError(
            product_id=product.id,
            product_name=product.name,
            available=product.stock
        )

    entry = InventoryHistory(product_id=product.id, change=change, reason=reason)
    scope.session.add(entry)
    return entry


async def recent_history(scope: TenantScope, product_id: int, limit: Optional[int] = None) -> List[InventoryHistory]:
    """商品库存流水，最新在前（调用方已校验商品属于当前租户）"""
    stmt = (
        select(InventoryHistory)
        .where(InventoryHistory.product_id == product_id)
        .order_by(desc(InventoryHistory.created_at), desc(InventoryHistory.id))
    )
    if limit:
        stmt = stmt.limit(limit)
    result = await scope.session.execute(stmt)
    return list(result.scalars().all())
