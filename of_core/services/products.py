"""
商品服务
商品维护、库存调整与低库存查询
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import desc

from of_core.config import get_settings
from of_core.models import Product
from of_core.tenancy import TenantScope
from of_core.utils.errors import ConflictError, ValidationError
from .base import BaseService, ServiceResult, RepositoryMixin
from .inventory import apply_stock_change, recent_history

PRODUCT_FIELDS = ("name", "sku", "category", "price", "cost", "unit")


def product_to_dict(product: Product, history: Optional[List[Any]] = None) -> Dict[str, Any]:
    data = product.to_dict()
    if history is not None:
        data["history"] = [entry.to_dict() for entry in history]
    return data


class ProductsService(BaseService, RepositoryMixin):
    """商品服务"""

    def __init__(self):
        super().__init__()
        self.settings = get_settings()

    async def create_product(self, tenant_id: int, data: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        """创建商品，SKU 在租户内唯一"""
        async def _create(scope: TenantScope) -> Product:
            await self._ensure_sku_free(scope, data["sku"])
            fields = {k: data[k] for k in PRODUCT_FIELDS + ("stock",) if data.get(k) is not None}
            return await self.create(scope, Product, fields)

        product = await self.execute_with_transaction(tenant_id, _create)
        self.logger.info("Created product", product_id=product.id, sku=product.sku)
        return ServiceResult.ok(product_to_dict(product, []))

    async def _ensure_sku_free(self, scope: TenantScope, sku: str, exclude_id: Optional[int] = None) -> None:
        criteria = [Product.sku == sku]
        if exclude_id is not None:
            criteria.append(Product.id != exclude_id)
        if await scope.exists(Product, *criteria):
            raise ConflictError(
                code="DUPLICATE_SKU",
                detail="Product with this SKU already exists"
            )

    async def list_products(self, tenant_id: int) -> ServiceResult[List[Dict[str, Any]]]:
        """商品列表（最新在前），附带最近的库存流水"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            stmt = scope.select(Product).order_by(desc(Product.created_at), desc(Product.id))
            products = await scope.all(stmt)
            items = []
            for product in products:
                history = await recent_history(scope, product.id, self.settings.product_history_preview)
                items.append(product_to_dict(product, history))
            return items

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def get_product(self, tenant_id: int, product_id: int) -> ServiceResult[Dict[str, Any]]:
        """单个商品，附带全部库存流水"""
        async def _query(scope: TenantScope) -> Dict[str, Any]:
            product = await self._get_product(scope, product_id)
            history = await recent_history(scope, product.id)
            return product_to_dict(product, history)

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def _get_product(self, scope: TenantScope, product_id: int) -> Product:
        return await scope.get(Product, product_id, code="PRODUCT_NOT_FOUND", resource="Product")

    async def update_product(
        self,
        tenant_id: int,
        product_id: int,
        data: Dict[str, Any]
    ) -> ServiceResult[Dict[str, Any]]:
        """更新商品信息（库存只能通过 adjust_stock 修改）"""
        async def _update(scope: TenantScope) -> Product:
            product = await self._get_product(scope, product_id)
            if data.get("sku") and data["sku"] != product.sku:
                await self._ensure_sku_free(scope, data["sku"], exclude_id=product.id)
            self.apply_updates(product, data, PRODUCT_FIELDS)
            await scope.flush()
            return product

        product = await self.execute_with_transaction(tenant_id, _update)
        self.logger.info("Updated product", product_id=product_id)
        return ServiceResult.ok(product_to_dict(product))

    async def adjust_stock(
        self,
        tenant_id: int,
        product_id: int,
        change: int,
        reason: str
    ) -> ServiceResult[Dict[str, Any]]:
        """按差值调整库存并记录流水"""
        if change == 0:
            raise ValidationError(
                code="INVALID_STOCK_CHANGE",
                detail="Stock change must not be zero"
            )
        if not reason or not reason.strip():
            raise ValidationError(
                code="MISSING_REASON",
                detail="A reason is required for stock adjustments"
            )

        async def _adjust(scope: TenantScope) -> Product:
            product = await self._get_product(scope, product_id)
            await apply_stock_change(scope, product, change, reason.strip())
            await scope.flush()
            await scope.session.refresh(product, attribute_names=["stock"])
            return product

        product = await self.execute_with_transaction(tenant_id, _adjust)
        self.logger.info("Adjusted stock", product_id=product_id, change=change, stock=product.stock)
        return ServiceResult.ok(product_to_dict(product))

    async def low_stock(self, tenant_id: int, threshold: Optional[int] = None) -> ServiceResult[List[Dict[str, Any]]]:
        """库存不高于阈值的商品，库存升序"""
        if threshold is None:
            threshold = self.settings.low_stock_threshold

        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            stmt = scope.select(Product, Product.stock <= threshold).order_by(Product.stock, Product.id)
            return [product_to_dict(p) for p in await scope.all(stmt)]

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))
