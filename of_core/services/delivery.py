"""
配送模板服务
模板的增删改查和运费试算
"""
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import desc

from of_core.models import DeliveryTemplate, Order
from of_core.pricing import calculate_delivery_fee
from of_core.tenancy import TenantScope
from of_core.utils.errors import ConflictError
from .base import BaseService, ServiceResult, RepositoryMixin

TEMPLATE_FIELDS = ("name", "first_kg_price", "extra_kg_price", "is_default")


class DeliveryService(BaseService, RepositoryMixin):
    """配送模板服务"""

    async def create_template(self, tenant_id: int, data: Dict[str, Any]) -> ServiceResult[DeliveryTemplate]:
        template = await self.execute_with_transaction(tenant_id, self._create_template_tx, data)
        self.logger.info("Created delivery template", template_id=template.id, is_default=template.is_default)
        return ServiceResult.ok(template)

    async def _create_template_tx(self, scope: TenantScope, data: Dict[str, Any]) -> DeliveryTemplate:
        if data.get("is_default"):
            await self._clear_defaults(scope)
        return await self.create(scope, DeliveryTemplate, {k: data[k] for k in TEMPLATE_FIELDS if k in data})

    async def _clear_defaults(self, scope: TenantScope, keep_id: Optional[int] = None) -> None:
        """每个租户至多一个默认模板"""
        criteria = [DeliveryTemplate.is_default.is_(True)]
        if keep_id is not None:
            criteria.append(DeliveryTemplate.id != keep_id)
        await scope.session.execute(scope.update(DeliveryTemplate, *criteria).values(is_default=False))

    async def list_templates(self, tenant_id: int) -> ServiceResult[List[DeliveryTemplate]]:
        async def _query(scope: TenantScope) -> List[DeliveryTemplate]:
            stmt = scope.select(DeliveryTemplate).order_by(desc(DeliveryTemplate.is_default), DeliveryTemplate.id)
            return await scope.all(stmt)

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def get_template(self, tenant_id: int, template_id: int) -> ServiceResult[DeliveryTemplate]:
        template = await self.execute_with_session(tenant_id, self._get_template, template_id)
        return ServiceResult.ok(template)

    async def _get_template(self, scope: TenantScope, template_id: int) -> DeliveryTemplate:
        return await scope.get(
            DeliveryTemplate, template_id,
            code="DELIVERY_TEMPLATE_NOT_FOUND", resource="Delivery template"
        )

    async def update_template(
        self,
        tenant_id: int,
        template_id: int,
        data: Dict[str, Any]
    ) -> ServiceResult[DeliveryTemplate]:
        async def _update(scope: TenantScope) -> DeliveryTemplate:
            template = await self._get_template(scope, template_id)
            if data.get("is_default"):
                await self._clear_defaults(scope, keep_id=template.id)
            self.apply_updates(template, data, TEMPLATE_FIELDS)
            await scope.flush()
            return template

        template = await self.execute_with_transaction(tenant_id, _update)
        self.logger.info("Updated delivery template", template_id=template_id)
        return ServiceResult.ok(template)

    async def delete_template(self, tenant_id: int, template_id: int) -> ServiceResult[int]:
        """删除模板；仍被订单引用时拒绝"""
        async def _delete(scope: TenantScope) -> int:
            template = await self._get_template(scope, template_id)
            in_use = await scope.count(Order, Order.delivery_template_id == template.id)
            if in_use:
                raise ConflictError(
                    code="TEMPLATE_IN_USE",
                    detail=f"Delivery template is referenced by {in_use} order(s)"
                )
            await scope.session.delete(template)
            return template.id

        deleted_id = await self.execute_with_transaction(tenant_id, _delete)
        self.logger.info("Deleted delivery template", template_id=deleted_id)
        return ServiceResult.ok(deleted_id)

    async def calculate_fee(self, tenant_id: int, template_id: int, total_weight: Any) -> ServiceResult[Decimal]:
        """运费试算，不创建订单"""
        async def _calculate(scope: TenantScope) -> Decimal:
            template = await scope.find(DeliveryTemplate, template_id)
            return calculate_delivery_fee(template, total_weight)

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _calculate))
