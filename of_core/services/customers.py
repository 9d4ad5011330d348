"""
客户服务
"""
from typing import Any, Dict, List, Optional

from sqlalchemy import desc

from of_core.config import get_settings
from of_core.models import Customer, Order
from of_core.tenancy import TenantScope
from of_core.utils.errors import ConflictError
from .base import BaseService, ServiceResult, RepositoryMixin

CUSTOMER_FIELDS = ("name", "phone", "address", "city")


class CustomersService(BaseService, RepositoryMixin):
    """客户服务"""

    def __init__(self):
        super().__init__()
        self.settings = get_settings()

    async def create_customer(self, tenant_id: int, data: Dict[str, Any]) -> ServiceResult[Dict[str, Any]]:
        """创建客户，电话在租户内唯一"""
        async def _create(scope: TenantScope) -> Customer:
            await self._ensure_phone_free(scope, data["phone"])
            return await self.create(scope, Customer, {k: data.get(k) for k in CUSTOMER_FIELDS})

        customer = await self.execute_with_transaction(tenant_id, _create)
        self.logger.info("Created customer", customer_id=customer.id)
        return ServiceResult.ok(self._to_dict(customer, []))

    async def _ensure_phone_free(self, scope: TenantScope, phone: str, exclude_id: Optional[int] = None) -> None:
        criteria = [Customer.phone == phone]
        if exclude_id is not None:
            criteria.append(Customer.id != exclude_id)
        if await scope.exists(Customer, *criteria):
            raise ConflictError(
                code="DUPLICATE_PHONE",
                detail="Customer with this phone number already exists"
            )

    async def _recent_orders(self, scope: TenantScope, customer_id: int, limit: Optional[int] = None) -> List[Order]:
        stmt = scope.select(Order, Order.customer_id == customer_id).order_by(
            desc(Order.created_at), desc(Order.id)
        )
        if limit:
            stmt = stmt.limit(limit)
        return await scope.all(stmt)

    def _to_dict(self, customer: Customer, orders: Optional[List[Order]] = None) -> Dict[str, Any]:
        data = customer.to_dict()
        if orders is not None:
            data["orders"] = [order.to_dict() for order in orders]
        return data

    async def list_customers(self, tenant_id: int) -> ServiceResult[List[Dict[str, Any]]]:
        """客户列表（最新在前），附带最近订单"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            stmt = scope.select(Customer).order_by(desc(Customer.created_at), desc(Customer.id))
            items = []
            for customer in await scope.all(stmt):
                orders = await self._recent_orders(scope, customer.id, self.settings.customer_orders_preview)
                items.append(self._to_dict(customer, orders))
            return items

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def find_by_phone(self, tenant_id: int, phone: str) -> ServiceResult[Optional[Dict[str, Any]]]:
        """按电话精确查找，找不到返回 None"""
        async def _query(scope: TenantScope) -> Optional[Dict[str, Any]]:
            customer = await scope.first(Customer, Customer.phone == phone)
            if customer is None:
                return None
            orders = await self._recent_orders(scope, customer.id, self.settings.customer_orders_preview)
            return self._to_dict(customer, orders)

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def get_customer(self, tenant_id: int, customer_id: int) -> ServiceResult[Dict[str, Any]]:
        async def _query(scope: TenantScope) -> Dict[str, Any]:
            customer = await self._get_customer(scope, customer_id)
            return self._to_dict(customer, await self._recent_orders(scope, customer.id))

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def _get_customer(self, scope: TenantScope, customer_id: int) -> Customer:
        return await scope.get(Customer, customer_id, code="CUSTOMER_NOT_FOUND", resource="Customer")

    async def update_customer(
        self,
        tenant_id: int,
        customer_id: int,
        data: Dict[str, Any]
    ) -> ServiceResult[Dict[str, Any]]:
        async def _update(scope: TenantScope) -> Customer:
            customer = await self._get_customer(scope, customer_id)
            if data.get("phone") and data["phone"] != customer.phone:
                await self._ensure_phone_free(scope, data["phone"], exclude_id=customer.id)
            self.apply_updates(customer, data, CUSTOMER_FIELDS)
            await scope.flush()
            return customer

        customer = await self.execute_with_transaction(tenant_id, _update)
        self.logger.info("Updated customer", customer_id=customer_id)
        return ServiceResult.ok(self._to_dict(customer))
