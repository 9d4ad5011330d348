"""
订单服务
下单（库存校验、计价、扣库存、记流水）、查询、状态流转和快递导出
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from sqlalchemy import asc, desc
from sqlalchemy.orm import selectinload

from of_core.config import get_settings
from of_core.models import Customer, DeliveryTemplate, Order, OrderItem, OrderStatus, Product
from of_core.models.base import as_utc
from of_core.pricing import (
    DraftLine, calculate_delivery_fee, order_total, preview_order,
)
from of_core.pricing.delivery import MAX_TOTAL_WEIGHT, ZERO, to_decimal
from of_core.tenancy import TenantScope
from of_core.utils.errors import ConflictError, InsufficientStockError, NotFoundError, ValidationError
from .base import BaseService, ServiceResult, RepositoryMixin
from .inventory import apply_stock_change

ORDER_LOAD_OPTIONS = (
    selectinload(Order.items).selectinload(OrderItem.product),
    selectinload(Order.customer),
    selectinload(Order.delivery_template),
)


def order_to_dict(order: Order) -> Dict[str, Any]:
    """订单及其明细、客户、配送模板"""
    data = order.to_dict()
    data["subtotal"] = str(order.subtotal)
    data["items"] = []
    for item in order.items:
        item_data = item.to_dict()
        item_data["line_total"] = str(item.line_total)
        item_data["product_name"] = item.product.name if item.product else None
        item_data["sku"] = item.product.sku if item.product else None
        data["items"].append(item_data)
    data["customer"] = order.customer.to_dict() if order.customer else None
    data["delivery_template"] = order.delivery_template.to_dict() if order.delivery_template else None
    return data


class OrdersService(BaseService, RepositoryMixin):
    """订单服务"""

    def __init__(self):
        super().__init__()
        self.settings = get_settings()

    # ========== 下单 ==========

    async def create_order(
        self,
        tenant_id: int,
        order_data: Dict[str, Any],
        items_data: List[Dict[str, Any]]
    ) -> ServiceResult[Dict[str, Any]]:
        """创建订单

        在一个事务内完成：校验客户、逐行校验库存并按当前价格计价、计算运费和总额、
        写订单和明细、扣减库存、每行追加一条库存流水。任一步失败整体回滚。
        """
        self._validate_order_data(order_data, items_data)

        order = await self.execute_with_transaction(
            tenant_id,
            self._create_order_tx,
            order_data,
            items_data
        )

        self.logger.info(
            "Created order",
            order_id=order["id"],
            order_number=order["order_number"],
            total_amount=order["total_amount"],
            items=len(order["items"])
        )
        return ServiceResult.ok(order)

    def _validate_order_data(self, order_data: Dict[str, Any], items_data: List[Dict[str, Any]]) -> None:
        """校验请求数据（不访问数据库）"""
        if not items_data:
            raise ValidationError(
                code="EMPTY_ORDER_ITEMS",
                detail="An order needs at least one item"
            )

        for i, item in enumerate(items_data):
            quantity = item.get("quantity")
            if not isinstance(quantity, int) or isinstance(quantity, bool) or quantity <= 0:
                raise ValidationError(
                    code="INVALID_QUANTITY",
                    detail=f"Quantity must be positive integer for item {i}, got: {quantity}"
                )

        discount = to_decimal(order_data.get("discount") or 0, "discount")
        if discount < 0:
            raise ValidationError(
                code="INVALID_DISCOUNT",
                detail=f"Discount cannot be negative, got: {discount}"
            )
        order_data["discount"] = discount

        if order_data.get("total_weight") is not None:
            weight = to_decimal(order_data["total_weight"], "total_weight")
            if weight < 0:
                raise ValidationError(
                    code="INVALID_WEIGHT",
                    detail=f"Weight cannot be negative, got: {weight}"
                )
            if weight > MAX_TOTAL_WEIGHT:
                raise ValidationError(
                    code="INVALID_WEIGHT",
                    detail=f"Weight cannot exceed {MAX_TOTAL_WEIGHT} kg, got: {weight}"
                )
            order_data["total_weight"] = weight

        for field in ("payment_method", "order_source"):
            if not (order_data.get(field) or "").strip():
                raise ValidationError(
                    code=f"MISSING_{field.upper()}",
                    detail=f"{field} is required"
                )

    async def _create_order_tx(
        self,
        scope: TenantScope,
        order_data: Dict[str, Any],
        items_data: List[Dict[str, Any]]
    ) -> Dict[str, Any]:
        """事务中的下单逻辑"""
        customer = await scope.get(
            Customer, order_data["customer_id"],
            code="CUSTOMER_NOT_FOUND", resource="Customer"
        )

        # 按请求顺序逐行校验和计价，遇到第一个错误即终止
        subtotal = Decimal("0")
        lines = []
        for item in items_data:
            product = await scope.find(Product, item["product_id"])
            if product is None:
                raise NotFoundError(code="PRODUCT_NOT_FOUND", resource=f"Product {item['product_id']}")

            if product.stock < item["quantity"]:
                raise InsufficientStockError(
                    product_id=product.id,
                    product_name=product.name,
                    available=product.stock
                )

            subtotal += product.price * item["quantity"]
            lines.append((product, item["quantity"], product.price))

        delivery_fee = await self._delivery_fee(
            scope,
            order_data.get("delivery_template_id"),
            order_data.get("total_weight")
        )

        discount = order_data["discount"]
        total_amount = order_total(subtotal, discount, delivery_fee)
        if total_amount < 0 and not self.settings.allow_negative_total:
            raise ValidationError(
                code="DISCOUNT_EXCEEDS_TOTAL",
                detail=f"Discount {discount} exceeds subtotal {subtotal} plus delivery fee {delivery_fee}"
            )

        order_number = await scope.next_order_number()

        order = await self.create(scope, Order, {
            "order_number": order_number,
            "customer_id": customer.id,
            "delivery_template_id": order_data.get("delivery_template_id"),
            "status": OrderStatus.PENDING.value,
            "discount": discount,
            "delivery_fee": delivery_fee,
            "total_amount": total_amount,
            "total_weight": order_data.get("total_weight"),
            "payment_method": order_data["payment_method"].strip(),
            "order_source": order_data["order_source"].strip(),
        })

        for product, quantity, price in lines:
            scope.session.add(OrderItem(
                order_id=order.id,
                product_id=product.id,
                quantity=quantity,
                price=price
            ))
            await apply_stock_change(scope, product, -quantity, f"Order #{order_number}")

        await scope.flush()

        stmt = (
            scope.select(Order, Order.id == order.id)
            .options(*ORDER_LOAD_OPTIONS)
            .execution_options(populate_existing=True)
        )
        result = await scope.session.execute(stmt)
        return order_to_dict(result.scalar_one())

    async def _delivery_fee(
        self,
        scope: TenantScope,
        template_id: Optional[int],
        total_weight: Optional[Decimal]
    ) -> Decimal:
        """只有同时给出模板和正重量时才收运费"""
        if template_id is None:
            return ZERO

        template = await scope.find(DeliveryTemplate, template_id)
        if template is None:
            raise NotFoundError(code="DELIVERY_TEMPLATE_NOT_FOUND", resource="Delivery template")

        if total_weight is None or total_weight <= 0:
            return ZERO

        return calculate_delivery_fee(template, total_weight)

    # ========== 预览 ==========

    async def preview(
        self,
        tenant_id: int,
        items_data: List[Dict[str, Any]],
        delivery_template_id: Optional[int] = None,
        total_weight: Any = None,
        discount: Any = 0
    ) -> ServiceResult[Dict[str, Any]]:
        """草稿金额预览：使用当前价格，不校验库存，结果仅供参考"""
        async def _preview(scope: TenantScope) -> Dict[str, Any]:
            product_ids = {item["product_id"] for item in items_data}
            prices = {}
            if product_ids:
                products = await scope.all(scope.select(Product, Product.id.in_(product_ids)))
                prices = {p.id: p.price for p in products}

            template = None
            if delivery_template_id is not None:
                template = await scope.find(DeliveryTemplate, delivery_template_id)

            result = preview_order(
                [DraftLine(item["product_id"], item["quantity"]) for item in items_data],
                prices,
                template=template,
                total_weight=total_weight,
                discount=discount
            )
            return {
                "subtotal": str(result.subtotal),
                "delivery_fee": str(result.delivery_fee),
                "total_amount": str(result.total_amount),
                "items_total": {str(k): str(v) for k, v in result.items_total.items()},
            }

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _preview))

    # ========== 查询 ==========

    async def get_orders(
        self,
        tenant_id: int,
        status: Optional[str] = None,
        order_source: Optional[str] = None,
        start_date: Optional[datetime] = None,
        end_date: Optional[datetime] = None
    ) -> ServiceResult[List[Dict[str, Any]]]:
        """订单列表（最新在前）"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            criteria = []
            if status:
                criteria.append(Order.status == status)
            if order_source:
                criteria.append(Order.order_source == order_source)
            if start_date:
                criteria.append(Order.created_at >= as_utc(start_date))
            if end_date:
                criteria.append(Order.created_at <= as_utc(end_date))

            stmt = (
                scope.select(Order, *criteria)
                .options(*ORDER_LOAD_OPTIONS)
                .order_by(desc(Order.created_at), desc(Order.id))
            )
            return [order_to_dict(o) for o in await scope.all(stmt)]

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def get_order(self, tenant_id: int, order_id: int) -> ServiceResult[Dict[str, Any]]:
        async def _query(scope: TenantScope) -> Dict[str, Any]:
            return order_to_dict(await self._get_order(scope, order_id))

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    async def _get_order(self, scope: TenantScope, order_id: int) -> Order:
        return await scope.get(Order, order_id, *ORDER_LOAD_OPTIONS, code="ORDER_NOT_FOUND", resource="Order")

    async def get_ready_for_dispatch(self, tenant_id: int) -> ServiceResult[List[Dict[str, Any]]]:
        """待发货订单（READY），最早的在前"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            stmt = (
                scope.select(Order, Order.status == OrderStatus.READY.value)
                .options(*ORDER_LOAD_OPTIONS)
                .order_by(asc(Order.created_at), asc(Order.id))
            )
            return [order_to_dict(o) for o in await scope.all(stmt)]

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))

    # ========== 状态流转 ==========

    async def update_status(self, tenant_id: int, order_id: int, status: str) -> ServiceResult[Dict[str, Any]]:
        """修改订单状态，按状态流转表校验"""
        try:
            target = OrderStatus(status)
        except ValueError:
            raise ValidationError(
                code="INVALID_STATUS",
                detail=f"Unknown order status: {status}"
            )

        async def _update(scope: TenantScope) -> Dict[str, Any]:
            order = await self._get_order(scope, order_id)
            current = OrderStatus(order.status)
            if not current.can_transition_to(target):
                raise ConflictError(
                    code="INVALID_STATUS_TRANSITION",
                    detail=f"Cannot change order status from {current.value} to {target.value}"
                )
            if current != target:
                order.status = target.value
                await scope.flush()
                self.logger.info(
                    "Order status changed",
                    order_id=order.id,
                    from_status=current.value,
                    to_status=target.value
                )
            return order_to_dict(order)

        return ServiceResult.ok(await self.execute_with_transaction(tenant_id, _update))

    # ========== 快递导出 ==========

    async def export_for_courier(self, tenant_id: int, order_ids: List[int]) -> ServiceResult[List[Dict[str, Any]]]:
        """导出快递批量上传所需字段，不属于当前租户的订单ID被忽略"""
        async def _query(scope: TenantScope) -> List[Dict[str, Any]]:
            if not order_ids:
                return []
            stmt = (
                scope.select(Order, Order.id.in_(order_ids))
                .options(*ORDER_LOAD_OPTIONS)
                .order_by(asc(Order.order_number))
            )
            rows = []
            for order in await scope.all(stmt):
                rows.append({
                    "order_number": order.order_number,
                    "customer_name": order.customer.name,
                    "phone": order.customer.phone,
                    "address": order.customer.address,
                    "city": order.customer.city,
                    "total_amount": str(order.total_amount),
                    "delivery_fee": str(order.delivery_fee),
                    "payment_method": order.payment_method,
                    "items": ", ".join(f"{item.product.name} x{item.quantity}" for item in order.items),
                })
            return rows

        return ServiceResult.ok(await self.execute_with_session(tenant_id, _query))
