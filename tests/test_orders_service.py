"""
订单服务测试
"""
from datetime import datetime, timedelta, timezone
from decimal import Decimal

import pytest
from sqlalchemy import func, select

from of_core.models import InventoryHistory, Order, Tenant
from of_core.services import OrdersService, ProductsService
from of_core.utils.errors import (
    ConflictError, InsufficientStockError, NotFoundError, ValidationError,
)


def order_payload(customer_id, template_id=None, weight=None, discount="0"):
    return {
        "customer_id": customer_id,
        "delivery_template_id": template_id,
        "total_weight": Decimal(weight) if weight is not None else None,
        "discount": Decimal(discount),
        "payment_method": "COD",
        "order_source": "WhatsApp",
    }


@pytest.fixture
def service(db_manager):
    return OrdersService()


@pytest.fixture
async def catalogue(tenant_id, make_product, make_customer, make_template):
    return {
        "rice": await make_product(tenant_id, "Rice 5kg", "100", stock=10),
        "tea": await make_product(tenant_id, "Tea", "50", stock=5),
        "customer": await make_customer(tenant_id),
        "template": await make_template(tenant_id, "150", "50"),
    }


async def count_rows(db_manager, model) -> int:
    async with db_manager.get_session() as session:
        return await session.scalar(select(func.count()).select_from(model))


class TestCreateOrder:

    async def test_totals_and_stock(self, service, tenant_id, catalogue):
        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id, catalogue["template"].id, "3.5", "20"),
            [
                {"product_id": catalogue["rice"].id, "quantity": 2},
                {"product_id": catalogue["tea"].id, "quantity": 1},
            ]
        )

        order = result.data
        assert result.success
        assert order["order_number"] == 1
        assert order["status"] == "PENDING"
        assert Decimal(order["subtotal"]) == Decimal("250")
        assert Decimal(order["delivery_fee"]) == Decimal("275")
        assert Decimal(order["total_amount"]) == Decimal("505")
        assert [item["quantity"] for item in order["items"]] == [2, 1]
        assert order["items"][0]["product_name"] == "Rice 5kg"
        assert Decimal(order["items"][0]["line_total"]) == Decimal("200")
        assert order["customer"]["name"] == "Alice"

        product = (await ProductsService().get_product(tenant_id, catalogue["rice"].id)).data
        assert product["stock"] == 8
        assert [(h["change"], h["reason"]) for h in product["history"]] == [(-2, "Order #1")]

    async def test_price_is_captured_at_order_time(self, service, tenant_id, catalogue):
        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id),
            [{"product_id": catalogue["tea"].id, "quantity": 1}]
        )
        await ProductsService().update_product(tenant_id, catalogue["tea"].id, {"price": Decimal("75")})

        order = (await service.get_order(tenant_id, result.data["id"])).data
        assert Decimal(order["items"][0]["price"]) == Decimal("50")
        assert Decimal(order["total_amount"]) == Decimal("50")

    async def test_insufficient_stock_changes_nothing(self, service, tenant_id, catalogue, make_product, db_manager):
        scarce = await make_product(tenant_id, "Saffron", "900", stock=3)

        with pytest.raises(InsufficientStockError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id),
                [
                    {"product_id": catalogue["rice"].id, "quantity": 1},
                    {"product_id": scarce.id, "quantity": 5},
                ]
            )

        assert exc.value.status == 400
        assert exc.value.extra["available"] == 3
        assert "Saffron" in exc.value.detail

        products = ProductsService()
        assert (await products.get_product(tenant_id, scarce.id)).data["stock"] == 3
        assert (await products.get_product(tenant_id, catalogue["rice"].id)).data["stock"] == 10
        assert await count_rows(db_manager, InventoryHistory) == 0
        assert await count_rows(db_manager, Order) == 0

    async def test_repeated_product_cannot_oversell(self, service, tenant_id, catalogue, make_product, db_manager):
        scarce = await make_product(tenant_id, "Saffron", "900", stock=3)

        # 每行单独检查都通过，第二次条件扣减失败
        with pytest.raises(InsufficientStockError):
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id),
                [
                    {"product_id": scarce.id, "quantity": 2},
                    {"product_id": scarce.id, "quantity": 2},
                ]
            )

        assert (await ProductsService().get_product(tenant_id, scarce.id)).data["stock"] == 3
        assert await count_rows(db_manager, InventoryHistory) == 0

    async def test_failed_order_does_not_consume_order_number(self, service, tenant_id, catalogue):
        with pytest.raises(InsufficientStockError):
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id),
                [{"product_id": catalogue["tea"].id, "quantity": 50}]
            )

        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id),
            [{"product_id": catalogue["tea"].id, "quantity": 1}]
        )
        assert result.data["order_number"] == 1

    async def test_order_numbers_are_per_tenant(
        self, service, tenant_id, other_tenant_id, catalogue, make_product, make_customer, db_manager
    ):
        for _ in range(2):
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id),
                [{"product_id": catalogue["rice"].id, "quantity": 1}]
            )

        other_product = await make_product(other_tenant_id, "Rice 5kg", "100", stock=5)
        other_customer = await make_customer(other_tenant_id)
        result = await service.create_order(
            other_tenant_id,
            order_payload(other_customer.id),
            [{"product_id": other_product.id, "quantity": 1}]
        )

        assert result.data["order_number"] == 1
        async with db_manager.get_session() as session:
            seq = await session.scalar(select(Tenant.order_seq).where(Tenant.id == tenant_id))
        assert seq == 2

    async def test_cross_tenant_customer_is_not_found(self, service, other_tenant_id, catalogue, make_product):
        other_product = await make_product(other_tenant_id, "Tea", "50", stock=5)

        with pytest.raises(NotFoundError) as exc:
            await service.create_order(
                other_tenant_id,
                order_payload(catalogue["customer"].id),
                [{"product_id": other_product.id, "quantity": 1}]
            )
        assert exc.value.code == "CUSTOMER_NOT_FOUND"

    async def test_cross_tenant_product_is_not_found(self, service, tenant_id, other_tenant_id, catalogue, make_product):
        foreign = await make_product(other_tenant_id, "Foreign", "10", stock=100)

        with pytest.raises(NotFoundError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id),
                [{"product_id": foreign.id, "quantity": 1}]
            )
        assert exc.value.code == "PRODUCT_NOT_FOUND"
        assert exc.value.detail == f"Product {foreign.id} not found"

    async def test_unknown_template_is_not_found(self, service, tenant_id, catalogue):
        with pytest.raises(NotFoundError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id, template_id=9999, weight="2"),
                [{"product_id": catalogue["rice"].id, "quantity": 1}]
            )
        assert exc.value.code == "DELIVERY_TEMPLATE_NOT_FOUND"

    @pytest.mark.parametrize("weight", [None, "0"])
    async def test_no_fee_without_positive_weight(self, service, tenant_id, catalogue, weight):
        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id, catalogue["template"].id, weight),
            [{"product_id": catalogue["rice"].id, "quantity": 1}]
        )
        assert Decimal(result.data["delivery_fee"]) == Decimal("0")
        assert Decimal(result.data["total_amount"]) == Decimal("100")

    async def test_no_fee_without_template(self, service, tenant_id, catalogue):
        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id, weight="4"),
            [{"product_id": catalogue["rice"].id, "quantity": 1}]
        )
        assert Decimal(result.data["delivery_fee"]) == Decimal("0")

    async def test_discount_beyond_total_rejected(self, service, tenant_id, catalogue):
        with pytest.raises(ValidationError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id, discount="150"),
                [{"product_id": catalogue["rice"].id, "quantity": 1}]
            )
        assert exc.value.code == "DISCOUNT_EXCEEDS_TOTAL"

    async def test_negative_total_allowed_by_setting(self, service, tenant_id, catalogue, monkeypatch):
        monkeypatch.setattr(service.settings, "allow_negative_total", True)

        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id, discount="150"),
            [{"product_id": catalogue["rice"].id, "quantity": 1}]
        )
        assert Decimal(result.data["total_amount"]) == Decimal("-50")

    @pytest.mark.parametrize("items, code", [
        ([], "EMPTY_ORDER_ITEMS"),
        ([{"product_id": 1, "quantity": 0}], "INVALID_QUANTITY"),
        ([{"product_id": 1, "quantity": -2}], "INVALID_QUANTITY"),
    ])
    async def test_invalid_items(self, service, tenant_id, catalogue, items, code):
        with pytest.raises(ValidationError) as exc:
            await service.create_order(tenant_id, order_payload(catalogue["customer"].id), items)
        assert exc.value.code == code

    async def test_negative_discount_rejected(self, service, tenant_id, catalogue):
        with pytest.raises(ValidationError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id, discount="-5"),
                [{"product_id": catalogue["rice"].id, "quantity": 1}]
            )
        assert exc.value.code == "INVALID_DISCOUNT"

    async def test_weight_above_limit_rejected(self, service, tenant_id, catalogue):
        with pytest.raises(ValidationError) as exc:
            await service.create_order(
                tenant_id,
                order_payload(catalogue["customer"].id, weight="1e30"),
                [{"product_id": catalogue["rice"].id, "quantity": 1}]
            )
        assert exc.value.code == "INVALID_WEIGHT"

    async def test_payment_method_required(self, service, tenant_id, catalogue):
        payload = order_payload(catalogue["customer"].id)
        payload["payment_method"] = "  "
        with pytest.raises(ValidationError) as exc:
            await service.create_order(tenant_id, payload, [{"product_id": catalogue["rice"].id, "quantity": 1}])
        assert exc.value.code == "MISSING_PAYMENT_METHOD"


class TestOrderStatus:

    @pytest.fixture
    async def order_id(self, service, tenant_id, catalogue):
        result = await service.create_order(
            tenant_id,
            order_payload(catalogue["customer"].id),
            [{"product_id": catalogue["rice"].id, "quantity": 1}]
        )
        return result.data["id"]

    async def test_forward_path(self, service, tenant_id, order_id):
        for status in ("CONFIRMED", "READY", "DISPATCHED", "DELIVERED"):
            result = await service.update_status(tenant_id, order_id, status)
            assert result.data["status"] == status

    async def test_skipping_a_step_is_rejected(self, service, tenant_id, order_id):
        with pytest.raises(ConflictError) as exc:
            await service.update_status(tenant_id, order_id, "DISPATCHED")
        assert exc.value.code == "INVALID_STATUS_TRANSITION"

    async def test_same_status_is_a_no_op(self, service, tenant_id, order_id):
        result = await service.update_status(tenant_id, order_id, "PENDING")
        assert result.data["status"] == "PENDING"

    async def test_cancelled_is_terminal(self, service, tenant_id, order_id):
        await service.update_status(tenant_id, order_id, "CANCELLED")
        with pytest.raises(ConflictError):
            await service.update_status(tenant_id, order_id, "CONFIRMED")

    async def test_unknown_status(self, service, tenant_id, order_id):
        with pytest.raises(ValidationError) as exc:
            await service.update_status(tenant_id, order_id, "LOST")
        assert exc.value.code == "INVALID_STATUS"

    async def test_other_tenant_cannot_update(self, service, other_tenant_id, order_id):
        with pytest.raises(NotFoundError):
            await service.update_status(other_tenant_id, order_id, "CONFIRMED")


class TestOrderQueries:

    @pytest.fixture
    async def orders(self, service, tenant_id, catalogue):
        created = []
        for source in ("WhatsApp", "Instagram", "WhatsApp"):
            payload = order_payload(catalogue["customer"].id)
            payload["order_source"] = source
            result = await service.create_order(
                tenant_id, payload, [{"product_id": catalogue["tea"].id, "quantity": 1}]
            )
            created.append(result.data)
        return created

    async def test_newest_first_with_filters(self, service, tenant_id, orders):
        all_orders = (await service.get_orders(tenant_id)).data
        assert [o["order_number"] for o in all_orders] == [3, 2, 1]

        whatsapp = (await service.get_orders(tenant_id, order_source="WhatsApp")).data
        assert [o["order_number"] for o in whatsapp] == [3, 1]

        await service.update_status(tenant_id, orders[0]["id"], "CANCELLED")
        cancelled = (await service.get_orders(tenant_id, status="CANCELLED")).data
        assert [o["id"] for o in cancelled] == [orders[0]["id"]]

    async def test_date_range(self, service, tenant_id, orders):
        now = datetime.now(timezone.utc)
        assert len((await service.get_orders(tenant_id, start_date=now - timedelta(hours=1))).data) == 3
        assert (await service.get_orders(tenant_id, end_date=now - timedelta(hours=1))).data == []

    async def test_ready_for_dispatch_oldest_first(self, service, tenant_id, orders):
        for order in (orders[2], orders[0]):
            await service.update_status(tenant_id, order["id"], "CONFIRMED")
            await service.update_status(tenant_id, order["id"], "READY")

        ready = (await service.get_ready_for_dispatch(tenant_id)).data
        assert [o["order_number"] for o in ready] == [1, 3]

    async def test_courier_export(self, service, tenant_id, other_tenant_id, orders):
        rows = (await service.export_for_courier(tenant_id, [orders[1]["id"], orders[0]["id"]])).data

        assert [row["order_number"] for row in rows] == [1, 2]
        assert rows[0]["customer_name"] == "Alice"
        assert rows[0]["city"] == "Colombo"
        assert rows[0]["items"] == "Tea x1"
        assert Decimal(rows[0]["total_amount"]) == Decimal("50")

        assert (await service.export_for_courier(other_tenant_id, [orders[0]["id"]])).data == []

    async def test_other_tenant_sees_nothing(self, service, other_tenant_id, orders):
        assert (await service.get_orders(other_tenant_id)).data == []
        with pytest.raises(NotFoundError):
            await service.get_order(other_tenant_id, orders[0]["id"])


class TestPreview:

    async def test_preview_uses_current_prices(self, service, tenant_id, catalogue):
        result = await service.preview(
            tenant_id,
            [
                {"product_id": catalogue["rice"].id, "quantity": 2},
                {"product_id": catalogue["tea"].id, "quantity": 1},
                {"product_id": 9999, "quantity": 1},
            ],
            delivery_template_id=catalogue["template"].id,
            total_weight=Decimal("3.5"),
            discount=Decimal("20")
        )

        preview = result.data
        assert Decimal(preview["subtotal"]) == Decimal("250")
        assert Decimal(preview["delivery_fee"]) == Decimal("275")
        assert Decimal(preview["total_amount"]) == Decimal("505")
        assert Decimal(preview["items_total"][str(catalogue["rice"].id)]) == Decimal("200")
        assert "9999" not in preview["items_total"]

    async def test_preview_does_not_check_stock_and_clamps(self, service, tenant_id, catalogue):
        result = await service.preview(
            tenant_id,
            [{"product_id": catalogue["tea"].id, "quantity": 500}],
            discount=Decimal("100000")
        )
        assert Decimal(result.data["total_amount"]) == Decimal("0")

    async def test_preview_ignores_other_tenant_products(self, service, other_tenant_id, catalogue):
        result = await service.preview(other_tenant_id, [{"product_id": catalogue["rice"].id, "quantity": 1}])
        assert Decimal(result.data["subtotal"]) == Decimal("0")
