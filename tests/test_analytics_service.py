"""
经营分析服务测试
"""
from datetime import datetime, timezone
from decimal import Decimal

import pytest

from of_core.services import AnalyticsService, OrdersService
from of_core.services.analytics import bucket_key
from of_core.utils.errors import ValidationError


@pytest.fixture
async def sales(db_manager, tenant_id, other_tenant_id, make_product, make_customer):
    """本租户三笔订单（取消一笔），其他租户一笔"""
    rice = await make_product(tenant_id, "Rice 5kg", "100", stock=20)
    tea = await make_product(tenant_id, "Tea", "50", stock=5)
    await make_product(tenant_id, "Salt", "20", stock=40)
    customer = await make_customer(tenant_id)
    orders = OrdersService()

    def payload(customer_id):
        return {"customer_id": customer_id, "discount": 0, "payment_method": "COD", "order_source": "WhatsApp"}

    await orders.create_order(tenant_id, payload(customer.id), [
        {"product_id": rice.id, "quantity": 2},
        {"product_id": tea.id, "quantity": 1},
    ])
    await orders.create_order(tenant_id, payload(customer.id), [{"product_id": tea.id, "quantity": 3}])
    cancelled = await orders.create_order(tenant_id, payload(customer.id), [{"product_id": rice.id, "quantity": 5}])
    await orders.update_status(tenant_id, cancelled.data["id"], "CANCELLED")

    other_product = await make_product(other_tenant_id, "Rice 5kg", "100", stock=50)
    other_customer = await make_customer(other_tenant_id)
    await orders.create_order(other_tenant_id, payload(other_customer.id), [
        {"product_id": other_product.id, "quantity": 30},
    ])
    return {"rice": rice, "tea": tea}


@pytest.fixture
def service(db_manager):
    return AnalyticsService()


async def test_dashboard(service, tenant_id, sales):
    stats = (await service.dashboard(tenant_id)).data

    assert stats["orders"]["total"] == 3
    assert stats["orders"]["by_status"]["PENDING"] == 2
    assert stats["orders"]["by_status"]["CANCELLED"] == 1
    assert stats["orders"]["by_status"]["DELIVERED"] == 0
    # 250 + 150，已取消订单不计入
    assert Decimal(stats["revenue"]) == Decimal("400")
    # Tea 剩 1，Rice 剩 13（取消不回补库存），Salt 40
    assert stats["low_stock_products"] == 1
    assert stats["customers"] == 1


async def test_most_sold(service, tenant_id, sales):
    rows = (await service.most_sold(tenant_id)).data

    assert [(row["name"], row["quantity"]) for row in rows] == [("Tea", 4), ("Rice 5kg", 2)]
    assert Decimal(rows[0]["revenue"]) == Decimal("200")

    assert len((await service.most_sold(tenant_id, limit=1)).data) == 1


async def test_daily_revenue(service, tenant_id, sales):
    result = await service.revenue(tenant_id, "daily")

    today = datetime.now(timezone.utc).date().isoformat()
    assert [row["period"] for row in result.data] == [today]
    assert Decimal(result.data[0]["revenue"]) == Decimal("400")
    assert result.data[0]["orders"] == 2
    assert result.metadata["period"] == "daily"


async def test_monthly_revenue_bucket(service, tenant_id, sales):
    rows = (await service.revenue(tenant_id, "monthly")).data
    now = datetime.now(timezone.utc)
    assert [row["period"] for row in rows] == [f"{now.year:04d}-{now.month:02d}"]
    assert rows[0]["orders"] == 2


async def test_invalid_period(service, tenant_id):
    with pytest.raises(ValidationError) as exc:
        await service.revenue(tenant_id, "hourly")
    assert exc.value.code == "INVALID_PERIOD"


@pytest.mark.parametrize("period, expected", [
    ("daily", "2026-03-05"),
    ("weekly", "2026-03-02"),
    ("monthly", "2026-03"),
])
def test_bucket_key(period, expected):
    # 2026-03-05 是周四
    assert bucket_key(datetime(2026, 3, 5, 18, 30, tzinfo=timezone.utc), period) == expected


def test_bucket_key_treats_naive_as_utc():
    assert bucket_key(datetime(2026, 3, 8, 23, 59), "weekly") == "2026-03-02"
