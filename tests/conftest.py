"""
Pytest 配置和 fixtures
"""
import os
import tempfile
from decimal import Decimal
from pathlib import Path
from typing import AsyncGenerator

# 必须在导入 of_core 之前设置：测试使用独立的 SQLite 文件库
_TEST_DB_DIR = tempfile.mkdtemp(prefix="orderflow-test-")
os.environ["OF__DB_URL"] = f"sqlite+aiosqlite:///{Path(_TEST_DB_DIR) / 'orderflow_test.db'}"
os.environ["OF__BCRYPT_ROUNDS"] = "4"
os.environ["OF__SECRET_KEY"] = "test-secret-key"
os.environ["OF__LOG_LEVEL"] = "WARNING"

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from of_core.config import get_settings
from of_core.database import get_db_manager, reset_db_manager
from of_core.models import Customer, DeliveryTemplate, Product, Tenant
from of_core.services.auth_service import reset_auth_service

get_settings.cache_clear()


@pytest_asyncio.fixture
async def db_manager():
    """数据库管理器 fixture（每个用例重建表）"""
    reset_db_manager()
    reset_auth_service()
    manager = get_db_manager()
    await manager.drop_tables()
    await manager.create_tables()

    yield manager

    await manager.drop_tables()
    await manager.close()
    reset_db_manager()


@pytest_asyncio.fixture
async def db_session(db_manager) -> AsyncGenerator[AsyncSession, None]:
    """数据库会话 fixture"""
    async with db_manager.get_session() as session:
        yield session


@pytest.fixture
def settings():
    return get_settings()


async def _create_tenant(db_manager, name: str) -> int:
    async with db_manager.get_transaction() as session:
        tenant = Tenant(name=name)
        session.add(tenant)
        await session.flush()
        return tenant.id


@pytest_asyncio.fixture
async def tenant_id(db_manager) -> int:
    return await _create_tenant(db_manager, "Corner Shop")


@pytest_asyncio.fixture
async def other_tenant_id(db_manager) -> int:
    return await _create_tenant(db_manager, "Other Shop")


@pytest_asyncio.fixture
async def make_product(db_manager):
    """工厂：直接写库创建商品"""
    async def _make(tenant_id: int, name: str, price: str, stock: int, sku: str = None) -> Product:
        async with db_manager.get_transaction() as session:
            product = Product(
                tenant_id=tenant_id,
                name=name,
                sku=sku or name.upper().replace(" ", "-"),
                price=Decimal(price),
                stock=stock
            )
            session.add(product)
            await session.flush()
            return product

    return _make


@pytest_asyncio.fixture
async def make_customer(db_manager):
    async def _make(tenant_id: int, name: str = "Alice", phone: str = "0771234567") -> Customer:
        async with db_manager.get_transaction() as session:
            customer = Customer(
                tenant_id=tenant_id,
                name=name,
                phone=phone,
                address="12 Main Street",
                city="Colombo"
            )
            session.add(customer)
            await session.flush()
            return customer

    return _make


@pytest_asyncio.fixture
async def make_template(db_manager):
    async def _make(
        tenant_id: int,
        first_kg_price: str = "150",
        extra_kg_price: str = "50",
        is_default: bool = False
    ) -> DeliveryTemplate:
        async with db_manager.get_transaction() as session:
            template = DeliveryTemplate(
                tenant_id=tenant_id,
                name="Standard",
                first_kg_price=Decimal(first_kg_price),
                extra_kg_price=Decimal(extra_kg_price),
                is_default=is_default
            )
            session.add(template)
            await session.flush()
            return template

    return _make


@pytest_asyncio.fixture
async def client(db_manager) -> AsyncGenerator[AsyncClient, None]:
    """API 客户端（不经过 lifespan，表由 db_manager 创建）"""
    from of_core.app import create_app

    app = create_app()
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


@pytest.fixture
def api_prefix(settings) -> str:
    return settings.api_prefix


@pytest.fixture
def register_tenant(client, api_prefix):
    """工厂：注册租户，返回请求头和租户ID"""
    async def _register(email: str, tenant_name: str) -> dict:
        response = await client.post(f"{api_prefix}/auth/register", json={
            "email": email,
            "password": "s3cret-pass",
            "name": "Owner",
            "tenantName": tenant_name,
        })
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        return {
            "headers": {"Authorization": f"Bearer {data['access_token']}"},
            "tenant_id": data["user"]["tenant_id"],
        }

    return _register
