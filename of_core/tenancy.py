"""
租户隔离

TenantScope 绑定一个会话和一个租户ID，租户数据的查询、更新、计数
都由它构建，租户过滤条件不会被遗漏。跨租户引用与不存在的记录
一样返回 NotFoundError。
"""
from typing import Any, List, Optional, Type, TypeVar

from sqlalchemy import ColumnElement, Select, Update, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from of_core.models import Tenant
from of_core.models.base import TenantOwnedMixin
from of_core.utils.errors import NotFoundError

M = TypeVar("M", bound=TenantOwnedMixin)


class TenantScope:
    """绑定租户的持久化句柄"""

    def __init__(self, session: AsyncSession, tenant_id: int):
        if tenant_id is None:
            raise ValueError("tenant_id is required")
        self.session = session
        self.tenant_id = tenant_id

    def _check_model(self, model: type) -> None:
        if not issubclass(model, TenantOwnedMixin):
            raise TypeError(f"{model.__name__} is not tenant-owned")

    def owned(self, model: Type[M]) -> ColumnElement[bool]:
        """租户过滤条件，用于聚合等需要自定义列的查询"""
        self._check_model(model)
        return model.tenant_id == self.tenant_id

    def select(self, model: Type[M], *criteria: Any) -> Select:
        """构建已带租户过滤的 SELECT"""
        self._check_model(model)
        return select(model).where(model.tenant_id == self.tenant_id, *criteria)

    def update(self, model: Type[M], *criteria: Any) -> Update:
        """构建已带租户过滤的 UPDATE"""
        self._check_model(model)
        return (
            update(model)
            .where(model.tenant_id == self.tenant_id, *criteria)
            .execution_options(synchronize_session=False)
        )

    async def find(self, model: Type[M], record_id: int, *options: Any) -> Optional[M]:
        stmt = self.select(model, model.id == record_id)
        if options:
            stmt = stmt.options(*options)
        result = await self.session.execute(stmt)
        return result.scalar_one_or_none()

    async def get(self, model: Type[M], record_id: int, *options: Any, code: str, resource: str) -> M:
        """获取记录，不存在（或属于其他租户）时抛出 NotFoundError"""
        instance = await self.find(model, record_id, *options)
        if instance is None:
            raise NotFoundError(code=code, resource=resource)
        return instance

    async def first(self, model: Type[M], *criteria: Any) -> Optional[M]:
        result = await self.session.execute(self.select(model, *criteria).limit(1))
        return result.scalars().first()

    async def all(self, stmt: Select) -> List[Any]:
        result = await self.session.execute(stmt)
        return list(result.scalars().all())

    async def count(self, model: Type[M], *criteria: Any) -> int:
        self._check_model(model)
        stmt = select(func.count()).select_from(model).where(
            model.tenant_id == self.tenant_id, *criteria
        )
        result = await self.session.execute(stmt)
        return int(result.scalar_one())

    async def exists(self, model: Type[M], *criteria: Any) -> bool:
        return await self.first(model, *criteria) is not None

    def add(self, instance: M) -> M:
        """添加记录并写入租户ID"""
        self._check_model(type(instance))
        instance.tenant_id = self.tenant_id
        self.session.add(instance)
        return instance

    async def flush(self) -> None:
        await self.session.flush()

    async def next_order_number(self) -> int:
        """发放租户内下一个订单号

        对租户行做自增更新，PostgreSQL 下该行锁会串行化并发下单的编号分配。
        """
        await self.session.execute(
            update(Tenant)
            .where(Tenant.id == self.tenant_id)
            .values(order_seq=Tenant.order_seq + 1)
            .execution_options(synchronize_session=False)
        )
        result = await self.session.execute(
            select(Tenant.order_seq).where(Tenant.id == self.tenant_id)
        )
        return int(result.scalar_one())
