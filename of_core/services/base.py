"""
基础服务类
"""
from typing import TypeVar, Generic, Optional, Dict, Any, Iterable
from dataclasses import dataclass

from sqlalchemy.exc import IntegrityError

from of_core.utils.logger import get_logger
from of_core.utils.errors import OrderFlowException, ConflictError, InternalServerError
from of_core.database import get_db_manager
from of_core.tenancy import TenantScope

T = TypeVar('T')

logger = get_logger(__name__)


@dataclass
class ServiceResult(Generic[T]):
    """服务执行结果"""
    success: bool
    data: Optional[T] = None
    metadata: Optional[Dict[str, Any]] = None

    @classmethod
    def ok(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ServiceResult[T]":
        """成功结果"""
        return cls(success=True, data=data, metadata=metadata)


class BaseService:
    """基础服务类

    租户数据的操作通过 execute_with_transaction / execute_with_session 执行，
    operation 的第一个参数是绑定当前租户的 TenantScope。
    """

    def __init__(self):
        self.db_manager = get_db_manager()
        self.logger = get_logger(self.__class__.__name__)

    async def execute_with_transaction(
        self,
        tenant_id: int,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """在事务中执行操作，异常时整体回滚"""
        try:
            async with self.db_manager.get_transaction() as session:
                scope = TenantScope(session, tenant_id)
                return await operation(scope, *args, **kwargs)
        except OrderFlowException:
            raise
        except IntegrityError as e:
            self.logger.warning("Transaction violated a constraint", error=str(e.orig))
            raise ConflictError(
                code="CONSTRAINT_VIOLATION",
                detail="The change conflicts with existing data"
            )
        except Exception as e:
            self.logger.error("Transaction operation failed", exc_info=True)
            raise InternalServerError(
                code="TRANSACTION_FAILED",
                detail=f"Database transaction failed: {str(e)}"
            )

    async def execute_with_session(
        self,
        tenant_id: int,
        operation,
        *args,
        **kwargs
    ) -> Any:
        """使用数据库会话执行只读操作"""
        try:
            async with self.db_manager.get_session() as session:
                scope = TenantScope(session, tenant_id)
                return await operation(scope, *args, **kwargs)
        except OrderFlowException:
            raise
        except Exception as e:
            self.logger.error("Session operation failed", exc_info=True)
            raise InternalServerError(
                code="SESSION_OPERATION_FAILED",
                detail=f"Database operation failed: {str(e)}"
            )


class RepositoryMixin:
    """仓储混入类 - 提供常用的写操作"""

    def apply_updates(self, instance: Any, data: Dict[str, Any], allowed_fields: Iterable[str]) -> Any:
        """只写入允许的字段，值为 None 的字段忽略"""
        allowed = set(allowed_fields)
        for key, value in data.items():
            if key in allowed and value is not None:
                setattr(instance, key, value)
        return instance

    async def create(self, scope: TenantScope, model_class, data: Dict[str, Any]) -> Any:
        """创建记录"""
        instance = model_class(**data)
        scope.add(instance)
        await scope.flush()  # 获取生成的ID
        return instance
