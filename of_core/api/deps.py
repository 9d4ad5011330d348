"""
API 依赖
"""
from fastapi import Request

from of_core.utils.errors import UnauthorizedError


def get_tenant_id(request: Request) -> int:
    """当前请求所属租户（由认证中间件写入）"""
    tenant_id = getattr(request.state, "tenant_id", None)
    if tenant_id is None:
        raise UnauthorizedError(code="MISSING_TENANT", detail="No tenant bound to this request")
    return tenant_id
