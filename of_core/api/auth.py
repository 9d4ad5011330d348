"""
认证API路由
"""
from typing import Any, Dict

from fastapi import APIRouter, Request, status

from of_core.services.auth_service import get_auth_service
from of_core.utils.errors import UnauthorizedError
from of_core.utils.logger import get_logger
from .models import ApiResponse, LoginRequest, RegisterRequest

logger = get_logger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post("/register", response_model=ApiResponse[Dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def register(body: RegisterRequest):
    """注册新租户及其 OWNER 账号，返回登录信息"""
    payload = await get_auth_service().register(
        email=body.email,
        password=body.password,
        name=body.name,
        tenant_name=body.tenant_name
    )
    return ApiResponse.success(payload)


@router.post("/login", response_model=ApiResponse[Dict[str, Any]])
async def login(body: LoginRequest):
    """邮箱密码登录"""
    payload = await get_auth_service().login(body.email, body.password)
    return ApiResponse.success(payload)


@router.get("/me", response_model=ApiResponse[Dict[str, Any]])
async def me(request: Request):
    """当前令牌对应的用户和租户"""
    user_id = getattr(request.state, "user_id", None)
    if user_id is None:
        raise UnauthorizedError()
    return ApiResponse.success({
        "user_id": user_id,
        "tenant_id": request.state.tenant_id,
        "role": request.state.role,
        "email": request.state.email,
    })
