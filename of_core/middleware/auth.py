"""
认证中间件
把 Bearer 令牌解析为 request.state 上的用户、租户和角色
"""
from typing import Callable, Optional

from fastapi import Request, Response
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from of_core.config import get_settings
from of_core.utils.logger import get_logger, LogContext
from of_core.utils.errors import OrderFlowException, UnauthorizedError
from of_core.services.auth_service import get_auth_service


class AuthMiddleware(BaseHTTPMiddleware):
    """认证中间件"""

    # 无需认证的路径（相对 API 前缀的路径在 __init__ 中补全）
    PUBLIC_PATHS = {
        "/healthz",
        "/metrics",
        "/docs",
        "/redoc",
        "/openapi.json",
    }

    PUBLIC_API_PATHS = (
        "/auth/login",
        "/auth/register",
    )

    PUBLIC_PREFIXES = [
        "/docs",
        "/redoc",
    ]

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.auth")
        api_prefix = get_settings().api_prefix
        self.public_paths = self.PUBLIC_PATHS | {api_prefix + path for path in self.PUBLIC_API_PATHS}

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        # 检查是否为公开路径（CORS 预检请求同样放行）
        if request.method == "OPTIONS" or self._is_public_path(request.url.path):
            return await call_next(request)

        auth_header = request.headers.get("authorization", "")
        if not auth_header:
            return self._unauthorized(
                "MISSING_AUTH_HEADER",
                "Authorization header is required"
            )

        if not auth_header.startswith("Bearer "):
            return self._unauthorized(
                "INVALID_AUTH_FORMAT",
                "Authorization header must start with 'Bearer '"
            )

        user_info = self._validate_token(auth_header[7:])
        if not user_info:
            return self._unauthorized("INVALID_TOKEN", "Invalid or expired token")

        # 设置用户信息到请求状态
        request.state.user_id = user_info["user_id"]
        request.state.tenant_id = user_info["tenant_id"]
        request.state.role = user_info["role"]
        request.state.email = user_info.get("email")

        with LogContext(tenant_id=user_info["tenant_id"]):
            return await call_next(request)

    def _is_public_path(self, path: str) -> bool:
        """检查是否为公开路径"""
        if path in self.public_paths:
            return True

        for prefix in self.PUBLIC_PREFIXES:
            if path.startswith(prefix):
                return True

        return False

    def _validate_token(self, token: str) -> Optional[dict]:
        """验证 JWT token"""
        try:
            payload = get_auth_service().decode_token(token)
            return {
                "user_id": int(payload["sub"]),
                "tenant_id": int(payload["tenant_id"]),
                "role": payload.get("role", "CASHIER"),
                "email": payload.get("email"),
            }
        except (OrderFlowException, KeyError, TypeError, ValueError) as e:
            self.logger.info("Token rejected", reason=str(e))
            return None

    def _unauthorized(self, code: str, detail: str) -> JSONResponse:
        return UnauthorizedError(code=code, detail=detail).to_response()
