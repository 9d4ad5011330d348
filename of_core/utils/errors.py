"""
OrderFlow 错误处理系统
遵循 RFC7807 Problem Details 标准
"""
from typing import Optional
from fastapi import Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field


class ProblemDetail(BaseModel):
    """RFC7807 Problem Details 模型"""
    model_config = ConfigDict(
        extra="allow",
        json_schema_extra={
            "example": {
                "type": "about:blank",
                "title": "Bad Request",
                "status": 400,
                "detail": "Insufficient stock for Rice 5kg. Available: 3",
                "code": "INSUFFICIENT_STOCK",
                "product_id": 12,
                "available": 3
            }
        }
    )

    type: str = Field(default="about:blank")
    title: str
    status: int
    detail: Optional[str] = None
    instance: Optional[str] = None
    code: Optional[str] = None  # 业务错误码


class OrderFlowException(Exception):
    """OrderFlow 基础异常类"""

    def __init__(
        self,
        status: int,
        code: str,
        title: str,
        detail: Optional[str] = None,
        **kwargs
    ):
        self.status = status
        self.code = code
        self.title = title
        self.detail = detail
        self.extra = kwargs
        super().__init__(detail or title)

    def to_problem_detail(self, instance: Optional[str] = None) -> ProblemDetail:
        """转换为 Problem Details 格式"""
        return ProblemDetail(
            type="about:blank",
            title=self.title,
            status=self.status,
            detail=self.detail,
            instance=instance,
            code=self.code,
            **self.extra
        )

    def to_response(self, request: Optional[Request] = None) -> JSONResponse:
        """转换为 JSON 响应"""
        instance = str(request.url) if request else None
        problem = self.to_problem_detail(instance)

        return JSONResponse(
            status_code=self.status,
            content={
                "ok": False,
                "error": problem.model_dump(mode="json", exclude_none=True)
            }
        )


# 预定义错误类
class BadRequestError(OrderFlowException):
    """400 错误请求"""
    def __init__(self, code: str, detail: str, **kwargs):
        super().__init__(
            status=400,
            code=code,
            title="Bad Request",
            detail=detail,
            **kwargs
        )


class UnauthorizedError(OrderFlowException):
    """401 未授权"""
    def __init__(self, code: str = "UNAUTHORIZED", detail: str = "Authentication required"):
        super().__init__(
            status=401,
            code=code,
            title="Unauthorized",
            detail=detail
        )


class ForbiddenError(OrderFlowException):
    """403 禁止访问"""
    def __init__(self, code: str = "FORBIDDEN", detail: str = "Access denied"):
        super().__init__(
            status=403,
            code=code,
            title="Forbidden",
            detail=detail
        )


class NotFoundError(OrderFlowException):
    """404 未找到

    跨租户引用与不存在一律返回此错误。
    """
    def __init__(self, code: str, resource: str):
        super().__init__(
            status=404,
            code=code,
            title="Not Found",
            detail=f"{resource} not found"
        )


class ConflictError(OrderFlowException):
    """409 冲突"""
    def __init__(self, code: str, detail: str):
        super().__init__(
            status=409,
            code=code,
            title="Conflict",
            detail=detail
        )


class ValidationError(OrderFlowException):
    """422 验证失败"""
    def __init__(self, code: str, detail: str):
        super().__init__(
            status=422,
            code=code,
            title="Validation Failed",
            detail=detail
        )


class InsufficientStockError(BadRequestError):
    """库存不足"""
    def __init__(self, product_id: int, product_name: str, available: int):
        self.product_id = product_id
        self.available = available
        super().__init__(
            code="INSUFFICIENT_STOCK",
            detail=f"Insufficient stock for {product_name}. Available: {available}",
            product_id=product_id,
            available=available
        )


class InternalServerError(OrderFlowException):
    """500 内部错误"""
    def __init__(self, code: str = "INTERNAL_ERROR", detail: str = "An internal error occurred"):
        super().__init__(
            status=500,
            code=code,
            title="Internal Server Error",
            detail=detail
        )
