"""
OrderFlow FastAPI 主应用
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request, HTTPException
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError

from of_core import __version__
from of_core.config import get_settings
from of_core.utils.logger import setup_logging, get_logger
from of_core.utils.errors import OrderFlowException
from of_core.database import get_db_manager
from of_core.middleware.auth import AuthMiddleware
from of_core.middleware.logging import LoggingMiddleware
from of_core.middleware.metrics import MetricsMiddleware, get_metrics_handler
from of_core.models.base import utcnow
from of_core.api import api_router

logger = get_logger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("Starting OrderFlow application", version=__version__)

    db_manager = get_db_manager()
    if not await db_manager.check_connection():
        logger.error("Database connection check failed")
        raise RuntimeError("Database connection failed")

    logger.info("OrderFlow application started successfully")

    yield  # 应用运行期间

    logger.info("Shutting down OrderFlow application")
    await db_manager.close()
    logger.info("OrderFlow application shutdown complete")


def create_app() -> FastAPI:
    """创建 FastAPI 应用"""
    settings = get_settings()

    # 设置日志
    setup_logging(
        log_level=settings.log_level,
        log_format=settings.log_format
    )

    app = FastAPI(
        title=settings.api_title,
        version=settings.api_version,
        description="OrderFlow multi-tenant order management API",
        docs_url="/docs" if settings.api_debug else None,
        redoc_url="/redoc" if settings.api_debug else None,
        openapi_url="/openapi.json" if settings.api_debug else None,
        lifespan=lifespan
    )

    # 中间件：后添加的在外层，请求依次经过 CORS -> 日志 -> 指标 -> 认证
    app.add_middleware(AuthMiddleware)

    if settings.metrics_enabled:
        app.add_middleware(MetricsMiddleware)

    app.add_middleware(LoggingMiddleware)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"] if settings.api_debug else settings.cors_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # 添加路由
    app.include_router(api_router, prefix=settings.api_prefix)

    # 异常处理器
    @app.exception_handler(OrderFlowException)
    async def orderflow_exception_handler(request: Request, exc: OrderFlowException):
        """处理 OrderFlow 自定义异常"""
        return exc.to_response(request)

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        """处理 Pydantic 验证异常"""
        logger.warning("Request validation failed", path=request.url.path, errors=len(exc.errors()))
        return JSONResponse(
            status_code=422,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": "Validation Error",
                    "status": 422,
                    "detail": "Request validation failed",
                    "code": "VALIDATION_ERROR",
                    "validation_errors": jsonable_encoder(exc.errors())
                }
            }
        )

    @app.exception_handler(HTTPException)
    async def http_exception_handler(request: Request, exc: HTTPException):
        """处理 FastAPI HTTP 异常"""
        return JSONResponse(
            status_code=exc.status_code,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": str(exc.detail),
                    "status": exc.status_code,
                    "detail": str(exc.detail),
                    "code": f"HTTP_{exc.status_code}"
                }
            }
        )

    @app.exception_handler(Exception)
    async def internal_server_error_handler(request: Request, exc: Exception):
        """处理未捕获的服务器错误"""
        logger.error("Unhandled server error", path=request.url.path, exc_info=exc)
        return JSONResponse(
            status_code=500,
            content={
                "ok": False,
                "error": {
                    "type": "about:blank",
                    "title": "Internal Server Error",
                    "status": 500,
                    "detail": "An internal server error occurred",
                    "code": "INTERNAL_SERVER_ERROR"
                }
            }
        )

    # 健康检查端点
    @app.get("/healthz")
    async def health_check():
        """健康检查端点"""
        db_ok = await get_db_manager().check_connection()
        return JSONResponse(
            status_code=200 if db_ok else 503,
            content={
                "status": "healthy" if db_ok else "unhealthy",
                "database": "ok" if db_ok else "unavailable",
                "version": __version__,
                "timestamp": utcnow().isoformat()
            }
        )

    if settings.metrics_enabled:
        app.add_api_route("/metrics", get_metrics_handler(), methods=["GET"], include_in_schema=False)

    return app


# 创建应用实例
app = create_app()


if __name__ == "__main__":
    import uvicorn

    settings = get_settings()

    uvicorn.run(
        "of_core.app:app",
        host=settings.api_host,
        port=settings.api_port,
        reload=settings.api_debug,
        log_level=settings.log_level.lower(),
        access_log=False,  # 使用自定义日志中间件
    )
