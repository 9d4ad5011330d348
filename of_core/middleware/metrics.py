"""
指标收集中间件
"""
import re
import time
from typing import Callable

from fastapi import Request, Response
from prometheus_client import Counter, Histogram, generate_latest, CONTENT_TYPE_LATEST
from starlette.middleware.base import BaseHTTPMiddleware

from of_core.utils.logger import get_logger

# 指标在模块级注册，多次创建应用不会重复注册
REQUEST_COUNT = Counter(
    'of_http_requests_total',
    'Total HTTP requests',
    ['method', 'endpoint', 'status_code']
)

REQUEST_DURATION = Histogram(
    'of_http_request_duration_seconds',
    'HTTP request duration',
    ['method', 'endpoint']
)

_ID_SEGMENT = re.compile(r'/\d+')


class MetricsMiddleware(BaseHTTPMiddleware):
    """指标收集中间件"""

    def __init__(self, app, logger=None):
        super().__init__(app)
        self.logger = logger or get_logger("middleware.metrics")

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        method = request.method
        endpoint = self._get_endpoint_pattern(request)
        start_time = time.time()

        try:
            response = await call_next(request)
        except Exception:
            REQUEST_COUNT.labels(method=method, endpoint=endpoint, status_code="500").inc()
            REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)
            raise

        REQUEST_COUNT.labels(
            method=method,
            endpoint=endpoint,
            status_code=str(response.status_code)
        ).inc()
        REQUEST_DURATION.labels(method=method, endpoint=endpoint).observe(time.time() - start_time)
        return response

    def _get_endpoint_pattern(self, request: Request) -> str:
        """获取端点模式（数字ID替换为占位符，避免标签爆炸）"""
        return _ID_SEGMENT.sub('/{id}', request.url.path) or "/"


def get_metrics_handler():
    """获取指标端点处理器"""
    async def metrics_endpoint(request: Request):
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    return metrics_endpoint
