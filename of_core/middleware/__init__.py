"""
OrderFlow 中间件
"""
from .auth import AuthMiddleware
from .logging import LoggingMiddleware
from .metrics import MetricsMiddleware, get_metrics_handler

__all__ = ["AuthMiddleware", "LoggingMiddleware", "MetricsMiddleware", "get_metrics_handler"]
