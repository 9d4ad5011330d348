"""
OrderFlow 核心服务模块
"""
from .base import BaseService, ServiceResult
from .products import ProductsService
from .customers import CustomersService
from .delivery import DeliveryService
from .orders import OrdersService
from .analytics import AnalyticsService
from .auth_service import AuthService, get_auth_service

__all__ = [
    "BaseService",
    "ServiceResult",
    "ProductsService",
    "CustomersService",
    "DeliveryService",
    "OrdersService",
    "AnalyticsService",
    "AuthService",
    "get_auth_service",
]
