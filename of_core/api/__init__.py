"""
OrderFlow API 路由模块
"""
from fastapi import APIRouter

from .auth import router as auth_router
from .products import router as products_router
from .customers import router as customers_router
from .delivery import router as delivery_router
from .orders import router as orders_router
from .analytics import router as analytics_router

# 创建主路由器
api_router = APIRouter()

api_router.include_router(auth_router)
api_router.include_router(products_router, prefix="/products", tags=["Products"])
api_router.include_router(customers_router, prefix="/customers", tags=["Customers"])
api_router.include_router(delivery_router, prefix="/delivery-templates", tags=["Delivery Templates"])
api_router.include_router(orders_router, prefix="/orders", tags=["Orders"])
api_router.include_router(analytics_router, prefix="/analytics", tags=["Analytics"])

__all__ = ["api_router"]
