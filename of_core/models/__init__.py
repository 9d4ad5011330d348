"""
OrderFlow 数据模型包
"""
from .base import Base
from .tenants import Tenant, User
from .customers import Customer
from .products import Product, InventoryHistory
from .delivery import DeliveryTemplate
from .orders import Order, OrderItem, OrderStatus, STATUS_TRANSITIONS

__all__ = [
    "Base",
    "Tenant",
    "User",
    "Customer",
    "Product",
    "InventoryHistory",
    "DeliveryTemplate",
    "Order",
    "OrderItem",
    "OrderStatus",
    "STATUS_TRANSITIONS",
]
