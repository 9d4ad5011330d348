"""
API 请求/响应模型

请求体同时接受 camelCase（下单表单）和 snake_case 字段名，响应统一为 snake_case。
"""
from decimal import Decimal
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

T = TypeVar('T')


class ApiResponse(BaseModel, Generic[T]):
    """统一 API 响应格式"""
    ok: bool = Field(description="操作是否成功")
    data: Optional[T] = Field(default=None, description="响应数据")
    error: Optional[Dict[str, Any]] = Field(default=None, description="错误信息（RFC7807 Problem Details）")
    metadata: Optional[Dict[str, Any]] = Field(default=None, description="元数据")

    @classmethod
    def success(cls, data: T, metadata: Optional[Dict[str, Any]] = None) -> "ApiResponse[T]":
        """创建成功响应"""
        return cls(ok=True, data=data, metadata=metadata)


class RequestModel(BaseModel):
    """请求模型基类"""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


# 认证
class RegisterRequest(RequestModel):
    """注册租户"""
    email: str = Field(min_length=3, max_length=255)
    password: str
    name: str = Field(min_length=1, max_length=200)
    tenant_name: str = Field(min_length=1, max_length=200)


class LoginRequest(RequestModel):
    email: str
    password: str


# 商品
class CreateProductRequest(RequestModel):
    """创建商品"""
    name: str = Field(min_length=1, max_length=200)
    sku: str = Field(min_length=1, max_length=100)
    category: Optional[str] = None
    price: Decimal = Field(ge=0, description="销售单价")
    cost: Decimal = Field(default=Decimal("0"), ge=0, description="成本价")
    unit: str = Field(default="pcs", max_length=20)
    stock: int = Field(default=0, ge=0, description="初始库存")


class UpdateProductRequest(RequestModel):
    """更新商品（不含库存）"""
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    sku: Optional[str] = Field(default=None, min_length=1, max_length=100)
    category: Optional[str] = None
    price: Optional[Decimal] = Field(default=None, ge=0)
    cost: Optional[Decimal] = Field(default=None, ge=0)
    unit: Optional[str] = Field(default=None, max_length=20)


class AdjustStockRequest(RequestModel):
    """库存调整（有符号差值）"""
    change: int
    reason: str


# 客户
class CreateCustomerRequest(RequestModel):
    name: str = Field(min_length=1, max_length=200)
    phone: str = Field(min_length=1, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None


class UpdateCustomerRequest(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=200)
    phone: Optional[str] = Field(default=None, min_length=1, max_length=50)
    address: Optional[str] = None
    city: Optional[str] = None


# 配送模板
class CreateDeliveryTemplateRequest(RequestModel):
    name: str = Field(min_length=1, max_length=100)
    first_kg_price: Decimal = Field(ge=0, description="首公斤价格")
    extra_kg_price: Decimal = Field(ge=0, description="续重每公斤价格")
    is_default: bool = False


class UpdateDeliveryTemplateRequest(RequestModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=100)
    first_kg_price: Optional[Decimal] = Field(default=None, ge=0)
    extra_kg_price: Optional[Decimal] = Field(default=None, ge=0)
    is_default: Optional[bool] = None


# 订单
class OrderLineRequest(RequestModel):
    """订单行"""
    product_id: int
    quantity: int = Field(gt=0)


class CreateOrderRequest(RequestModel):
    """创建订单"""
    customer_id: int
    items: List[OrderLineRequest]
    delivery_template_id: Optional[int] = None
    total_weight: Optional[Decimal] = Field(
        default=None, ge=0, max_digits=10, decimal_places=3, description="总重量（公斤）"
    )
    discount: Decimal = Field(default=Decimal("0"), ge=0)
    payment_method: str
    order_source: str


class CalculateDeliveryRequest(RequestModel):
    delivery_template_id: int
    total_weight: Decimal = Field(max_digits=10, decimal_places=3)


class PreviewOrderRequest(RequestModel):
    """草稿预览"""
    items: List[OrderLineRequest] = Field(default_factory=list)
    delivery_template_id: Optional[int] = None
    total_weight: Optional[Decimal] = Field(default=None, max_digits=10, decimal_places=3)
    discount: Decimal = Field(default=Decimal("0"), ge=0)


class UpdateOrderStatusRequest(RequestModel):
    status: str


class CourierExportRequest(RequestModel):
    order_ids: List[int] = Field(default_factory=list)
