"""
订单 API 路由
"""
import csv
import io
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import StreamingResponse

from of_core.models import OrderStatus
from of_core.services import DeliveryService, OrdersService
from of_core.utils.errors import OrderFlowException, InternalServerError, ValidationError
from of_core.utils.logger import get_logger
from .deps import get_tenant_id
from .models import (
    ApiResponse, CalculateDeliveryRequest, CourierExportRequest, CreateOrderRequest,
    PreviewOrderRequest, UpdateOrderStatusRequest,
)

router = APIRouter()
logger = get_logger(__name__)

COURIER_COLUMNS = [
    "order_number", "customer_name", "phone", "address", "city",
    "total_amount", "delivery_fee", "payment_method", "items",
]


async def get_orders_service() -> OrdersService:
    """依赖注入：获取订单服务"""
    return OrdersService()


async def get_delivery_service() -> DeliveryService:
    return DeliveryService()


def _parse_date(value: Optional[str], code: str) -> Optional[datetime]:
    """解析 ISO8601 时间参数"""
    if not value:
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(
            code=code,
            detail=f"Invalid date format, expected ISO8601: {value}"
        )


@router.post("", response_model=ApiResponse[Dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def create_order(
    body: CreateOrderRequest,
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """创建订单"""
    try:
        order_data = body.model_dump(exclude={"items"})
        items_data = [item.model_dump() for item in body.items]
        result = await orders_service.create_order(tenant_id, order_data, items_data)
        return ApiResponse.success(result.data)

    except OrderFlowException:
        raise
    except Exception as e:
        logger.error("Failed to create order", exc_info=True)
        raise InternalServerError(
            code="API_ERROR",
            detail=f"Failed to create order: {str(e)}"
        )


@router.post("/calculate-delivery", response_model=ApiResponse[Dict[str, Any]])
async def calculate_delivery(
    body: CalculateDeliveryRequest,
    tenant_id: int = Depends(get_tenant_id),
    delivery_service: DeliveryService = Depends(get_delivery_service)
):
    """运费试算

    与其他接口一致，结果包在统一响应里；delivery_fee 为两位小数的字符串（如 "275.00"），
    不是 JSON 数字。
    """
    result = await delivery_service.calculate_fee(tenant_id, body.delivery_template_id, body.total_weight)
    return ApiResponse.success({
        "delivery_template_id": body.delivery_template_id,
        "total_weight": str(body.total_weight),
        "delivery_fee": str(result.data),
    })


@router.post("/preview", response_model=ApiResponse[Dict[str, Any]])
async def preview_order(
    body: PreviewOrderRequest,
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """草稿金额预览（仅供参考，下单时重新计算）"""
    result = await orders_service.preview(
        tenant_id,
        [item.model_dump() for item in body.items],
        delivery_template_id=body.delivery_template_id,
        total_weight=body.total_weight,
        discount=body.discount
    )
    return ApiResponse.success(result.data)


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
async def get_orders(
    status_filter: Optional[OrderStatus] = Query(None, alias="status", description="订单状态"),
    order_source: Optional[str] = Query(None, alias="orderSource", description="订单来源"),
    start_date: Optional[str] = Query(None, alias="startDate", description="开始时间 (ISO8601)"),
    end_date: Optional[str] = Query(None, alias="endDate", description="结束时间 (ISO8601)"),
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """查询订单列表（最新在前）"""
    result = await orders_service.get_orders(
        tenant_id,
        status=status_filter.value if status_filter else None,
        order_source=order_source,
        start_date=_parse_date(start_date, "INVALID_START_DATE"),
        end_date=_parse_date(end_date, "INVALID_END_DATE")
    )
    return ApiResponse.success(result.data, metadata={"count": len(result.data)})


@router.get("/ready-for-dispatch", response_model=ApiResponse[List[Dict[str, Any]]])
async def ready_for_dispatch(
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """待发货订单（最早的在前）"""
    result = await orders_service.get_ready_for_dispatch(tenant_id)
    return ApiResponse.success(result.data)


@router.post("/export-courier")
async def export_courier(
    body: CourierExportRequest,
    export_format: str = Query("json", alias="format", pattern="^(json|csv)$", description="导出格式"),
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """导出快递批量上传数据"""
    result = await orders_service.export_for_courier(tenant_id, body.order_ids)

    if export_format == "json":
        return ApiResponse.success(result.data)

    output = io.StringIO()
    writer = csv.DictWriter(output, fieldnames=COURIER_COLUMNS)
    writer.writeheader()
    writer.writerows(result.data)
    output.seek(0)

    filename = f"courier_export_{datetime.now().strftime('%Y%m%d_%H%M%S')}.csv"
    return StreamingResponse(
        iter([output.getvalue()]),
        media_type="text/csv",
        headers={"Content-Disposition": f"attachment; filename={filename}"}
    )


@router.get("/{order_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_order(
    order_id: int,
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """订单详情"""
    result = await orders_service.get_order(tenant_id, order_id)
    return ApiResponse.success(result.data)


@router.patch("/{order_id}", response_model=ApiResponse[Dict[str, Any]])
async def update_order_status(
    order_id: int,
    body: UpdateOrderStatusRequest,
    tenant_id: int = Depends(get_tenant_id),
    orders_service: OrdersService = Depends(get_orders_service)
):
    """修改订单状态"""
    result = await orders_service.update_status(tenant_id, order_id, body.status)
    return ApiResponse.success(result.data)
