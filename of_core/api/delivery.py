"""
配送模板 API 路由
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, status

from of_core.services import DeliveryService
from .deps import get_tenant_id
from .models import ApiResponse, CreateDeliveryTemplateRequest, UpdateDeliveryTemplateRequest

router = APIRouter()


async def get_delivery_service() -> DeliveryService:
    """依赖注入：获取配送模板服务"""
    return DeliveryService()


@router.post("", response_model=ApiResponse[Dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def create_template(
    body: CreateDeliveryTemplateRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    """创建模板；设为默认时清除其他默认模板"""
    result = await service.create_template(tenant_id, body.model_dump())
    return ApiResponse.success(result.data.to_dict())


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
async def list_templates(
    tenant_id: int = Depends(get_tenant_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    result = await service.list_templates(tenant_id)
    return ApiResponse.success([t.to_dict() for t in result.data])


@router.get("/{template_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_template(
    template_id: int,
    tenant_id: int = Depends(get_tenant_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    result = await service.get_template(tenant_id, template_id)
    return ApiResponse.success(result.data.to_dict())


@router.patch("/{template_id}", response_model=ApiResponse[Dict[str, Any]])
async def update_template(
    template_id: int,
    body: UpdateDeliveryTemplateRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    result = await service.update_template(tenant_id, template_id, body.model_dump(exclude_unset=True))
    return ApiResponse.success(result.data.to_dict())


@router.delete("/{template_id}", response_model=ApiResponse[Dict[str, Any]])
async def delete_template(
    template_id: int,
    tenant_id: int = Depends(get_tenant_id),
    service: DeliveryService = Depends(get_delivery_service)
):
    """删除模板（仍被订单引用时返回 409）"""
    result = await service.delete_template(tenant_id, template_id)
    return ApiResponse.success({"id": result.data, "deleted": True})
