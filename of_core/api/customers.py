"""
客户 API 路由
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from of_core.services import CustomersService
from .deps import get_tenant_id
from .models import ApiResponse, CreateCustomerRequest, UpdateCustomerRequest

router = APIRouter()


async def get_customers_service() -> CustomersService:
    """依赖注入：获取客户服务"""
    return CustomersService()


@router.post("", response_model=ApiResponse[Dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def create_customer(
    body: CreateCustomerRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: CustomersService = Depends(get_customers_service)
):
    result = await service.create_customer(tenant_id, body.model_dump())
    return ApiResponse.success(result.data)


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
async def list_customers(
    tenant_id: int = Depends(get_tenant_id),
    service: CustomersService = Depends(get_customers_service)
):
    result = await service.list_customers(tenant_id)
    return ApiResponse.success(result.data)


@router.get("/search", response_model=ApiResponse[Optional[Dict[str, Any]]])
async def search_customer(
    phone: str = Query(..., min_length=1, description="电话（精确匹配）"),
    tenant_id: int = Depends(get_tenant_id),
    service: CustomersService = Depends(get_customers_service)
):
    """按电话查找客户，找不到时 data 为 null"""
    result = await service.find_by_phone(tenant_id, phone)
    return ApiResponse.success(result.data)


@router.get("/{customer_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_customer(
    customer_id: int,
    tenant_id: int = Depends(get_tenant_id),
    service: CustomersService = Depends(get_customers_service)
):
    result = await service.get_customer(tenant_id, customer_id)
    return ApiResponse.success(result.data)


@router.patch("/{customer_id}", response_model=ApiResponse[Dict[str, Any]])
async def update_customer(
    customer_id: int,
    body: UpdateCustomerRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: CustomersService = Depends(get_customers_service)
):
    result = await service.update_customer(tenant_id, customer_id, body.model_dump(exclude_unset=True))
    return ApiResponse.success(result.data)
