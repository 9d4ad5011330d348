"""
商品 API 路由
"""
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query, status

from of_core.services import ProductsService
from .deps import get_tenant_id
from .models import ApiResponse, AdjustStockRequest, CreateProductRequest, UpdateProductRequest

router = APIRouter()


async def get_products_service() -> ProductsService:
    """依赖注入：获取商品服务"""
    return ProductsService()


@router.post("", response_model=ApiResponse[Dict[str, Any]], status_code=status.HTTP_201_CREATED)
async def create_product(
    body: CreateProductRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    result = await service.create_product(tenant_id, body.model_dump())
    return ApiResponse.success(result.data)


@router.get("", response_model=ApiResponse[List[Dict[str, Any]]])
async def list_products(
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    """商品列表（含最近库存流水）"""
    result = await service.list_products(tenant_id)
    return ApiResponse.success(result.data)


@router.get("/low-stock", response_model=ApiResponse[List[Dict[str, Any]]])
async def low_stock(
    threshold: Optional[int] = Query(None, ge=0, description="库存阈值"),
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    result = await service.low_stock(tenant_id, threshold)
    return ApiResponse.success(result.data)


@router.get("/{product_id}", response_model=ApiResponse[Dict[str, Any]])
async def get_product(
    product_id: int,
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    result = await service.get_product(tenant_id, product_id)
    return ApiResponse.success(result.data)


@router.patch("/{product_id}", response_model=ApiResponse[Dict[str, Any]])
async def update_product(
    product_id: int,
    body: UpdateProductRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    result = await service.update_product(tenant_id, product_id, body.model_dump(exclude_unset=True))
    return ApiResponse.success(result.data)


@router.post("/{product_id}/adjust-stock", response_model=ApiResponse[Dict[str, Any]])
async def adjust_stock(
    product_id: int,
    body: AdjustStockRequest,
    tenant_id: int = Depends(get_tenant_id),
    service: ProductsService = Depends(get_products_service)
):
    """按差值调整库存"""
    result = await service.adjust_stock(tenant_id, product_id, body.change, body.reason)
    return ApiResponse.success(result.data)
