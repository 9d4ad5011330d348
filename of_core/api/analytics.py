"""
经营分析 API 路由
"""
from typing import Any, Dict, List

from fastapi import APIRouter, Depends, Query

from of_core.services import AnalyticsService
from .deps import get_tenant_id
from .models import ApiResponse

router = APIRouter()


async def get_analytics_service() -> AnalyticsService:
    """依赖注入：获取分析服务"""
    return AnalyticsService()


@router.get("/dashboard", response_model=ApiResponse[Dict[str, Any]])
async def dashboard(
    tenant_id: int = Depends(get_tenant_id),
    service: AnalyticsService = Depends(get_analytics_service)
):
    result = await service.dashboard(tenant_id)
    return ApiResponse.success(result.data)


@router.get("/revenue", response_model=ApiResponse[List[Dict[str, Any]]])
async def revenue(
    period: str = Query("daily", description="统计周期：daily/weekly/monthly"),
    tenant_id: int = Depends(get_tenant_id),
    service: AnalyticsService = Depends(get_analytics_service)
):
    result = await service.revenue(tenant_id, period)
    return ApiResponse.success(result.data, metadata=result.metadata)


@router.get("/most-sold", response_model=ApiResponse[List[Dict[str, Any]]])
async def most_sold(
    limit: int = Query(10, ge=1, le=100, description="返回数量"),
    tenant_id: int = Depends(get_tenant_id),
    service: AnalyticsService = Depends(get_analytics_service)
):
    result = await service.most_sold(tenant_id, limit)
    return ApiResponse.success(result.data)
