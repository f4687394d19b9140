from fastapi import APIRouter, Depends, Query
from clicklink_app.schemas.analytics import AnalyticsResponse, AnalyticsSummary, ClickHistory, Dashboard
from clicklink_app.security import require_principal
from clicklink_app.services.analytics_service import AnalyticsService
from clicklink_app.services.url_service import URLService
from clicklink_app.dependencies import get_analytics_service, get_url_service

router = APIRouter(prefix="/analytics", tags=["analytics"])


@router.get("/dashboard", response_model=Dashboard)
def get_dashboard(
    principal_id: int = Depends(require_principal),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    return analytics_service.get_dashboard(principal_id)


@router.get("/url/{url_id}", response_model=AnalyticsResponse)
def get_url_analytics(
    url_id: int,
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    url_service.get_owned(url_id, principal_id)
    return analytics_service.get_aggregate(url_id)


@router.get("/clicks/{url_id}", response_model=ClickHistory)
def get_click_history(
    url_id: int,
    limit: int = Query(100, ge=1, le=1000),
    offset: int = Query(0, ge=0),
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    url_service.get_owned(url_id, principal_id)
    return analytics_service.get_click_history(url_id, limit=limit, offset=offset)


@router.get("/summary/{url_id}", response_model=AnalyticsSummary)
def get_analytics_summary(
    url_id: int,
    principal_id: int = Depends(require_principal),
    url_service: URLService = Depends(get_url_service),
    analytics_service: AnalyticsService = Depends(get_analytics_service)
):
    url_service.get_owned(url_id, principal_id)
    return analytics_service.get_summary(url_id)
