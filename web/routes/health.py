"""
Health check endpoint

GET /health - server status
"""

from fastapi import APIRouter, Depends

from core.config.loader import Settings
from web.dependencies import get_app_settings
from web.models.responses import HealthResponse

API_VERSION = "1.0.0"

router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(settings: Settings = Depends(get_app_settings)) -> HealthResponse:
    """Server status"""
    return HealthResponse(
        status="ok",
        company_id=settings.default_company_id,
        version=API_VERSION,
    )
