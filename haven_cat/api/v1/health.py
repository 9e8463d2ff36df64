"""
Health check and status endpoints.
"""
from fastapi import APIRouter, Request

from haven_cat.core.config import settings
from haven_cat.core.datetime_utils import utc_now

router = APIRouter()


@router.get("/health")
async def health_check(request: Request):
    """
    Health check endpoint.
    Returns basic health status of the API and the size of the item bank.
    """
    item_bank = getattr(request.app.state, "item_bank", None)
    return {
        "status": "healthy",
        "timestamp": utc_now().isoformat(),
        "service": settings.APP_NAME,
        "version": settings.APP_VERSION,
        "item_bank_size": len(item_bank) if item_bank is not None else 0,
    }


@router.get("/ping")
async def ping():
    """
    Simple ping endpoint for basic connectivity testing.
    """
    return {"message": "pong"}
