"""
Root and health routes for the GinkoHub Tools API
"""

from datetime import datetime, timezone

from fastapi import APIRouter

from ginkohub.config import Config

router = APIRouter()


@router.get("/", tags=["Root"])
async def root():
    """Root endpoint with API information"""
    return {
        "status": "online",
        "message": f"{Config.TITLE} is running",
        "version": Config.VERSION,
        "docs": Config.DOCS_URL,
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("/health", tags=["Health"])
async def health_check():
    """Health check endpoint"""
    return {
        "status": "healthy",
        "message": "API is running"
    }
