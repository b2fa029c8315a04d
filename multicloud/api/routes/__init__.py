"""
API routes aggregation.
"""

from fastapi import APIRouter

from .storage import router as storage_router

router = APIRouter()

router.include_router(storage_router, prefix="/multicloud", tags=["multicloud"])
