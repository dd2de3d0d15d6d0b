"""Main API router."""

from fastapi import APIRouter

from app.routers.certificate import router as certificate_router
from app.routers.metrics import router as metrics_router

api_router = APIRouter()
api_router.include_router(certificate_router, tags=["certificate"])
api_router.include_router(metrics_router, tags=["observability"])
