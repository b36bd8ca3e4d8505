from fastapi import APIRouter
from .reports import router as reports_router
from .metrics import router as metrics_router

api_router = APIRouter()
api_router.include_router(reports_router, prefix="/reports", tags=["Reports"])
api_router.include_router(metrics_router, prefix="/metrics", tags=["Metrics"])
