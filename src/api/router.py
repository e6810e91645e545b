from __future__ import annotations

from fastapi import APIRouter

from src.api.cash_flow import router as cash_flow_router
from src.api.health import router as health_router


api_router = APIRouter()
api_router.include_router(health_router)
api_router.include_router(cash_flow_router)
