from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, Query

from src.api.dependencies import get_cash_flow_service
from src.schemas.cash_flow import CashFlowForecast, RevenueSchedule
from src.services.cash_flow_service import CashFlowService
from src.shared.response import ResponseEnvelope, build_meta


router = APIRouter(prefix="/cash-flow", tags=["cash-flow"])

SOURCE = "construction_ledger"
CURRENCY = "JPY"


@router.get("/forecast")
def cash_flow_forecast(
    fiscal_year: Optional[int] = Query(default=None, ge=2000, le=2100),
    horizon_months: Optional[int] = Query(default=None, ge=1),
    company_id: Optional[str] = Query(default=None),
    service: CashFlowService = Depends(get_cash_flow_service),
) -> ResponseEnvelope[CashFlowForecast]:
    data = service.get_forecast(
        fiscal_year=fiscal_year, horizon_months=horizon_months, company_id=company_id
    )
    meta = build_meta(
        source=SOURCE,
        time_window=f"{len(data.predictions)}m",
        currency=CURRENCY,
        data_status="ok" if data.has_data else "no_data",
    )
    return ResponseEnvelope(data=data, meta=meta)


@router.get("/revenue-schedule")
def revenue_schedule(
    fiscal_year: Optional[int] = Query(default=None, ge=2000, le=2100),
    company_id: Optional[str] = Query(default=None),
    service: CashFlowService = Depends(get_cash_flow_service),
) -> ResponseEnvelope[RevenueSchedule]:
    data = service.get_revenue_schedule(fiscal_year=fiscal_year, company_id=company_id)
    meta = build_meta(
        source=SOURCE,
        time_window=f"{len(data.rows)}m",
        currency=CURRENCY,
        data_status="ok",
    )
    return ResponseEnvelope(data=data, meta=meta)
