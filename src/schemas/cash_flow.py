from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import List, Optional

from pydantic import Field

from src.shared.base import BaseSchema


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ConfidenceFactors(BaseSchema):
    basis: float
    progress: float
    finish: float
    relevant_projects: int = 0

    def rounded(self, places: int = 4) -> ConfidenceFactors:
        return self.model_copy(
            update={
                "basis": round(self.basis, places),
                "progress": round(self.progress, places),
                "finish": round(self.finish, places),
            }
        )


class MonthlyForecast(BaseSchema):
    month_label: str
    period_start: date
    inflow: Decimal
    outflow: Decimal
    balance: Decimal
    confidence: float = Field(..., ge=0.0, le=1.0)
    risk_level: RiskLevel
    factors: ConfidenceFactors
    recommendations: List[str] = Field(default_factory=list)


class ForecastSummary(BaseSchema):
    total_inflow: Decimal
    total_outflow: Decimal
    net_cash_flow: Decimal
    average_balance: Decimal
    minimum_balance: Decimal
    maximum_balance: Decimal
    high_risk_months: int
    average_confidence: float


class CashFlowForecast(BaseSchema):
    fiscal_year: int
    settlement_month: int
    start_month: str
    opening_balance: Decimal
    predictions: List[MonthlyForecast] = Field(default_factory=list)
    summary: Optional[ForecastSummary] = None
    message: Optional[str] = None

    @property
    def has_data(self) -> bool:
        return bool(self.predictions)


class RevenueScheduleRow(BaseSchema):
    month_label: str
    period_start: date
    amount: Decimal


class RevenueSchedule(BaseSchema):
    fiscal_year: int
    fiscal_start_month: str
    rows: List[RevenueScheduleRow]
    annual_total: Decimal
