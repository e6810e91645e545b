from __future__ import annotations

import os
from datetime import date
from decimal import Decimal
from typing import Optional

os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_SERVICE_ROLE_KEY", "test-service-role-key")

import pytest
from fastapi.testclient import TestClient

from factories import make_client, make_fiscal_info, make_project
from src.analytics.aggregation import aggregate_monthly_cost, aggregate_monthly_revenue
from src.analytics.cash_flow import build_revenue_schedule, project_cash_flow
from src.api.dependencies import get_cash_flow_service
from src.core.errors import BadRequestError, UpstreamError
from src.main import create_app
from src.models.construction import CostEntryRecord
from src.schemas.cash_flow import CashFlowForecast, RevenueSchedule


class FakeCashFlowService:
    def __init__(self) -> None:
        self.fiscal_info = make_fiscal_info()
        self.projects = [make_project()]
        self.clients = [make_client()]
        self.cost_entries = [
            CostEntryRecord(entry_date=date(2024, 5, 10), amount=Decimal("300000")),
        ]

    def get_forecast(
        self,
        fiscal_year: Optional[int] = None,
        horizon_months: Optional[int] = None,
        company_id: Optional[str] = None,
    ) -> CashFlowForecast:
        if company_id == "offline":
            raise UpstreamError("Failed to read projects", table="projects")
        if horizon_months == 30:
            raise BadRequestError("horizon_months may not exceed 24")
        new_company = company_id == "new-company"
        projects = [] if new_company else self.projects
        cost_entries = [] if new_company else self.cost_entries
        revenue = aggregate_monthly_revenue(projects, self.clients, [], self.fiscal_info, [])
        return project_cash_flow(
            horizon_months=horizon_months or 12,
            fiscal_info=self.fiscal_info,
            latest_bank_balance=None,
            revenue=revenue,
            cost=aggregate_monthly_cost(cost_entries),
            projects=projects,
            clients=self.clients,
            split_billings=[],
            progress_by_project={},
        )

    def get_revenue_schedule(
        self, fiscal_year: Optional[int] = None, company_id: Optional[str] = None
    ) -> RevenueSchedule:
        revenue = aggregate_monthly_revenue(
            self.projects, self.clients, [], self.fiscal_info, []
        )
        return build_revenue_schedule(revenue, self.fiscal_info)


@pytest.fixture()
def client() -> TestClient:
    app = create_app()
    app.dependency_overrides[get_cash_flow_service] = FakeCashFlowService
    return TestClient(app)
