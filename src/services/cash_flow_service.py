from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

from src.analytics.aggregation import aggregate_monthly_cost, aggregate_monthly_revenue
from src.analytics.cash_flow import build_revenue_schedule, project_cash_flow
from src.core.config import get_settings
from src.core.errors import BadRequestError
from src.models.construction import (
    BankBalanceRecord,
    CaddonBillingRecord,
    ClientRecord,
    CostEntryRecord,
    FiscalInfoRecord,
    ProjectProgressRecord,
    ProjectRecord,
    SplitBillingRecord,
)
from src.repositories.cash_flow_repository import CashFlowRepository
from src.schemas.cash_flow import CashFlowForecast, RevenueSchedule

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ForecastInputs:
    fiscal_info: FiscalInfoRecord
    latest_bank_balance: Optional[BankBalanceRecord]
    projects: List[ProjectRecord]
    clients: List[ClientRecord]
    cost_entries: List[CostEntryRecord]
    split_billings: List[SplitBillingRecord]
    recurring_billings: List[CaddonBillingRecord]
    progress_by_project: Dict[str, ProjectProgressRecord]


class CashFlowService:
    def __init__(self, repository: CashFlowRepository) -> None:
        self.repository = repository
        self.settings = get_settings()

    def _resolve_fiscal_info(
        self, fiscal_year: Optional[int], company_id: Optional[str]
    ) -> FiscalInfoRecord:
        fiscal_info = self.repository.get_fiscal_info(company_id)
        if fiscal_info is None:
            return FiscalInfoRecord.default(fiscal_year)
        if fiscal_year is not None and fiscal_info.fiscal_year != fiscal_year:
            return fiscal_info.model_copy(update={"fiscal_year": fiscal_year})
        return fiscal_info

    def _resolve_horizon(self, horizon_months: Optional[int]) -> int:
        horizon = horizon_months or self.settings.forecast_default_horizon_months
        if horizon > self.settings.forecast_max_horizon_months:
            raise BadRequestError(
                f"horizon_months may not exceed {self.settings.forecast_max_horizon_months}"
            )
        return horizon

    def load_inputs(
        self, fiscal_year: Optional[int] = None, company_id: Optional[str] = None
    ) -> ForecastInputs:
        projects = self.repository.list_projects(company_id)
        project_ids = {project.id for project in projects} if company_id else None
        return ForecastInputs(
            fiscal_info=self._resolve_fiscal_info(fiscal_year, company_id),
            latest_bank_balance=self.repository.get_latest_bank_balance(company_id),
            projects=projects,
            clients=self.repository.list_clients(company_id),
            cost_entries=self.repository.list_cost_entries(company_id),
            split_billings=self.repository.list_split_billings(project_ids),
            recurring_billings=self.repository.list_caddon_billings(company_id),
            progress_by_project=self.repository.list_latest_progress(project_ids),
        )

    def get_forecast(
        self,
        fiscal_year: Optional[int] = None,
        horizon_months: Optional[int] = None,
        company_id: Optional[str] = None,
    ) -> CashFlowForecast:
        horizon = self._resolve_horizon(horizon_months)
        inputs = self.load_inputs(fiscal_year, company_id)
        revenue = aggregate_monthly_revenue(
            inputs.projects,
            inputs.clients,
            inputs.recurring_billings,
            inputs.fiscal_info,
            inputs.split_billings,
        )
        cost = aggregate_monthly_cost(inputs.cost_entries)
        forecast = project_cash_flow(
            horizon_months=horizon,
            fiscal_info=inputs.fiscal_info,
            latest_bank_balance=inputs.latest_bank_balance,
            revenue=revenue,
            cost=cost,
            projects=inputs.projects,
            clients=inputs.clients,
            split_billings=inputs.split_billings,
            progress_by_project=inputs.progress_by_project,
            recurring_billings=inputs.recurring_billings,
            low_balance_threshold=self.settings.forecast_low_balance_threshold,
        )
        if forecast.has_data:
            logger.info(
                "Cash flow forecast fiscal_year=%s start=%s horizon=%s projects=%s cost_entries=%s",
                forecast.fiscal_year,
                forecast.start_month,
                horizon,
                len(inputs.projects),
                len(inputs.cost_entries),
            )
        else:
            logger.info(
                "Cash flow forecast fiscal_year=%s has no data to project", forecast.fiscal_year
            )
        return forecast

    def get_revenue_schedule(
        self, fiscal_year: Optional[int] = None, company_id: Optional[str] = None
    ) -> RevenueSchedule:
        inputs = self.load_inputs(fiscal_year, company_id)
        revenue = aggregate_monthly_revenue(
            inputs.projects,
            inputs.clients,
            inputs.recurring_billings,
            inputs.fiscal_info,
            inputs.split_billings,
        )
        return build_revenue_schedule(revenue, inputs.fiscal_info)
