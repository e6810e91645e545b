from __future__ import annotations

from decimal import ROUND_HALF_UP, Decimal
from statistics import mean
from typing import Dict, Iterable, List, Mapping, Optional, Sequence

from pydantic import BaseModel, ConfigDict

from src.analytics.aggregation import (
    ZERO,
    MonthlyAmounts,
    group_split_billings,
    payment_month,
)
from src.models.construction import (
    BankBalanceRecord,
    CaddonBillingRecord,
    ClientRecord,
    FiscalInfoRecord,
    ProjectProgressRecord,
    ProjectRecord,
    SplitBillingRecord,
)
from src.schemas.cash_flow import (
    CashFlowForecast,
    ConfidenceFactors,
    ForecastSummary,
    MonthlyForecast,
    RevenueSchedule,
    RevenueScheduleRow,
    RiskLevel,
)
from src.shared.time import MonthKey, months_between

NO_DATA_MESSAGE = (
    "No projects, recurring billings or cost entries are registered yet. "
    "Add data to generate a cash flow forecast."
)
DEFAULT_LOW_BALANCE_THRESHOLD = Decimal("1000000")
CENT = Decimal("0.01")


class ConfidenceWeights(BaseModel):
    model_config = ConfigDict(frozen=True)

    basis: float = 0.40
    progress: float = 0.35
    finish: float = 0.25
    floor: float = 0.40
    ceiling: float = 0.98

    split_billing_basis: float = 1.0
    payment_cycle_basis: float = 0.9
    recurring_basis: float = 1.0

    default_progress: float = 0.5
    default_finish: float = 0.7
    no_projects_default: float = 0.7
    finish_decay_months: float = 3.0


class RiskThresholds(BaseModel):
    model_config = ConfigDict(frozen=True)

    medium_outflow_ratio: Decimal = Decimal("0.8")


DEFAULT_CONFIDENCE_WEIGHTS = ConfidenceWeights()
DEFAULT_RISK_THRESHOLDS = RiskThresholds()


def opening_balance(
    fiscal_info: Optional[FiscalInfoRecord], latest_bank_balance: Optional[BankBalanceRecord]
) -> Decimal:
    if latest_bank_balance is not None and latest_bank_balance.closing_balance is not None:
        return latest_bank_balance.closing_balance
    if fiscal_info is not None:
        return fiscal_info.bank_balance
    return ZERO


def classify_risk(
    inflow: Decimal, outflow: Decimal, thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS
) -> RiskLevel:
    if outflow > inflow:
        return RiskLevel.HIGH
    if outflow > inflow * thresholds.medium_outflow_ratio:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def score_confidence(factors: ConfidenceFactors, weights: ConfidenceWeights) -> float:
    raw = (
        weights.basis * factors.basis
        + weights.progress * factors.progress
        + weights.finish * factors.finish
    )
    return round(min(max(raw, weights.floor), weights.ceiling), 4)


class _ConfidenceModel:
    """Per-project inputs to the monthly confidence score, resolved once per forecast."""

    def __init__(
        self,
        projects: Sequence[ProjectRecord],
        clients: Sequence[ClientRecord],
        split_by_project: Mapping[str, MonthlyAmounts],
        progress_by_project: Mapping[str, ProjectProgressRecord],
        weights: ConfidenceWeights,
    ) -> None:
        self.projects = projects
        self.split_by_project = split_by_project
        self.progress_by_project = progress_by_project
        self.weights = weights
        self.payment_months: Dict[str, Optional[MonthKey]] = {
            project.id: payment_month(project, clients) for project in projects
        }

    def factors_for(self, month: MonthKey) -> ConfidenceFactors:
        weights = self.weights
        basis: List[float] = []
        progress: List[float] = []
        finish: List[float] = []
        for project in self.projects:
            has_split = month in self.split_by_project.get(project.id, {})
            paid_this_month = self.payment_months.get(project.id) == month
            if has_split:
                basis.append(weights.split_billing_basis)
            elif paid_this_month:
                basis.append(weights.payment_cycle_basis)
            elif project.is_caddon_system:
                basis.append(weights.recurring_basis)
            else:
                continue
            progress.append(self._progress_weight(project))
            finish.append(self._finish_weight(project, month))

        if not basis:
            default = weights.no_projects_default
            return ConfidenceFactors(basis=default, progress=default, finish=default)
        return ConfidenceFactors(
            basis=mean(basis),
            progress=mean(progress),
            finish=mean(finish),
            relevant_projects=len(basis),
        )

    def _progress_weight(self, project: ProjectRecord) -> float:
        record = self.progress_by_project.get(project.id)
        if record is None or record.progress_percent is None:
            return self.weights.default_progress
        return float(record.progress_percent) / 100

    def _finish_weight(self, project: ProjectRecord, month: MonthKey) -> float:
        record = self.progress_by_project.get(project.id)
        if record is None or record.expected_end_date is None:
            return self.weights.default_finish
        distance = abs(months_between(record.expected_end_date, month))
        return 1 / (1 + distance / self.weights.finish_decay_months)


def _recommendations(
    balance: Decimal, risk_level: RiskLevel, low_balance_threshold: Decimal
) -> List[str]:
    advice: List[str] = []
    if balance < low_balance_threshold:
        advice.append(
            "Projected balance is below the safety threshold; defer spending or bring billing forward."
        )
    if risk_level == RiskLevel.HIGH:
        advice.append("Outflow exceeds inflow this month; review scheduled costs.")
    if not advice:
        advice.append("Cash flow is stable.")
    return advice


def _is_empty(
    projects: Sequence[ProjectRecord],
    recurring_billings: Sequence[CaddonBillingRecord],
    revenue: MonthlyAmounts,
    cost: MonthlyAmounts,
) -> bool:
    if projects or recurring_billings:
        return False
    return all(amount == 0 for amount in revenue.values()) and all(
        amount == 0 for amount in cost.values()
    )


def summarize_forecast(predictions: Sequence[MonthlyForecast]) -> ForecastSummary:
    balances = [point.balance for point in predictions]
    total_inflow = sum((point.inflow for point in predictions), ZERO)
    total_outflow = sum((point.outflow for point in predictions), ZERO)
    average_balance = sum(balances, ZERO) / len(balances)
    return ForecastSummary(
        total_inflow=total_inflow,
        total_outflow=total_outflow,
        net_cash_flow=total_inflow - total_outflow,
        average_balance=average_balance.quantize(CENT, rounding=ROUND_HALF_UP),
        minimum_balance=min(balances),
        maximum_balance=max(balances),
        high_risk_months=sum(1 for point in predictions if point.risk_level == RiskLevel.HIGH),
        average_confidence=round(mean(point.confidence for point in predictions), 2),
    )


def project_cash_flow(
    horizon_months: int,
    fiscal_info: Optional[FiscalInfoRecord],
    latest_bank_balance: Optional[BankBalanceRecord],
    revenue: MonthlyAmounts,
    cost: MonthlyAmounts,
    projects: Sequence[ProjectRecord],
    clients: Sequence[ClientRecord],
    split_billings: Iterable[SplitBillingRecord],
    progress_by_project: Mapping[str, ProjectProgressRecord],
    recurring_billings: Sequence[CaddonBillingRecord] = (),
    weights: ConfidenceWeights = DEFAULT_CONFIDENCE_WEIGHTS,
    thresholds: RiskThresholds = DEFAULT_RISK_THRESHOLDS,
    low_balance_threshold: Decimal = DEFAULT_LOW_BALANCE_THRESHOLD,
) -> CashFlowForecast:
    """Walk ``horizon_months`` forward from the month after the settlement month.

    Each month adds its aggregated revenue and subtracts its cost from a running
    balance that starts at the latest bank closing balance (or the fiscal
    info's balance). Confidence only labels a month; it never changes amounts.
    With no projects, no recurring billings and nothing but zero months the
    result carries a message and no predictions.
    """
    if horizon_months < 1:
        raise ValueError("horizon_months must be at least 1")

    fiscal_info = fiscal_info or FiscalInfoRecord.default()
    start_month = fiscal_info.start_month
    balance = opening_balance(fiscal_info, latest_bank_balance)
    forecast = CashFlowForecast(
        fiscal_year=fiscal_info.fiscal_year,
        settlement_month=fiscal_info.settlement_month,
        start_month=str(start_month),
        opening_balance=balance,
    )

    if _is_empty(projects, recurring_billings, revenue, cost):
        return forecast.model_copy(update={"message": NO_DATA_MESSAGE})

    confidence_model = _ConfidenceModel(
        projects=projects,
        clients=clients,
        split_by_project=group_split_billings(split_billings),
        progress_by_project=progress_by_project,
        weights=weights,
    )

    predictions: List[MonthlyForecast] = []
    for step in range(horizon_months):
        month = start_month.shift(step)
        inflow = revenue.get(month, ZERO)
        outflow = cost.get(month, ZERO)
        balance += inflow - outflow
        risk_level = classify_risk(inflow, outflow, thresholds)
        factors = confidence_model.factors_for(month)
        predictions.append(
            MonthlyForecast(
                month_label=str(month),
                period_start=month.first_day(),
                inflow=inflow,
                outflow=outflow,
                balance=balance,
                confidence=score_confidence(factors, weights),
                risk_level=risk_level,
                factors=factors.rounded(),
                recommendations=_recommendations(balance, risk_level, low_balance_threshold),
            )
        )

    return forecast.model_copy(
        update={"predictions": predictions, "summary": summarize_forecast(predictions)}
    )


def build_revenue_schedule(
    revenue: MonthlyAmounts, fiscal_info: FiscalInfoRecord, months: int = 12
) -> RevenueSchedule:
    """Zero-filled revenue for each month of the fiscal year."""
    start_month = fiscal_info.start_month
    rows = []
    for step in range(months):
        month = start_month.shift(step)
        rows.append(
            RevenueScheduleRow(
                month_label=str(month),
                period_start=month.first_day(),
                amount=revenue.get(month, ZERO),
            )
        )
    return RevenueSchedule(
        fiscal_year=fiscal_info.fiscal_year,
        fiscal_start_month=str(start_month),
        rows=rows,
        annual_total=sum((row.amount for row in rows), ZERO),
    )
