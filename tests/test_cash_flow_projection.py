from __future__ import annotations

from datetime import date
from decimal import Decimal

import pytest

from src.analytics.aggregation import aggregate_monthly_cost, aggregate_monthly_revenue
from src.analytics.cash_flow import (
    DEFAULT_CONFIDENCE_WEIGHTS,
    NO_DATA_MESSAGE,
    build_revenue_schedule,
    classify_risk,
    opening_balance,
    project_cash_flow,
    score_confidence,
)
from src.models.construction import (
    BankBalanceRecord,
    CaddonBillingRecord,
    CostEntryRecord,
    ProjectProgressRecord,
    SplitBillingRecord,
)
from src.schemas.cash_flow import ConfidenceFactors, RiskLevel
from src.shared.time import MonthKey

from factories import make_client, make_fiscal_info, make_project


def run_forecast(
    horizon_months=3,
    projects=None,
    clients=None,
    cost_entries=(),
    splits=(),
    recurring=(),
    progress=None,
    fiscal_info=None,
    latest_bank_balance=None,
):
    projects = [make_project()] if projects is None else projects
    clients = [make_client()] if clients is None else clients
    fiscal_info = fiscal_info or make_fiscal_info()
    revenue = aggregate_monthly_revenue(
        projects, clients, list(recurring), fiscal_info, list(splits)
    )
    return project_cash_flow(
        horizon_months=horizon_months,
        fiscal_info=fiscal_info,
        latest_bank_balance=latest_bank_balance,
        revenue=revenue,
        cost=aggregate_monthly_cost(cost_entries),
        projects=projects,
        clients=clients,
        split_billings=list(splits),
        progress_by_project=progress or {},
        recurring_billings=list(recurring),
    )


def test_forecast_starts_after_settlement_month() -> None:
    forecast = run_forecast()
    assert forecast.start_month == "2024-04"
    assert [point.month_label for point in forecast.predictions] == [
        "2024-04",
        "2024-05",
        "2024-06",
    ]
    assert forecast.predictions[0].period_start == date(2024, 4, 1)


def test_payment_month_inflow_and_running_balance() -> None:
    forecast = run_forecast()
    inflows = [point.inflow for point in forecast.predictions]
    balances = [point.balance for point in forecast.predictions]
    assert forecast.opening_balance == Decimal("5000000")
    assert inflows == [Decimal("1200000"), Decimal("0"), Decimal("0")]
    assert balances == [Decimal("6200000")] * 3


def test_latest_bank_balance_overrides_fiscal_balance() -> None:
    forecast = run_forecast(
        latest_bank_balance=BankBalanceRecord(
            balance_date=date(2024, 2, 29), closing_balance=Decimal("2000000")
        )
    )
    assert forecast.opening_balance == Decimal("2000000")
    assert forecast.predictions[0].balance == Decimal("3200000")


def test_opening_balance_fallbacks() -> None:
    fiscal_info = make_fiscal_info(bank_balance=Decimal("700"))
    assert opening_balance(fiscal_info, BankBalanceRecord(closing_balance=None)) == Decimal("700")
    assert opening_balance(None, None) == Decimal("0")


def test_december_settlement_wraps_into_next_year() -> None:
    forecast = run_forecast(
        horizon_months=2, fiscal_info=make_fiscal_info(settlement_month=12)
    )
    assert [point.month_label for point in forecast.predictions] == ["2025-01", "2025-02"]


def test_missing_fiscal_info_uses_defaults() -> None:
    forecast = project_cash_flow(
        horizon_months=1,
        fiscal_info=None,
        latest_bank_balance=None,
        revenue={MonthKey(date.today().year, 4): Decimal("10")},
        cost={},
        projects=[make_project()],
        clients=[],
        split_billings=[],
        progress_by_project={},
    )
    assert forecast.settlement_month == 3
    assert forecast.start_month == f"{date.today().year}-04"
    assert forecast.predictions[0].balance == Decimal("10")


@pytest.mark.parametrize(
    "inflow, outflow, expected",
    [
        ("100", "101", RiskLevel.HIGH),
        ("100", "81", RiskLevel.MEDIUM),
        ("100", "80", RiskLevel.LOW),
        ("0", "0", RiskLevel.LOW),
        ("0", "1", RiskLevel.HIGH),
    ],
)
def test_classify_risk(inflow: str, outflow: str, expected: RiskLevel) -> None:
    assert classify_risk(Decimal(inflow), Decimal(outflow)) == expected


def test_confidence_for_payment_month_and_empty_months() -> None:
    forecast = run_forecast()
    april, may, _ = forecast.predictions
    assert april.factors == ConfidenceFactors(
        basis=0.9, progress=0.5, finish=0.7, relevant_projects=1
    )
    assert april.confidence == pytest.approx(0.71)
    assert may.factors.relevant_projects == 0
    assert may.confidence == pytest.approx(0.7)


def test_split_billing_month_uses_progress_and_expected_end() -> None:
    splits = [
        SplitBillingRecord(project_id="project-1", billing_month="2024-05", amount=Decimal("600000"))
    ]
    progress = {
        "project-1": ProjectProgressRecord(
            project_id="project-1",
            progress_rate=Decimal("60"),
            expected_end_date=date(2024, 5, 15),
        )
    }
    forecast = run_forecast(splits=splits, progress=progress)
    april, may, june = forecast.predictions
    assert april.inflow == Decimal("0")
    assert may.inflow == Decimal("600000")
    assert may.factors == ConfidenceFactors(
        basis=1.0, progress=0.6, finish=1.0, relevant_projects=1
    )
    assert may.confidence == pytest.approx(0.86)
    assert june.factors.relevant_projects == 0


def test_finish_weight_decays_with_distance_from_expected_end() -> None:
    recurring = [CaddonBillingRecord(billing_month="2024-04", amount=Decimal("50000"))]
    caddon = make_project(id="caddon-1", business_number="C-001", end_date=None)
    progress = {
        "caddon-1": ProjectProgressRecord(
            project_id="caddon-1", progress_rate=Decimal("100"), expected_end_date=date(2024, 4, 1)
        )
    }
    forecast = run_forecast(projects=[caddon], recurring=recurring, progress=progress)
    finishes = [point.factors.finish for point in forecast.predictions]
    assert finishes == [1.0, pytest.approx(0.75), pytest.approx(0.6)]
    assert all(point.factors.basis == 1.0 for point in forecast.predictions)


def test_confidence_is_scored_before_factors_are_rounded() -> None:
    recurring = [CaddonBillingRecord(billing_month="2024-04", amount=Decimal("50000"))]
    caddon = make_project(id="caddon-1", business_number="C-001", end_date=None)
    progress = {
        "caddon-1": ProjectProgressRecord(project_id="caddon-1", expected_end_date=date(2024, 8, 1))
    }
    april = run_forecast(projects=[caddon], recurring=recurring, progress=progress).predictions[0]
    exact = ConfidenceFactors(basis=1.0, progress=0.5, finish=3 / 7)
    assert april.factors.finish == 0.4286
    assert april.confidence == score_confidence(exact, DEFAULT_CONFIDENCE_WEIGHTS)


def test_progress_is_clamped_to_hundred_percent() -> None:
    progress = {
        "project-1": ProjectProgressRecord(project_id="project-1", progress_rate=Decimal("140"))
    }
    april = run_forecast(progress=progress).predictions[0]
    assert april.factors.progress == 1.0


def test_confidence_is_clamped() -> None:
    weights = DEFAULT_CONFIDENCE_WEIGHTS
    high = ConfidenceFactors(basis=1.0, progress=1.0, finish=1.0)
    low = ConfidenceFactors(basis=0.6, progress=0.0, finish=0.0)
    assert score_confidence(high, weights) == 0.98
    assert score_confidence(low, weights) == 0.40


def test_confidence_stays_within_bounds_for_every_month() -> None:
    projects = [
        make_project(),
        make_project(id="project-2", end_date=date(2024, 6, 30)),
        make_project(id="caddon-1", business_number="C-001"),
    ]
    progress = {
        "project-1": ProjectProgressRecord(project_id="project-1", progress_rate=Decimal("100"), expected_end_date=date(2024, 3, 20)),
        "project-2": ProjectProgressRecord(project_id="project-2", progress_rate=Decimal("0"), expected_end_date=date(2030, 1, 1)),
    }
    forecast = run_forecast(horizon_months=12, projects=projects, progress=progress)
    assert len(forecast.predictions) == 12
    assert all(0.40 <= point.confidence <= 0.98 for point in forecast.predictions)


def test_summary_reduces_the_monthly_points() -> None:
    cost_entries = [
        CostEntryRecord(entry_date=date(2024, 4, 3), amount=Decimal("200000")),
        CostEntryRecord(entry_date=date(2024, 5, 12), amount=Decimal("300000")),
    ]
    forecast = run_forecast(cost_entries=cost_entries)
    risks = [point.risk_level for point in forecast.predictions]
    assert risks == [RiskLevel.LOW, RiskLevel.HIGH, RiskLevel.LOW]
    summary = forecast.summary
    assert summary is not None
    assert summary.total_inflow == Decimal("1200000")
    assert summary.total_outflow == Decimal("500000")
    assert summary.net_cash_flow == Decimal("700000")
    assert summary.average_balance == Decimal("5800000")
    assert summary.minimum_balance == Decimal("5700000")
    assert summary.maximum_balance == Decimal("6000000")
    assert summary.high_risk_months == 1
    assert summary.average_confidence == pytest.approx(0.7)


def test_recommendations_flag_low_balance_and_overspend() -> None:
    cost_entries = [CostEntryRecord(entry_date=date(2024, 4, 3), amount=Decimal("100"))]
    forecast = run_forecast(
        projects=[make_project(contract_amount=Decimal("50"))],
        cost_entries=cost_entries,
        fiscal_info=make_fiscal_info(bank_balance=Decimal("0")),
        horizon_months=1,
    )
    april = forecast.predictions[0]
    assert april.balance == Decimal("-50")
    assert len(april.recommendations) == 2
    assert run_forecast().predictions[0].recommendations == ["Cash flow is stable."]


def test_no_data_returns_message_instead_of_zero_months() -> None:
    forecast = run_forecast(projects=[], clients=[])
    assert forecast.predictions == []
    assert forecast.summary is None
    assert forecast.message == NO_DATA_MESSAGE
    assert not forecast.has_data


def test_zero_valued_costs_still_count_as_no_data() -> None:
    cost_entries = [CostEntryRecord(entry_date=date(2024, 4, 3), amount=Decimal("0"))]
    assert run_forecast(projects=[], cost_entries=cost_entries).predictions == []


def test_costs_alone_produce_a_forecast() -> None:
    cost_entries = [CostEntryRecord(entry_date=date(2024, 4, 3), amount=Decimal("1000"))]
    forecast = run_forecast(projects=[], cost_entries=cost_entries)
    assert len(forecast.predictions) == 3
    assert forecast.message is None


def test_horizon_must_be_positive() -> None:
    with pytest.raises(ValueError):
        run_forecast(horizon_months=0)


def test_inputs_are_not_mutated() -> None:
    splits = [
        SplitBillingRecord(project_id="project-1", billing_month="2024-05", amount=Decimal("1"))
    ]
    projects = [make_project()]
    snapshot = [project.model_dump() for project in projects]
    run_forecast(projects=projects, splits=splits)
    assert [project.model_dump() for project in projects] == snapshot
    assert len(splits) == 1


def test_revenue_schedule_covers_the_fiscal_year() -> None:
    fiscal_info = make_fiscal_info()
    revenue = {
        MonthKey(2024, 4): Decimal("1200000"),
        MonthKey(2025, 3): Decimal("100"),
        MonthKey(2025, 4): Decimal("999"),
    }
    schedule = build_revenue_schedule(revenue, fiscal_info)
    assert schedule.fiscal_start_month == "2024-04"
    assert len(schedule.rows) == 12
    assert schedule.rows[-1].month_label == "2025-03"
    assert schedule.rows[1].amount == Decimal("0")
    assert schedule.annual_total == Decimal("1200100")
