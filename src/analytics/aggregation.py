from __future__ import annotations

import logging
from collections import defaultdict
from decimal import Decimal
from itertools import chain
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Sequence, Tuple

from src.analytics.payment_cycle import resolve_payment_date
from src.models.construction import (
    CaddonBillingRecord,
    ClientRecord,
    CostEntryRecord,
    FiscalInfoRecord,
    ProjectRecord,
    SplitBillingRecord,
)
from src.shared.time import MonthKey

logger = logging.getLogger(__name__)

ZERO = Decimal("0")

MonthlyAmounts = Mapping[MonthKey, Decimal]


def sum_by_month(entries: Iterable[Tuple[MonthKey, Decimal]]) -> MonthlyAmounts:
    """Fold (month, amount) pairs into a read-only map; same-month amounts add up."""
    totals: Dict[MonthKey, Decimal] = defaultdict(lambda: ZERO)
    for month, amount in entries:
        totals[month] += amount
    return MappingProxyType(dict(totals))


def find_client_by_name(
    clients: Iterable[ClientRecord], name: Optional[str]
) -> Optional[ClientRecord]:
    if not name:
        return None
    return next((client for client in clients if client.name == name), None)


def resolve_client(
    project: ProjectRecord, clients: Sequence[ClientRecord]
) -> Optional[ClientRecord]:
    if project.client_id:
        match = next((client for client in clients if client.id == project.client_id), None)
        if match is not None:
            return match
    return find_client_by_name(clients, project.client_name)


def payment_month(
    project: ProjectRecord, clients: Sequence[ClientRecord]
) -> Optional[MonthKey]:
    """Month the project's contract amount is expected to be paid, from its end date."""
    if project.end_date is None:
        return None
    client = resolve_client(project, clients)
    cycle = client.billing_cycle if client else None
    return MonthKey.from_date(resolve_payment_date(project.end_date, cycle))


def group_split_billings(
    split_billings: Iterable[SplitBillingRecord],
) -> Dict[str, MonthlyAmounts]:
    by_project: Dict[str, list] = defaultdict(list)
    for entry in split_billings:
        by_project[entry.project_id].append((entry.month_key, entry.amount))
    return {project_id: sum_by_month(pairs) for project_id, pairs in by_project.items()}


def earns_contract_revenue(project: ProjectRecord) -> bool:
    # Subscription revenue arrives through recurring billings only.
    if project.is_caddon_system or project.is_overhead:
        return False
    if project.contract_amount is None or project.contract_amount <= 0:
        # Split entries of such a project are dropped along with the contract amount.
        logger.debug("Skipping project %s without a positive contract amount", project.id)
        return False
    return True


def unscheduled_month(fiscal_info: FiscalInfoRecord) -> MonthKey:
    return MonthKey(fiscal_info.fiscal_year, fiscal_info.current_period)


def _project_revenue(
    project: ProjectRecord,
    split_by_project: Mapping[str, MonthlyAmounts],
    clients: Sequence[ClientRecord],
    fiscal_info: FiscalInfoRecord,
) -> Iterator[Tuple[MonthKey, Decimal]]:
    contract_amount = project.contract_amount or ZERO
    split = split_by_project.get(project.id)
    if split:
        yield from split.items()
        return
    month = payment_month(project, clients)
    if month is not None:
        yield month, contract_amount
        return
    yield unscheduled_month(fiscal_info), contract_amount


def aggregate_monthly_revenue(
    projects: Sequence[ProjectRecord],
    clients: Sequence[ClientRecord],
    recurring_billings: Iterable[CaddonBillingRecord],
    fiscal_info: FiscalInfoRecord,
    split_billings: Iterable[SplitBillingRecord],
) -> MonthlyAmounts:
    """Expected revenue per month.

    Precedence per project: split billing entries, then the payment-cycle month
    of its end date, then the current fiscal period. Recurring billings are
    added on top in their own billing month.
    """
    split_by_project = group_split_billings(split_billings)
    project_revenue = chain.from_iterable(
        _project_revenue(project, split_by_project, clients, fiscal_info)
        for project in projects
        if earns_contract_revenue(project)
    )
    recurring_revenue = (
        (billing.month_key, billing.booked_amount) for billing in recurring_billings
    )
    return sum_by_month(chain(project_revenue, recurring_revenue))


def aggregate_monthly_cost(cost_entries: Iterable[CostEntryRecord]) -> MonthlyAmounts:
    # Project and general costs share one monthly total.
    return sum_by_month(
        (MonthKey.from_date(entry.entry_date), entry.amount) for entry in cost_entries
    )
