from __future__ import annotations

from datetime import date, timedelta
from typing import Optional

from pydantic import BaseModel, ConfigDict

from src.models.construction import BillingCycleConfig, CycleType
from src.shared.time import add_months


class BillingCycleDefaults(BaseModel):
    """Values used when a client's billing cycle leaves a field blank."""

    model_config = ConfigDict(frozen=True)

    closing_day: int = 25
    payment_month_offset: int = 1
    payment_day: int = 15


DEFAULT_BILLING_CYCLE = BillingCycleDefaults()


def resolve_payment_date(
    reference_date: Optional[date],
    cycle: Optional[BillingCycleConfig],
    defaults: BillingCycleDefaults = DEFAULT_BILLING_CYCLE,
    today: Optional[date] = None,
) -> date:
    """Predict when a client pays for work completed on ``reference_date``.

    Without a reference date the result is ``today``; without a cycle type the
    reference date is returned unchanged. A blank or zero field takes its
    value from ``defaults``.

    ``month_end`` pays on the last day of the month ``payment_month_offset``
    months after the reference month. ``specific_date`` closes on
    ``closing_day``: work completed on or before it is paid ``offset`` months
    later, anything after it one month later still, on ``payment_day``. The
    payment day is not clamped to the month length; a day past the month end
    rolls into the following month.
    """
    if reference_date is None:
        return today or date.today()
    if cycle is None or cycle.cycle_type is None:
        return reference_date

    offset = _or_default(cycle.payment_month_offset, defaults.payment_month_offset)

    if cycle.cycle_type == CycleType.MONTH_END:
        return add_months(reference_date, offset).last_day()

    closing_day = _or_default(cycle.closing_day, defaults.closing_day)
    payment_day = _or_default(cycle.payment_day, defaults.payment_day)
    if reference_date.day > closing_day:
        offset += 1
    target = add_months(reference_date, offset)
    return target.first_day() + timedelta(days=payment_day - 1)


def _or_default(value: Optional[int], default: int) -> int:
    # Zero is stored for "not set" on every cycle column.
    return value or default
