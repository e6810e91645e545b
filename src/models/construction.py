from __future__ import annotations

from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Optional

from pydantic import Field

from src.shared.base import ReadOnlyRecord
from src.shared.time import MonthKey

# Subscription projects are numbered "C..." or carry the product name.
CADDON_BUSINESS_NUMBER_PREFIX = "C"
CADDON_NAME_MARKER = "CADDON"
OVERHEAD_PROJECT_NAMES = frozenset({"一般管理費", "その他経費"})
OVERHEAD_BUSINESS_NUMBER = "IP"


class CycleType(str, Enum):
    MONTH_END = "month_end"
    SPECIFIC_DATE = "specific_date"


class BillingCycleConfig(ReadOnlyRecord):
    cycle_type: Optional[CycleType] = None
    closing_day: Optional[int] = Field(default=None, ge=1, le=31)
    payment_month_offset: Optional[int] = Field(default=None, ge=0)
    payment_day: Optional[int] = Field(default=None, ge=1, le=31)


class ClientRecord(ReadOnlyRecord):
    id: str
    name: str
    company_id: Optional[str] = None
    payment_cycle_type: Optional[str] = None
    payment_cycle_closing_day: Optional[int] = None
    payment_cycle_payment_month_offset: Optional[int] = None
    payment_cycle_payment_day: Optional[int] = None

    @property
    def billing_cycle(self) -> Optional[BillingCycleConfig]:
        try:
            cycle_type = CycleType(self.payment_cycle_type)
        except ValueError:
            return None
        # The client form stores 0 for "not set" on cycle columns.
        return BillingCycleConfig(
            cycle_type=cycle_type,
            closing_day=self.payment_cycle_closing_day or None,
            payment_month_offset=self.payment_cycle_payment_month_offset or None,
            payment_day=self.payment_cycle_payment_day or None,
        )


class ProjectRecord(ReadOnlyRecord):
    id: str
    name: str
    business_number: Optional[str] = None
    contract_amount: Optional[Decimal] = None
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    client_id: Optional[str] = None
    client_name: Optional[str] = None
    status: Optional[str] = None
    company_id: Optional[str] = None

    @property
    def is_caddon_system(self) -> bool:
        if self.business_number and self.business_number.startswith(CADDON_BUSINESS_NUMBER_PREFIX):
            return True
        return CADDON_NAME_MARKER in self.name

    @property
    def is_overhead(self) -> bool:
        return (
            self.name in OVERHEAD_PROJECT_NAMES
            or self.business_number == OVERHEAD_BUSINESS_NUMBER
        )


class SplitBillingRecord(ReadOnlyRecord):
    project_id: str
    billing_month: str
    amount: Decimal

    @property
    def month_key(self) -> MonthKey:
        return MonthKey.parse(self.billing_month)


class CaddonBillingRecord(ReadOnlyRecord):
    id: Optional[str] = None
    project_id: Optional[str] = None
    billing_month: str
    amount: Optional[Decimal] = None
    total_amount: Optional[Decimal] = None

    @property
    def month_key(self) -> MonthKey:
        return MonthKey.parse(self.billing_month)

    @property
    def booked_amount(self) -> Decimal:
        if self.total_amount is not None:
            return self.total_amount
        if self.amount is not None:
            return self.amount
        return Decimal("0")


class CostEntryRecord(ReadOnlyRecord):
    id: Optional[str] = None
    entry_date: date
    amount: Decimal
    project_id: Optional[str] = None


class FiscalInfoRecord(ReadOnlyRecord):
    fiscal_year: int
    settlement_month: int = Field(default=3, ge=1, le=12)
    current_period: int = 1
    bank_balance: Decimal = Decimal("0")

    @classmethod
    def default(cls, fiscal_year: Optional[int] = None) -> "FiscalInfoRecord":
        return cls(fiscal_year=fiscal_year or date.today().year)

    @property
    def start_month(self) -> MonthKey:
        """First forecast month: the month after the settlement month."""
        return MonthKey.of(self.fiscal_year, self.settlement_month).shift(1)


class BankBalanceRecord(ReadOnlyRecord):
    id: Optional[str] = None
    fiscal_year: Optional[int] = None
    balance_date: Optional[date] = None
    closing_balance: Optional[Decimal] = None


class ProjectProgressRecord(ReadOnlyRecord):
    project_id: str
    progress_rate: Optional[Decimal] = None
    progress_date: Optional[date] = None
    expected_end_date: Optional[date] = None

    @property
    def progress_percent(self) -> Optional[Decimal]:
        if self.progress_rate is None:
            return None
        return min(max(self.progress_rate, Decimal("0")), Decimal("100"))
