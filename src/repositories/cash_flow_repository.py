from __future__ import annotations

import logging
from typing import Collection, Dict, List, Optional

import httpx

from src.core.errors import UpstreamError
from src.core.supabase import Filters, Row, SupabaseClient
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

logger = logging.getLogger(__name__)

# Project ids per in.(...) filter, so request URLs stay short.
PROJECT_ID_BATCH_SIZE = 100


class CashFlowRepository:
    def __init__(self) -> None:
        self.client = SupabaseClient()

    @staticmethod
    def _company_filter(company_id: Optional[str]) -> Filters:
        if company_id:
            return [("company_id", f"eq.{company_id}")]
        return []

    @staticmethod
    def _project_id_batches(project_ids: Collection[str]) -> List[Filters]:
        ordered = sorted(project_ids)
        batches = []
        for start in range(0, len(ordered), PROJECT_ID_BATCH_SIZE):
            chunk = ordered[start : start + PROJECT_ID_BATCH_SIZE]
            quoted = ",".join(f'"{project_id}"' for project_id in chunk)
            batches.append([("project_id", f"in.({quoted})")])
        return batches

    def _select_all(
        self,
        table: str,
        company_id: Optional[str] = None,
        order: Optional[str] = None,
        filters: Optional[Filters] = None,
    ) -> List[Row]:
        try:
            return self.client.select_all(
                table=table,
                filters=self._company_filter(company_id) + (filters or []),
                order=order,
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to read %s: %s", table, exc)
            raise UpstreamError(f"Failed to read {table}", table=table) from exc

    def _select_for_projects(
        self, table: str, project_ids: Optional[Collection[str]], order: str
    ) -> List[Row]:
        # split_billing and project_progress have no company_id; they are scoped
        # through the ids of the company's projects instead.
        if project_ids is None:
            return self._select_all(table, order=order)
        rows: List[Row] = []
        for batch in self._project_id_batches(project_ids):
            rows.extend(self._select_all(table, order=order, filters=batch))
        return rows

    def _select_latest(
        self, table: str, company_id: Optional[str], order: str
    ) -> Optional[Row]:
        try:
            rows = self.client.select(
                table=table,
                filters=self._company_filter(company_id),
                order=order,
                limit=1,
            )
        except httpx.HTTPError as exc:
            logger.error("Failed to read %s: %s", table, exc)
            raise UpstreamError(f"Failed to read {table}", table=table) from exc
        return rows[0] if rows else None

    def list_projects(self, company_id: Optional[str] = None) -> List[ProjectRecord]:
        rows = self._select_all("projects", company_id, order="business_number.asc")
        return [ProjectRecord.model_validate(row) for row in rows]

    def list_clients(self, company_id: Optional[str] = None) -> List[ClientRecord]:
        rows = self._select_all("clients", company_id, order="id.asc")
        return [ClientRecord.model_validate(row) for row in rows]

    def list_cost_entries(self, company_id: Optional[str] = None) -> List[CostEntryRecord]:
        rows = self._select_all("cost_entries", company_id, order="entry_date.asc")
        return [CostEntryRecord.model_validate(row) for row in rows]

    def list_split_billings(
        self, project_ids: Optional[Collection[str]] = None
    ) -> List[SplitBillingRecord]:
        rows = self._select_for_projects("split_billing", project_ids, order="billing_month.asc")
        return [SplitBillingRecord.model_validate(row) for row in rows]

    def list_caddon_billings(self, company_id: Optional[str] = None) -> List[CaddonBillingRecord]:
        rows = self._select_all("caddon_billing", company_id, order="billing_month.asc")
        return [CaddonBillingRecord.model_validate(row) for row in rows]

    def list_latest_progress(
        self, project_ids: Optional[Collection[str]] = None
    ) -> Dict[str, ProjectProgressRecord]:
        rows = self._select_for_projects(
            "project_progress", project_ids, order="progress_date.desc.nullslast"
        )
        latest: Dict[str, ProjectProgressRecord] = {}
        for row in rows:
            record = ProjectProgressRecord.model_validate(row)
            latest.setdefault(record.project_id, record)
        return latest

    def get_fiscal_info(self, company_id: Optional[str] = None) -> Optional[FiscalInfoRecord]:
        row = self._select_latest("fiscal_info", company_id, order="fiscal_year.desc")
        return FiscalInfoRecord.model_validate(row) if row else None

    def get_latest_bank_balance(
        self, company_id: Optional[str] = None
    ) -> Optional[BankBalanceRecord]:
        row = self._select_latest(
            "bank_balance_history", company_id, order="balance_date.desc.nullslast"
        )
        return BankBalanceRecord.model_validate(row) if row else None
