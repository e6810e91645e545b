from __future__ import annotations

from functools import lru_cache

from src.repositories.cash_flow_repository import CashFlowRepository
from src.services.cash_flow_service import CashFlowService


@lru_cache
def get_cash_flow_repository() -> CashFlowRepository:
    return CashFlowRepository()


def get_cash_flow_service() -> CashFlowService:
    return CashFlowService(repository=get_cash_flow_repository())
