from __future__ import annotations

from datetime import datetime, timezone
from typing import Generic, Optional, TypeVar

from src.shared.base import BaseSchema


T = TypeVar("T")


class Meta(BaseSchema):
    as_of_date: str
    source: str
    time_window: str
    calculation_version: str
    currency: Optional[str] = None
    data_status: Optional[str] = None
    generated_at: Optional[str] = None


class ResponseEnvelope(BaseSchema, Generic[T]):
    data: T
    meta: Optional[Meta] = None


def build_meta(
    source: str,
    time_window: str,
    calculation_version: str = "v1",
    currency: Optional[str] = None,
    data_status: Optional[str] = None,
) -> Meta:
    now = datetime.now(timezone.utc)
    return Meta(
        as_of_date=now.date().isoformat(),
        source=source,
        time_window=time_window,
        calculation_version=calculation_version,
        currency=currency,
        data_status=data_status,
        generated_at=now.isoformat(),
    )
