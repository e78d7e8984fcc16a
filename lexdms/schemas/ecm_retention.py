from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel


# ---------------------------------------------------------------------------
# RetentionPolicy
# ---------------------------------------------------------------------------


class RetentionPolicyBase(BaseModel):
    name: str
    description: str | None = None
    document_type: str | None = None
    retention_years: int = 0
    retention_months: int = 0
    retention_days: int = 0
    is_default: bool = False
    is_active: bool = True


class RetentionPolicyCreate(RetentionPolicyBase):
    firm_id: UUID
    created_by: UUID | None = None


class RetentionPolicyUpdate(BaseModel):
    name: str | None = None
    description: str | None = None
    document_type: str | None = None
    retention_years: int | None = None
    retention_months: int | None = None
    retention_days: int | None = None
    is_default: bool | None = None
    is_active: bool | None = None


# ---------------------------------------------------------------------------
# DocumentRetention
# ---------------------------------------------------------------------------


class RetentionApply(BaseModel):
    policy_id: UUID | None = None
    retention_years: int | None = None
    retention_months: int | None = None
    retention_days: int | None = None
    start_date: datetime | None = None


class RetentionModify(BaseModel):
    retention_years: int | None = None
    retention_months: int | None = None
    retention_days: int | None = None
    # Used only when the retention has no start date to re-derive from
    new_expiry_date: datetime | None = None
    reason: str | None = None


# ---------------------------------------------------------------------------
# Archive
# ---------------------------------------------------------------------------


class RestoreRequest(BaseModel):
    reset_retention: bool = True
