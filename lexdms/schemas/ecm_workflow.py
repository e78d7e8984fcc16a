from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field


# ---------------------------------------------------------------------------
# Intake
# ---------------------------------------------------------------------------


class DocumentUpload(BaseModel):
    firm_id: UUID
    uploaded_by: UUID
    folder_id: UUID | None = None
    title: str
    description: str | None = None
    document_type: str | None = None
    storage_key: str
    original_file_name: str
    file_extension: str | None = None
    mime_type: str | None = None
    file_size: int = 0
    checksum_sha256: str | None = None


# ---------------------------------------------------------------------------
# Reviews
# ---------------------------------------------------------------------------


class ChecklistResultIn(BaseModel):
    checklist_item_id: UUID
    is_passed: bool
    remarks: str | None = None


class ReviewApproveRequest(BaseModel):
    remarks: str | None = None
    internal_notes: str | None = None
    checklist_results: list[ChecklistResultIn] = Field(default_factory=list)


class ReviewRejectRequest(BaseModel):
    # Mandatory in practice; blank values are rejected by the workflow service
    remarks: str | None = None
    internal_notes: str | None = None
    checklist_results: list[ChecklistResultIn] = Field(default_factory=list)


class AdminApproveRequest(BaseModel):
    remarks: str | None = None


class AdminApproveWithRetentionRequest(AdminApproveRequest):
    policy_id: UUID | None = None
    retention_years: int | None = None
    retention_months: int | None = None
    retention_days: int | None = None


class AdminRejectRequest(BaseModel):
    remarks: str | None = None


# ---------------------------------------------------------------------------
# Edits & Archival
# ---------------------------------------------------------------------------


class DocumentEditRequest(BaseModel):
    storage_key: str
    original_file_name: str
    file_extension: str | None = None
    mime_type: str | None = None
    file_size: int = 0
    change_description: str | None = None


class ArchiveRequest(BaseModel):
    reason: str | None = None
    archive_type: str = "manual"
