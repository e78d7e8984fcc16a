import enum
import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    BigInteger,
    Boolean,
    DateTime,
    Enum,
    Float,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    text,
)
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from lexdms.db import Base
from lexdms.models.firm import RoleName


# ---------------------------------------------------------------------------
# Enums - Workflow
# ---------------------------------------------------------------------------


class WorkflowStage(enum.Enum):
    client_upload = "client_upload"
    pending_staff_review = "pending_staff_review"
    staff_review = "staff_review"
    staff_rejected = "staff_rejected"
    pending_lawyer_review = "pending_lawyer_review"
    lawyer_review = "lawyer_review"
    lawyer_rejected = "lawyer_rejected"
    pending_admin_review = "pending_admin_review"
    admin_review = "admin_review"
    admin_rejected = "admin_rejected"
    completed = "completed"
    archived = "archived"


class DocumentStatus(enum.Enum):
    pending = "pending"
    under_review = "under_review"
    approved = "approved"
    rejected = "rejected"
    completed = "completed"
    archived = "archived"


class ReviewDecision(enum.Enum):
    approved = "approved"
    rejected = "rejected"


# ---------------------------------------------------------------------------
# Enums - Archive
# ---------------------------------------------------------------------------


class ArchiveType(enum.Enum):
    manual = "manual"
    rejected = "rejected"
    retention = "retention"
    auto_expired = "auto_expired"
    version = "version"


# ---------------------------------------------------------------------------
# Core Content - Client Folders
# ---------------------------------------------------------------------------


class Folder(Base):
    __tablename__ = "folders"
    __table_args__ = (
        UniqueConstraint("firm_id", "owner_id", "name", name="uq_folders_owner_name"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    owner_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    documents = relationship("Document", back_populates="folder")
    owner = relationship("User", foreign_keys=[owner_id])


# ---------------------------------------------------------------------------
# Core Content - Documents
# ---------------------------------------------------------------------------


class Document(Base):
    __tablename__ = "documents"
    __table_args__ = (
        Index("ix_documents_firm_stage", "firm_id", "workflow_stage"),
        Index("ix_documents_uploaded_by", "uploaded_by"),
        Index("ix_documents_status", "status"),
        Index("ix_documents_checksum", "firm_id", "checksum_sha256"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    folder_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("folders.id")
    )
    title: Mapped[str] = mapped_column(String(500), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)

    # User-supplied type, plus whatever the classifier detected
    document_type: Mapped[str | None] = mapped_column(String(100))
    detected_document_type: Mapped[str | None] = mapped_column(String(100))
    detected_type_confidence: Mapped[float | None] = mapped_column(Float)

    status: Mapped[DocumentStatus] = mapped_column(
        Enum(DocumentStatus), default=DocumentStatus.pending
    )
    workflow_stage: Mapped[WorkflowStage] = mapped_column(
        Enum(WorkflowStage), default=WorkflowStage.client_upload
    )
    current_remarks: Mapped[str | None] = mapped_column(Text)

    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    assigned_staff_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    assigned_lawyer_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    assigned_admin_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    # Denormalized from current version (updated on new version creation)
    current_version: Mapped[int] = mapped_column(Integer, default=1)
    original_file_name: Mapped[str | None] = mapped_column(String(500))
    file_extension: Mapped[str | None] = mapped_column(String(20))
    mime_type: Mapped[str | None] = mapped_column(String(255))
    total_file_size: Mapped[int] = mapped_column(BigInteger, default=0)

    checksum_sha256: Mapped[str | None] = mapped_column(String(64))
    is_duplicate: Mapped[bool] = mapped_column(Boolean, default=False)
    duplicate_of_document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id")
    )

    staff_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    lawyer_reviewed_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    admin_reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    # Denormalized from DocumentRetention.retention_expires_at
    retention_expires_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    row_version: Mapped[int] = mapped_column(Integer, nullable=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    __mapper_args__ = {"version_id_col": row_version}

    folder = relationship("Folder", back_populates="documents")
    uploader = relationship("User", foreign_keys=[uploaded_by])
    assigned_staff = relationship("User", foreign_keys=[assigned_staff_id])
    assigned_lawyer = relationship("User", foreign_keys=[assigned_lawyer_id])
    assigned_admin = relationship("User", foreign_keys=[assigned_admin_id])
    duplicate_of = relationship(
        "Document", remote_side="Document.id", foreign_keys=[duplicate_of_document_id]
    )
    versions = relationship(
        "DocumentVersion",
        back_populates="document",
        order_by="DocumentVersion.version_number.desc()",
    )
    reviews = relationship(
        "DocumentReview",
        back_populates="document",
        order_by="DocumentReview.reviewed_at.desc()",
    )
    retention = relationship("DocumentRetention", back_populates="document", uselist=False)
    archives = relationship("Archive", back_populates="document")


# ---------------------------------------------------------------------------
# Core Content - Document Versions (immutable, no updated_at)
# ---------------------------------------------------------------------------


class DocumentVersion(Base):
    __tablename__ = "document_versions"
    __table_args__ = (
        UniqueConstraint(
            "document_id",
            "version_number",
            name="uq_document_versions_doc_version",
        ),
        Index("ix_document_versions_document_id", "document_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    version_number: Mapped[int] = mapped_column(Integer, nullable=False)
    storage_key: Mapped[str] = mapped_column(String(1024), nullable=False)
    file_size: Mapped[int] = mapped_column(BigInteger, nullable=False)
    original_file_name: Mapped[str] = mapped_column(String(500), nullable=False)
    file_extension: Mapped[str | None] = mapped_column(String(20))
    mime_type: Mapped[str | None] = mapped_column(String(255))
    change_description: Mapped[str | None] = mapped_column(Text)
    changed_by_role: Mapped[RoleName | None] = mapped_column(Enum(RoleName))
    uploaded_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    is_current_version: Mapped[bool] = mapped_column(Boolean, default=False)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    # No updated_at except the current-version flag - immutable record

    document = relationship("Document", back_populates="versions")
    uploader = relationship("User", foreign_keys=[uploaded_by])


# ---------------------------------------------------------------------------
# Review - Checklist Items
# ---------------------------------------------------------------------------


class ChecklistItem(Base):
    __tablename__ = "checklist_items"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    is_required: Mapped[bool] = mapped_column(Boolean, default=True)
    display_order: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )


# ---------------------------------------------------------------------------
# Review - Document Reviews (append-only)
# ---------------------------------------------------------------------------


class DocumentReview(Base):
    __tablename__ = "document_reviews"
    __table_args__ = (Index("ix_document_reviews_document_id", "document_id"),)

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    reviewed_by: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    reviewer_role: Mapped[RoleName] = mapped_column(Enum(RoleName), nullable=False)
    decision: Mapped[ReviewDecision] = mapped_column(
        Enum(ReviewDecision), nullable=False
    )
    remarks: Mapped[str | None] = mapped_column(Text)
    internal_notes: Mapped[str | None] = mapped_column(Text)
    is_checklist_complete: Mapped[bool] = mapped_column(Boolean, default=False)
    checklist_score: Mapped[int] = mapped_column(Integer, default=0)
    reviewed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    document = relationship("Document", back_populates="reviews")
    reviewer = relationship("User", foreign_keys=[reviewed_by])
    checklist_results = relationship(
        "DocumentChecklistResult",
        back_populates="review",
        cascade="all, delete-orphan",
    )


class DocumentChecklistResult(Base):
    __tablename__ = "document_checklist_results"
    __table_args__ = (
        UniqueConstraint(
            "review_id",
            "checklist_item_id",
            name="uq_document_checklist_results_review_item",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    review_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("document_reviews.id"), nullable=False
    )
    checklist_item_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("checklist_items.id"), nullable=False
    )
    is_passed: Mapped[bool] = mapped_column(Boolean, default=False)
    remarks: Mapped[str | None] = mapped_column(String(500))
    checked_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    review = relationship("DocumentReview", back_populates="checklist_results")
    checklist_item = relationship("ChecklistItem")


# ---------------------------------------------------------------------------
# Retention & Compliance - Retention Policies
# ---------------------------------------------------------------------------


class RetentionPolicy(Base):
    __tablename__ = "retention_policies"
    __table_args__ = (
        Index("ix_retention_policies_firm_type", "firm_id", "document_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    document_type: Mapped[str | None] = mapped_column(String(100))
    retention_years: Mapped[int] = mapped_column(Integer, default=0)
    retention_months: Mapped[int] = mapped_column(Integer, default=0)
    retention_days: Mapped[int] = mapped_column(Integer, default=0)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    retentions = relationship("DocumentRetention", back_populates="policy")


# ---------------------------------------------------------------------------
# Retention & Compliance - Document Retentions
# ---------------------------------------------------------------------------


class DocumentRetention(Base):
    __tablename__ = "document_retentions"
    __table_args__ = (
        UniqueConstraint("document_id", name="uq_document_retentions_document"),
        Index("ix_document_retentions_expires_at", "retention_expires_at"),
        Index("ix_document_retentions_is_archived", "is_archived"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    document_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id"), nullable=False
    )
    # Null for ad-hoc custom retention
    policy_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("retention_policies.id")
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    retention_start_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    retention_expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False
    )
    retention_years: Mapped[int] = mapped_column(Integer, default=0)
    retention_months: Mapped[int] = mapped_column(Integer, default=0)
    retention_days: Mapped[int] = mapped_column(Integer, default=0)
    is_archived: Mapped[bool] = mapped_column(Boolean, default=False)
    is_modified: Mapped[bool] = mapped_column(Boolean, default=False)
    modification_reason: Mapped[str | None] = mapped_column(String(500))
    modified_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    modified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    created_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=lambda: datetime.now(timezone.utc),
        onupdate=lambda: datetime.now(timezone.utc),
    )

    document = relationship("Document", back_populates="retention")
    policy = relationship("RetentionPolicy", back_populates="retentions")


# ---------------------------------------------------------------------------
# Retention & Compliance - Archives
# ---------------------------------------------------------------------------


class Archive(Base):
    __tablename__ = "archives"
    __table_args__ = (
        Index("ix_archives_firm_type", "firm_id", "archive_type"),
        # At most one active (non-restored, non-deleted) archive per document
        Index(
            "uq_archives_active_document",
            "document_id",
            unique=True,
            postgresql_where=text("is_restored = false AND is_deleted = false"),
            sqlite_where=text("is_restored = 0 AND is_deleted = 0"),
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    # Nulled when the document is permanently deleted; the row stays for audit
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL")
    )
    firm_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("firms.id"), nullable=False
    )
    document_title: Mapped[str | None] = mapped_column(String(500))
    archive_type: Mapped[ArchiveType] = mapped_column(Enum(ArchiveType), nullable=False)
    reason: Mapped[str | None] = mapped_column(String(500))

    original_status: Mapped[DocumentStatus | None] = mapped_column(
        Enum(DocumentStatus)
    )
    original_workflow_stage: Mapped[WorkflowStage | None] = mapped_column(
        Enum(WorkflowStage)
    )
    original_folder_id: Mapped[uuid.UUID | None] = mapped_column(UUID(as_uuid=True))
    original_retention_date: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )
    version_number: Mapped[int | None] = mapped_column(Integer)

    # Null when archived by the system
    archived_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )
    archived_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    scheduled_delete_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True)
    )

    is_restored: Mapped[bool] = mapped_column(Boolean, default=False)
    restored_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    restored_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    is_deleted: Mapped[bool] = mapped_column(Boolean, default=False)
    deleted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    deleted_by: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id")
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    document = relationship("Document", back_populates="archives")
    archiver = relationship("User", foreign_keys=[archived_by])
    restorer = relationship("User", foreign_keys=[restored_by])

    @property
    def is_active(self) -> bool:
        return not self.is_restored and not self.is_deleted


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class Notification(Base):
    __tablename__ = "notifications"
    __table_args__ = (
        Index("ix_notifications_user_id", "user_id"),
        Index("ix_notifications_is_read", "is_read"),
        Index("ix_notifications_type", "notification_type"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id"), nullable=False
    )
    document_id: Mapped[uuid.UUID | None] = mapped_column(
        UUID(as_uuid=True), ForeignKey("documents.id", ondelete="SET NULL")
    )
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    message: Mapped[str] = mapped_column(Text, nullable=False)
    notification_type: Mapped[str] = mapped_column(String(100), nullable=False)
    action_url: Mapped[str | None] = mapped_column(String(500))
    is_read: Mapped[bool] = mapped_column(Boolean, default=False)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    user = relationship("User", foreign_keys=[user_id])
