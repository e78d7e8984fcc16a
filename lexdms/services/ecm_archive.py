import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lexdms.config import settings
from lexdms.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from lexdms.models.ecm import (
    Archive,
    ArchiveType,
    Document,
    DocumentRetention,
    DocumentStatus,
    Folder,
    Notification,
    WorkflowStage,
)
from lexdms.models.firm import RoleName, User
from lexdms.schemas.ecm_retention import RestoreRequest
from lexdms.services import reviewer_pool
from lexdms.services.audit import audit_events
from lexdms.services.common import (
    apply_ordering,
    apply_pagination,
    coerce_uuid,
    get_or_404,
)
from lexdms.services.ecm_retention import compute_expiry, document_retentions
from lexdms.services.ecm_storage import storage
from lexdms.services.notification import NotificationType, notifications
from lexdms.services.side_effects import run_side_effects

logger = logging.getLogger(__name__)

# Only retention-driven archives may be purged without force
PURGEABLE_TYPES = {ArchiveType.retention, ArchiveType.auto_expired}

ARCHIVE_CATEGORIES = {
    "all": None,
    "archived": (ArchiveType.manual, ArchiveType.version),
    "rejected": (ArchiveType.rejected,),
    "retention": (ArchiveType.retention, ArchiveType.auto_expired),
    "version": (ArchiveType.version,),
}

SWEEP_STATUSES = (DocumentStatus.completed, DocumentStatus.approved)


def active_archive_for(db: Session, document_id) -> Archive | None:
    return db.scalars(
        select(Archive).where(
            Archive.document_id == coerce_uuid(document_id),
            Archive.is_restored.is_(False),
            Archive.is_deleted.is_(False),
        )
    ).first()


def archive_document_if_not_archived(
    db: Session,
    document: Document,
    archive_type: ArchiveType,
    reason: str | None = None,
    actor_id=None,
    scheduled_delete_at: datetime | None = None,
    retention: DocumentRetention | None = None,
) -> Archive | None:
    """Archive ``document`` unless it already has an active archive.

    Commits on success. Returns ``None`` when the document was already
    archived, including when a concurrent writer won the unique index.
    """
    if active_archive_for(db, document.id) is not None:
        logger.info("Document %s already has an active archive", document.id)
        return None

    archive = Archive(
        document_id=document.id,
        firm_id=document.firm_id,
        document_title=document.title,
        archive_type=archive_type,
        reason=reason,
        original_status=document.status,
        original_workflow_stage=document.workflow_stage,
        original_folder_id=document.folder_id,
        original_retention_date=document.retention_expires_at,
        version_number=document.current_version,
        archived_by=coerce_uuid(actor_id),
        scheduled_delete_at=scheduled_delete_at,
    )
    db.add(archive)
    document.status = DocumentStatus.archived
    document.workflow_stage = WorkflowStage.archived
    if retention is not None:
        retention.is_archived = True
        retention.modification_reason = (
            "Auto-archived due to retention expiry"
            if archive_type in PURGEABLE_TYPES
            else "Document manually archived"
        )
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        logger.info("Document %s was archived concurrently", document.id)
        return None
    db.refresh(archive)
    logger.info(
        "Archived document %s as %s (archive %s)",
        document.id,
        archive_type.value,
        archive.id,
    )
    return archive


# ---------------------------------------------------------------------------
# Archives
# ---------------------------------------------------------------------------


class Archives:
    @staticmethod
    def get(db: Session, archive_id: str, firm_id: str | None = None) -> Archive:
        return get_or_404(db, Archive, archive_id, "Archive not found", firm_id)

    @staticmethod
    def list(
        db: Session,
        firm_id: str,
        category: str | None = None,
        uploaded_by: str | None = None,
        include_closed: bool = False,
        order_by: str = "archived_at",
        order_dir: str = "desc",
        limit: int = 50,
        offset: int = 0,
    ) -> list[Archive]:
        category = (category or "all").lower()
        if category not in ARCHIVE_CATEGORIES:
            raise ValidationFailedError(f"Invalid archive category: {category}")
        stmt = select(Archive).where(Archive.firm_id == coerce_uuid(firm_id))
        if not include_closed:
            stmt = stmt.where(
                Archive.is_restored.is_(False), Archive.is_deleted.is_(False)
            )
        types = ARCHIVE_CATEGORIES[category]
        if types is not None:
            stmt = stmt.where(Archive.archive_type.in_(types))
        if uploaded_by is not None:
            stmt = stmt.join(Document, Document.id == Archive.document_id).where(
                Document.uploaded_by == coerce_uuid(uploaded_by)
            )
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "archived_at": Archive.archived_at,
                "scheduled_delete_at": Archive.scheduled_delete_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def restore(
        db: Session,
        archive_id: str,
        actor_id: str,
        payload: RestoreRequest | None = None,
        firm_id: str | None = None,
    ) -> Archive:
        payload = payload or RestoreRequest()
        archive = Archives.get(db, archive_id, firm_id)
        if archive.is_deleted:
            raise InvalidTransitionError("Archive has been permanently deleted")
        if archive.is_restored:
            raise InvalidTransitionError("Archive already restored")
        document = archive.document
        if document is None:
            raise NotFoundError("Document not found")
        actor = get_or_404(db, User, actor_id, "User not found")
        if actor.firm_id != archive.firm_id:
            raise NotFoundError("Archive not found")
        own_rejected = (
            archive.archive_type == ArchiveType.rejected
            and document.uploaded_by == actor.id
        )
        if not actor.has_role(RoleName.admin) and not own_rejected:
            raise ForbiddenError("Only an admin can restore this archive")

        now = datetime.now(timezone.utc)
        old_stage = document.workflow_stage
        if archive.archive_type == ArchiveType.rejected:
            # Rejection stages are transient; send the document back for re-review
            document.status = DocumentStatus.pending
            document.workflow_stage = WorkflowStage.pending_staff_review
            if document.assigned_staff_id is None:
                staff = reviewer_pool.least_loaded(db, document.firm_id, RoleName.staff)
                if staff is not None:
                    document.assigned_staff_id = staff.id
        else:
            document.status = archive.original_status or DocumentStatus.completed
            document.workflow_stage = (
                archive.original_workflow_stage or WorkflowStage.completed
            )
        if archive.original_folder_id is not None and db.get(
            Folder, archive.original_folder_id
        ):
            document.folder_id = archive.original_folder_id
        if payload.reset_retention:
            document_retentions.reset(db, document, now)

        archive.is_restored = True
        archive.restored_at = now
        archive.restored_by = actor.id
        db.commit()
        db.refresh(archive)
        logger.info("Restored archive %s (document %s)", archive.id, document.id)

        run_side_effects(
            lambda: notifications.notify(
                db,
                document.uploaded_by,
                "Document Restored",
                f"Your document '{document.title}' has been restored.",
                NotificationType.document_restored,
                document.id,
            ),
            lambda: audit_events.log_event(
                db,
                "restore_document",
                "archive",
                archive.id,
                f"Restored document: {document.title}",
                old_values={"workflow_stage": old_stage},
                new_values={"workflow_stage": document.workflow_stage},
                category="archive",
                actor_id=actor.id,
                firm_id=archive.firm_id,
            ),
        )
        return archive

    @staticmethod
    def permanently_delete(
        db: Session,
        archive_id: str,
        actor_id: str,
        force: bool = False,
        firm_id: str | None = None,
    ) -> Archive:
        archive = Archives.get(db, archive_id, firm_id)
        if archive.is_deleted:
            raise InvalidTransitionError("Archive already deleted")
        if archive.is_restored:
            raise InvalidTransitionError("Archive has been restored")
        if archive.archive_type not in PURGEABLE_TYPES and not force:
            raise InvalidTransitionError(
                "Only retention archives can be permanently deleted without force"
            )
        actor = get_or_404(db, User, actor_id, "User not found")
        if actor.firm_id != archive.firm_id:
            raise NotFoundError("Archive not found")

        document = archive.document
        document_id = archive.document_id
        if document is not None:
            Archives._delete_document(db, document)

        archive.is_deleted = True
        archive.deleted_at = datetime.now(timezone.utc)
        archive.deleted_by = actor.id
        db.commit()
        db.refresh(archive)
        logger.info("Permanently deleted document %s (archive %s)", document_id, archive.id)

        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "permanent_delete",
                "archive",
                archive.id,
                f"Permanently deleted document: {archive.document_title}",
                old_values={"document_id": document_id},
                category="archive",
                actor_id=actor.id,
                firm_id=archive.firm_id,
            )
        )
        return archive

    @staticmethod
    def _delete_document(db: Session, document: Document) -> None:
        """Stage the document and its dependents for deletion. Does not commit."""
        versions = list(document.versions)
        if storage.is_configured():
            for version in versions:
                try:
                    storage.delete_object(version.storage_key)
                except Exception as e:
                    logger.warning(
                        "Failed to delete storage object %s: %s", version.storage_key, e
                    )
        elif versions:
            logger.warning(
                "Storage not configured; leaving %d objects for document %s",
                len(versions),
                document.id,
            )

        for duplicate in db.scalars(
            select(Document).where(Document.duplicate_of_document_id == document.id)
        ).all():
            duplicate.duplicate_of_document_id = None
        for notification in db.scalars(
            select(Notification).where(Notification.document_id == document.id)
        ).all():
            notification.document_id = None

        if document.retention is not None:
            db.delete(document.retention)
        for review in list(document.reviews):
            db.delete(review)
        for version in versions:
            db.delete(version)
        db.delete(document)


# ---------------------------------------------------------------------------
# Retention sweep
# ---------------------------------------------------------------------------


@dataclass
class SweepResult:
    archived: int = 0
    skipped: int = 0
    errors: int = 0
    stopped: bool = False


def _expired_retention_ids(db: Session, now: datetime) -> list:
    return db.scalars(
        select(DocumentRetention.id)
        .join(Document, Document.id == DocumentRetention.document_id)
        .where(
            DocumentRetention.is_archived.is_(False),
            DocumentRetention.retention_expires_at <= now,
            Document.status.in_(SWEEP_STATUSES),
        )
        .order_by(DocumentRetention.retention_expires_at.asc())
    ).all()


def _archive_expired(
    db: Session, retention: DocumentRetention, now: datetime
) -> Archive | None:
    document = retention.document
    archive = archive_document_if_not_archived(
        db,
        document,
        ArchiveType.auto_expired,
        reason=(
            "Auto-archived: retention period expired on "
            f"{retention.retention_expires_at:%Y-%m-%d}"
        ),
        scheduled_delete_at=compute_expiry(
            now, settings.archive_delete_after_years, 0, 0
        ),
        retention=retention,
    )
    if archive is None:
        # Archived through another path; stop picking it up
        db.refresh(retention)
        if not retention.is_archived:
            retention.is_archived = True
            db.commit()
        return None
    run_side_effects(
        lambda: notifications.notify(
            db,
            document.uploaded_by,
            "Document Archived",
            f"Your document '{document.title}' was archived after its "
            "retention period expired.",
            NotificationType.document_archived,
            document.id,
        )
    )
    return archive


def archive_expired_retentions(
    db: Session,
    now: datetime | None = None,
    should_stop: Callable[[], bool] | None = None,
) -> SweepResult:
    """Archive every completed document whose retention has expired.

    Each document is committed on its own so a stop or failure part-way
    keeps the documents already archived.
    """
    now = now or datetime.now(timezone.utc)
    result = SweepResult()
    for retention_id in _expired_retention_ids(db, now):
        if should_stop is not None and should_stop():
            result.stopped = True
            logger.info("Retention sweep stopped early")
            break
        try:
            retention = db.get(DocumentRetention, retention_id)
            if retention is None or retention.is_archived:
                result.skipped += 1
                continue
            if _archive_expired(db, retention, now) is None:
                result.skipped += 1
            else:
                result.archived += 1
        except Exception as e:
            db.rollback()
            result.errors += 1
            logger.exception("Failed to auto-archive retention %s: %s", retention_id, e)

    logger.info(
        "Retention sweep archived %d, skipped %d, failed %d",
        result.archived,
        result.skipped,
        result.errors,
    )
    if result.archived or result.errors:
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "auto_archive_expired",
                "document_retention",
                None,
                f"Auto-archived {result.archived} documents with expired retention "
                f"({result.errors} failures)",
                new_values={
                    "archived": result.archived,
                    "skipped": result.skipped,
                    "errors": result.errors,
                },
                category="retention",
            )
        )
    return result


archives = Archives()
