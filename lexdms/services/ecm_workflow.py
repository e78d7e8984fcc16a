import logging
from datetime import datetime, timezone

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session, selectinload

from lexdms.errors import (
    ForbiddenError,
    InvalidTransitionError,
    NotFoundError,
    ValidationFailedError,
)
from lexdms.models.ecm import (
    ArchiveType,
    ChecklistItem,
    Document,
    DocumentChecklistResult,
    DocumentRetention,
    DocumentReview,
    DocumentStatus,
    DocumentVersion,
    ReviewDecision,
    WorkflowStage,
)
from lexdms.models.firm import RoleName, User
from lexdms.schemas.ecm_workflow import (
    AdminApproveRequest,
    AdminApproveWithRetentionRequest,
    AdminRejectRequest,
    ArchiveRequest,
    ChecklistResultIn,
    DocumentEditRequest,
    ReviewApproveRequest,
    ReviewRejectRequest,
)
from lexdms.services import reviewer_pool
from lexdms.services.audit import audit_events
from lexdms.services.common import apply_pagination, coerce_uuid, get_or_404
from lexdms.services.ecm_archive import archive_document_if_not_archived
from lexdms.services.ecm_retention import (
    document_retentions,
    retention_policies,
    validate_period,
)
from lexdms.services.notification import NotificationType, notifications
from lexdms.services.side_effects import run_side_effects

logger = logging.getLogger(__name__)

STAFF_STAGES = reviewer_pool.WORKLOAD_STAGES[RoleName.staff]
LAWYER_STAGES = reviewer_pool.WORKLOAD_STAGES[RoleName.lawyer]
ADMIN_STAGES = reviewer_pool.WORKLOAD_STAGES[RoleName.admin]

REVIEW_STAGES = {
    RoleName.staff: (
        (WorkflowStage.client_upload, WorkflowStage.pending_staff_review),
        WorkflowStage.staff_review,
    ),
    RoleName.lawyer: ((WorkflowStage.pending_lawyer_review,), WorkflowStage.lawyer_review),
    RoleName.admin: ((WorkflowStage.pending_admin_review,), WorkflowStage.admin_review),
}

PENDING_STAGES = {
    RoleName.lawyer: WorkflowStage.pending_lawyer_review,
    RoleName.admin: WorkflowStage.pending_admin_review,
}

REJECTED_STAGES = {
    RoleName.staff: WorkflowStage.staff_rejected,
    RoleName.lawyer: WorkflowStage.lawyer_rejected,
    RoleName.admin: WorkflowStage.admin_rejected,
}

ROLE_LABELS = {
    RoleName.staff: "Staff",
    RoleName.lawyer: "Lawyer",
    RoleName.admin: "Admin",
}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _get_document(db: Session, document_id, firm_id=None) -> Document:
    return get_or_404(db, Document, document_id, "Document not found", firm_id)


def _get_actor(db: Session, actor_id, document: Document) -> User:
    actor = get_or_404(db, User, actor_id, "User not found")
    if actor.firm_id != document.firm_id:
        raise NotFoundError("Document not found")
    return actor


def _require_stage(document: Document, allowed, action: str) -> None:
    if document.workflow_stage not in allowed:
        raise InvalidTransitionError(
            f"Cannot {action} a document in stage {document.workflow_stage.value}"
        )


def _require_remarks(remarks: str | None) -> str:
    if remarks is None or not remarks.strip():
        raise ValidationFailedError("Remarks are required when rejecting a document")
    return remarks.strip()


def _validate_checklist(db: Session, document: Document, results: list) -> None:
    item_ids = {coerce_uuid(r.checklist_item_id) for r in results}
    if len(item_ids) != len(results):
        raise ValidationFailedError("Checklist items may only be answered once")
    if not item_ids:
        return
    found = db.scalars(
        select(ChecklistItem.id).where(
            ChecklistItem.id.in_(item_ids), ChecklistItem.firm_id == document.firm_id
        )
    ).all()
    missing = item_ids - set(found)
    if missing:
        raise NotFoundError("Checklist item not found")


def _new_review(
    document: Document,
    reviewer: User,
    role: RoleName,
    decision: ReviewDecision,
    remarks: str | None,
    internal_notes: str | None,
    results: list[ChecklistResultIn],
) -> DocumentReview:
    passed = sum(1 for r in results if r.is_passed)
    complete = decision == ReviewDecision.approved and all(r.is_passed for r in results)
    return DocumentReview(
        document_id=document.id,
        reviewed_by=reviewer.id,
        reviewer_role=role,
        decision=decision,
        remarks=remarks,
        internal_notes=internal_notes,
        is_checklist_complete=complete,
        checklist_score=passed,
        reviewed_at=_now(),
    )


def _assign_next(db: Session, document: Document, role: RoleName) -> User | None:
    """Queue the document for ``role``; the assignee is set only if one exists."""
    pending_stage = PENDING_STAGES[role]
    column = reviewer_pool.ASSIGNMENT_COLUMNS[role].key
    reviewer = reviewer_pool.least_loaded(db, document.firm_id, role)
    document.workflow_stage = pending_stage
    if reviewer is None:
        logger.warning(
            "Document %s left unassigned in %s", document.id, pending_stage.value
        )
    else:
        setattr(document, column, reviewer.id)
    return reviewer


def _notify(db, user_id, title, message, notification_type, document, action_url=None):
    return lambda: notifications.notify(
        db, user_id, title, message, notification_type, document.id, action_url
    )


def _audit(db, action, document, description, actor_id, old_values=None, new_values=None):
    return lambda: audit_events.log_event(
        db,
        action,
        "document",
        document.id,
        description,
        old_values=old_values,
        new_values=new_values,
        category="document_review",
        actor_id=actor_id,
        firm_id=document.firm_id,
    )


# ---------------------------------------------------------------------------
# DocumentWorkflow
# ---------------------------------------------------------------------------


class DocumentWorkflow:
    @staticmethod
    def assign_to_staff(db: Session, document_id: str, firm_id: str) -> User | None:
        """Queue a freshly uploaded document with the least-loaded staff member.

        Returns ``None`` and leaves the document untouched when the firm has no
        active staff.
        """
        document = _get_document(db, document_id, firm_id)
        _require_stage(
            document,
            (WorkflowStage.client_upload, WorkflowStage.pending_staff_review),
            "assign staff to",
        )
        staff = reviewer_pool.least_loaded(db, document.firm_id, RoleName.staff)
        if staff is None:
            logger.warning("Document %s has no staff assignee", document.id)
            return None
        document.assigned_staff_id = staff.id
        document.workflow_stage = WorkflowStage.pending_staff_review
        document.status = DocumentStatus.pending
        db.commit()
        logger.info("Assigned document %s to staff %s", document.id, staff.id)
        return staff

    @staticmethod
    def start_review(
        db: Session, document_id: str, reviewer_id: str, role: RoleName
    ) -> Document:
        if role not in REVIEW_STAGES:
            raise ValidationFailedError(f"Role {role.value} does not review documents")
        document = _get_document(db, document_id)
        reviewer = _get_actor(db, reviewer_id, document)
        pending, in_review = REVIEW_STAGES[role]
        _require_stage(document, pending, "start review of")
        document.workflow_stage = in_review
        document.status = DocumentStatus.under_review
        column = reviewer_pool.ASSIGNMENT_COLUMNS[role].key
        if getattr(document, column) is None:
            setattr(document, column, reviewer.id)
        db.commit()
        db.refresh(document)
        logger.info("%s %s started review of document %s", role.value, reviewer.id, document.id)
        return document

    @staticmethod
    def record_checklist_results(
        db: Session, review_id: str, results: list[ChecklistResultIn]
    ) -> list[DocumentChecklistResult]:
        """Persist checklist outcomes for a review.

        Items already recorded for the review are skipped, so a failed write
        can be retried with the same input.
        """
        review = get_or_404(db, DocumentReview, review_id, "Review not found")
        recorded = {r.checklist_item_id for r in review.checklist_results}
        created = []
        for result in results:
            item_id = coerce_uuid(result.checklist_item_id)
            if item_id in recorded:
                continue
            row = DocumentChecklistResult(
                review_id=review.id,
                checklist_item_id=item_id,
                is_passed=result.is_passed,
                remarks=result.remarks,
                checked_at=_now(),
            )
            review.checklist_results.append(row)
            created.append(row)
            recorded.add(item_id)
        if created:
            db.commit()
            logger.info("Recorded %d checklist results for review %s", len(created), review.id)
        return created

    @staticmethod
    def _persist_checklist(db: Session, review: DocumentReview, results) -> None:
        if not results:
            return
        try:
            DocumentWorkflow.record_checklist_results(db, review.id, results)
        except Exception as e:
            db.rollback()
            logger.error(
                "Checklist results for review %s were not saved, retry with "
                "record_checklist_results: %s",
                review.id,
                e,
            )

    @staticmethod
    def _approve_and_forward(
        db: Session,
        document_id: str,
        reviewer_id: str,
        role: RoleName,
        next_role: RoleName,
        payload: ReviewApproveRequest,
        stages,
    ) -> tuple[Document, User, DocumentReview, User | None]:
        document = _get_document(db, document_id)
        reviewer = _get_actor(db, reviewer_id, document)
        _require_stage(document, stages, f"{role.value}-approve")
        _validate_checklist(db, document, payload.checklist_results)

        review = _new_review(
            document,
            reviewer,
            role,
            ReviewDecision.approved,
            payload.remarks,
            payload.internal_notes,
            payload.checklist_results,
        )
        db.add(review)
        setattr(document, f"{role.value}_reviewed_at", review.reviewed_at)
        document.status = DocumentStatus.under_review
        next_reviewer = _assign_next(db, document, next_role)
        db.commit()
        db.refresh(review)
        logger.info("Created review %s (%s approved document %s)", review.id, role.value, document.id)

        DocumentWorkflow._persist_checklist(db, review, payload.checklist_results)
        return document, reviewer, review, next_reviewer

    @staticmethod
    def _reject(
        db: Session,
        document_id: str,
        reviewer_id: str,
        role: RoleName,
        remarks: str | None,
        stages,
        internal_notes: str | None = None,
        checklist_results: list[ChecklistResultIn] | None = None,
    ) -> tuple[Document, User, DocumentReview]:
        checklist_results = checklist_results or []
        document = _get_document(db, document_id)
        reviewer = _get_actor(db, reviewer_id, document)
        _require_stage(document, stages, f"{role.value}-reject")
        remarks = _require_remarks(remarks)
        _validate_checklist(db, document, checklist_results)

        review = _new_review(
            document,
            reviewer,
            role,
            ReviewDecision.rejected,
            remarks,
            internal_notes,
            checklist_results,
        )
        db.add(review)
        document.workflow_stage = REJECTED_STAGES[role]
        document.status = DocumentStatus.rejected
        document.current_remarks = remarks
        setattr(document, f"{role.value}_reviewed_at", review.reviewed_at)
        db.commit()
        db.refresh(review)
        logger.info("Created review %s (%s rejected document %s)", review.id, role.value, document.id)

        DocumentWorkflow._persist_checklist(db, review, checklist_results)

        try:
            archive_document_if_not_archived(
                db,
                document,
                ArchiveType.rejected,
                reason=f"Rejected by {ROLE_LABELS[role]}: {remarks}",
                actor_id=reviewer.id,
            )
        except Exception as e:
            db.rollback()
            logger.exception("Failed to auto-archive rejected document %s: %s", document.id, e)
        return document, reviewer, review

    # -- Staff ---------------------------------------------------------------

    @staticmethod
    def staff_approve(
        db: Session, document_id: str, staff_id: str, payload: ReviewApproveRequest
    ) -> DocumentReview:
        document, staff, review, lawyer = DocumentWorkflow._approve_and_forward(
            db, document_id, staff_id, RoleName.staff, RoleName.lawyer, payload, STAFF_STAGES
        )
        run_side_effects(
            _notify(
                db,
                lawyer.id if lawyer else None,
                "New Document for Review",
                f"Document '{document.title}' has been reviewed by staff and "
                "forwarded for your review.",
                NotificationType.document_assigned,
                document,
                "/lawyer/pending-reviews",
            ),
            _notify(
                db,
                document.uploaded_by,
                "Document Reviewed by Staff",
                f"Your document '{document.title}' has been reviewed by staff and "
                "forwarded to a lawyer for review.",
                NotificationType.document_approved,
                document,
            ),
            _audit(
                db,
                "staff_approve",
                document,
                f"Staff approved document: {document.title}",
                staff.id,
                new_values={"remarks": payload.remarks},
            ),
        )
        return review

    @staticmethod
    def staff_reject(
        db: Session, document_id: str, staff_id: str, payload: ReviewRejectRequest
    ) -> DocumentReview:
        document, staff, review = DocumentWorkflow._reject(
            db,
            document_id,
            staff_id,
            RoleName.staff,
            payload.remarks,
            STAFF_STAGES,
            payload.internal_notes,
            payload.checklist_results,
        )
        run_side_effects(
            _notify(
                db,
                document.uploaded_by,
                "Document Rejected",
                f"Your document '{document.title}' has been rejected. "
                f"Reason: {review.remarks}",
                NotificationType.document_rejected,
                document,
            ),
            _audit(
                db,
                "staff_reject",
                document,
                f"Staff rejected document: {document.title}. Reason: {review.remarks}",
                staff.id,
            ),
        )
        return review

    # -- Lawyer --------------------------------------------------------------

    @staticmethod
    def lawyer_approve(
        db: Session, document_id: str, lawyer_id: str, payload: ReviewApproveRequest
    ) -> DocumentReview:
        document, lawyer, review, admin = DocumentWorkflow._approve_and_forward(
            db, document_id, lawyer_id, RoleName.lawyer, RoleName.admin, payload, LAWYER_STAGES
        )
        run_side_effects(
            _notify(
                db,
                admin.id if admin else None,
                "Document Awaiting Final Approval",
                f"Document '{document.title}' has been approved by a lawyer and "
                "needs your final review.",
                NotificationType.document_assigned,
                document,
                "/admin/pending-reviews",
            ),
            _notify(
                db,
                document.uploaded_by,
                "Document Reviewed by Lawyer",
                f"Your document '{document.title}' has been approved by a lawyer "
                "and forwarded for final approval.",
                NotificationType.document_approved,
                document,
            ),
            _audit(
                db,
                "lawyer_approve",
                document,
                f"Lawyer approved document: {document.title}",
                lawyer.id,
                new_values={"remarks": payload.remarks},
            ),
        )
        return review

    @staticmethod
    def lawyer_reject(
        db: Session, document_id: str, lawyer_id: str, payload: ReviewRejectRequest
    ) -> DocumentReview:
        document, lawyer, review = DocumentWorkflow._reject(
            db,
            document_id,
            lawyer_id,
            RoleName.lawyer,
            payload.remarks,
            LAWYER_STAGES,
            payload.internal_notes,
            payload.checklist_results,
        )
        run_side_effects(
            _notify(
                db,
                document.uploaded_by,
                "Document Rejected",
                f"Your document '{document.title}' has been rejected by a lawyer. "
                f"Reason: {review.remarks}",
                NotificationType.document_rejected,
                document,
            ),
            _notify(
                db,
                document.assigned_staff_id,
                "Reviewed Document Rejected",
                f"Document '{document.title}' that you reviewed has been rejected "
                f"by a lawyer. Reason: {review.remarks}",
                NotificationType.document_rejected,
                document,
            ),
            _audit(
                db,
                "lawyer_reject",
                document,
                f"Lawyer rejected document: {document.title}. Reason: {review.remarks}",
                lawyer.id,
            ),
        )
        return review

    # -- Edits ---------------------------------------------------------------

    @staticmethod
    def _edit_document(
        db: Session,
        document_id: str,
        actor_id: str,
        role: RoleName,
        payload: DocumentEditRequest,
        stages,
    ) -> DocumentVersion:
        document = _get_document(db, document_id)
        actor = _get_actor(db, actor_id, document)
        _require_stage(document, stages, f"{role.value}-edit")
        if payload.file_size < 0:
            raise ValidationFailedError("file_size cannot be negative")

        latest = db.scalar(
            select(func.max(DocumentVersion.version_number)).where(
                DocumentVersion.document_id == document.id
            )
        )
        version_number = max(latest or 0, document.current_version or 0) + 1
        for previous in db.scalars(
            select(DocumentVersion).where(
                DocumentVersion.document_id == document.id,
                DocumentVersion.is_current_version.is_(True),
            )
        ).all():
            previous.is_current_version = False

        version = DocumentVersion(
            document_id=document.id,
            version_number=version_number,
            storage_key=payload.storage_key,
            file_size=payload.file_size,
            original_file_name=payload.original_file_name,
            file_extension=payload.file_extension,
            mime_type=payload.mime_type,
            change_description=payload.change_description,
            changed_by_role=role,
            uploaded_by=actor.id,
            is_current_version=True,
        )
        db.add(version)
        document.current_version = version_number
        document.total_file_size = payload.file_size
        document.original_file_name = payload.original_file_name
        document.file_extension = payload.file_extension
        document.mime_type = payload.mime_type
        db.commit()
        db.refresh(version)
        logger.info("Created version %d for document %s", version_number, document.id)

        label = ROLE_LABELS[role]
        run_side_effects(
            _notify(
                db,
                document.uploaded_by,
                "Document Updated",
                f"Your document '{document.title}' has been updated by "
                f"{label.lower()}. Version {version_number} created. "
                f"Changes: {payload.change_description}",
                NotificationType.document_edited,
                document,
            ),
            _audit(
                db,
                f"{role.value}_edit_document",
                document,
                f"{label} created version {version_number} for document: {document.title}",
                actor.id,
                new_values={
                    "version": version_number,
                    "change_description": payload.change_description,
                },
            ),
        )
        return version

    @staticmethod
    def staff_edit_document(
        db: Session, document_id: str, staff_id: str, payload: DocumentEditRequest
    ) -> DocumentVersion:
        return DocumentWorkflow._edit_document(
            db, document_id, staff_id, RoleName.staff, payload, STAFF_STAGES
        )

    @staticmethod
    def lawyer_edit_document(
        db: Session, document_id: str, lawyer_id: str, payload: DocumentEditRequest
    ) -> DocumentVersion:
        return DocumentWorkflow._edit_document(
            db, document_id, lawyer_id, RoleName.lawyer, payload, LAWYER_STAGES
        )

    # -- Admin ---------------------------------------------------------------

    @staticmethod
    def _complete(
        db: Session, document: Document, admin: User, remarks: str | None
    ) -> DocumentReview:
        now = _now()
        review = DocumentReview(
            document_id=document.id,
            reviewed_by=admin.id,
            reviewer_role=RoleName.admin,
            decision=ReviewDecision.approved,
            remarks=remarks,
            is_checklist_complete=True,
            reviewed_at=now,
        )
        db.add(review)
        document.workflow_stage = WorkflowStage.completed
        document.status = DocumentStatus.completed
        document.current_remarks = remarks
        document.admin_reviewed_at = now
        document.approved_at = now
        if document.assigned_admin_id is None:
            document.assigned_admin_id = admin.id
        return review

    @staticmethod
    def _completion_effects(db, document: Document, admin: User, remarks, retention):
        expiry = retention.retention_expires_at
        return (
            _notify(
                db,
                document.uploaded_by,
                "Document Approved",
                f"Your document '{document.title}' has been approved and completed.",
                NotificationType.document_completed,
                document,
            ),
            _notify(
                db,
                document.assigned_staff_id,
                "Reviewed Document Approved",
                f"Document '{document.title}' that you reviewed has been approved "
                "by admin.",
                NotificationType.document_completed,
                document,
            ),
            _audit(
                db,
                "admin_approve",
                document,
                f"Admin approved document: {document.title}",
                admin.id,
                new_values={"remarks": remarks, "retention_expires_at": expiry},
            ),
        )

    @staticmethod
    def admin_approve(
        db: Session, document_id: str, admin_id: str, payload: AdminApproveRequest
    ) -> DocumentReview:
        document = _get_document(db, document_id)
        admin = _get_actor(db, admin_id, document)
        _require_stage(document, ADMIN_STAGES, "admin-approve")

        review = DocumentWorkflow._complete(db, document, admin, payload.remarks)
        retention = document_retentions.create_on_approval(
            db, document, admin.id, review.reviewed_at
        )
        db.commit()
        db.refresh(review)
        logger.info("Created review %s (admin completed document %s)", review.id, document.id)

        run_side_effects(
            *DocumentWorkflow._completion_effects(
                db, document, admin, payload.remarks, retention
            )
        )
        return review

    @staticmethod
    def admin_approve_with_retention(
        db: Session,
        document_id: str,
        admin_id: str,
        payload: AdminApproveWithRetentionRequest,
    ) -> tuple[DocumentReview, DocumentRetention]:
        document = _get_document(db, document_id)
        admin = _get_actor(db, admin_id, document)
        _require_stage(document, ADMIN_STAGES, "admin-approve")
        if payload.policy_id is not None:
            retention_policies.get(db, payload.policy_id, document.firm_id)
        else:
            validate_period(
                payload.retention_years,
                payload.retention_months,
                payload.retention_days,
            )

        review = DocumentWorkflow._complete(db, document, admin, payload.remarks)
        retention = document_retentions.assign_period(
            db,
            document,
            policy_id=payload.policy_id,
            years=payload.retention_years,
            months=payload.retention_months,
            days=payload.retention_days,
            actor_id=admin.id,
            start_date=review.reviewed_at,
            reason="Retention set on admin approval",
        )
        db.commit()
        db.refresh(review)
        db.refresh(retention)
        logger.info(
            "Created review %s (admin completed document %s with retention %s)",
            review.id,
            document.id,
            retention.id,
        )

        run_side_effects(
            *DocumentWorkflow._completion_effects(
                db, document, admin, payload.remarks, retention
            )
        )
        return review, retention

    @staticmethod
    def admin_reject(
        db: Session, document_id: str, admin_id: str, payload: AdminRejectRequest
    ) -> DocumentReview:
        document, admin, review = DocumentWorkflow._reject(
            db, document_id, admin_id, RoleName.admin, payload.remarks, ADMIN_STAGES
        )
        run_side_effects(
            _notify(
                db,
                document.uploaded_by,
                "Document Rejected",
                f"Your document '{document.title}' has been rejected by admin. "
                f"Reason: {review.remarks}",
                NotificationType.document_rejected,
                document,
            ),
            _notify(
                db,
                document.assigned_staff_id,
                "Reviewed Document Rejected",
                f"Document '{document.title}' that you reviewed has been rejected "
                f"by admin. Reason: {review.remarks}",
                NotificationType.document_rejected,
                document,
            ),
            _audit(
                db,
                "admin_reject",
                document,
                f"Admin rejected document: {document.title}. Reason: {review.remarks}",
                admin.id,
            ),
        )
        return review

    # -- Archival ------------------------------------------------------------

    @staticmethod
    def archive_document(
        db: Session, document_id: str, actor_id: str, payload: ArchiveRequest
    ):
        try:
            archive_type = ArchiveType(payload.archive_type)
        except ValueError:
            raise ValidationFailedError(f"Invalid archive_type: {payload.archive_type}")
        document = _get_document(db, document_id)
        actor = _get_actor(db, actor_id, document)
        if document.uploaded_by != actor.id and not actor.has_role(RoleName.admin):
            raise ForbiddenError("Only the uploader or an admin can archive this document")
        if document.workflow_stage == WorkflowStage.archived:
            raise InvalidTransitionError("Document is already archived")

        archive = archive_document_if_not_archived(
            db,
            document,
            archive_type,
            reason=payload.reason,
            actor_id=actor.id,
            retention=document.retention,
        )
        if archive is None:
            raise InvalidTransitionError("Document is already archived")

        effects = [
            _audit(
                db,
                "archive_document",
                document,
                f"Archived document: {document.title}. Reason: {payload.reason}",
                actor.id,
                new_values={"archive_type": archive_type},
            )
        ]
        if document.uploaded_by != actor.id:
            effects.insert(
                0,
                _notify(
                    db,
                    document.uploaded_by,
                    "Document Archived",
                    f"Your document '{document.title}' has been archived.",
                    NotificationType.document_archived,
                    document,
                ),
            )
        run_side_effects(*effects)
        return archive

    # -- Queries -------------------------------------------------------------

    @staticmethod
    def pending_reviews(
        db: Session,
        firm_id: str,
        role: RoleName,
        reviewer_id: str | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> list[Document]:
        if role not in REVIEW_STAGES:
            raise ValidationFailedError(f"Role {role.value} does not review documents")
        column = reviewer_pool.ASSIGNMENT_COLUMNS[role]
        stmt = select(Document).where(
            Document.firm_id == coerce_uuid(firm_id),
            Document.workflow_stage.in_(reviewer_pool.WORKLOAD_STAGES[role]),
        )
        if reviewer_id is not None:
            if role == RoleName.admin:
                stmt = stmt.where(column == coerce_uuid(reviewer_id))
            else:
                # Unassigned documents are visible to every reviewer of the role
                stmt = stmt.where(
                    or_(column == coerce_uuid(reviewer_id), column.is_(None))
                )
        stmt = stmt.order_by(Document.created_at.desc())
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def review_history(
        db: Session, document_id: str, firm_id: str | None = None
    ) -> list[DocumentReview]:
        document = _get_document(db, document_id, firm_id)
        return db.scalars(
            select(DocumentReview)
            .options(selectinload(DocumentReview.checklist_results))
            .where(DocumentReview.document_id == document.id)
            .order_by(DocumentReview.reviewed_at.desc())
        ).all()


document_workflow = DocumentWorkflow()
