import logging

from sqlalchemy import select
from sqlalchemy.orm import Session

from lexdms.errors import NotFoundError, ValidationFailedError
from lexdms.models.ecm import (
    Document,
    DocumentStatus,
    DocumentVersion,
    Folder,
    WorkflowStage,
)
from lexdms.models.firm import RoleName, User
from lexdms.schemas.ecm_workflow import DocumentUpload
from lexdms.services.audit import audit_events
from lexdms.services.common import coerce_uuid, get_or_404
from lexdms.services.ecm_storage import storage
from lexdms.services.ecm_workflow import document_workflow
from lexdms.services.notification import NotificationType, notifications
from lexdms.services.side_effects import run_side_effects

logger = logging.getLogger(__name__)


class Documents:
    @staticmethod
    def get(db: Session, document_id: str, firm_id: str | None = None) -> Document:
        return get_or_404(db, Document, document_id, "Document not found", firm_id)

    @staticmethod
    def find_duplicate(db: Session, firm_id, checksum_sha256: str | None) -> Document | None:
        if not checksum_sha256:
            return None
        return db.scalars(
            select(Document)
            .where(
                Document.firm_id == coerce_uuid(firm_id),
                Document.checksum_sha256 == checksum_sha256,
            )
            .order_by(Document.created_at.asc())
        ).first()

    @staticmethod
    def upload(db: Session, payload: DocumentUpload) -> Document:
        if not payload.title.strip():
            raise ValidationFailedError("title is required")
        if payload.file_size < 0:
            raise ValidationFailedError("file_size cannot be negative")
        uploader = get_or_404(db, User, payload.uploaded_by, "User not found")
        if uploader.firm_id != payload.firm_id:
            raise NotFoundError("User not found")
        if payload.folder_id is not None:
            get_or_404(db, Folder, payload.folder_id, "Folder not found", payload.firm_id)
        if storage.is_configured() and not storage.object_exists(payload.storage_key):
            raise ValidationFailedError("Uploaded file not found in storage")

        checksum = payload.checksum_sha256.lower() if payload.checksum_sha256 else None
        original = Documents.find_duplicate(db, payload.firm_id, checksum)

        document = Document(
            firm_id=payload.firm_id,
            folder_id=payload.folder_id,
            title=payload.title.strip(),
            description=payload.description,
            document_type=payload.document_type,
            status=DocumentStatus.pending,
            workflow_stage=WorkflowStage.client_upload,
            uploaded_by=uploader.id,
            current_version=1,
            original_file_name=payload.original_file_name,
            file_extension=payload.file_extension,
            mime_type=payload.mime_type,
            total_file_size=payload.file_size,
            checksum_sha256=checksum,
            is_duplicate=original is not None,
            duplicate_of_document_id=original.id if original else None,
        )
        db.add(document)
        db.flush()
        db.add(
            DocumentVersion(
                document_id=document.id,
                version_number=1,
                storage_key=payload.storage_key,
                file_size=payload.file_size,
                original_file_name=payload.original_file_name,
                file_extension=payload.file_extension,
                mime_type=payload.mime_type,
                change_description="Initial upload",
                changed_by_role=RoleName.client if uploader.has_role(RoleName.client) else None,
                uploaded_by=uploader.id,
                is_current_version=True,
            )
        )
        db.commit()
        db.refresh(document)
        if original is not None:
            logger.info("Document %s duplicates %s", document.id, original.id)
        logger.info("Uploaded document %s", document.id)

        staff = document_workflow.assign_to_staff(db, document.id, document.firm_id)
        db.refresh(document)

        run_side_effects(
            lambda: notifications.notify(
                db,
                staff.id if staff else None,
                "New Document Uploaded",
                f"Document '{document.title}' has been uploaded and assigned to "
                "you for review.",
                NotificationType.document_uploaded,
                document.id,
                "/staff/pending-reviews",
            ),
            lambda: audit_events.log_event(
                db,
                "upload_document",
                "document",
                document.id,
                f"Uploaded document: {document.title}",
                new_values={
                    "is_duplicate": document.is_duplicate,
                    "assigned_staff_id": document.assigned_staff_id,
                },
                actor_id=uploader.id,
                firm_id=document.firm_id,
            ),
        )
        return document


documents = Documents()
