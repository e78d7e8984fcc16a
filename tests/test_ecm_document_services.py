import uuid
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from lexdms.models.ecm import (
    DocumentStatus,
    DocumentVersion,
    Notification,
    WorkflowStage,
)
from lexdms.models.firm import Firm, RoleName
from lexdms.schemas.ecm_workflow import DocumentUpload
from lexdms.services.classification import record_classification
from lexdms.services.ecm_document import Documents


def _upload(firm, uploader, folder=None, **kwargs):
    data = {
        "firm_id": firm.id,
        "uploaded_by": uploader.id,
        "folder_id": folder.id if folder else None,
        "title": "Lease agreement",
        "storage_key": f"firms/{firm.id}/uploads/{uuid.uuid4().hex}/lease.pdf",
        "original_file_name": "lease.pdf",
        "file_extension": ".pdf",
        "mime_type": "application/pdf",
        "file_size": 4096,
    }
    data.update(kwargs)
    return DocumentUpload(**data)


class TestUpload:
    def test_upload_assigns_staff(
        self, db_session, firm, folder, client_user, staff_user
    ):
        doc = Documents.upload(db_session, _upload(firm, client_user, folder))

        assert doc.workflow_stage == WorkflowStage.pending_staff_review
        assert doc.status == DocumentStatus.pending
        assert doc.assigned_staff_id == staff_user.id
        assert doc.current_version == 1
        assert doc.is_duplicate is False
        versions = db_session.scalars(
            select(DocumentVersion).where(DocumentVersion.document_id == doc.id)
        ).all()
        assert len(versions) == 1
        assert versions[0].is_current_version is True
        assert versions[0].changed_by_role == RoleName.client
        notes = db_session.scalars(
            select(Notification).where(Notification.user_id == staff_user.id)
        ).all()
        assert [n.notification_type for n in notes] == ["document.uploaded"]

    def test_upload_balances_between_staff(
        self, db_session, firm, client_user, make_user
    ):
        first = make_user(RoleName.staff)
        second = make_user(RoleName.staff)
        a = Documents.upload(db_session, _upload(firm, client_user))
        b = Documents.upload(db_session, _upload(firm, client_user))
        assert a.assigned_staff_id == first.id
        assert b.assigned_staff_id == second.id

    def test_upload_without_staff_stays_in_intake(self, db_session, firm, client_user):
        doc = Documents.upload(db_session, _upload(firm, client_user))
        assert doc.workflow_stage == WorkflowStage.client_upload
        assert doc.assigned_staff_id is None

    def test_duplicate_detected_by_checksum(self, db_session, firm, client_user):
        first = Documents.upload(
            db_session, _upload(firm, client_user, checksum_sha256="AB" * 32)
        )
        second = Documents.upload(
            db_session, _upload(firm, client_user, checksum_sha256="ab" * 32)
        )
        assert first.is_duplicate is False
        assert second.is_duplicate is True
        assert second.duplicate_of_document_id == first.id
        assert second.checksum_sha256 == "ab" * 32

    def test_same_checksum_in_other_firm_is_not_duplicate(
        self, db_session, firm, client_user, make_user
    ):
        other = Firm(name="Other LLP")
        db_session.add(other)
        db_session.commit()
        other_client = make_user(RoleName.client, firm_id=other.id)
        Documents.upload(db_session, _upload(firm, client_user, checksum_sha256="cd" * 32))
        doc = Documents.upload(
            db_session, _upload(other, other_client, checksum_sha256="cd" * 32)
        )
        assert doc.is_duplicate is False

    def test_blank_title(self, db_session, firm, client_user):
        with pytest.raises(HTTPException) as exc:
            Documents.upload(db_session, _upload(firm, client_user, title="  "))
        assert exc.value.status_code == 400

    def test_negative_size(self, db_session, firm, client_user):
        with pytest.raises(HTTPException) as exc:
            Documents.upload(db_session, _upload(firm, client_user, file_size=-1))
        assert exc.value.status_code == 400

    def test_unknown_folder(self, db_session, firm, client_user):
        with pytest.raises(HTTPException) as exc:
            Documents.upload(
                db_session, _upload(firm, client_user, folder_id=uuid.uuid4())
            )
        assert exc.value.status_code == 404

    def test_uploader_from_other_firm(self, db_session, firm, client_user):
        payload = _upload(firm, client_user, firm_id=uuid.uuid4())
        with pytest.raises(HTTPException) as exc:
            Documents.upload(db_session, payload)
        assert exc.value.status_code == 404

    def test_missing_storage_object(self, db_session, firm, client_user):
        fake_storage = MagicMock()
        fake_storage.is_configured.return_value = True
        fake_storage.object_exists.return_value = False
        with patch("lexdms.services.ecm_document.storage", fake_storage):
            with pytest.raises(HTTPException) as exc:
                Documents.upload(db_session, _upload(firm, client_user))
        assert exc.value.status_code == 400

    def test_get_other_firm(self, db_session, document):
        with pytest.raises(HTTPException) as exc:
            Documents.get(db_session, str(document.id), str(uuid.uuid4()))
        assert exc.value.status_code == 404


class TestRecordClassification:
    def test_records_detection(self, db_session, document):
        doc = record_classification(db_session, str(document.id), "Lease", 0.92)
        assert doc.detected_document_type == "Lease"
        assert doc.detected_type_confidence == pytest.approx(0.92)

    def test_confidence_out_of_range(self, db_session, document):
        with pytest.raises(HTTPException) as exc:
            record_classification(db_session, str(document.id), "Lease", 1.5)
        assert exc.value.status_code == 400

    def test_unknown_document(self, db_session):
        with pytest.raises(HTTPException) as exc:
            record_classification(db_session, str(uuid.uuid4()), "Lease", 0.5)
        assert exc.value.status_code == 404
