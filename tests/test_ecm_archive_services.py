import uuid
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from lexdms.models.audit import AuditEvent
from lexdms.models.ecm import (
    Archive,
    ArchiveType,
    Document,
    DocumentRetention,
    DocumentReview,
    DocumentStatus,
    DocumentVersion,
    Notification,
    ReviewDecision,
    WorkflowStage,
)
from lexdms.models.firm import Firm, RoleName
from lexdms.schemas.ecm_retention import RestoreRequest, RetentionApply
from lexdms.services import ecm_archive
from lexdms.services.ecm_archive import (
    Archives,
    archive_document_if_not_archived,
    archive_expired_retentions,
)
from lexdms.services.ecm_retention import DocumentRetentions, compute_expiry

NOW = datetime(2025, 6, 1, 9, 0, tzinfo=timezone.utc)


def _completed(make_document, **kwargs):
    return make_document(
        stage=WorkflowStage.completed, status=DocumentStatus.completed, **kwargs
    )


def _with_retention(db_session, document, expires_at, start=None):
    retention = DocumentRetention(
        document_id=document.id,
        firm_id=document.firm_id,
        retention_start_date=start or expires_at - timedelta(days=365),
        retention_expires_at=expires_at,
        retention_years=1,
    )
    document.retention_expires_at = expires_at
    db_session.add(retention)
    db_session.commit()
    db_session.refresh(retention)
    return retention


def _rejected(
    db_session, make_document, stage=WorkflowStage.staff_rejected, **kwargs
):
    doc = make_document(stage=stage, status=DocumentStatus.rejected, **kwargs)
    archive = archive_document_if_not_archived(
        db_session, doc, ArchiveType.rejected, reason="Rejected by Staff: unsigned"
    )
    return doc, archive


def _active(db_session, document_id):
    return db_session.scalars(
        select(Archive).where(
            Archive.document_id == document_id,
            Archive.is_restored.is_(False),
            Archive.is_deleted.is_(False),
        )
    ).all()


# ---------------------------------------------------------------------------
# archive_document_if_not_archived
# ---------------------------------------------------------------------------


class TestArchiveIfNotArchived:
    def test_snapshots_document(self, db_session, make_document, admin_user):
        doc = _completed(make_document)
        archive = archive_document_if_not_archived(
            db_session, doc, ArchiveType.manual, reason="Closed", actor_id=admin_user.id
        )
        db_session.refresh(doc)
        assert archive.document_title == doc.title
        assert archive.original_status == DocumentStatus.completed
        assert archive.original_workflow_stage == WorkflowStage.completed
        assert archive.original_folder_id == doc.folder_id
        assert archive.version_number == 1
        assert archive.archived_by == admin_user.id
        assert doc.status == DocumentStatus.archived
        assert doc.workflow_stage == WorkflowStage.archived

    def test_second_call_is_noop(self, db_session, make_document):
        doc = _completed(make_document)
        assert archive_document_if_not_archived(db_session, doc, ArchiveType.manual)
        assert archive_document_if_not_archived(db_session, doc, ArchiveType.rejected) is None
        archives = _active(db_session, doc.id)
        assert [a.archive_type for a in archives] == [ArchiveType.manual]

    def test_unique_index_blocks_second_active_archive(self, db_session, make_document):
        doc = _completed(make_document)
        archive_document_if_not_archived(db_session, doc, ArchiveType.manual)
        with patch.object(ecm_archive, "active_archive_for", return_value=None):
            assert (
                archive_document_if_not_archived(db_session, doc, ArchiveType.rejected)
                is None
            )
        assert len(_active(db_session, doc.id)) == 1

    def test_flags_retention(self, db_session, make_document):
        doc = _completed(make_document)
        retention = _with_retention(db_session, doc, NOW - timedelta(days=1))
        archive_document_if_not_archived(
            db_session, doc, ArchiveType.auto_expired, retention=retention
        )
        db_session.refresh(retention)
        assert retention.is_archived is True


# ---------------------------------------------------------------------------
# Listing
# ---------------------------------------------------------------------------


class TestListArchives:
    def test_categories(self, db_session, firm, make_document):
        _, rejected = _rejected(db_session, make_document)
        manual = archive_document_if_not_archived(
            db_session, _completed(make_document), ArchiveType.manual
        )
        expired = archive_document_if_not_archived(
            db_session, _completed(make_document), ArchiveType.auto_expired
        )

        def ids(category):
            return {a.id for a in Archives.list(db_session, firm.id, category=category)}

        assert ids("all") == {rejected.id, manual.id, expired.id}
        assert ids("rejected") == {rejected.id}
        assert ids("archived") == {manual.id}
        assert ids("retention") == {expired.id}
        assert ids("version") == set()

    def test_invalid_category(self, db_session, firm):
        with pytest.raises(HTTPException) as exc:
            Archives.list(db_session, firm.id, category="shredded")
        assert exc.value.status_code == 400

    def test_restored_hidden_by_default(self, db_session, firm, make_document, admin_user):
        _, archive = _rejected(db_session, make_document)
        Archives.restore(db_session, archive.id, admin_user.id)
        assert Archives.list(db_session, firm.id) == []
        assert [a.id for a in Archives.list(db_session, firm.id, include_closed=True)] == [
            archive.id
        ]

    def test_filter_by_uploader(self, db_session, firm, make_document, make_user):
        other_client = make_user(RoleName.client)
        _, mine = _rejected(db_session, make_document)
        _rejected(db_session, make_document, uploaded_by=other_client.id)
        items = Archives.list(db_session, firm.id, uploaded_by=mine.document.uploaded_by)
        assert [a.id for a in items] == [mine.id]


# ---------------------------------------------------------------------------
# Restore
# ---------------------------------------------------------------------------


class TestRestore:
    @pytest.mark.parametrize(
        "stage",
        [
            WorkflowStage.staff_rejected,
            WorkflowStage.lawyer_rejected,
            WorkflowStage.admin_rejected,
        ],
    )
    def test_rejected_returns_to_staff_queue(
        self, db_session, make_document, admin_user, staff_user, client_user, stage
    ):
        doc, archive = _rejected(db_session, make_document, stage=stage)
        assert archive.original_workflow_stage == stage
        restored = Archives.restore(db_session, archive.id, admin_user.id)
        db_session.refresh(doc)

        assert restored.is_restored is True
        assert restored.restored_by == admin_user.id
        assert doc.status == DocumentStatus.pending
        assert doc.workflow_stage == WorkflowStage.pending_staff_review
        assert doc.assigned_staff_id == staff_user.id
        notes = db_session.scalars(
            select(Notification).where(Notification.user_id == client_user.id)
        ).all()
        assert [n.notification_type for n in notes] == ["document.restored"]

    def test_uploader_may_restore_own_rejected(
        self, db_session, make_document, client_user
    ):
        doc, archive = _rejected(db_session, make_document)
        Archives.restore(db_session, archive.id, client_user.id)
        db_session.refresh(doc)
        assert doc.workflow_stage == WorkflowStage.pending_staff_review

    def test_non_admin_forbidden(self, db_session, make_document, staff_user):
        _, archive = _rejected(db_session, make_document)
        with pytest.raises(HTTPException) as exc:
            Archives.restore(db_session, archive.id, staff_user.id)
        assert exc.value.status_code == 403

    def test_uploader_cannot_restore_manual_archive(
        self, db_session, make_document, client_user
    ):
        doc = _completed(make_document)
        archive = archive_document_if_not_archived(db_session, doc, ArchiveType.manual)
        with pytest.raises(HTTPException) as exc:
            Archives.restore(db_session, archive.id, client_user.id)
        assert exc.value.status_code == 403

    def test_manual_archive_restores_original_state_and_resets_retention(
        self, db_session, make_document, admin_user
    ):
        doc = _completed(make_document)
        retention = _with_retention(
            db_session, doc, datetime(2020, 1, 1, tzinfo=timezone.utc)
        )
        archive = archive_document_if_not_archived(
            db_session, doc, ArchiveType.manual, retention=retention
        )
        Archives.restore(db_session, archive.id, admin_user.id)
        db_session.refresh(doc)
        db_session.refresh(retention)

        assert doc.status == DocumentStatus.completed
        assert doc.workflow_stage == WorkflowStage.completed
        assert retention.is_archived is False
        assert retention.retention_expires_at > datetime(2025, 1, 1)
        assert doc.retention_expires_at == retention.retention_expires_at

    def test_restore_without_retention_reset(self, db_session, make_document, admin_user):
        doc = _completed(make_document)
        expires = datetime(2020, 1, 1, tzinfo=timezone.utc)
        retention = _with_retention(db_session, doc, expires)
        archive = archive_document_if_not_archived(db_session, doc, ArchiveType.manual)
        Archives.restore(
            db_session, archive.id, admin_user.id, RestoreRequest(reset_retention=False)
        )
        db_session.refresh(retention)
        assert retention.retention_expires_at == expires.replace(tzinfo=None)

    def test_restore_twice(self, db_session, make_document, admin_user):
        _, archive = _rejected(db_session, make_document)
        Archives.restore(db_session, archive.id, admin_user.id)
        with pytest.raises(HTTPException) as exc:
            Archives.restore(db_session, archive.id, admin_user.id)
        assert exc.value.status_code == 409

    def test_restore_other_firm(self, db_session, make_document, make_user):
        other_firm = Firm(name="Elsewhere")
        db_session.add(other_firm)
        db_session.commit()
        outsider = make_user(RoleName.admin, firm_id=other_firm.id)
        _, archive = _rejected(db_session, make_document)
        with pytest.raises(HTTPException) as exc:
            Archives.restore(db_session, archive.id, outsider.id)
        assert exc.value.status_code == 404


# ---------------------------------------------------------------------------
# Permanent delete
# ---------------------------------------------------------------------------


class TestPermanentDelete:
    def _expired_archive(self, db_session, make_document, staff_user):
        doc = _completed(make_document)
        _with_retention(db_session, doc, NOW - timedelta(days=1))
        db_session.add(
            DocumentReview(
                document_id=doc.id,
                reviewed_by=staff_user.id,
                reviewer_role=RoleName.staff,
                decision=ReviewDecision.approved,
                reviewed_at=NOW,
            )
        )
        db_session.commit()
        archive = archive_document_if_not_archived(
            db_session, doc, ArchiveType.auto_expired
        )
        return doc, archive

    def test_removes_document_and_dependents(
        self, db_session, make_document, admin_user, staff_user
    ):
        doc, archive = self._expired_archive(db_session, make_document, staff_user)
        doc_id, title = doc.id, doc.title
        duplicate = _completed(make_document, duplicate_of_document_id=doc_id, is_duplicate=True)

        result = Archives.permanently_delete(db_session, archive.id, admin_user.id)
        db_session.refresh(duplicate)

        assert result.is_deleted is True
        assert result.deleted_by == admin_user.id
        assert result.document_id is None
        assert result.document_title == title
        assert db_session.get(Document, doc_id) is None
        assert db_session.scalars(
            select(DocumentVersion).where(DocumentVersion.document_id == doc_id)
        ).all() == []
        assert db_session.scalars(
            select(DocumentRetention).where(DocumentRetention.document_id == doc_id)
        ).all() == []
        assert duplicate.duplicate_of_document_id is None

    def test_rejected_archive_needs_force(self, db_session, make_document, admin_user):
        doc, archive = _rejected(db_session, make_document)
        with pytest.raises(HTTPException) as exc:
            Archives.permanently_delete(db_session, archive.id, admin_user.id)
        assert exc.value.status_code == 409
        assert db_session.get(Document, doc.id) is not None

        Archives.permanently_delete(db_session, archive.id, admin_user.id, force=True)
        assert db_session.get(Document, doc.id) is None

    def test_storage_failures_do_not_block_delete(
        self, db_session, make_document, admin_user, staff_user
    ):
        doc, archive = self._expired_archive(db_session, make_document, staff_user)
        fake_storage = MagicMock()
        fake_storage.is_configured.return_value = True
        fake_storage.delete_object.side_effect = RuntimeError("bucket offline")

        with patch.object(ecm_archive, "storage", fake_storage):
            result = Archives.permanently_delete(db_session, archive.id, admin_user.id)

        fake_storage.delete_object.assert_called_once()
        assert result.is_deleted is True
        assert db_session.get(Document, doc.id) is None

    def test_delete_twice(self, db_session, make_document, admin_user, staff_user):
        _, archive = self._expired_archive(db_session, make_document, staff_user)
        Archives.permanently_delete(db_session, archive.id, admin_user.id)
        with pytest.raises(HTTPException) as exc:
            Archives.permanently_delete(db_session, archive.id, admin_user.id)
        assert exc.value.status_code == 409

    def test_unknown_archive(self, db_session, admin_user):
        with pytest.raises(HTTPException) as exc:
            Archives.permanently_delete(db_session, uuid.uuid4(), admin_user.id)
        assert exc.value.status_code == 404


# ---------------------------------------------------------------------------
# Retention sweep
# ---------------------------------------------------------------------------


class TestRetentionSweep:
    def test_archives_only_expired_completed_documents(
        self, db_session, make_document, client_user
    ):
        expired = _completed(make_document)
        _with_retention(db_session, expired, NOW - timedelta(days=1))
        current = _completed(make_document)
        _with_retention(db_session, current, NOW + timedelta(days=30))
        in_review = make_document(
            stage=WorkflowStage.lawyer_review, status=DocumentStatus.under_review
        )
        _with_retention(db_session, in_review, NOW - timedelta(days=1))

        result = archive_expired_retentions(db_session, now=NOW)

        assert (result.archived, result.errors, result.stopped) == (1, 0, False)
        archives = _active(db_session, expired.id)
        assert len(archives) == 1
        archive = archives[0]
        assert archive.archive_type == ArchiveType.auto_expired
        assert archive.reason == (
            "Auto-archived: retention period expired on "
            f"{(NOW - timedelta(days=1)):%Y-%m-%d}"
        )
        assert archive.scheduled_delete_at == compute_expiry(NOW, 1, 0, 0).replace(
            tzinfo=None
        )
        assert expired.retention.is_archived is True
        assert _active(db_session, current.id) == []
        assert _active(db_session, in_review.id) == []
        notes = db_session.scalars(
            select(Notification).where(
                Notification.user_id == client_user.id,
                Notification.notification_type == "document.archived",
            )
        ).all()
        assert len(notes) == 1

    def test_second_run_is_noop(self, db_session, make_document):
        doc = _completed(make_document)
        _with_retention(db_session, doc, NOW - timedelta(days=1))
        archive_expired_retentions(db_session, now=NOW)
        result = archive_expired_retentions(db_session, now=NOW)
        assert result.archived == 0
        assert len(_active(db_session, doc.id)) == 1

    def test_restored_document_with_new_period_is_swept_again(
        self, db_session, make_document, admin_user
    ):
        doc = _completed(make_document)
        retention = _with_retention(db_session, doc, NOW - timedelta(days=1))
        assert archive_expired_retentions(db_session, now=NOW).archived == 1
        archive = _active(db_session, doc.id)[0]
        Archives.restore(
            db_session, archive.id, admin_user.id, RestoreRequest(reset_retention=False)
        )
        db_session.refresh(retention)
        assert retention.is_archived is True

        DocumentRetentions.apply(
            db_session, doc.id, RetentionApply(retention_days=10, start_date=NOW)
        )
        db_session.refresh(retention)
        assert retention.is_archived is False

        result = archive_expired_retentions(db_session, now=NOW + timedelta(days=30))
        db_session.refresh(doc)
        assert result.archived == 1
        assert doc.status == DocumentStatus.archived
        assert len(_active(db_session, doc.id)) == 1

    def test_failure_on_one_document_does_not_stop_others(
        self, db_session, make_document
    ):
        broken = _completed(make_document)
        _with_retention(db_session, broken, NOW - timedelta(days=2))
        fine = _completed(make_document)
        _with_retention(db_session, fine, NOW - timedelta(days=1))
        real = ecm_archive._archive_expired

        def flaky(db, retention, now):
            if retention.document_id == broken.id:
                raise RuntimeError("boom")
            return real(db, retention, now)

        with patch.object(ecm_archive, "_archive_expired", side_effect=flaky):
            result = archive_expired_retentions(db_session, now=NOW)

        assert (result.archived, result.errors) == (1, 1)
        assert _active(db_session, broken.id) == []
        assert len(_active(db_session, fine.id)) == 1

    def test_stops_between_documents(self, db_session, make_document):
        for days in (3, 2, 1):
            _with_retention(
                db_session, _completed(make_document), NOW - timedelta(days=days)
            )
        calls = {"n": 0}

        def should_stop():
            calls["n"] += 1
            return calls["n"] > 1

        result = archive_expired_retentions(db_session, now=NOW, should_stop=should_stop)
        assert result.archived == 1
        assert result.stopped is True

        # The next run picks up the rest
        result = archive_expired_retentions(db_session, now=NOW)
        assert result.archived == 2

    def test_writes_summary_audit_event(self, db_session, make_document):
        _with_retention(db_session, _completed(make_document), NOW - timedelta(days=1))
        archive_expired_retentions(db_session, now=NOW)
        events = db_session.scalars(
            select(AuditEvent).where(AuditEvent.action == "auto_archive_expired")
        ).all()
        assert len(events) == 1
        assert events[0].new_values["archived"] == 1

    def test_nothing_expired_writes_no_audit(self, db_session):
        result = archive_expired_retentions(db_session, now=NOW)
        assert result.archived == 0
        assert db_session.scalars(select(AuditEvent)).all() == []
