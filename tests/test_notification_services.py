import uuid
from unittest.mock import patch

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from lexdms.models.audit import AuditEvent
from lexdms.models.ecm import Notification
from lexdms.models.firm import RoleName, UserStatus
from lexdms.services.audit import audit_events
from lexdms.services.notification import NotificationType, notifications


class TestNotify:
    def test_creates_notification(self, db_session, client_user, document) -> None:
        result = notifications.notify(
            db_session,
            client_user.id,
            "Document Approved",
            "Your document was approved.",
            NotificationType.document_approved,
            document.id,
            "/documents",
        )
        assert result.id is not None
        assert result.notification_type == "document.approved"
        assert result.document_id == document.id
        assert result.is_read is False

    def test_no_recipient_is_noop(self, db_session) -> None:
        result = notifications.notify(
            db_session, None, "t", "m", NotificationType.document_assigned
        )
        assert result is None
        assert db_session.scalars(select(Notification)).all() == []

    def test_write_failure_returns_none(self, db_session, client_user) -> None:
        with patch.object(db_session, "commit", side_effect=RuntimeError("db gone")):
            result = notifications.notify(
                db_session, client_user.id, "t", "m", NotificationType.document_edited
            )
        assert result is None

    def test_email_queue_failure_keeps_notification(
        self, db_session, client_user
    ) -> None:
        with patch("lexdms.services.notification.settings") as mock_settings:
            mock_settings.notification_email_enabled = True
            with patch("lexdms.tasks.notifications.send_notification_email") as mock_task:
                mock_task.delay.side_effect = ConnectionError("broker down")
                result = notifications.notify(
                    db_session,
                    client_user.id,
                    "Document Archived",
                    "Archived.",
                    NotificationType.document_archived,
                )
        mock_task.delay.assert_called_once_with(
            str(client_user.id), "Document Archived", "Archived."
        )
        assert result is not None
        assert len(db_session.scalars(select(Notification)).all()) == 1

    def test_email_not_queued_when_disabled(self, db_session, client_user) -> None:
        with patch("lexdms.tasks.notifications.send_notification_email") as mock_task:
            notifications.notify(
                db_session, client_user.id, "t", "m", NotificationType.document_edited
            )
        mock_task.delay.assert_not_called()


class TestNotifyAllInRole:
    def test_only_active_members_of_role(self, db_session, make_user) -> None:
        a = make_user(RoleName.admin)
        b = make_user(RoleName.admin, RoleName.lawyer)
        make_user(RoleName.admin, status=UserStatus.inactive)
        make_user(RoleName.staff)

        count = notifications.notify_all_in_role(
            db_session,
            a.firm_id,
            RoleName.admin,
            "Policy changed",
            "Retention policy updated.",
            NotificationType.retention_modified,
        )
        recipients = {
            n.user_id for n in db_session.scalars(select(Notification)).all()
        }
        assert count == 2
        assert recipients == {a.id, b.id}


class TestListAndUnread:
    def test_list_and_unread_count(self, db_session, client_user) -> None:
        for i in range(3):
            notifications.notify(
                db_session, client_user.id, f"n{i}", "m", NotificationType.document_edited
            )
        first = db_session.scalars(select(Notification)).first()
        first.is_read = True
        db_session.commit()

        assert notifications.unread_count(db_session, str(client_user.id)) == 2
        unread = notifications.list(
            db_session, str(client_user.id), False, "created_at", "desc", 10, 0
        )
        assert len(unread) == 2

    def test_unread_count_unknown_user(self, db_session) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.unread_count(db_session, str(uuid.uuid4()))
        assert exc.value.status_code == 404

    def test_list_invalid_order_by(self, db_session, client_user) -> None:
        with pytest.raises(HTTPException) as exc:
            notifications.list(
                db_session, str(client_user.id), None, "title", "asc", 10, 0
            )
        assert exc.value.status_code == 400


class TestAuditEvents:
    def test_log_event_serialises_values(self, db_session, admin_user, document) -> None:
        event = audit_events.log_event(
            db_session,
            "archive_document",
            "document",
            document.id,
            "Archived",
            new_values={"stage": document.workflow_stage, "by": admin_user.id},
            actor_id=admin_user.id,
            firm_id=document.firm_id,
        )
        assert event.entity_id == str(document.id)
        assert event.new_values == {
            "stage": "pending_staff_review",
            "by": str(admin_user.id),
        }

    def test_log_event_failure_is_swallowed(self, db_session) -> None:
        with patch.object(db_session, "commit", side_effect=RuntimeError("disk")):
            assert (
                audit_events.log_event(db_session, "x", "document", None, "d") is None
            )
        assert db_session.scalars(select(AuditEvent)).all() == []
