from __future__ import annotations

import enum
import logging
from typing import List

from sqlalchemy.orm import Session

from lexdms.config import settings
from lexdms.errors import NotFoundError
from lexdms.models.ecm import Notification
from lexdms.models.firm import RoleName, User, UserRole, UserStatus
from lexdms.services.common import apply_ordering, apply_pagination, coerce_uuid

logger = logging.getLogger(__name__)


class NotificationType(enum.Enum):
    document_uploaded = "document.uploaded"
    document_assigned = "document.assigned"
    document_edited = "document.edited"
    document_approved = "document.approved"
    document_rejected = "document.rejected"
    document_completed = "document.completed"
    document_archived = "document.archived"
    document_restored = "document.restored"
    retention_modified = "retention.modified"


class Notifications:
    @staticmethod
    def notify(
        db: Session,
        user_id,
        title: str,
        message: str,
        notification_type: NotificationType,
        document_id=None,
        action_url: str | None = None,
    ) -> Notification | None:
        """Create an in-app notification. Never raises."""
        if user_id is None:
            return None
        try:
            notification = Notification(
                user_id=coerce_uuid(user_id),
                document_id=coerce_uuid(document_id),
                title=title,
                message=message,
                notification_type=notification_type.value,
                action_url=action_url,
            )
            db.add(notification)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("Failed to notify user %s (%s): %s", user_id, title, e)
            return None
        logger.info("Notified user %s: %s", user_id, notification_type.value)

        if settings.notification_email_enabled:
            from lexdms.tasks.notifications import send_notification_email

            try:
                send_notification_email.delay(str(user_id), title, message)
            except Exception as e:
                logger.warning("Failed to queue email for user %s: %s", user_id, e)
        return notification

    @staticmethod
    def notify_all_in_role(
        db: Session,
        firm_id,
        role: RoleName,
        title: str,
        message: str,
        notification_type: NotificationType,
        document_id=None,
        action_url: str | None = None,
    ) -> int:
        try:
            users = (
                db.query(User)
                .join(UserRole, UserRole.user_id == User.id)
                .filter(
                    User.firm_id == coerce_uuid(firm_id),
                    User.status == UserStatus.active,
                    UserRole.role == role,
                )
                .all()
            )
        except Exception as e:
            db.rollback()
            logger.warning("Failed to resolve %s recipients: %s", role.value, e)
            return 0
        count = 0
        for user in users:
            if Notifications.notify(
                db, user.id, title, message, notification_type, document_id, action_url
            ):
                count += 1
        return count

    @staticmethod
    def list(
        db: Session,
        user_id: str,
        is_read: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> List[Notification]:
        query = db.query(Notification).filter(
            Notification.user_id == coerce_uuid(user_id),
            Notification.is_active.is_(True),
        )
        if is_read is not None:
            query = query.filter(Notification.is_read == is_read)
        query = apply_ordering(
            query,
            order_by,
            order_dir,
            {"created_at": Notification.created_at},
        )
        return apply_pagination(query, limit, offset).all()

    @staticmethod
    def unread_count(db: Session, user_id: str) -> int:
        if not db.get(User, coerce_uuid(user_id)):
            raise NotFoundError("User not found")
        return (
            db.query(Notification)
            .filter(
                Notification.user_id == coerce_uuid(user_id),
                Notification.is_read.is_(False),
                Notification.is_active.is_(True),
            )
            .count()
        )


notifications = Notifications()
