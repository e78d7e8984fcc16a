import logging

from lexdms.celery_app import celery_app

logger = logging.getLogger(__name__)


@celery_app.task(
    name="lexdms.tasks.notifications.send_notification_email", ignore_result=True
)
def send_notification_email(
    user_id: str,
    title: str,
    message: str,
) -> None:
    """Send notification email to a user.

    Placeholder: a real implementation would hand off to an email service.
    """
    from lexdms.db import SessionLocal
    from lexdms.models.firm import User
    from lexdms.services.common import coerce_uuid

    db = SessionLocal()
    try:
        user = db.get(User, coerce_uuid(user_id))
        if not user:
            logger.warning("Skipping email for unknown user %s", user_id)
            return
        logger.info("Would send email to %s: %s", user.email, title)
    finally:
        db.close()
