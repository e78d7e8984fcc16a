import enum
import logging
import uuid
from datetime import datetime

from sqlalchemy.orm import Session

from lexdms.models.audit import AuditEvent
from lexdms.services.common import coerce_uuid

logger = logging.getLogger(__name__)


def _jsonable(values: dict | None) -> dict | None:
    if values is None:
        return None
    out = {}
    for key, value in values.items():
        if isinstance(value, enum.Enum):
            value = value.value
        elif isinstance(value, uuid.UUID):
            value = str(value)
        elif isinstance(value, datetime):
            value = value.isoformat()
        out[key] = value
    return out


class AuditEvents:
    @staticmethod
    def log_event(
        db: Session,
        action: str,
        entity_type: str,
        entity_id,
        description: str,
        old_values: dict | None = None,
        new_values: dict | None = None,
        category: str = "document",
        actor_id=None,
        firm_id=None,
    ) -> AuditEvent | None:
        """Append an audit row. Failures are logged and swallowed."""
        try:
            event = AuditEvent(
                firm_id=coerce_uuid(firm_id),
                actor_id=coerce_uuid(actor_id),
                action=action,
                entity_type=entity_type,
                entity_id=str(entity_id) if entity_id is not None else None,
                description=description,
                old_values=_jsonable(old_values),
                new_values=_jsonable(new_values),
                category=category,
            )
            db.add(event)
            db.commit()
        except Exception as e:
            db.rollback()
            logger.warning("Failed to write audit event %s: %s", action, e)
            return None
        return event


audit_events = AuditEvents()
