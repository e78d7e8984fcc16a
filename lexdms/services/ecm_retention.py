import calendar
import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.orm import Session

from lexdms.config import settings
from lexdms.errors import NotFoundError, ValidationFailedError
from lexdms.models.ecm import Document, DocumentRetention, RetentionPolicy
from lexdms.schemas.ecm_retention import (
    RetentionApply,
    RetentionModify,
    RetentionPolicyCreate,
    RetentionPolicyUpdate,
)
from lexdms.services.audit import audit_events
from lexdms.services.classification import effective_document_type
from lexdms.services.common import apply_ordering, apply_pagination, coerce_uuid
from lexdms.services.side_effects import run_side_effects

logger = logging.getLogger(__name__)

PERIOD_FIELDS = ("retention_years", "retention_months", "retention_days")


# ---------------------------------------------------------------------------
# Calendar arithmetic
# ---------------------------------------------------------------------------


def _add_months(value: datetime, months: int) -> datetime:
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return value.replace(year=year, month=month, day=day)


def compute_expiry(start: datetime, years: int, months: int, days: int) -> datetime:
    """Add years, then months, then days to ``start``.

    Each step clamps to the last day of the target month, so
    2024-01-31 plus one month is 2024-02-29 and 2024-02-29 plus one year
    is 2025-02-28.
    """
    expiry = _add_months(start, years * 12)
    expiry = _add_months(expiry, months)
    return expiry + timedelta(days=days)


def validate_period(years: int, months: int, days: int) -> None:
    for name, value in zip(PERIOD_FIELDS, (years, months, days)):
        if value is not None and value < 0:
            raise ValidationFailedError(f"{name} cannot be negative")


def default_retention_period(
    db: Session, firm_id, document_type: str | None
) -> tuple[int, int, int, object]:
    """Return ``(years, months, days, policy_id)`` for a document type."""
    policy = None
    if document_type:
        policy = db.scalars(
            select(RetentionPolicy)
            .where(
                RetentionPolicy.firm_id == coerce_uuid(firm_id),
                RetentionPolicy.document_type == document_type,
                RetentionPolicy.is_default.is_(True),
                RetentionPolicy.is_active.is_(True),
            )
            .order_by(RetentionPolicy.created_at.asc())
        ).first()
    if policy is None:
        return (
            settings.retention_default_years,
            settings.retention_default_months,
            settings.retention_default_days,
            None,
        )
    return (
        policy.retention_years or 0,
        policy.retention_months or 0,
        policy.retention_days or 0,
        policy.id,
    )


def _set_expiry(retention: DocumentRetention, document: Document | None) -> None:
    retention.retention_expires_at = compute_expiry(
        retention.retention_start_date,
        retention.retention_years or 0,
        retention.retention_months or 0,
        retention.retention_days or 0,
    )
    if document is not None:
        document.retention_expires_at = retention.retention_expires_at


# ---------------------------------------------------------------------------
# RetentionPolicies
# ---------------------------------------------------------------------------


class RetentionPolicies:
    @staticmethod
    def _clear_other_defaults(db: Session, policy: RetentionPolicy) -> int:
        others = db.scalars(
            select(RetentionPolicy).where(
                RetentionPolicy.firm_id == policy.firm_id,
                RetentionPolicy.document_type == policy.document_type,
                RetentionPolicy.is_default.is_(True),
                RetentionPolicy.id != policy.id,
            )
        ).all()
        for other in others:
            other.is_default = False
        return len(others)

    @staticmethod
    def _rederive_linked(db: Session, policy: RetentionPolicy) -> int:
        linked = db.scalars(
            select(DocumentRetention).where(
                DocumentRetention.policy_id == policy.id,
                DocumentRetention.is_archived.is_(False),
                DocumentRetention.is_modified.is_(False),
            )
        ).all()
        for retention in linked:
            if retention.retention_start_date is None:
                continue
            retention.retention_years = policy.retention_years
            retention.retention_months = policy.retention_months
            retention.retention_days = policy.retention_days
            _set_expiry(retention, retention.document)
        return len(linked)

    @staticmethod
    def create(db: Session, payload: RetentionPolicyCreate) -> RetentionPolicy:
        validate_period(
            payload.retention_years, payload.retention_months, payload.retention_days
        )
        if payload.is_default and not payload.document_type:
            raise ValidationFailedError("A default policy needs a document_type")
        policy = RetentionPolicy(**payload.model_dump())
        db.add(policy)
        db.flush()
        if policy.is_default:
            RetentionPolicies._clear_other_defaults(db, policy)
        db.commit()
        db.refresh(policy)
        logger.info("Created retention policy %s", policy.id)
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "create_retention_policy",
                "retention_policy",
                policy.id,
                f"Created retention policy: {policy.name}",
                new_values=payload.model_dump(),
                category="retention",
                actor_id=policy.created_by,
                firm_id=policy.firm_id,
            )
        )
        return policy

    @staticmethod
    def get(db: Session, policy_id: str, firm_id: str | None = None) -> RetentionPolicy:
        policy = db.get(RetentionPolicy, coerce_uuid(policy_id))
        if not policy or (
            firm_id is not None and policy.firm_id != coerce_uuid(firm_id)
        ):
            raise NotFoundError("Retention policy not found")
        return policy

    @staticmethod
    def list(
        db: Session,
        firm_id: str,
        document_type: str | None,
        is_active: bool | None,
        order_by: str,
        order_dir: str,
        limit: int,
        offset: int,
    ) -> list[RetentionPolicy]:
        stmt = select(RetentionPolicy).where(
            RetentionPolicy.firm_id == coerce_uuid(firm_id)
        )
        if document_type is not None:
            stmt = stmt.where(RetentionPolicy.document_type == document_type)
        if is_active is None:
            stmt = stmt.where(RetentionPolicy.is_active.is_(True))
        else:
            stmt = stmt.where(RetentionPolicy.is_active == is_active)
        stmt = apply_ordering(
            stmt,
            order_by,
            order_dir,
            {
                "name": RetentionPolicy.name,
                "created_at": RetentionPolicy.created_at,
            },
        )
        return db.scalars(apply_pagination(stmt, limit, offset)).all()

    @staticmethod
    def update(
        db: Session,
        policy_id: str,
        payload: RetentionPolicyUpdate,
        actor_id: str | None = None,
    ) -> RetentionPolicy:
        policy = RetentionPolicies.get(db, policy_id)
        data = payload.model_dump(exclude_unset=True)
        validate_period(*(data.get(name) for name in PERIOD_FIELDS))
        period_changed = any(
            name in data and data[name] is not None
            and data[name] != getattr(policy, name)
            for name in PERIOD_FIELDS
        )
        is_default = data.get("is_default")
        if is_default is None:
            is_default = policy.is_default
        document_type = data.get("document_type", policy.document_type)
        if is_default and not document_type:
            raise ValidationFailedError("A default policy needs a document_type")
        for key, value in data.items():
            if value is None and key not in ("description", "document_type"):
                continue
            setattr(policy, key, value)
        if policy.is_default:
            RetentionPolicies._clear_other_defaults(db, policy)
        rederived = 0
        if period_changed:
            rederived = RetentionPolicies._rederive_linked(db, policy)
        db.commit()
        db.refresh(policy)
        logger.info(
            "Updated retention policy %s (%d retentions re-derived)", policy.id, rederived
        )
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "update_retention_policy",
                "retention_policy",
                policy.id,
                f"Updated retention policy: {policy.name}",
                new_values=data,
                category="retention",
                actor_id=actor_id,
                firm_id=policy.firm_id,
            )
        )
        return policy

    @staticmethod
    def set_default(db: Session, policy_id: str, actor_id: str | None = None):
        return RetentionPolicies.update(
            db, policy_id, RetentionPolicyUpdate(is_default=True), actor_id
        )

    @staticmethod
    def delete(db: Session, policy_id: str, actor_id: str | None = None) -> None:
        policy = RetentionPolicies.get(db, policy_id)
        in_use = db.scalars(
            select(DocumentRetention.id).where(DocumentRetention.policy_id == policy.id)
        ).first()
        firm_id, name = policy.firm_id, policy.name
        if in_use:
            policy.is_active = False
            policy.is_default = False
            logger.info("Soft-deleted retention policy %s", policy_id)
        else:
            db.delete(policy)
            logger.info("Deleted retention policy %s", policy_id)
        db.commit()
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "delete_retention_policy",
                "retention_policy",
                policy_id,
                f"Deleted retention policy: {name}",
                category="retention",
                actor_id=actor_id,
                firm_id=firm_id,
            )
        )


# ---------------------------------------------------------------------------
# DocumentRetentions
# ---------------------------------------------------------------------------


class DocumentRetentions:
    @staticmethod
    def get_for_document(
        db: Session, document_id: str, firm_id: str | None = None
    ) -> DocumentRetention:
        retention = db.scalars(
            select(DocumentRetention).where(
                DocumentRetention.document_id == coerce_uuid(document_id)
            )
        ).first()
        if not retention or (
            firm_id is not None and retention.firm_id != coerce_uuid(firm_id)
        ):
            raise NotFoundError("Retention record not found")
        return retention

    @staticmethod
    def create_on_approval(
        db: Session, document: Document, actor_id=None, now: datetime | None = None
    ) -> DocumentRetention:
        """Attach the default retention unless the document already has one.

        Does not commit; runs inside the approving transition.
        """
        existing = db.scalars(
            select(DocumentRetention).where(DocumentRetention.document_id == document.id)
        ).first()
        if existing is not None:
            return existing
        years, months, days, policy_id = default_retention_period(
            db, document.firm_id, effective_document_type(document)
        )
        retention = DocumentRetention(
            document_id=document.id,
            policy_id=policy_id,
            firm_id=document.firm_id,
            retention_start_date=now or datetime.now(timezone.utc),
            retention_years=years,
            retention_months=months,
            retention_days=days,
            is_archived=False,
            created_by=coerce_uuid(actor_id),
        )
        _set_expiry(retention, document)
        db.add(retention)
        logger.info(
            "Applied %d/%d/%d retention to document %s", years, months, days, document.id
        )
        return retention

    @staticmethod
    def assign_period(
        db: Session,
        document: Document,
        policy_id=None,
        years: int | None = None,
        months: int | None = None,
        days: int | None = None,
        actor_id=None,
        start_date: datetime | None = None,
        reason: str = "Retention policy applied",
    ) -> DocumentRetention:
        """Create or overwrite the document's retention. Does not commit."""
        if policy_id is not None:
            policy = RetentionPolicies.get(db, policy_id, document.firm_id)
            years = policy.retention_years or 0
            months = policy.retention_months or 0
            days = policy.retention_days or 0
            policy_id = policy.id
        else:
            years, months, days = years or 0, months or 0, days or 0
        validate_period(years, months, days)

        start = start_date or datetime.now(timezone.utc)
        retention = db.scalars(
            select(DocumentRetention).where(DocumentRetention.document_id == document.id)
        ).first()
        if retention is None:
            retention = DocumentRetention(
                document_id=document.id,
                firm_id=document.firm_id,
                is_archived=False,
                created_by=coerce_uuid(actor_id),
            )
            db.add(retention)
        else:
            retention.is_modified = True
            retention.modification_reason = reason
            retention.modified_by = coerce_uuid(actor_id)
            retention.modified_at = datetime.now(timezone.utc)
        retention.is_archived = False
        retention.policy_id = policy_id
        retention.retention_start_date = start
        retention.retention_years = years
        retention.retention_months = months
        retention.retention_days = days
        _set_expiry(retention, document)
        return retention

    @staticmethod
    def apply(
        db: Session, document_id: str, payload: RetentionApply, actor_id=None, firm_id=None
    ) -> DocumentRetention:
        document = db.get(Document, coerce_uuid(document_id))
        if not document or (
            firm_id is not None and document.firm_id != coerce_uuid(firm_id)
        ):
            raise NotFoundError("Document not found")
        retention = DocumentRetentions.assign_period(
            db,
            document,
            policy_id=payload.policy_id,
            years=payload.retention_years,
            months=payload.retention_months,
            days=payload.retention_days,
            actor_id=actor_id,
            start_date=payload.start_date,
        )
        db.commit()
        db.refresh(retention)
        logger.info("Applied retention %s to document %s", retention.id, document.id)
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "apply_retention",
                "document",
                document.id,
                f"Applied retention to document: {document.title}",
                new_values={"retention_expires_at": retention.retention_expires_at},
                category="retention",
                actor_id=actor_id,
                firm_id=document.firm_id,
            )
        )
        return retention

    @staticmethod
    def modify(
        db: Session, document_id: str, payload: RetentionModify, actor_id=None, firm_id=None
    ) -> DocumentRetention:
        retention = DocumentRetentions.get_for_document(db, document_id, firm_id)
        validate_period(
            payload.retention_years, payload.retention_months, payload.retention_days
        )
        old_expiry = retention.retention_expires_at
        if payload.retention_years is not None:
            retention.retention_years = payload.retention_years
        if payload.retention_months is not None:
            retention.retention_months = payload.retention_months
        if payload.retention_days is not None:
            retention.retention_days = payload.retention_days

        if retention.retention_start_date is not None:
            _set_expiry(retention, retention.document)
        elif payload.new_expiry_date is not None:
            retention.retention_expires_at = payload.new_expiry_date
            retention.document.retention_expires_at = payload.new_expiry_date

        retention.is_modified = True
        retention.modification_reason = payload.reason
        retention.modified_by = coerce_uuid(actor_id)
        retention.modified_at = datetime.now(timezone.utc)
        db.commit()
        db.refresh(retention)
        logger.info("Modified retention %s", retention.id)
        run_side_effects(
            lambda: audit_events.log_event(
                db,
                "modify_retention",
                "document_retention",
                retention.id,
                f"Modified retention. Reason: {payload.reason}",
                old_values={"retention_expires_at": old_expiry},
                new_values={"retention_expires_at": retention.retention_expires_at},
                category="retention",
                actor_id=actor_id,
                firm_id=retention.firm_id,
            )
        )
        return retention

    @staticmethod
    def reset(
        db: Session, document: Document, now: datetime | None = None
    ) -> DocumentRetention | None:
        """Restart the retention clock with the same period. Does not commit."""
        retention = db.scalars(
            select(DocumentRetention).where(DocumentRetention.document_id == document.id)
        ).first()
        if retention is None:
            return None
        retention.retention_start_date = now or datetime.now(timezone.utc)
        retention.is_archived = False
        _set_expiry(retention, document)
        return retention

    @staticmethod
    def stats(db: Session, firm_id: str, now: datetime | None = None) -> dict:
        now = now or datetime.now(timezone.utc)
        active = select(DocumentRetention).where(
            DocumentRetention.firm_id == coerce_uuid(firm_id),
            DocumentRetention.is_archived.is_(False),
        )
        retentions = db.scalars(active).all()
        soon = now + timedelta(days=30)

        def _expires(retention):
            value = retention.retention_expires_at
            if value.tzinfo is None:
                value = value.replace(tzinfo=timezone.utc)
            return value

        return {
            "total_policies": len(
                db.scalars(
                    select(RetentionPolicy.id).where(
                        RetentionPolicy.firm_id == coerce_uuid(firm_id),
                        RetentionPolicy.is_active.is_(True),
                    )
                ).all()
            ),
            "under_retention": len(retentions),
            "expiring_within_30_days": sum(
                1 for r in retentions if now < _expires(r) <= soon
            ),
            "expired": sum(1 for r in retentions if _expires(r) <= now),
        }


retention_policies = RetentionPolicies()
document_retentions = DocumentRetentions()
