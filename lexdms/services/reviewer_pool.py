import logging

from sqlalchemy import func
from sqlalchemy.orm import Session

from lexdms.errors import ValidationFailedError
from lexdms.models.ecm import Document, WorkflowStage
from lexdms.models.firm import RoleName, User, UserRole, UserStatus
from lexdms.services.common import coerce_uuid

logger = logging.getLogger(__name__)

# Stages that count toward a reviewer's in-flight workload
WORKLOAD_STAGES = {
    RoleName.staff: (
        WorkflowStage.client_upload,
        WorkflowStage.pending_staff_review,
        WorkflowStage.staff_review,
    ),
    RoleName.lawyer: (
        WorkflowStage.pending_lawyer_review,
        WorkflowStage.lawyer_review,
    ),
    RoleName.admin: (
        WorkflowStage.pending_admin_review,
        WorkflowStage.admin_review,
    ),
}

ASSIGNMENT_COLUMNS = {
    RoleName.staff: Document.assigned_staff_id,
    RoleName.lawyer: Document.assigned_lawyer_id,
    RoleName.admin: Document.assigned_admin_id,
}


def _reviewer_columns(role: RoleName):
    if role not in ASSIGNMENT_COLUMNS:
        raise ValidationFailedError(f"Role {role.value} does not review documents")
    return ASSIGNMENT_COLUMNS[role], WORKLOAD_STAGES[role]


def candidates(db: Session, firm_id, role: RoleName) -> list[User]:
    """Active firm members holding ``role`` in stable order."""
    return (
        db.query(User)
        .join(UserRole, UserRole.user_id == User.id)
        .filter(
            User.firm_id == coerce_uuid(firm_id),
            User.status == UserStatus.active,
            UserRole.role == role,
        )
        .order_by(User.created_at.asc(), User.id.asc())
        .all()
    )


def workloads(db: Session, user_ids: list, role: RoleName) -> dict:
    column, stages = _reviewer_columns(role)
    if not user_ids:
        return {}
    rows = (
        db.query(column, func.count(Document.id))
        .filter(column.in_(user_ids), Document.workflow_stage.in_(stages))
        .group_by(column)
        .all()
    )
    return {user_id: count for user_id, count in rows}


def least_loaded(db: Session, firm_id, role: RoleName) -> User | None:
    """Pick the member of ``role`` with the fewest in-flight documents.

    The count is read without any reservation, so concurrent assignments may
    land on the same reviewer. Ties go to the first candidate.
    """
    _reviewer_columns(role)
    pool = candidates(db, firm_id, role)
    if not pool:
        logger.warning("No active %s available in firm %s", role.value, firm_id)
        return None
    counts = workloads(db, [user.id for user in pool], role)
    return min(pool, key=lambda user: counts.get(user.id, 0))
