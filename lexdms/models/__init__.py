from lexdms.models.audit import AuditEvent  # noqa: F401
from lexdms.models.firm import Firm, RoleName, User, UserRole, UserStatus  # noqa: F401
from lexdms.models.ecm import (  # noqa: F401
    Archive,
    ArchiveType,
    ChecklistItem,
    Document,
    DocumentChecklistResult,
    DocumentRetention,
    DocumentReview,
    DocumentStatus,
    DocumentVersion,
    Folder,
    Notification,
    RetentionPolicy,
    ReviewDecision,
    WorkflowStage,
)
