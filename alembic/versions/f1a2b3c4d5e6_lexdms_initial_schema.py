"""lexdms initial schema

Revision ID: f1a2b3c4d5e6
Revises:
Create Date: 2026-10-19 09:00:00.000000

"""

from alembic import op
import sqlalchemy as sa

revision = "f1a2b3c4d5e6"
down_revision = None
branch_labels = None
depends_on = None

USER_STATUSES = ("active", "inactive", "suspended")
ROLE_NAMES = ("admin", "lawyer", "staff", "client", "auditor")
WORKFLOW_STAGES = (
    "client_upload",
    "pending_staff_review",
    "staff_review",
    "staff_rejected",
    "pending_lawyer_review",
    "lawyer_review",
    "lawyer_rejected",
    "pending_admin_review",
    "admin_review",
    "admin_rejected",
    "completed",
    "archived",
)
DOCUMENT_STATUSES = (
    "pending",
    "under_review",
    "approved",
    "rejected",
    "completed",
    "archived",
)
REVIEW_DECISIONS = ("approved", "rejected")
ARCHIVE_TYPES = ("manual", "rejected", "retention", "auto_expired", "version")


def _enum(values, name):
    return sa.Enum(*values, name=name, create_type=False)


def upgrade() -> None:
    # --- Enums ---
    for values, name in [
        (USER_STATUSES, "userstatus"),
        (ROLE_NAMES, "rolename"),
        (WORKFLOW_STAGES, "workflowstage"),
        (DOCUMENT_STATUSES, "documentstatus"),
        (REVIEW_DECISIONS, "reviewdecision"),
        (ARCHIVE_TYPES, "archivetype"),
    ]:
        sa.Enum(*values, name=name).create(op.get_bind(), checkfirst=True)

    # --- Firms & Users ---
    op.create_table(
        "firms",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "users",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("first_name", sa.String(100), nullable=False),
        sa.Column("last_name", sa.String(100), nullable=False),
        sa.Column("email", sa.String(255), nullable=False),
        sa.Column("status", _enum(USER_STATUSES, "userstatus"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("email", name="uq_users_email"),
    )
    op.create_index("ix_users_firm_id", "users", ["firm_id"])
    op.create_table(
        "user_roles",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("role", _enum(ROLE_NAMES, "rolename"), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_id", "role", name="uq_user_roles_user_role"),
    )

    # --- Folders ---
    op.create_table(
        "folders",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("owner_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.ForeignKeyConstraint(["owner_id"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "firm_id", "owner_id", "name", name="uq_folders_owner_name"
        ),
    )

    # --- Documents ---
    op.create_table(
        "documents",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("folder_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.String(500), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_type", sa.String(100), nullable=True),
        sa.Column("detected_document_type", sa.String(100), nullable=True),
        sa.Column("detected_type_confidence", sa.Float(), nullable=True),
        sa.Column("status", _enum(DOCUMENT_STATUSES, "documentstatus"), nullable=False),
        sa.Column(
            "workflow_stage", _enum(WORKFLOW_STAGES, "workflowstage"), nullable=False
        ),
        sa.Column("current_remarks", sa.Text(), nullable=True),
        sa.Column("uploaded_by", sa.UUID(), nullable=True),
        sa.Column("assigned_staff_id", sa.UUID(), nullable=True),
        sa.Column("assigned_lawyer_id", sa.UUID(), nullable=True),
        sa.Column("assigned_admin_id", sa.UUID(), nullable=True),
        sa.Column("current_version", sa.Integer(), nullable=False),
        sa.Column("original_file_name", sa.String(500), nullable=True),
        sa.Column("file_extension", sa.String(20), nullable=True),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("total_file_size", sa.BigInteger(), nullable=False),
        sa.Column("checksum_sha256", sa.String(64), nullable=True),
        sa.Column("is_duplicate", sa.Boolean(), nullable=False),
        sa.Column("duplicate_of_document_id", sa.UUID(), nullable=True),
        sa.Column("staff_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("lawyer_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_expires_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("row_version", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.ForeignKeyConstraint(["folder_id"], ["folders.id"]),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_staff_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_lawyer_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["assigned_admin_id"], ["users.id"]),
        sa.ForeignKeyConstraint(["duplicate_of_document_id"], ["documents.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_documents_firm_stage", "documents", ["firm_id", "workflow_stage"]
    )
    op.create_index("ix_documents_uploaded_by", "documents", ["uploaded_by"])
    op.create_index("ix_documents_status", "documents", ["status"])
    op.create_index(
        "ix_documents_checksum", "documents", ["firm_id", "checksum_sha256"]
    )

    # --- Document Versions ---
    op.create_table(
        "document_versions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("version_number", sa.Integer(), nullable=False),
        sa.Column("storage_key", sa.String(1024), nullable=False),
        sa.Column("file_size", sa.BigInteger(), nullable=False),
        sa.Column("original_file_name", sa.String(500), nullable=False),
        sa.Column("file_extension", sa.String(20), nullable=True),
        sa.Column("mime_type", sa.String(255), nullable=True),
        sa.Column("change_description", sa.Text(), nullable=True),
        sa.Column("changed_by_role", _enum(ROLE_NAMES, "rolename"), nullable=True),
        sa.Column("uploaded_by", sa.UUID(), nullable=True),
        sa.Column("is_current_version", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["uploaded_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "document_id",
            "version_number",
            name="uq_document_versions_doc_version",
        ),
    )
    op.create_index(
        "ix_document_versions_document_id", "document_versions", ["document_id"]
    )

    # --- Checklist Items & Reviews ---
    op.create_table(
        "checklist_items",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("is_required", sa.Boolean(), nullable=False),
        sa.Column("display_order", sa.Integer(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_table(
        "document_reviews",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("reviewed_by", sa.UUID(), nullable=False),
        sa.Column("reviewer_role", _enum(ROLE_NAMES, "rolename"), nullable=False),
        sa.Column("decision", _enum(REVIEW_DECISIONS, "reviewdecision"), nullable=False),
        sa.Column("remarks", sa.Text(), nullable=True),
        sa.Column("internal_notes", sa.Text(), nullable=True),
        sa.Column("is_checklist_complete", sa.Boolean(), nullable=False),
        sa.Column("checklist_score", sa.Integer(), nullable=False),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["reviewed_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_document_reviews_document_id", "document_reviews", ["document_id"]
    )
    op.create_table(
        "document_checklist_results",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("review_id", sa.UUID(), nullable=False),
        sa.Column("checklist_item_id", sa.UUID(), nullable=False),
        sa.Column("is_passed", sa.Boolean(), nullable=False),
        sa.Column("remarks", sa.String(500), nullable=True),
        sa.Column("checked_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["review_id"], ["document_reviews.id"]),
        sa.ForeignKeyConstraint(["checklist_item_id"], ["checklist_items.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "review_id",
            "checklist_item_id",
            name="uq_document_checklist_results_review_item",
        ),
    )

    # --- Retention Policies ---
    op.create_table(
        "retention_policies",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("document_type", sa.String(100), nullable=True),
        sa.Column("retention_years", sa.Integer(), nullable=False),
        sa.Column("retention_months", sa.Integer(), nullable=False),
        sa.Column("retention_days", sa.Integer(), nullable=False),
        sa.Column("is_default", sa.Boolean(), nullable=False),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_by", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_retention_policies_firm_type",
        "retention_policies",
        ["firm_id", "document_type"],
    )

    # --- Document Retentions ---
    op.create_table(
        "document_retentions",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=False),
        sa.Column("policy_id", sa.UUID(), nullable=True),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("retention_start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("retention_expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("retention_years", sa.Integer(), nullable=False),
        sa.Column("retention_months", sa.Integer(), nullable=False),
        sa.Column("retention_days", sa.Integer(), nullable=False),
        sa.Column("is_archived", sa.Boolean(), nullable=False),
        sa.Column("is_modified", sa.Boolean(), nullable=False),
        sa.Column("modification_reason", sa.String(500), nullable=True),
        sa.Column("modified_by", sa.UUID(), nullable=True),
        sa.Column("modified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("created_by", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["document_id"], ["documents.id"]),
        sa.ForeignKeyConstraint(["policy_id"], ["retention_policies.id"]),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.ForeignKeyConstraint(["modified_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["created_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("document_id", name="uq_document_retentions_document"),
    )
    op.create_index(
        "ix_document_retentions_expires_at",
        "document_retentions",
        ["retention_expires_at"],
    )
    op.create_index(
        "ix_document_retentions_is_archived", "document_retentions", ["is_archived"]
    )

    # --- Archives ---
    op.create_table(
        "archives",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=True),
        sa.Column("firm_id", sa.UUID(), nullable=False),
        sa.Column("document_title", sa.String(500), nullable=True),
        sa.Column("archive_type", _enum(ARCHIVE_TYPES, "archivetype"), nullable=False),
        sa.Column("reason", sa.String(500), nullable=True),
        sa.Column(
            "original_status", _enum(DOCUMENT_STATUSES, "documentstatus"), nullable=True
        ),
        sa.Column(
            "original_workflow_stage",
            _enum(WORKFLOW_STAGES, "workflowstage"),
            nullable=True,
        ),
        sa.Column("original_folder_id", sa.UUID(), nullable=True),
        sa.Column(
            "original_retention_date", sa.DateTime(timezone=True), nullable=True
        ),
        sa.Column("version_number", sa.Integer(), nullable=True),
        sa.Column("archived_by", sa.UUID(), nullable=True),
        sa.Column("archived_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("scheduled_delete_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_restored", sa.Boolean(), nullable=False),
        sa.Column("restored_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("restored_by", sa.UUID(), nullable=True),
        sa.Column("is_deleted", sa.Boolean(), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("deleted_by", sa.UUID(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(
            ["document_id"], ["documents.id"], ondelete="SET NULL"
        ),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.ForeignKeyConstraint(["archived_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["restored_by"], ["users.id"]),
        sa.ForeignKeyConstraint(["deleted_by"], ["users.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_archives_firm_type", "archives", ["firm_id", "archive_type"])
    op.create_index(
        "uq_archives_active_document",
        "archives",
        ["document_id"],
        unique=True,
        postgresql_where=sa.text("is_restored = false AND is_deleted = false"),
    )

    # --- Notifications ---
    op.create_table(
        "notifications",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("user_id", sa.UUID(), nullable=False),
        sa.Column("document_id", sa.UUID(), nullable=True),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("message", sa.Text(), nullable=False),
        sa.Column("notification_type", sa.String(100), nullable=False),
        sa.Column("action_url", sa.String(500), nullable=True),
        sa.Column("is_read", sa.Boolean(), nullable=False),
        sa.Column("read_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"]),
        sa.ForeignKeyConstraint(
            ["document_id"], ["documents.id"], ondelete="SET NULL"
        ),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_is_read", "notifications", ["is_read"])
    op.create_index("ix_notifications_type", "notifications", ["notification_type"])

    # --- Audit Events ---
    op.create_table(
        "audit_events",
        sa.Column("id", sa.UUID(), nullable=False),
        sa.Column("firm_id", sa.UUID(), nullable=True),
        sa.Column("actor_id", sa.UUID(), nullable=True),
        sa.Column("action", sa.String(100), nullable=False),
        sa.Column("entity_type", sa.String(80), nullable=False),
        sa.Column("entity_id", sa.String(36), nullable=True),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("old_values", sa.JSON(), nullable=True),
        sa.Column("new_values", sa.JSON(), nullable=True),
        sa.Column("category", sa.String(50), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["firm_id"], ["firms.id"]),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index(
        "ix_audit_events_entity", "audit_events", ["entity_type", "entity_id"]
    )
    op.create_index("ix_audit_events_occurred_at", "audit_events", ["occurred_at"])


def downgrade() -> None:
    op.drop_table("audit_events")
    op.drop_table("notifications")
    op.drop_index("uq_archives_active_document", table_name="archives")
    op.drop_table("archives")
    op.drop_table("document_retentions")
    op.drop_table("retention_policies")
    op.drop_table("document_checklist_results")
    op.drop_table("document_reviews")
    op.drop_table("checklist_items")
    op.drop_table("document_versions")
    op.drop_table("documents")
    op.drop_table("folders")
    op.drop_table("user_roles")
    op.drop_table("users")
    op.drop_table("firms")

    for enum_name in [
        "archivetype",
        "reviewdecision",
        "documentstatus",
        "workflowstage",
        "rolename",
        "userstatus",
    ]:
        sa.Enum(name=enum_name).drop(op.get_bind(), checkfirst=True)
