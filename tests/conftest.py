import os
import uuid
from datetime import datetime, timedelta, timezone

os.environ["DATABASE_URL"] = "sqlite://"
os.environ["CELERY_TASK_ALWAYS_EAGER"] = "true"
os.environ["NOTIFICATION_EMAIL_ENABLED"] = "false"
for _key in ("S3_ENDPOINT_URL", "S3_ACCESS_KEY", "S3_SECRET_KEY"):
    os.environ[_key] = ""

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

import lexdms.models  # noqa: E402,F401
from lexdms.db import Base  # noqa: E402
from lexdms.models.ecm import (  # noqa: E402
    ChecklistItem,
    Document,
    DocumentStatus,
    DocumentVersion,
    Folder,
    WorkflowStage,
)
from lexdms.models.firm import Firm, RoleName, User, UserRole, UserStatus  # noqa: E402


@pytest.fixture()
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(engine)
    yield engine
    engine.dispose()


@pytest.fixture()
def session_factory(engine):
    return sessionmaker(bind=engine, autoflush=False, autocommit=False)


@pytest.fixture()
def db_session(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture()
def firm(db_session):
    f = Firm(name=f"Firm {uuid.uuid4().hex[:6]}")
    db_session.add(f)
    db_session.commit()
    db_session.refresh(f)
    return f


@pytest.fixture()
def make_user(db_session, firm):
    counter = {"n": 0}

    def _make(*roles, firm_id=None, status=UserStatus.active, created_at=None):
        counter["n"] += 1
        user = User(
            firm_id=firm_id or firm.id,
            first_name=roles[0].value.title() if roles else "User",
            last_name=str(counter["n"]),
            email=f"user-{uuid.uuid4().hex[:8]}@test.com",
            status=status,
            created_at=created_at
            or datetime.now(timezone.utc) + timedelta(microseconds=counter["n"]),
        )
        db_session.add(user)
        db_session.flush()
        for role in roles:
            db_session.add(UserRole(user_id=user.id, role=role))
        db_session.commit()
        db_session.refresh(user)
        return user

    return _make


@pytest.fixture()
def client_user(make_user):
    return make_user(RoleName.client)


@pytest.fixture()
def staff_user(make_user):
    return make_user(RoleName.staff)


@pytest.fixture()
def lawyer_user(make_user):
    return make_user(RoleName.lawyer)


@pytest.fixture()
def admin_user(make_user):
    return make_user(RoleName.admin)


@pytest.fixture()
def folder(db_session, firm, client_user):
    f = Folder(firm_id=firm.id, owner_id=client_user.id, name="Matters")
    db_session.add(f)
    db_session.commit()
    db_session.refresh(f)
    return f


@pytest.fixture()
def checklist_items(db_session, firm):
    items = [
        ChecklistItem(firm_id=firm.id, name="Signed", display_order=1),
        ChecklistItem(firm_id=firm.id, name="Legible", display_order=2),
    ]
    db_session.add_all(items)
    db_session.commit()
    for item in items:
        db_session.refresh(item)
    return items


@pytest.fixture()
def make_document(db_session, firm, client_user, folder):
    def _make(
        stage=WorkflowStage.pending_staff_review,
        status=DocumentStatus.pending,
        **kwargs,
    ):
        doc = Document(
            firm_id=firm.id,
            folder_id=folder.id,
            title=kwargs.pop("title", f"doc_{uuid.uuid4().hex[:8]}"),
            uploaded_by=kwargs.pop("uploaded_by", client_user.id),
            workflow_stage=stage,
            status=status,
            original_file_name="contract.pdf",
            file_extension=".pdf",
            mime_type="application/pdf",
            total_file_size=1024,
            **kwargs,
        )
        db_session.add(doc)
        db_session.flush()
        db_session.add(
            DocumentVersion(
                document_id=doc.id,
                version_number=1,
                storage_key=f"firms/{firm.id}/documents/{doc.id}/v1/contract.pdf",
                file_size=1024,
                original_file_name="contract.pdf",
                file_extension=".pdf",
                mime_type="application/pdf",
                uploaded_by=doc.uploaded_by,
                is_current_version=True,
            )
        )
        db_session.commit()
        db_session.refresh(doc)
        return doc

    return _make


@pytest.fixture()
def document(make_document, staff_user):
    return make_document(assigned_staff_id=staff_user.id)
