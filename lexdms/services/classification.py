import logging

from sqlalchemy.orm import Session

from lexdms.config import settings
from lexdms.errors import NotFoundError, ValidationFailedError
from lexdms.models.ecm import Document
from lexdms.services.common import coerce_uuid

logger = logging.getLogger(__name__)

FALLBACK_DOCUMENT_TYPE = "Other"


def effective_document_type(document: Document) -> str:
    """Type used to pick a default retention policy.

    A detected type wins only when the classifier was confident enough.
    """
    if (
        document.detected_document_type
        and document.detected_type_confidence is not None
        and document.detected_type_confidence >= settings.classifier_min_confidence
    ):
        return document.detected_document_type
    if document.document_type:
        return document.document_type
    return FALLBACK_DOCUMENT_TYPE


def record_classification(
    db: Session, document_id: str, detected_type: str | None, confidence: float | None
) -> Document:
    document = db.get(Document, coerce_uuid(document_id))
    if not document:
        raise NotFoundError("Document not found")
    if confidence is not None and not 0.0 <= confidence <= 1.0:
        raise ValidationFailedError("confidence must be between 0 and 1")
    document.detected_document_type = detected_type or None
    document.detected_type_confidence = confidence
    db.commit()
    db.refresh(document)
    logger.info(
        "Recorded classification %s (%.2f) for document %s",
        detected_type,
        confidence or 0.0,
        document.id,
    )
    return document
