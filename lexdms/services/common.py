import uuid

from lexdms.errors import NotFoundError, ValidationFailedError


def coerce_uuid(value):
    if value is None:
        return None
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def get_or_404(db, model, obj_id, detail: str, firm_id=None):
    """Load by primary key; rows of another firm count as missing."""
    obj = db.get(model, coerce_uuid(obj_id))
    if not obj or (firm_id is not None and obj.firm_id != coerce_uuid(firm_id)):
        raise NotFoundError(detail)
    return obj


def apply_ordering(query, order_by, order_dir, allowed_columns):
    if order_by not in allowed_columns:
        raise ValidationFailedError(
            f"Invalid order_by. Allowed: {', '.join(sorted(allowed_columns))}"
        )
    column = allowed_columns[order_by]
    if order_dir == "desc":
        return query.order_by(column.desc())
    return query.order_by(column.asc())


def apply_pagination(query, limit, offset):
    return query.limit(limit).offset(offset)
