# erps/services/record_store.py
"""
Repository helpers shared by the lifecycle services.
conditional_update() is the only place verification_status is written: the UPDATE is
guarded by the expected current status so concurrent actors cannot overwrite each other.
"""

from contextlib import contextmanager
from datetime import datetime
from typing import Optional
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from erps.models.user import User
from erps.utils.errors import ForbiddenError, InternalError, NotFoundError
from erps.utils.logger import get_logger

logger = get_logger(__name__)


def find_by_id(db: Session, model, record_id: str, include_deleted: bool = False):
    """Return the record or None. Soft-deleted rows are hidden by default."""
    q = db.query(model).filter(model.id == record_id)
    if not include_deleted and hasattr(model, "is_deleted"):
        q = q.filter(model.is_deleted == False)  # noqa: E712
    return q.first()


def get_or_404(db: Session, model, record_id: str, label: str):
    record = find_by_id(db, model, record_id)
    if record is None:
        raise NotFoundError(f"{label} not found", [f"No {label.lower()} with id {record_id}"])
    return record


def find_by_token(db: Session, model, token: str):
    """Exact-match lookup on the denormalized verification_token column."""
    if not token:
        return None
    return (
        db.query(model)
        .filter(model.verification_token == token, model.is_deleted == False)  # noqa: E712
        .first()
    )


def conditional_update(db: Session, model, record_id: str, expected_status: str, patch: dict):
    """
    UPDATE model SET patch WHERE id = record_id AND verification_status = expected_status.
    Returns the refreshed record, or None when the guard did not match (someone else moved it).
    Does not commit; the caller commits together with the audit entry.
    """
    values = dict(patch)
    values.setdefault("modified_at", datetime.utcnow())
    matched = (
        db.query(model)
        .filter(model.id == record_id, model.verification_status == expected_status)
        .update(values, synchronize_session=False)
    )
    if matched != 1:
        logger.info(f"[STORE] Guard miss on {model.__tablename__}:{record_id} (expected {expected_status})")
        return None
    return db.get(model, record_id, populate_existing=True)


def update_fields(db: Session, model, record_id: str, patch: dict):
    """Non-status field update (due dates, reminder bookkeeping). Refuses status writes."""
    if "verification_status" in patch:
        raise ValueError("verification_status must go through conditional_update")
    values = dict(patch)
    values.setdefault("modified_at", datetime.utcnow())
    db.query(model).filter(model.id == record_id).update(values, synchronize_session=False)
    return db.get(model, record_id, populate_existing=True)


def find_user(db: Session, user_id: Optional[str]) -> Optional[User]:
    if not user_id:
        return None
    return db.query(User).filter(User.id == user_id, User.is_active == True).first()  # noqa: E712


def require_actor(db: Session, actor_id: Optional[str], *roles: str) -> User:
    """Resolve an acting user; FORBIDDEN if unknown/inactive or not in one of `roles` (when given)."""
    user = find_user(db, actor_id)
    if user is None:
        raise ForbiddenError("Unknown or inactive actor", ["A valid X-Actor-Id is required"])
    if roles and user.role not in roles:
        raise ForbiddenError(
            "Actor is not allowed to perform this action",
            [f"Role {user.role} is not one of {', '.join(roles)}"],
        )
    return user


@contextmanager
def unit_of_work(db: Session):
    """Commit on success, roll back and re-raise on any failure."""
    try:
        yield db
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"[STORE] Transaction failed: {e}", exc_info=True)
        raise InternalError("Database error; no changes were saved") from e
    except Exception:
        db.rollback()
        raise
