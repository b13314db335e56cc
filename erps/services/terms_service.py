# erps/services/terms_service.py
"""
Warranty terms the customer reviews and accepts on the activation page.

Admins publish terms as ADD_WARRANTY (another active option) or REPLACE_WARRANTY
(supersedes an existing row, which is deactivated in the same transaction).
Warranties registered without terms are offered STANDARD_TERMS.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from erps.config import settings
from erps.models.warranty import Warranty
from erps.models.warranty_terms import WarrantyTerms
from erps.services import record_store
from erps.services.lifecycle_rules import UserRole
from erps.utils.errors import NotFoundError, ValidationError
from erps.utils.logger import get_logger

logger = get_logger(__name__)

ADD_TYPES = ("ADD_WARRANTY", "REPLACE_WARRANTY")
REQUIRED_FIELDS = ("warranty_name", "revision", "add_type")
TERMS_FIELDS = (
    "warranty_name", "description", "revision", "generator_light_colour",
    "terms_and_conditions", "inspection_instructions",
)

STANDARD_TERMS = {
    "id": None,
    "warranty_name": "ERPS Standard Warranty",
    "description": "Electronic Rust Protection System Warranty",
    "revision": "1.0",
    "terms_and_conditions": (
        "1. WARRANTY COVERAGE\n"
        "This warranty covers the ERPS unit installed in your vehicle against defects in materials "
        "and workmanship.\n\n"
        "2. ANNUAL INSPECTION REQUIREMENT\n"
        f"Coverage requires an annual inspection every {settings.INSPECTION_INTERVAL_MONTHS} months. "
        f"A {settings.GRACE_PERIOD_DAYS}-day grace period applies after each due date, after which "
        "the warranty lapses.\n\n"
        "3. CUSTOMER RESPONSIBILITIES\n"
        "Complete inspections on time, report issues promptly to your installer and do not tamper "
        "with the ERPS unit.\n\n"
        "4. EXCLUSIONS\n"
        "Accident damage, misuse, modification, unauthorised repairs and normal wear and tear.\n\n"
        "5. LIMITATION OF LIABILITY\n"
        "Liability is limited to repair or replacement of the ERPS unit."
    ),
}


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def _as_dict(terms: WarrantyTerms) -> dict:
    return {
        "id": terms.id,
        "warranty_name": terms.warranty_name,
        "description": terms.description,
        "revision": terms.revision,
        "terms_and_conditions": terms.terms_and_conditions,
    }


def get_terms(db: Session, terms_id: str) -> WarrantyTerms:
    return record_store.get_or_404(db, WarrantyTerms, terms_id, "Warranty terms")


def list_terms(db: Session, active_only: bool = False) -> list[WarrantyTerms]:
    q = db.query(WarrantyTerms).filter(WarrantyTerms.is_deleted == False)  # noqa: E712
    if active_only:
        q = q.filter(WarrantyTerms.is_active == True)  # noqa: E712
    return q.order_by(WarrantyTerms.created_at.desc()).all()


def require_offerable(db: Session, terms_id: Optional[str]) -> Optional[str]:
    """Validate terms chosen at registration. Returns the id, or None for the standard terms."""
    if _blank(terms_id):
        return None
    terms = record_store.find_by_id(db, WarrantyTerms, terms_id)
    if terms is None or not terms.is_active:
        raise ValidationError("Unknown warranty terms", [f"No active warranty terms with id {terms_id}"])
    return terms.id


def terms_for_warranty(db: Session, warranty: Warranty) -> dict:
    """Terms shown to the customer: the warranty's own terms row, else the standard terms."""
    if warranty.warranty_terms_id:
        terms = record_store.find_by_id(db, WarrantyTerms, warranty.warranty_terms_id, include_deleted=True)
        if terms is not None:
            return _as_dict(terms)
        logger.warning(f"[TERMS] Warranty {warranty.id} points at missing terms {warranty.warranty_terms_id}")
    return dict(STANDARD_TERMS)


def acceptance_label(terms: dict) -> str:
    return f"{terms['warranty_name']} rev {terms['revision']}"


def create_terms(db: Session, actor_id: Optional[str], fields: dict) -> WarrantyTerms:
    actor = record_store.require_actor(db, actor_id, UserRole.ADMIN.value)
    missing = [f"{name} is required" for name in REQUIRED_FIELDS if _blank(fields.get(name))]
    if missing:
        raise ValidationError("Warranty terms could not be created", missing)

    add_type = fields["add_type"].strip().upper()
    if add_type not in ADD_TYPES:
        raise ValidationError("Invalid addType", ["addType must be ADD_WARRANTY or REPLACE_WARRANTY"])

    replaced = None
    if add_type == "REPLACE_WARRANTY":
        replace_id = fields.get("warranty_to_replace_id")
        if _blank(replace_id):
            raise ValidationError(
                "Warranty terms could not be created",
                ["warrantyToReplaceId is required when addType is REPLACE_WARRANTY"],
            )
        replaced = record_store.find_by_id(db, WarrantyTerms, replace_id)
        if replaced is None:
            raise NotFoundError("Warranty terms to replace not found", [f"No warranty terms with id {replace_id}"])

    now = datetime.utcnow()
    terms = WarrantyTerms(
        **{name: fields[name] for name in TERMS_FIELDS if name in fields},
        add_type=add_type,
        warranty_to_replace_id=replaced.id if replaced else None,
        is_active=bool(fields.get("is_active", True)),
        is_deleted=False,
        created_by=actor.id,
        created_at=now,
        modified_at=now,
    )
    with record_store.unit_of_work(db):
        db.add(terms)
        if replaced is not None:
            replaced.is_active = False
            replaced.modified_at = now
    logger.info(f"[TERMS] Published {terms.warranty_name} rev {terms.revision} ({add_type}) by {actor.id}")
    return terms
