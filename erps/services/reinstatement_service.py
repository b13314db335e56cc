# erps/services/reinstatement_service.py
"""
Reinstatement Service: the only path from LAPSED back to ACTIVE.
"""

from dataclasses import dataclass
from datetime import date, datetime
from typing import Optional
from sqlalchemy import or_
from sqlalchemy.orm import Session
from erps.models.inspection import Inspection
from erps.models.reinstatement import Reinstatement
from erps.models.warranty import Warranty
from erps.services import record_store
from erps.services.audit_service import AuditRecorder
from erps.services.lifecycle_rules import (
    Channel, InspectionStatus, RecordType, UserRole, WarrantyStatus, assert_transition,
)
from erps.services.notification_service import LifecycleNotifier
from erps.utils.dates import as_date, next_inspection_due, roll_forward
from erps.utils.errors import InvalidStateError, ValidationError
from erps.utils.logger import get_logger

logger = get_logger(__name__)


@dataclass
class Eligibility:
    eligible: bool
    reason: str
    days_lapsed: Optional[int] = None
    has_qualifying_inspection: bool = False
    inspection_id: Optional[str] = None
    lapsed_at: Optional[datetime] = None


def _qualifying_inspection(db: Session, warranty: Warranty) -> Optional[Inspection]:
    """Latest VERIFIED inspection verified after the lapse or dated on/after the missed due date."""
    clauses = []
    if warranty.lapsed_at is not None:
        clauses.append(Inspection.verified_at >= warranty.lapsed_at)
    if warranty.inspection_due_date is not None:
        clauses.append(Inspection.inspection_date >= warranty.inspection_due_date)
    if not clauses:
        return None
    return (
        db.query(Inspection)
        .filter(
            Inspection.warranty_id == warranty.id,
            Inspection.verification_status == InspectionStatus.VERIFIED.value,
            Inspection.is_deleted == False,  # noqa: E712
            or_(*clauses),
        )
        .order_by(Inspection.inspection_date.desc())
        .first()
    )


def check_eligibility(db: Session, warranty_id: str, today: Optional[date] = None) -> Eligibility:
    today = today or date.today()
    warranty = record_store.get_or_404(db, Warranty, warranty_id, "Warranty")
    if warranty.verification_status != WarrantyStatus.LAPSED.value:
        return Eligibility(False, f"Warranty is {warranty.verification_status}, only LAPSED warranties can be reinstated")

    days_lapsed = (today - as_date(warranty.lapsed_at)).days if warranty.lapsed_at else None
    inspection = _qualifying_inspection(db, warranty)
    if inspection:
        reason = f"Verified inspection {inspection.id} on {inspection.inspection_date} qualifies"
    else:
        reason = "Eligible; no verified inspection since the lapse, due date will roll forward"
    return Eligibility(
        eligible=True,
        reason=reason,
        days_lapsed=days_lapsed,
        has_qualifying_inspection=inspection is not None,
        inspection_id=inspection.id if inspection else None,
        lapsed_at=warranty.lapsed_at,
    )


def _new_due_date(warranty: Warranty, inspection: Optional[Inspection], today: date) -> date:
    if inspection is not None:
        if inspection.warranty_extended_until:
            return inspection.warranty_extended_until
        if inspection.inspection_date:
            return next_inspection_due(inspection.inspection_date)
    base = warranty.inspection_due_date or next_inspection_due(warranty.date_installed or today)
    return roll_forward(base, today)


async def reinstate(db: Session, warranty_id: str, actor_id: str, reason: Optional[str],
                    inspection_id: Optional[str] = None, notes: Optional[str] = None,
                    notifier: Optional[LifecycleNotifier] = None, today: Optional[date] = None) -> Warranty:
    notifier = notifier or LifecycleNotifier()
    today = today or date.today()
    actor = record_store.require_actor(db, actor_id, UserRole.ADMIN.value)
    warranty = record_store.get_or_404(db, Warranty, warranty_id, "Warranty")
    if warranty.verification_status != WarrantyStatus.LAPSED.value:
        raise InvalidStateError(
            "Only lapsed warranties can be reinstated",
            [f"Current status is {warranty.verification_status}"],
        )
    if reason is None or not reason.strip():
        raise ValidationError("Reinstatement reason is required", ["reason must not be empty"])

    inspection = None
    if inspection_id:
        inspection = record_store.find_by_id(db, Inspection, inspection_id)
        if (inspection is None
                or inspection.warranty_id != warranty.id
                or inspection.verification_status != InspectionStatus.VERIFIED.value):
            raise ValidationError(
                "Inspection does not qualify for reinstatement",
                [f"Inspection {inspection_id} is not a verified inspection of warranty {warranty.id}"],
            )

    before = warranty.verification_status
    assert_transition(RecordType.WARRANTY, before, WarrantyStatus.ACTIVE.value, Channel.REINSTATEMENT)
    now = datetime.utcnow()
    new_due = _new_due_date(warranty, inspection, today)
    previous_lapsed_at = warranty.lapsed_at

    with record_store.unit_of_work(db):
        updated = record_store.conditional_update(
            db, Warranty, warranty.id, before,
            {
                "verification_status": WarrantyStatus.ACTIVE.value,
                "inspection_due_date": new_due,
                "lapsed_at": None,
                "last_reminder_tier": None,
                "last_reminder_sent_at": None,
            },
        )
        if updated is None:
            raise InvalidStateError(
                "Warranty was changed by another request",
                [f"Expected status {before}; retry with the current state"],
            )
        db.add(Reinstatement(
            warranty_id=warranty.id,
            reinstated_by=actor.id,
            reason=reason.strip(),
            inspection_id=inspection.id if inspection else None,
            notes=notes,
            previous_lapsed_at=previous_lapsed_at,
            new_inspection_due_date=new_due,
            reinstated_at=now,
        ))
        AuditRecorder(db).record(
            warranty.id, RecordType.WARRANTY, "REINSTATED", before, WarrantyStatus.ACTIVE.value, actor.id,
            reason=reason.strip(), notes=notes,
        )

    logger.info(f"[REINSTATE] Warranty {warranty.id} reinstated by {actor.id}; next inspection due {new_due}")
    await notifier.warranty_reinstated(updated)
    return updated


def history(db: Session, warranty_id: str) -> list[Reinstatement]:
    record_store.get_or_404(db, Warranty, warranty_id, "Warranty")
    return (
        db.query(Reinstatement)
        .filter(Reinstatement.warranty_id == warranty_id)
        .order_by(Reinstatement.reinstated_at.desc())
        .all()
    )
