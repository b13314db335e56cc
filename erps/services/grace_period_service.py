# erps/services/grace_period_service.py
"""
Grace-period sweep: ACTIVE -> LAPSED once today > inspection_due_date + GRACE_PERIOD_DAYS
and no VERIFIED inspection dated on/after the due date exists.
Each warranty is lapsed in its own transaction; re-running the sweep is a no-op.
"""

from datetime import date, datetime, timedelta
from typing import Optional
from sqlalchemy.orm import Session
from erps.config import settings
from erps.models.inspection import Inspection
from erps.models.warranty import Warranty
from erps.services import record_store
from erps.services.audit_service import SYSTEM_ACTOR, AuditRecorder
from erps.services.lifecycle_rules import InspectionStatus, RecordType, WarrantyStatus, assert_transition
from erps.services.notification_service import LifecycleNotifier
from erps.utils.errors import InvalidStateError
from erps.utils.logger import get_logger

logger = get_logger(__name__)


def has_verified_inspection_since(db: Session, warranty_id: str, since: date) -> bool:
    return db.query(Inspection).filter(
        Inspection.warranty_id == warranty_id,
        Inspection.verification_status == InspectionStatus.VERIFIED.value,
        Inspection.inspection_date >= since,
        Inspection.is_deleted == False,  # noqa: E712
    ).first() is not None


def lapse_warranty(db: Session, warranty: Warranty, now: datetime) -> Optional[Warranty]:
    """Conditionally move one warranty to LAPSED with its audit row. None if it was no longer ACTIVE."""
    before = warranty.verification_status
    assert_transition(RecordType.WARRANTY, before, WarrantyStatus.LAPSED.value)
    with record_store.unit_of_work(db):
        updated = record_store.conditional_update(
            db, Warranty, warranty.id, before,
            {"verification_status": WarrantyStatus.LAPSED.value, "lapsed_at": now},
        )
        if updated is None:
            return None
        AuditRecorder(db).record(
            warranty.id, RecordType.WARRANTY, "GRACE_PERIOD_EXPIRED", before, WarrantyStatus.LAPSED.value,
            SYSTEM_ACTOR,
            reason=f"No verified inspection within {settings.GRACE_PERIOD_DAYS} days of {warranty.inspection_due_date}",
        )
    return updated


async def run_grace_period_sweep(db: Session, notifier: Optional[LifecycleNotifier] = None,
                                 today: Optional[date] = None) -> dict:
    notifier = notifier or LifecycleNotifier()
    today = today or date.today()
    cutoff = today - timedelta(days=settings.GRACE_PERIOD_DAYS)
    stats = {"checked": 0, "lapsed": 0, "skipped": 0}

    candidates = (
        db.query(Warranty)
        .filter(
            Warranty.verification_status == WarrantyStatus.ACTIVE.value,
            Warranty.is_deleted == False,  # noqa: E712
            Warranty.inspection_due_date.isnot(None),
            Warranty.inspection_due_date < cutoff,
        )
        .all()
    )
    logger.info(f"[GRACE] Sweep for {today}: {len(candidates)} warranty(ies) past the grace period")

    for warranty in candidates:
        stats["checked"] += 1
        if has_verified_inspection_since(db, warranty.id, warranty.inspection_due_date):
            stats["skipped"] += 1
            continue
        try:
            lapsed = lapse_warranty(db, warranty, datetime.utcnow())
        except InvalidStateError as e:
            logger.warning(f"[GRACE] Could not lapse {warranty.id}: {e.message}")
            lapsed = None
        if lapsed is None:
            stats["skipped"] += 1
            continue

        stats["lapsed"] += 1
        logger.warning(f"[GRACE] Warranty {warranty.id} LAPSED (due {lapsed.inspection_due_date})")
        await notifier.warranty_lapsed(lapsed)

    logger.info(f"[GRACE] Sweep done: {stats}")
    return stats
