# erps/services/reminder_service.py
"""
Inspection reminders and customer activation reminders.

Inspection tiers, from least to most advanced:
  DUE_IN_30, DUE_IN_14, DUE_IN_7, DUE_IN_1   (REMINDER_DAYS_BEFORE_DUE)
  OVERDUE_7, OVERDUE_30                       (REMINDER_DAYS_AFTER_DUE, only inside the grace period)

Each run sends at most one reminder per warranty: the most advanced tier reached.
The inspection_reminders row keyed on (warranty_id, tier, due_date) is written
before sending, so a re-run or a concurrent sweep never sends the same tier twice.
"""

from datetime import date, datetime, timedelta
from typing import Optional
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session
from erps.config import settings
from erps.models.inspection_reminder import InspectionReminder
from erps.models.verification_token import VerificationToken
from erps.models.warranty import Warranty
from erps.services import record_store
from erps.services.lifecycle_rules import TokenPurpose, WarrantyStatus
from erps.services.notification_service import LifecycleNotifier
from erps.utils.logger import get_logger

logger = get_logger(__name__)


def reminder_tier(due: date, today: date) -> Optional[str]:
    """Most advanced tier reached on `today` for an inspection due on `due`, or None."""
    days_until_due = (due - today).days
    if days_until_due >= 0:
        reached = [n for n in settings.REMINDER_DAYS_BEFORE_DUE if days_until_due <= n]
        return f"DUE_IN_{min(reached)}" if reached else None

    days_overdue = -days_until_due
    if days_overdue > settings.GRACE_PERIOD_DAYS:
        return None
    reached = [n for n in settings.REMINDER_DAYS_AFTER_DUE if days_overdue >= n]
    return f"OVERDUE_{max(reached)}" if reached else None


def _already_sent(db: Session, warranty_id: str, tier: str, due: date) -> bool:
    return db.query(InspectionReminder).filter(
        InspectionReminder.warranty_id == warranty_id,
        InspectionReminder.tier == tier,
        InspectionReminder.due_date == due,
    ).first() is not None


async def run_inspection_reminders(db: Session, notifier: Optional[LifecycleNotifier] = None,
                                   today: Optional[date] = None) -> dict:
    notifier = notifier or LifecycleNotifier()
    today = today or date.today()
    stats = {"checked": 0, "sent": 0, "delivered": 0, "skipped": 0}

    warranties = (
        db.query(Warranty)
        .filter(
            Warranty.verification_status == WarrantyStatus.ACTIVE.value,
            Warranty.is_deleted == False,  # noqa: E712
            Warranty.inspection_due_date.isnot(None),
        )
        .all()
    )
    logger.info(f"[REMINDER] Sweep for {today}: {len(warranties)} active warranty(ies)")

    for warranty in warranties:
        stats["checked"] += 1
        due = warranty.inspection_due_date
        tier = reminder_tier(due, today)
        if tier is None or _already_sent(db, warranty.id, tier, due):
            continue

        now = datetime.utcnow()
        ledger = InspectionReminder(warranty_id=warranty.id, tier=tier, due_date=due, delivered=False, sent_at=now)
        try:
            db.add(ledger)
            # Status guard only: the reminder bookkeeping must not resurrect a lapsed record
            updated = record_store.conditional_update(
                db, Warranty, warranty.id, WarrantyStatus.ACTIVE.value,
                {"last_reminder_tier": tier, "last_reminder_sent_at": now},
            )
            if updated is None:
                db.rollback()
                stats["skipped"] += 1
                continue
            db.commit()
        except IntegrityError:
            db.rollback()
            logger.info(f"[REMINDER] {tier} for {warranty.id} already claimed by another sweep")
            stats["skipped"] += 1
            continue

        stats["sent"] += 1
        delivered = await notifier.inspection_reminder(updated, tier, (due - today).days)
        if delivered:
            ledger.delivered = True
            db.commit()
            stats["delivered"] += 1
        else:
            logger.warning(f"[REMINDER] {tier} for warranty {warranty.id} recorded but not delivered")

    logger.info(f"[REMINDER] Sweep done: {stats}")
    return stats


async def run_activation_reminders(db: Session, notifier: Optional[LifecycleNotifier] = None,
                                   now: Optional[datetime] = None) -> dict:
    """Re-send activation links to customers who have not yet accepted their terms."""
    notifier = notifier or LifecycleNotifier()
    now = now or datetime.utcnow()
    stats = {"checked": 0, "sent": 0, "deactivated": 0}

    tokens = (
        db.query(VerificationToken)
        .filter(
            VerificationToken.purpose == TokenPurpose.CUSTOMER_ACTIVATION.value,
            VerificationToken.is_active == True,  # noqa: E712
            VerificationToken.expires_at > now,
            VerificationToken.created_at <= now - timedelta(hours=settings.ACTIVATION_REMINDER_MIN_AGE_HOURS),
            VerificationToken.reminders_sent < settings.ACTIVATION_REMINDER_MAX,
        )
        .all()
    )
    interval = timedelta(days=settings.ACTIVATION_REMINDER_INTERVAL_DAYS)

    for token in tokens:
        stats["checked"] += 1
        warranty = record_store.find_by_id(db, Warranty, token.record_id)
        if warranty is None or warranty.verification_status != WarrantyStatus.PENDING_CUSTOMER_ACTIVATION.value:
            token.is_active = False
            token.revoked_at = now
            db.commit()
            stats["deactivated"] += 1
            continue
        if token.last_reminder_sent_at and now - token.last_reminder_sent_at < interval:
            continue

        reminder_number = token.reminders_sent + 1
        claimed = (
            db.query(VerificationToken)
            .filter(VerificationToken.id == token.id, VerificationToken.reminders_sent == token.reminders_sent)
            .update({"reminders_sent": reminder_number, "last_reminder_sent_at": now}, synchronize_session=False)
        )
        db.commit()
        if claimed != 1:
            continue

        await notifier.customer_activation_requested(warranty, token.token, reminder_number=reminder_number)
        stats["sent"] += 1
        logger.info(f"[REMINDER] Activation reminder {reminder_number} sent for warranty {warranty.id}")

    return stats
