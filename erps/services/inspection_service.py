# erps/services/inspection_service.py
"""
Annual Inspection Lifecycle Manager.

DRAFT -> SUBMITTED -> VERIFIED | REJECTED

A VERIFIED inspection extends its warranty: warranty_extended_until is
inspection_date + INSPECTION_INTERVAL_MONTHS and the parent's inspection_due_date
is pushed forward to it (never backwards). This is the only path that advances
a due date after activation.
"""

from datetime import date, datetime
from typing import Optional
from sqlalchemy.orm import Session
from erps.models.inspection import CHECKLIST_FIELDS, INSPECTION_AREAS, Inspection
from erps.models.photo import Photo
from erps.models.warranty import Warranty
from erps.services import record_store
from erps.services.audit_service import AuditRecorder
from erps.services.evidence_gate import validate_inspection
from erps.services.lifecycle_rules import (
    Channel, InspectionStatus, RecordType, TokenPurpose, UserRole, WarrantyStatus,
    assert_transition, parse_status,
)
from erps.services.notification_service import LifecycleNotifier
from erps.services.token_service import TokenService
from erps.services.warranty_service import _blank, _token_fields, validate_verify_input
from erps.utils.dates import next_inspection_due
from erps.utils.errors import (
    ForbiddenError, InvalidStateError, TokenInvalidError, ValidationError,
)
from erps.utils.logger import get_logger

logger = get_logger(__name__)

DRAFT_FIELDS = (
    ("inspection_date", "corrosion_found", "corrosion_details")
    + CHECKLIST_FIELDS
    + tuple(f"{area}_condition" for area in INSPECTION_AREAS)
    + tuple(f"{area}_notes" for area in INSPECTION_AREAS)
)


class InspectionLifecycle:
    def __init__(self, db: Session, notifier: Optional[LifecycleNotifier] = None):
        self.db = db
        self.tokens = TokenService(db)
        self.audit = AuditRecorder(db)
        self.notifier = notifier or LifecycleNotifier()

    def _transition(self, inspection: Inspection, target: InspectionStatus, patch: dict, action_type: str,
                    performed_by: str, channel: Channel = Channel.LIFECYCLE, reason: str = None,
                    notes: str = None, is_override: bool = False) -> Inspection:
        before = inspection.verification_status
        assert_transition(RecordType.INSPECTION, before, target.value, channel)

        values = dict(patch)
        values["verification_status"] = target.value
        updated = record_store.conditional_update(self.db, Inspection, inspection.id, before, values)
        if updated is None:
            raise InvalidStateError(
                "Inspection was changed by another request",
                [f"Expected status {before}; retry with the current state"],
            )
        self.audit.record(
            inspection.id, RecordType.INSPECTION, action_type, before, target.value, performed_by,
            reason=reason, notes=notes, is_override=is_override,
        )
        logger.info(f"[INSPECTION] {inspection.id}: {before} -> {target.value} ({action_type})")
        return updated

    def _extend_warranty(self, inspection: Inspection) -> Optional[date]:
        """Set warranty_extended_until and push it onto the parent's due date. Inside the caller's unit of work."""
        if inspection.inspection_date is None:
            return None
        extended_until = next_inspection_due(inspection.inspection_date)
        warranty = record_store.find_by_id(self.db, Warranty, inspection.warranty_id)
        if warranty is None:
            return extended_until

        patch = {"last_reminder_tier": None, "last_reminder_sent_at": None}
        if warranty.inspection_due_date is None or extended_until > warranty.inspection_due_date:
            patch["inspection_due_date"] = extended_until
        record_store.update_fields(self.db, Warranty, warranty.id, patch)
        logger.info(
            f"[INSPECTION] Warranty {warranty.id} covered until "
            f"{patch.get('inspection_due_date', warranty.inspection_due_date)}"
        )
        return extended_until

    def _photos(self, inspection_id: str) -> list[Photo]:
        return (
            self.db.query(Photo)
            .filter(Photo.inspection_id == inspection_id, Photo.is_deleted == False)  # noqa: E712
            .all()
        )

    def _require_draft(self, inspection: Inspection):
        if inspection.verification_status != InspectionStatus.DRAFT.value:
            raise InvalidStateError(
                "Inspection is no longer a draft",
                [f"Current status is {inspection.verification_status}"],
            )

    def get(self, inspection_id: str) -> Inspection:
        return record_store.get_or_404(self.db, Inspection, inspection_id, "Inspection")

    def photos(self, inspection_id: str) -> list[Photo]:
        self.get(inspection_id)
        return self._photos(inspection_id)

    def for_warranty(self, warranty_id: str) -> list[Inspection]:
        return (
            self.db.query(Inspection)
            .filter(Inspection.warranty_id == warranty_id, Inspection.is_deleted == False)  # noqa: E712
            .order_by(Inspection.created_at.desc())
            .all()
        )

    # ── Draft editing ─────────────────────────────────────────────────────
    def create(self, warranty_id: str, inspector_id: str, fields: dict,
               evidence: Optional[list[dict]] = None) -> Inspection:
        problems = []
        warranty = record_store.find_by_id(self.db, Warranty, warranty_id) if warranty_id else None
        if warranty is None:
            problems.append(f"Warranty {warranty_id} does not exist")
        elif warranty.verification_status != WarrantyStatus.ACTIVE.value:
            problems.append(f"Warranty must be ACTIVE to record an inspection (is {warranty.verification_status})")

        inspector = record_store.find_user(self.db, inspector_id)
        if inspector is None or inspector.role != UserRole.INSPECTOR.value or not inspector.is_certified:
            problems.append(f"Inspector {inspector_id} is not a certified inspector")
        if problems:
            raise ValidationError("Inspection could not be created", problems)

        now = datetime.utcnow()
        inspection = Inspection(
            **{name: fields[name] for name in DRAFT_FIELDS if name in fields},
            warranty_id=warranty.id,
            inspector_id=inspector.id,
            verification_status=InspectionStatus.DRAFT.value,
            is_deleted=False,
            created_at=now,
            modified_at=now,
        )
        with record_store.unit_of_work(self.db):
            self.db.add(inspection)
            self.db.flush()
            for item in evidence or []:
                self.db.add(self._new_photo(inspection.id, item, now))
        logger.info(f"[INSPECTION] Created draft {inspection.id} for warranty {warranty.id}")
        return inspection

    @staticmethod
    def _new_photo(inspection_id: str, item: dict, now: datetime) -> Photo:
        if _blank(item.get("url")):
            raise ValidationError("Photo could not be attached", ["Photo url is required"])
        return Photo(
            inspection_id=inspection_id,
            category=item.get("category"),
            url=item["url"],
            description=item.get("description"),
            is_deleted=False,
            uploaded_at=now,
        )

    def update_draft(self, inspection_id: str, fields: dict) -> Inspection:
        inspection = self.get(inspection_id)
        self._require_draft(inspection)
        patch = {name: value for name, value in fields.items() if name in DRAFT_FIELDS}
        with record_store.unit_of_work(self.db):
            inspection = record_store.update_fields(self.db, Inspection, inspection.id, patch)
        return inspection

    def attach_photo(self, inspection_id: str, item: dict) -> Photo:
        inspection = self.get(inspection_id)
        self._require_draft(inspection)
        photo = self._new_photo(inspection.id, item, datetime.utcnow())
        with record_store.unit_of_work(self.db):
            self.db.add(photo)
        return photo

    # ── Transitions ───────────────────────────────────────────────────────
    async def submit(self, inspection_id: str, actor_id: str) -> Inspection:
        actor = record_store.require_actor(self.db, actor_id)
        inspection = self.get(inspection_id)
        if actor.role != UserRole.ADMIN.value and actor.id != inspection.inspector_id:
            raise ForbiddenError("Only the inspector or an admin can submit an inspection")
        self._require_draft(inspection)

        gate = validate_inspection(inspection, self._photos(inspection.id))
        if not gate.passed:
            logger.info(f"[INSPECTION] Submit of {inspection.id} blocked: {len(gate.violations)} issue(s)")
            raise ValidationError("Inspection is not ready for submission", gate.violations)

        now = datetime.utcnow()
        with record_store.unit_of_work(self.db):
            token = self.tokens.issue(inspection.id, TokenPurpose.INSPECTION_VERIFICATION, now)
            token_value = token.token
            inspection = self._transition(
                inspection, InspectionStatus.SUBMITTED,
                {**_token_fields(token), "submitted_by": actor.id, "submitted_at": now},
                "SUBMIT", actor.id,
            )

        warranty = record_store.find_by_id(self.db, Warranty, inspection.warranty_id)
        inspector = record_store.find_user(self.db, inspection.inspector_id)
        await self.notifier.inspection_verification_requested(inspection, warranty, inspector, token_value)
        return inspection

    async def verify(self, token: str, action: str, reason: Optional[str] = None) -> Inspection:
        action = validate_verify_input(action, reason)
        now = datetime.utcnow()
        row = self.tokens.resolve(token, TokenPurpose.INSPECTION_VERIFICATION, now)
        inspection = record_store.find_by_id(self.db, Inspection, row.record_id)
        if (inspection is None
                or inspection.verification_status != InspectionStatus.SUBMITTED.value
                or inspection.verification_token != token):
            raise TokenInvalidError("Invalid or already used link", ["No submitted inspection holds this token"])

        inspector_id = inspection.inspector_id
        with record_store.unit_of_work(self.db):
            self.tokens.consume(token, now)
            if action == "CONFIRM":
                extended_until = self._extend_warranty(inspection)
                inspection = self._transition(
                    inspection, InspectionStatus.VERIFIED,
                    {
                        **_token_fields(),
                        "verified_by": inspector_id,
                        "verified_at": now,
                        "warranty_extended_until": extended_until,
                    },
                    "VERIFY", inspector_id,
                )
            else:
                inspection = self._transition(
                    inspection, InspectionStatus.REJECTED,
                    {**_token_fields(), "rejection_reason": reason.strip()},
                    "REJECT", inspector_id, reason=reason.strip(),
                )
        return inspection

    # ── Admin ─────────────────────────────────────────────────────────────
    async def admin_override(self, inspection_id: str, actor_id: str, target_status: str, reason: Optional[str],
                             notes: Optional[str] = None) -> Inspection:
        actor = record_store.require_actor(self.db, actor_id, UserRole.ADMIN.value)
        if _blank(reason):
            raise ValidationError("Override reason is required", ["reason must not be empty"])
        target = parse_status(RecordType.INSPECTION, target_status)
        if target is None:
            raise ValidationError("Unknown target status", [f"{target_status} is not an inspection status"])
        inspection = self.get(inspection_id)
        before = InspectionStatus(inspection.verification_status)
        assert_transition(RecordType.INSPECTION, before.value, target.value, Channel.OVERRIDE)

        now = datetime.utcnow()
        patch = {}
        verification_value = None
        with record_store.unit_of_work(self.db):
            if before == InspectionStatus.SUBMITTED:
                self.tokens.invalidate_for_record(inspection.id, TokenPurpose.INSPECTION_VERIFICATION)
                patch.update(_token_fields())

            if target == InspectionStatus.SUBMITTED:
                token = self.tokens.issue(inspection.id, TokenPurpose.INSPECTION_VERIFICATION, now)
                verification_value = token.token
                patch.update({**_token_fields(token), "submitted_by": actor.id, "submitted_at": now})
            elif target == InspectionStatus.VERIFIED:
                patch.update({
                    "verified_by": actor.id,
                    "verified_at": now,
                    "warranty_extended_until": self._extend_warranty(inspection),
                })
            elif target == InspectionStatus.REJECTED:
                patch["rejection_reason"] = reason.strip()

            inspection = self._transition(
                inspection, target, patch, "ADMIN_OVERRIDE", actor.id, channel=Channel.OVERRIDE,
                reason=reason.strip(), notes=notes, is_override=True,
            )

        logger.warning(
            f"[INSPECTION] Admin override on {inspection.id}: {before.value} -> {target.value} by {actor.id}"
        )
        if verification_value:
            warranty = record_store.find_by_id(self.db, Warranty, inspection.warranty_id)
            inspector = record_store.find_user(self.db, inspection.inspector_id)
            await self.notifier.inspection_verification_requested(inspection, warranty, inspector, verification_value)
        return inspection

    async def admin_verify(self, inspection_id: str, actor_id: str, reason: Optional[str],
                           notes: Optional[str] = None) -> Inspection:
        """Manual verification when the inspector is unreachable."""
        return await self.admin_override(
            inspection_id, actor_id, InspectionStatus.VERIFIED.value, reason,
            notes=notes or "Manual verification by ERPS admin - inspector unavailable",
        )
