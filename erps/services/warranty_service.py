# erps/services/warranty_service.py
"""
Warranty Lifecycle Manager.

DRAFT -> SUBMITTED -> REJECTED
                   -> PENDING_CUSTOMER_ACTIVATION -> ACTIVE -> LAPSED
(LAPSED -> ACTIVE only through reinstatement_service)

Every status change goes through _transition(): legality check, guarded UPDATE,
one audit row, all inside the same unit of work. Notifications are sent after commit.
"""

from datetime import datetime
from typing import Optional
from sqlalchemy.orm import Session
from erps.models.photo import Photo
from erps.models.warranty import Warranty
from erps.services import record_store, terms_service
from erps.services.audit_service import AuditRecorder
from erps.services.evidence_gate import validate_warranty
from erps.services.lifecycle_rules import (
    Channel, RecordType, TokenPurpose, UserRole, WarrantyStatus, assert_transition, parse_status,
)
from erps.services.notification_service import LifecycleNotifier
from erps.services.token_service import TokenService
from erps.utils.dates import next_inspection_due
from erps.utils.errors import (
    ActivationLinkError, ConflictError, ForbiddenError, InvalidStateError, TokenInvalidError, ValidationError,
)
from erps.utils.logger import get_logger

logger = get_logger(__name__)

CUSTOMER_ACTOR = "CUSTOMER"

OWNER_REQUIRED_FIELDS = ("first_name", "last_name", "email", "phone_number")

# Fields an agent may set while the record is a DRAFT
DRAFT_FIELDS = (
    "first_name", "last_name", "company_name", "email", "phone_number",
    "make", "model", "registration_number", "vin_number", "generator_serial_number",
    "number_of_couplers", "date_installed", "corrosion_found", "corrosion_details", "warranty_terms_id",
)

VERIFY_ACTIONS = ("CONFIRM", "DECLINE")


def _blank(value) -> bool:
    return value is None or not str(value).strip()


def _token_fields(token=None) -> dict:
    return {
        "verification_token": token.token if token else None,
        "verification_token_expires_at": token.expires_at if token else None,
    }


def validate_verify_input(action: Optional[str], reason: Optional[str]) -> str:
    """Shared CONFIRM/DECLINE input check for warranties and inspections."""
    action = (action or "").strip().upper()
    if action not in VERIFY_ACTIONS:
        raise ValidationError("Invalid verification action", ["action must be CONFIRM or DECLINE"])
    if action == "DECLINE" and _blank(reason):
        raise ValidationError("A rejection reason is required", ["rejectionReason is required when declining"])
    return action


class WarrantyLifecycle:
    def __init__(self, db: Session, notifier: Optional[LifecycleNotifier] = None):
        self.db = db
        self.tokens = TokenService(db)
        self.audit = AuditRecorder(db)
        self.notifier = notifier or LifecycleNotifier()

    # ── Internal ──────────────────────────────────────────────────────────
    def _transition(self, warranty: Warranty, target: WarrantyStatus, patch: dict, action_type: str,
                    performed_by: str, channel: Channel = Channel.LIFECYCLE, reason: str = None,
                    notes: str = None, is_override: bool = False, ip_address: str = None) -> Warranty:
        before = warranty.verification_status
        assert_transition(RecordType.WARRANTY, before, target.value, channel)

        values = dict(patch)
        values["verification_status"] = target.value
        updated = record_store.conditional_update(self.db, Warranty, warranty.id, before, values)
        if updated is None:
            raise InvalidStateError(
                "Warranty was changed by another request",
                [f"Expected status {before}; retry with the current state"],
            )
        self.audit.record(
            warranty.id, RecordType.WARRANTY, action_type, before, target.value, performed_by,
            reason=reason, notes=notes, is_override=is_override, ip_address=ip_address,
        )
        logger.info(f"[WARRANTY] {warranty.id}: {before} -> {target.value} ({action_type})")
        return updated

    def _photos(self, warranty_id: str) -> list[Photo]:
        return (
            self.db.query(Photo)
            .filter(Photo.warranty_id == warranty_id, Photo.is_deleted == False)  # noqa: E712
            .all()
        )

    def _require_draft(self, warranty: Warranty):
        if warranty.verification_status != WarrantyStatus.DRAFT.value:
            raise InvalidStateError(
                "Warranty is no longer a draft",
                [f"Current status is {warranty.verification_status}"],
            )

    # ── Reads ─────────────────────────────────────────────────────────────
    def get(self, warranty_id: str) -> Warranty:
        return record_store.get_or_404(self.db, Warranty, warranty_id, "Warranty")

    def photos(self, warranty_id: str) -> list[Photo]:
        self.get(warranty_id)
        return self._photos(warranty_id)

    # ── Draft editing ─────────────────────────────────────────────────────
    def create(self, fields: dict, installer_id: Optional[str], evidence: Optional[list[dict]] = None,
               agent_id: Optional[str] = None) -> Warranty:
        agent = record_store.require_actor(self.db, agent_id, UserRole.AGENT.value, UserRole.ADMIN.value)
        missing = [f"{name} is required" for name in OWNER_REQUIRED_FIELDS if _blank(fields.get(name))]
        if _blank(installer_id):
            missing.append("installer_id is required")
        else:
            installer = record_store.find_user(self.db, installer_id)
            if installer is None or installer.role != UserRole.INSTALLER.value or not installer.is_accredited:
                missing.append(f"Installer {installer_id} is not an accredited installer")
        if missing:
            raise ValidationError("Warranty could not be created", missing)

        vin = fields.get("vin_number")
        if not _blank(vin):
            self._assert_vin_free(vin)
        terms_id = terms_service.require_offerable(self.db, fields.get("warranty_terms_id"))
        fields = {**fields, "warranty_terms_id": terms_id}

        now = datetime.utcnow()
        warranty = Warranty(
            **{name: fields[name] for name in DRAFT_FIELDS if name in fields},
            installer_id=installer_id,
            agent_id=agent.id,
            verification_status=WarrantyStatus.DRAFT.value,
            is_deleted=False,
            created_at=now,
            modified_at=now,
        )
        with record_store.unit_of_work(self.db):
            self.db.add(warranty)
            self.db.flush()
            for item in evidence or []:
                self.db.add(self._new_photo(warranty.id, item, now))
        logger.info(f"[WARRANTY] Created draft {warranty.id} (installer={installer_id}, agent={agent.id})")
        return warranty

    def _assert_vin_free(self, vin: str, exclude_id: Optional[str] = None):
        q = self.db.query(Warranty).filter(
            Warranty.vin_number == vin,
            Warranty.is_deleted == False,  # noqa: E712
            Warranty.verification_status != WarrantyStatus.REJECTED.value,
        )
        if exclude_id:
            q = q.filter(Warranty.id != exclude_id)
        existing = q.first()
        if existing:
            raise ConflictError("VIN already registered", [f"VIN {vin} belongs to warranty {existing.id}"])

    @staticmethod
    def _new_photo(warranty_id: str, item: dict, now: datetime) -> Photo:
        if _blank(item.get("url")):
            raise ValidationError("Photo could not be attached", ["Photo url is required"])
        return Photo(
            warranty_id=warranty_id,
            category=item.get("category"),
            url=item["url"],
            description=item.get("description"),
            is_deleted=False,
            uploaded_at=now,
        )

    def update_draft(self, warranty_id: str, fields: dict) -> Warranty:
        warranty = self.get(warranty_id)
        self._require_draft(warranty)
        patch = {name: value for name, value in fields.items() if name in DRAFT_FIELDS}
        if not _blank(patch.get("vin_number")):
            self._assert_vin_free(patch["vin_number"], exclude_id=warranty.id)
        if "warranty_terms_id" in patch:
            patch["warranty_terms_id"] = terms_service.require_offerable(self.db, patch["warranty_terms_id"])
        with record_store.unit_of_work(self.db):
            warranty = record_store.update_fields(self.db, Warranty, warranty.id, patch)
        return warranty

    def attach_photo(self, warranty_id: str, item: dict) -> Photo:
        warranty = self.get(warranty_id)
        self._require_draft(warranty)
        photo = self._new_photo(warranty.id, item, datetime.utcnow())
        with record_store.unit_of_work(self.db):
            self.db.add(photo)
        return photo

    def soft_delete(self, warranty_id: str, actor_id: str) -> Warranty:
        actor = record_store.require_actor(self.db, actor_id)
        warranty = self.get(warranty_id)
        if actor.role != UserRole.ADMIN.value and actor.id != warranty.agent_id:
            raise ForbiddenError("Only the registering agent or an admin can delete a warranty")
        if warranty.verification_status not in (WarrantyStatus.DRAFT.value, WarrantyStatus.REJECTED.value):
            raise InvalidStateError(
                "Only draft or rejected warranties can be deleted",
                [f"Current status is {warranty.verification_status}"],
            )
        status = warranty.verification_status
        with record_store.unit_of_work(self.db):
            warranty = record_store.update_fields(self.db, Warranty, warranty.id, {"is_deleted": True})
            self.audit.record(warranty.id, RecordType.WARRANTY, "DELETED", status, status, actor.id)
        return warranty

    # ── Transitions ───────────────────────────────────────────────────────
    async def submit(self, warranty_id: str, actor_id: str) -> Warranty:
        actor = record_store.require_actor(self.db, actor_id)
        warranty = self.get(warranty_id)
        if actor.role != UserRole.ADMIN.value and actor.id not in (warranty.agent_id, warranty.installer_id):
            raise ForbiddenError("Only the registering agent, the installer or an admin can submit")
        self._require_draft(warranty)

        gate = validate_warranty(warranty, self._photos(warranty.id))
        if not gate.passed:
            logger.info(f"[WARRANTY] Submit of {warranty.id} blocked: {len(gate.violations)} issue(s)")
            raise ValidationError("Warranty is not ready for submission", gate.violations)

        now = datetime.utcnow()
        with record_store.unit_of_work(self.db):
            token = self.tokens.issue(warranty.id, TokenPurpose.WARRANTY_VERIFICATION, now)
            token_value = token.token
            warranty = self._transition(
                warranty, WarrantyStatus.SUBMITTED,
                {**_token_fields(token), "submitted_by": actor.id, "submitted_at": now},
                "SUBMIT", actor.id,
            )

        installer = record_store.find_user(self.db, warranty.installer_id)
        await self.notifier.warranty_verification_requested(warranty, installer, token_value)
        return warranty

    async def verify(self, token: str, action: str, reason: Optional[str] = None) -> Warranty:
        action = validate_verify_input(action, reason)
        now = datetime.utcnow()
        row = self.tokens.resolve(token, TokenPurpose.WARRANTY_VERIFICATION, now)
        warranty = record_store.find_by_id(self.db, Warranty, row.record_id)
        if (warranty is None
                or warranty.verification_status != WarrantyStatus.SUBMITTED.value
                or warranty.verification_token != token):
            raise TokenInvalidError("Invalid or already used link", ["No submitted warranty holds this token"])

        installer_id = warranty.installer_id
        activation_value = None
        with record_store.unit_of_work(self.db):
            self.tokens.consume(token, now)
            if action == "CONFIRM":
                activation = self.tokens.issue(warranty.id, TokenPurpose.CUSTOMER_ACTIVATION, now)
                activation_value = activation.token
                warranty = self._transition(
                    warranty, WarrantyStatus.PENDING_CUSTOMER_ACTIVATION,
                    {**_token_fields(), "verified_by": installer_id, "verified_at": now},
                    "VERIFY", installer_id,
                )
            else:
                warranty = self._transition(
                    warranty, WarrantyStatus.REJECTED,
                    {**_token_fields(), "rejection_reason": reason.strip()},
                    "REJECT", installer_id, reason=reason.strip(),
                )

        if activation_value:
            await self.notifier.customer_activation_requested(warranty, activation_value)
        else:
            agent = record_store.find_user(self.db, warranty.agent_id)
            await self.notifier.warranty_rejected(warranty, agent, warranty.rejection_reason)
        return warranty

    def _pending_activation(self, token: str, now: Optional[datetime] = None):
        row = self.tokens.resolve(token, TokenPurpose.CUSTOMER_ACTIVATION, now)
        warranty = record_store.find_by_id(self.db, Warranty, row.record_id)
        if warranty is None or warranty.verification_status != WarrantyStatus.PENDING_CUSTOMER_ACTIVATION.value:
            raise ActivationLinkError("Invalid or expired activation link", ["Warranty is not awaiting activation"])
        return row, warranty

    def get_activation_details(self, token: str) -> dict:
        row, warranty = self._pending_activation(token)
        terms = terms_service.terms_for_warranty(self.db, warranty)
        return {
            "warranty_id": warranty.id,
            "customer_name": warranty.customer_name,
            "company_name": warranty.company_name,
            "vehicle": f"{warranty.make or ''} {warranty.model or ''}".strip(),
            "vin_number": warranty.vin_number,
            "registration_number": warranty.registration_number,
            "date_installed": warranty.date_installed,
            "generator_serial_number": warranty.generator_serial_number,
            "verification_status": warranty.verification_status,
            "token_expires_at": row.expires_at,
            "terms_name": terms["warranty_name"],
            "terms_revision": terms["revision"],
        }

    def get_activation_terms(self, token: str) -> dict:
        _, warranty = self._pending_activation(token)
        return {"warranty_id": warranty.id, "terms": terms_service.terms_for_warranty(self.db, warranty)}

    async def customer_accept(self, token: str, ip_address: Optional[str], accept_terms: bool = True,
                              signature: Optional[str] = None) -> Warranty:
        if not accept_terms:
            raise ValidationError("Terms must be accepted", ["acceptTerms must be true to activate the warranty"])
        now = datetime.utcnow()
        _, warranty = self._pending_activation(token, now)
        accepted = terms_service.acceptance_label(terms_service.terms_for_warranty(self.db, warranty))
        notes = f"Accepted {accepted}"
        if signature:
            notes += "; signature captured"

        due = next_inspection_due(warranty.date_installed or now.date())
        with record_store.unit_of_work(self.db):
            self.tokens.consume(token, now, TokenPurpose.CUSTOMER_ACTIVATION)
            warranty = self._transition(
                warranty, WarrantyStatus.ACTIVE,
                {
                    "activated_at": now,
                    "customer_terms_accepted_at": now,
                    "customer_terms_accepted_ip": ip_address,
                    "customer_signature": signature,
                    "accepted_terms_revision": accepted,
                    "inspection_due_date": due,
                    "last_reminder_tier": None,
                },
                "CUSTOMER_TERMS_ACCEPTED", CUSTOMER_ACTOR,
                notes=notes,
                ip_address=ip_address,
            )
        return warranty

    # ── Admin ─────────────────────────────────────────────────────────────
    async def admin_override(self, warranty_id: str, actor_id: str, target_status: str, reason: Optional[str],
                             notes: Optional[str] = None, skip_customer_notification: bool = False) -> Warranty:
        actor = record_store.require_actor(self.db, actor_id, UserRole.ADMIN.value)
        if _blank(reason):
            raise ValidationError("Override reason is required", ["reason must not be empty"])
        target = parse_status(RecordType.WARRANTY, target_status)
        if target is None:
            raise ValidationError("Unknown target status", [f"{target_status} is not a warranty status"])
        warranty = self.get(warranty_id)
        before = WarrantyStatus(warranty.verification_status)
        assert_transition(RecordType.WARRANTY, before.value, target.value, Channel.OVERRIDE)

        now = datetime.utcnow()
        patch = {}
        verification_value = activation_value = None
        with record_store.unit_of_work(self.db):
            if before == WarrantyStatus.SUBMITTED:
                self.tokens.invalidate_for_record(warranty.id, TokenPurpose.WARRANTY_VERIFICATION)
                patch.update(_token_fields())
            if before == WarrantyStatus.PENDING_CUSTOMER_ACTIVATION:
                self.tokens.invalidate_for_record(warranty.id, TokenPurpose.CUSTOMER_ACTIVATION)

            if target == WarrantyStatus.SUBMITTED:
                token = self.tokens.issue(warranty.id, TokenPurpose.WARRANTY_VERIFICATION, now)
                verification_value = token.token
                patch.update({**_token_fields(token), "submitted_by": actor.id, "submitted_at": now})
            elif target == WarrantyStatus.PENDING_CUSTOMER_ACTIVATION:
                activation_value = self.tokens.issue(warranty.id, TokenPurpose.CUSTOMER_ACTIVATION, now).token
                patch.update({"verified_by": actor.id, "verified_at": now})
            elif target == WarrantyStatus.ACTIVE:
                patch.update({
                    "activated_at": warranty.activated_at or now,
                    "verified_by": warranty.verified_by or actor.id,
                    "verified_at": warranty.verified_at or now,
                    "inspection_due_date": warranty.inspection_due_date
                    or next_inspection_due(warranty.date_installed or now.date()),
                })
            elif target == WarrantyStatus.REJECTED:
                patch["rejection_reason"] = reason.strip()
            elif target == WarrantyStatus.LAPSED:
                patch["lapsed_at"] = now

            warranty = self._transition(
                warranty, target, patch, "ADMIN_OVERRIDE", actor.id, channel=Channel.OVERRIDE,
                reason=reason.strip(), notes=notes, is_override=True,
            )

        logger.warning(f"[WARRANTY] Admin override on {warranty.id}: {before.value} -> {target.value} by {actor.id}")
        if verification_value:
            installer = record_store.find_user(self.db, warranty.installer_id)
            await self.notifier.warranty_verification_requested(warranty, installer, verification_value)
        if activation_value and not skip_customer_notification:
            await self.notifier.customer_activation_requested(warranty, activation_value)
        return warranty

    async def admin_verify(self, warranty_id: str, actor_id: str, reason: Optional[str], notes: Optional[str] = None,
                           skip_customer_notification: bool = False) -> Warranty:
        """Manual verification when the installer is unreachable."""
        target = WarrantyStatus.ACTIVE if skip_customer_notification else WarrantyStatus.PENDING_CUSTOMER_ACTIVATION
        return await self.admin_override(
            warranty_id, actor_id, target.value, reason,
            notes=notes or "Manual verification by ERPS admin - installer unavailable",
            skip_customer_notification=skip_customer_notification,
        )

    async def resend_verification(self, warranty_id: str, actor_id: str) -> Warranty:
        """Re-issue the installer link. The previous token stops resolving immediately."""
        actor = record_store.require_actor(self.db, actor_id, UserRole.ADMIN.value)
        warranty = self.get(warranty_id)
        if warranty.verification_status != WarrantyStatus.SUBMITTED.value:
            raise InvalidStateError(
                "Only submitted warranties have a verification link",
                [f"Current status is {warranty.verification_status}"],
            )
        with record_store.unit_of_work(self.db):
            token = self.tokens.issue(warranty.id, TokenPurpose.WARRANTY_VERIFICATION)
            token_value = token.token
            warranty = record_store.update_fields(self.db, Warranty, warranty.id, _token_fields(token))
        logger.info(f"[WARRANTY] Verification link re-issued for {warranty.id} by {actor.id}")
        installer = record_store.find_user(self.db, warranty.installer_id)
        await self.notifier.warranty_verification_requested(warranty, installer, token_value)
        return warranty

    async def resend_activation(self, warranty_id: str, actor_id: str) -> dict:
        """Re-issue the customer activation link on demand. The previous link stops resolving."""
        actor = record_store.require_actor(self.db, actor_id, UserRole.ADMIN.value)
        warranty = self.get(warranty_id)
        if warranty.verification_status != WarrantyStatus.PENDING_CUSTOMER_ACTIVATION.value:
            raise InvalidStateError(
                "Only warranties awaiting customer activation can be re-sent",
                [f"Current status is {warranty.verification_status}"],
            )
        if _blank(warranty.email) and _blank(warranty.phone_number):
            raise ValidationError("Cannot resend activation link", ["Customer has no email or phone number"])

        with record_store.unit_of_work(self.db):
            token = self.tokens.issue(warranty.id, TokenPurpose.CUSTOMER_ACTIVATION)
            token_value, expires_at = token.token, token.expires_at
        logger.info(f"[WARRANTY] Activation link re-issued for {warranty.id} by {actor.id}")
        delivered = await self.notifier.customer_activation_requested(warranty, token_value)
        return {
            "warranty_id": warranty.id,
            "email": warranty.email,
            "phone_number": warranty.phone_number,
            "token_expires_at": expires_at,
            "delivered": bool(delivered),
        }
