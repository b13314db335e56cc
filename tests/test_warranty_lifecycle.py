# tests/test_warranty_lifecycle.py
"""Warranty lifecycle: create, submit, installer verification, customer activation, admin override."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date, datetime, timedelta
from conftest import owner_fields, photo_items
from erps.database import SessionLocal
from erps.models.audit_history import AuditHistory
from erps.models.verification_token import VerificationToken
from erps.services import terms_service
from erps.services.audit_service import AuditRecorder
from erps.services.lifecycle_rules import TokenPurpose
from erps.services.token_service import TokenService
from erps.services.warranty_service import WarrantyLifecycle
from erps.utils.errors import (
    ActivationLinkError, ConflictError, ForbiddenError, InvalidStateError, NotFoundError, TokenExpiredError,
    TokenInvalidError, ValidationError,
)


def audit_actions(db, record_id):
    rows = db.query(AuditHistory).filter(AuditHistory.record_id == record_id).order_by(AuditHistory.id).all()
    return [row.action_type for row in rows]


def activation_token(db, warranty_id):
    return TokenService(db).active_token(warranty_id, TokenPurpose.CUSTOMER_ACTIVATION).token


class TestCreate:
    def test_create_draft_without_audit(self, db, notifier, agent, installer):
        warranty = WarrantyLifecycle(db, notifier).create(owner_fields(), installer.id, photo_items(), agent.id)

        assert warranty.verification_status == "DRAFT"
        assert warranty.agent_id == agent.id
        assert len(WarrantyLifecycle(db, notifier).photos(warranty.id)) == 3
        assert audit_actions(db, warranty.id) == []

    def test_missing_fields_listed_together(self, db, notifier, agent):
        with pytest.raises(ValidationError) as exc:
            WarrantyLifecycle(db, notifier).create({"first_name": "Sam"}, None, [], agent.id)
        assert exc.value.details == [
            "last_name is required",
            "email is required",
            "phone_number is required",
            "installer_id is required",
        ]

    def test_unaccredited_installer_rejected(self, db, notifier, agent, make_user):
        rookie = make_user("INSTALLER", "Rookie", is_accredited=False)
        with pytest.raises(ValidationError) as exc:
            WarrantyLifecycle(db, notifier).create(owner_fields(), rookie.id, [], agent.id)
        assert f"Installer {rookie.id} is not an accredited installer" in exc.value.details

    def test_duplicate_vin_conflicts(self, db, notifier, agent, installer, make_warranty):
        make_warranty(status="ACTIVE")
        with pytest.raises(ConflictError):
            WarrantyLifecycle(db, notifier).create(owner_fields(), installer.id, [], agent.id)

    def test_vin_of_rejected_warranty_can_be_reused(self, db, notifier, agent, installer, make_warranty):
        make_warranty(status="REJECTED")
        warranty = WarrantyLifecycle(db, notifier).create(owner_fields(), installer.id, [], agent.id)
        assert warranty.verification_status == "DRAFT"

    def test_inspector_cannot_register(self, db, notifier, installer, inspector):
        with pytest.raises(ForbiddenError):
            WarrantyLifecycle(db, notifier).create(owner_fields(), installer.id, [], inspector.id)

    def test_unknown_terms_rejected(self, db, notifier, agent, installer):
        with pytest.raises(ValidationError) as exc:
            WarrantyLifecycle(db, notifier).create(owner_fields(warranty_terms_id="no-such-terms"),
                                                   installer.id, [], agent.id)
        assert exc.value.details == ["No active warranty terms with id no-such-terms"]


class TestSubmit:
    @pytest.mark.asyncio
    async def test_submit_blocked_without_photos(self, db, notifier, agent, make_warranty):
        warranty = make_warranty(photos=())
        with pytest.raises(ValidationError) as exc:
            await WarrantyLifecycle(db, notifier).submit(warranty.id, agent.id)

        assert "At least 3 categorized photos are required (0 provided)" in exc.value.details
        db.refresh(warranty)
        assert warranty.verification_status == "DRAFT"
        notifier.warranty_verification_requested.assert_not_called()

    @pytest.mark.asyncio
    async def test_submit_issues_token_and_notifies_installer(self, db, notifier, agent, installer, make_warranty):
        warranty = make_warranty()
        warranty = await WarrantyLifecycle(db, notifier).submit(warranty.id, agent.id)

        assert warranty.verification_status == "SUBMITTED"
        assert warranty.submitted_by == agent.id
        assert len(warranty.verification_token) == 64
        assert warranty.verification_token_expires_at > datetime.utcnow()
        assert audit_actions(db, warranty.id) == ["SUBMIT"]
        notifier.warranty_verification_requested.assert_awaited_once()
        assert notifier.warranty_verification_requested.await_args.args[2] == warranty.verification_token

    @pytest.mark.asyncio
    async def test_submit_twice_is_invalid_state(self, db, notifier, agent, make_warranty):
        warranty = make_warranty()
        lifecycle = WarrantyLifecycle(db, notifier)
        await lifecycle.submit(warranty.id, agent.id)
        with pytest.raises(InvalidStateError):
            await lifecycle.submit(warranty.id, agent.id)
        assert audit_actions(db, warranty.id) == ["SUBMIT"]

    @pytest.mark.asyncio
    async def test_stranger_cannot_submit(self, db, notifier, make_user, make_warranty):
        other_agent = make_user("AGENT", "Other Agent")
        warranty = make_warranty()
        with pytest.raises(ForbiddenError):
            await WarrantyLifecycle(db, notifier).submit(warranty.id, other_agent.id)

    @pytest.mark.asyncio
    async def test_notification_failure_does_not_undo_submit(self, db, notifier, agent, make_warranty):
        notifier.warranty_verification_requested.return_value = False
        warranty = make_warranty()
        warranty = await WarrantyLifecycle(db, notifier).submit(warranty.id, agent.id)
        assert warranty.verification_status == "SUBMITTED"


class TestInstallerVerification:
    @pytest.mark.asyncio
    async def test_confirm_moves_to_pending_activation(self, db, notifier, agent, installer, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token

        warranty = await lifecycle.verify(token, "CONFIRM")

        assert warranty.verification_status == "PENDING_CUSTOMER_ACTIVATION"
        assert warranty.verified_by == installer.id
        assert warranty.verification_token is None
        assert audit_actions(db, warranty.id) == ["SUBMIT", "VERIFY"]
        notifier.customer_activation_requested.assert_awaited_once()
        assert activation_token(db, warranty.id)

    @pytest.mark.asyncio
    async def test_decline_without_reason_leaves_record_submitted(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token

        with pytest.raises(ValidationError):
            await lifecycle.verify(token, "DECLINE", "   ")

        db.refresh(warranty)
        assert warranty.verification_status == "SUBMITTED"
        assert warranty.verification_token == token

    @pytest.mark.asyncio
    async def test_decline_with_reason_rejects(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)

        warranty = await lifecycle.verify(warranty.verification_token, "DECLINE", "unit not installed")

        assert warranty.verification_status == "REJECTED"
        assert warranty.rejection_reason == "unit not installed"
        assert AuditRecorder(db).count(warranty.id) == 2
        notifier.warranty_rejected.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_unknown_action_is_validation_error(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        with pytest.raises(ValidationError):
            await lifecycle.verify(warranty.verification_token, "MAYBE")

    @pytest.mark.asyncio
    async def test_unknown_token_is_invalid(self, db, notifier):
        with pytest.raises(TokenInvalidError):
            await WarrantyLifecycle(db, notifier).verify("f" * 64, "CONFIRM")

    @pytest.mark.asyncio
    async def test_used_token_is_invalid(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token
        await lifecycle.verify(token, "CONFIRM")
        with pytest.raises(TokenInvalidError):
            await lifecycle.verify(token, "CONFIRM")

    @pytest.mark.asyncio
    async def test_expired_token(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token
        db.query(VerificationToken).filter(VerificationToken.token == token).update(
            {"expires_at": datetime.utcnow() - timedelta(minutes=1)}
        )
        db.commit()

        with pytest.raises(TokenExpiredError):
            await lifecycle.verify(token, "CONFIRM")
        db.refresh(warranty)
        assert warranty.verification_status == "SUBMITTED"

    @pytest.mark.asyncio
    async def test_expired_token_after_cleanup_job(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token
        db.query(VerificationToken).filter(VerificationToken.token == token).update(
            {"expires_at": datetime.utcnow() - timedelta(hours=1)}
        )
        db.commit()
        assert TokenService(db).expire_stale() == 1

        with pytest.raises(TokenExpiredError):
            await lifecycle.verify(token, "CONFIRM")

    @pytest.mark.asyncio
    async def test_resend_invalidates_old_token(self, db, notifier, agent, admin, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        old_token = warranty.verification_token

        warranty = await lifecycle.resend_verification(warranty.id, admin.id)

        assert warranty.verification_token != old_token
        with pytest.raises(TokenInvalidError):
            await lifecycle.verify(old_token, "CONFIRM")
        warranty = await lifecycle.verify(warranty.verification_token, "CONFIRM")
        assert warranty.verification_status == "PENDING_CUSTOMER_ACTIVATION"


class TestCustomerActivation:
    async def _pending(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        await lifecycle.verify(warranty.verification_token, "CONFIRM")
        return lifecycle, warranty.id, activation_token(db, warranty.id)

    @pytest.mark.asyncio
    async def test_accept_activates_and_sets_due_date(self, db, notifier, agent, make_warranty):
        lifecycle, warranty_id, token = await self._pending(db, notifier, agent, make_warranty)

        details = lifecycle.get_activation_details(token)
        assert details["warranty_id"] == warranty_id
        assert details["customer_name"] == "Sam Driver"

        warranty = await lifecycle.customer_accept(token, "203.0.113.7", True, "Sam Driver")

        assert warranty.verification_status == "ACTIVE"
        assert warranty.inspection_due_date == date(2027, 1, 15)
        assert warranty.customer_terms_accepted_ip == "203.0.113.7"
        last = AuditRecorder(db).history(warranty_id)[0]
        assert (last.action_type, last.performed_by, last.ip_address) == (
            "CUSTOMER_TERMS_ACCEPTED", "CUSTOMER", "203.0.113.7",
        )

    @pytest.mark.asyncio
    async def test_terms_must_be_accepted(self, db, notifier, agent, make_warranty):
        lifecycle, warranty_id, token = await self._pending(db, notifier, agent, make_warranty)
        with pytest.raises(ValidationError):
            await lifecycle.customer_accept(token, None, False)
        assert lifecycle.get(warranty_id).verification_status == "PENDING_CUSTOMER_ACTIVATION"

    @pytest.mark.asyncio
    async def test_activation_token_is_single_use(self, db, notifier, agent, make_warranty):
        lifecycle, _, token = await self._pending(db, notifier, agent, make_warranty)
        await lifecycle.customer_accept(token, None, True)
        with pytest.raises(TokenInvalidError):
            await lifecycle.customer_accept(token, None, True)

    @pytest.mark.asyncio
    async def test_verification_token_cannot_activate(self, db, notifier, agent, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        with pytest.raises(TokenInvalidError):
            await lifecycle.customer_accept(warranty.verification_token, None, True)

    @pytest.mark.asyncio
    async def test_accept_records_standard_terms(self, db, notifier, agent, make_warranty):
        lifecycle, warranty_id, token = await self._pending(db, notifier, agent, make_warranty)
        assert lifecycle.get_activation_terms(token)["terms"]["revision"] == "1.0"

        warranty = await lifecycle.customer_accept(token, None, True, "data:image/png;base64,AAAA")

        assert warranty.accepted_terms_revision == "ERPS Standard Warranty rev 1.0"
        last = AuditRecorder(db).history(warranty_id)[0]
        assert last.notes == "Accepted ERPS Standard Warranty rev 1.0; signature captured"

    @pytest.mark.asyncio
    async def test_accept_records_published_terms(self, db, notifier, agent, admin, make_warranty):
        terms = terms_service.create_terms(db, admin.id, {
            "warranty_name": "ERPS Fleet Warranty", "revision": "2.1", "add_type": "ADD_WARRANTY",
            "terms_and_conditions": "Fleet vehicles are inspected every 12 months.",
        })
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty(warranty_terms_id=terms.id).id, agent.id)
        await lifecycle.verify(warranty.verification_token, "CONFIRM")
        token = activation_token(db, warranty.id)

        offered = lifecycle.get_activation_terms(token)
        assert (offered["terms"]["id"], offered["terms"]["revision"]) == (terms.id, "2.1")
        assert lifecycle.get_activation_details(token)["terms_name"] == "ERPS Fleet Warranty"

        warranty = await lifecycle.customer_accept(token, None, True)
        assert warranty.accepted_terms_revision == "ERPS Fleet Warranty rev 2.1"
        assert AuditRecorder(db).history(warranty.id)[0].notes == "Accepted ERPS Fleet Warranty rev 2.1"

    @pytest.mark.asyncio
    async def test_resend_activation_replaces_link(self, db, notifier, agent, admin, make_warranty):
        lifecycle, warranty_id, old_token = await self._pending(db, notifier, agent, make_warranty)

        result = await lifecycle.resend_activation(warranty_id, admin.id)

        assert result["delivered"] is True
        assert result["email"] == "sam@example.com"
        assert notifier.customer_activation_requested.await_count == 2
        new_token = activation_token(db, warranty_id)
        assert new_token != old_token
        with pytest.raises(ActivationLinkError):
            await lifecycle.customer_accept(old_token, None, True)
        warranty = await lifecycle.customer_accept(new_token, None, True)
        assert warranty.verification_status == "ACTIVE"

    @pytest.mark.asyncio
    async def test_resend_activation_requires_pending_and_admin(self, db, notifier, agent, admin, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        active = make_warranty(status="ACTIVE")
        with pytest.raises(InvalidStateError):
            await lifecycle.resend_activation(active.id, admin.id)

        pending = make_warranty(status="PENDING_CUSTOMER_ACTIVATION", vin_number="JTEBU5JR0K5000002")
        with pytest.raises(ForbiddenError):
            await lifecycle.resend_activation(pending.id, agent.id)
        notifier.customer_activation_requested.assert_not_called()


class TestAdminOverride:
    @pytest.mark.asyncio
    async def test_admin_verify_skipping_customer_goes_active(self, db, notifier, agent, admin, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)

        warranty = await lifecycle.admin_verify(warranty.id, admin.id, "Installer unreachable",
                                                skip_customer_notification=True)

        assert warranty.verification_status == "ACTIVE"
        assert warranty.verification_token is None
        assert warranty.inspection_due_date == date(2027, 1, 15)
        entry = AuditRecorder(db).history(warranty.id)[0]
        assert entry.action_type == "ADMIN_OVERRIDE"
        assert entry.is_override is True
        notifier.customer_activation_requested.assert_not_called()

    @pytest.mark.asyncio
    async def test_admin_verify_defaults_to_pending_and_notifies(self, db, notifier, agent, admin, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        old_token = warranty.verification_token

        warranty = await lifecycle.admin_verify(warranty.id, admin.id, "Installer on leave")

        assert warranty.verification_status == "PENDING_CUSTOMER_ACTIVATION"
        notifier.customer_activation_requested.assert_awaited_once()
        with pytest.raises(TokenInvalidError):
            await lifecycle.verify(old_token, "CONFIRM")

    @pytest.mark.asyncio
    async def test_override_requires_admin_and_reason(self, db, notifier, agent, admin, make_warranty):
        warranty = make_warranty(status="SUBMITTED")
        lifecycle = WarrantyLifecycle(db, notifier)
        with pytest.raises(ForbiddenError):
            await lifecycle.admin_override(warranty.id, agent.id, "REJECTED", "nope")
        with pytest.raises(ValidationError):
            await lifecycle.admin_override(warranty.id, admin.id, "REJECTED", "")

    @pytest.mark.asyncio
    async def test_override_cannot_reinstate_lapsed(self, db, notifier, admin, make_warranty):
        warranty = make_warranty(status="LAPSED")
        with pytest.raises(InvalidStateError):
            await WarrantyLifecycle(db, notifier).admin_override(warranty.id, admin.id, "ACTIVE", "customer asked")

    @pytest.mark.asyncio
    async def test_override_cannot_target_draft(self, db, notifier, admin, make_warranty):
        warranty = make_warranty(status="REJECTED")
        with pytest.raises(InvalidStateError):
            await WarrantyLifecycle(db, notifier).admin_override(warranty.id, admin.id, "DRAFT", "redo")


class TestConcurrentRequests:
    """A second session holding stale rows stands in for a racing request."""

    @pytest.mark.asyncio
    async def test_stale_submit_loses_to_committed_submit(self, db, notifier, agent, make_warranty):
        warranty_id = make_warranty().id
        other = SessionLocal()
        try:
            stale = WarrantyLifecycle(other, notifier)
            assert stale.get(warranty_id).verification_status == "DRAFT"

            await WarrantyLifecycle(db, notifier).submit(warranty_id, agent.id)

            with pytest.raises(InvalidStateError):
                await stale.submit(warranty_id, agent.id)
        finally:
            other.close()

        assert audit_actions(db, warranty_id) == ["SUBMIT"]
        notifier.warranty_verification_requested.assert_awaited_once()
        assert TokenService(db).active_token(warranty_id, TokenPurpose.WARRANTY_VERIFICATION) is not None

    @pytest.mark.asyncio
    async def test_stale_override_loses_to_committed_verify(self, db, notifier, agent, admin, make_warranty):
        lifecycle = WarrantyLifecycle(db, notifier)
        warranty = await lifecycle.submit(make_warranty().id, agent.id)
        token = warranty.verification_token
        other = SessionLocal()
        try:
            stale = WarrantyLifecycle(other, notifier)
            assert stale.get(warranty.id).verification_status == "SUBMITTED"

            await lifecycle.verify(token, "CONFIRM")

            with pytest.raises(InvalidStateError):
                await stale.admin_override(warranty.id, admin.id, "REJECTED", "duplicate registration")
        finally:
            other.close()

        assert audit_actions(db, warranty.id) == ["SUBMIT", "VERIFY"]
        assert lifecycle.get(warranty.id).verification_status == "PENDING_CUSTOMER_ACTIVATION"

    @pytest.mark.asyncio
    async def test_second_confirm_with_same_token_is_invalid(self, db, notifier, agent, make_warranty):
        warranty = await WarrantyLifecycle(db, notifier).submit(make_warranty().id, agent.id)
        warranty_id, token = warranty.id, warranty.verification_token
        other = SessionLocal()
        try:
            stale = WarrantyLifecycle(other, notifier)
            stale.tokens.resolve(token, TokenPurpose.WARRANTY_VERIFICATION)
            stale.get(warranty_id)

            await WarrantyLifecycle(db, notifier).verify(token, "CONFIRM")

            with pytest.raises(TokenInvalidError):
                await stale.verify(token, "CONFIRM")
        finally:
            other.close()

        assert audit_actions(db, warranty_id) == ["SUBMIT", "VERIFY"]
        notifier.customer_activation_requested.assert_awaited_once()


class TestSoftDelete:
    def test_delete_draft(self, db, notifier, agent, make_warranty):
        warranty = make_warranty()
        lifecycle = WarrantyLifecycle(db, notifier)
        lifecycle.soft_delete(warranty.id, agent.id)

        assert audit_actions(db, warranty.id) == ["DELETED"]
        with pytest.raises(NotFoundError):
            lifecycle.get(warranty.id)

    def test_active_warranty_cannot_be_deleted(self, db, notifier, admin, make_warranty):
        warranty = make_warranty(status="ACTIVE")
        with pytest.raises(InvalidStateError):
            WarrantyLifecycle(db, notifier).soft_delete(warranty.id, admin.id)

    def test_photo_attach_only_in_draft(self, db, notifier, make_warranty):
        warranty = make_warranty(status="SUBMITTED")
        with pytest.raises(InvalidStateError):
            WarrantyLifecycle(db, notifier).attach_photo(warranty.id, {"category": "GENERATOR", "url": "https://x"})
