# tests/test_inspection_lifecycle.py
"""Annual inspection lifecycle and its effect on the parent warranty."""

import sys
import os
sys.path.insert(0, os.path.join(os.path.dirname(__file__), ".."))

import pytest
from datetime import date
from conftest import INSPECTION_CATEGORIES, complete_inspection_fields, photo_items
from erps.services.audit_service import AuditRecorder
from erps.services.inspection_service import InspectionLifecycle
from erps.utils.errors import ForbiddenError, InvalidStateError, TokenInvalidError, ValidationError


class TestCreate:
    def test_requires_active_warranty(self, db, notifier, inspector, make_warranty):
        warranty = make_warranty(status="PENDING_CUSTOMER_ACTIVATION")
        with pytest.raises(ValidationError) as exc:
            InspectionLifecycle(db, notifier).create(warranty.id, inspector.id, complete_inspection_fields())
        assert exc.value.details == [
            "Warranty must be ACTIVE to record an inspection (is PENDING_CUSTOMER_ACTIVATION)"
        ]

    def test_requires_certified_inspector(self, db, notifier, make_user, make_warranty):
        warranty = make_warranty(status="ACTIVE")
        trainee = make_user("INSPECTOR", "Trainee", is_certified=False)
        with pytest.raises(ValidationError):
            InspectionLifecycle(db, notifier).create(warranty.id, trainee.id, {})

    def test_create_draft_with_photos(self, db, notifier, inspector, make_warranty):
        warranty = make_warranty(status="ACTIVE")
        lifecycle = InspectionLifecycle(db, notifier)
        inspection = lifecycle.create(
            warranty.id, inspector.id, complete_inspection_fields(), photo_items(INSPECTION_CATEGORIES),
        )
        assert inspection.verification_status == "DRAFT"
        assert len(lifecycle.photos(inspection.id)) == 3
        assert AuditRecorder(db).count(inspection.id) == 0


class TestSubmit:
    @pytest.mark.asyncio
    async def test_unanswered_checklist_blocks_submit(self, db, notifier, inspector, make_warranty, make_inspection):
        inspection = make_inspection(make_warranty(status="ACTIVE"), owner_understands_operation=None,
                                     pillars_condition="ISSUE")
        with pytest.raises(ValidationError) as exc:
            await InspectionLifecycle(db, notifier).submit(inspection.id, inspector.id)
        assert exc.value.details == [
            "Checklist item owner_understands_operation must be answered",
            "Notes are required for pillars marked ISSUE",
        ]

    @pytest.mark.asyncio
    async def test_false_answers_are_complete(self, db, notifier, inspector, make_warranty, make_inspection):
        inspection = make_inspection(make_warranty(status="ACTIVE"), red_light_illuminated=False,
                                     owner_advised_paint_damage=False)
        inspection = await InspectionLifecycle(db, notifier).submit(inspection.id, inspector.id)
        assert inspection.verification_status == "SUBMITTED"
        notifier.inspection_verification_requested.assert_awaited_once()

    @pytest.mark.asyncio
    async def test_only_inspector_or_admin_submits(self, db, notifier, agent, make_warranty, make_inspection):
        inspection = make_inspection(make_warranty(status="ACTIVE"))
        with pytest.raises(ForbiddenError):
            await InspectionLifecycle(db, notifier).submit(inspection.id, agent.id)


class TestVerify:
    @pytest.mark.asyncio
    async def test_confirm_extends_parent_warranty(self, db, notifier, inspector, make_warranty, make_inspection):
        warranty = make_warranty(status="ACTIVE", inspection_due_date=date(2027, 1, 15), last_reminder_tier="DUE_IN_7")
        inspection = make_inspection(warranty, inspection_date=date(2027, 1, 10))
        lifecycle = InspectionLifecycle(db, notifier)
        inspection = await lifecycle.submit(inspection.id, inspector.id)

        inspection = await lifecycle.verify(inspection.verification_token, "CONFIRM")

        assert inspection.verification_status == "VERIFIED"
        assert inspection.warranty_extended_until == date(2028, 1, 10)
        db.refresh(warranty)
        assert warranty.inspection_due_date == date(2028, 1, 10)
        assert warranty.last_reminder_tier is None
        assert [e.action_type for e in AuditRecorder(db).history(inspection.id)] == ["VERIFY", "SUBMIT"]

    @pytest.mark.asyncio
    async def test_due_date_never_moves_backwards(self, db, notifier, inspector, make_warranty, make_inspection):
        warranty = make_warranty(status="ACTIVE", inspection_due_date=date(2028, 6, 1))
        inspection = make_inspection(warranty, inspection_date=date(2027, 1, 10))
        lifecycle = InspectionLifecycle(db, notifier)
        inspection = await lifecycle.submit(inspection.id, inspector.id)
        await lifecycle.verify(inspection.verification_token, "CONFIRM")

        db.refresh(warranty)
        assert warranty.inspection_due_date == date(2028, 6, 1)

    @pytest.mark.asyncio
    async def test_decline_leaves_warranty_untouched(self, db, notifier, inspector, make_warranty, make_inspection):
        warranty = make_warranty(status="ACTIVE", inspection_due_date=date(2027, 1, 15))
        inspection = make_inspection(warranty)
        lifecycle = InspectionLifecycle(db, notifier)
        inspection = await lifecycle.submit(inspection.id, inspector.id)

        inspection = await lifecycle.verify(inspection.verification_token, "DECLINE", "Wrong vehicle")

        assert inspection.verification_status == "REJECTED"
        assert inspection.warranty_extended_until is None
        db.refresh(warranty)
        assert warranty.inspection_due_date == date(2027, 1, 15)

    @pytest.mark.asyncio
    async def test_warranty_token_cannot_verify_inspection(self, db, notifier, agent, make_warranty):
        from erps.services.warranty_service import WarrantyLifecycle
        warranty = await WarrantyLifecycle(db, notifier).submit(make_warranty().id, agent.id)
        with pytest.raises(TokenInvalidError):
            await InspectionLifecycle(db, notifier).verify(warranty.verification_token, "CONFIRM")


class TestAdmin:
    @pytest.mark.asyncio
    async def test_admin_verify_extends_warranty(self, db, notifier, admin, make_warranty, make_inspection):
        warranty = make_warranty(status="ACTIVE", inspection_due_date=date(2027, 1, 15))
        inspection = make_inspection(warranty, status="SUBMITTED", inspection_date=date(2027, 2, 1))

        inspection = await InspectionLifecycle(db, notifier).admin_verify(inspection.id, admin.id, "Inspector away")

        assert inspection.verification_status == "VERIFIED"
        assert inspection.verified_by == admin.id
        db.refresh(warranty)
        assert warranty.inspection_due_date == date(2028, 2, 1)
        assert AuditRecorder(db).history(inspection.id)[0].is_override is True

    @pytest.mark.asyncio
    async def test_override_rejects_same_status(self, db, notifier, admin, make_warranty, make_inspection):
        inspection = make_inspection(make_warranty(status="ACTIVE"), status="VERIFIED")
        with pytest.raises(InvalidStateError):
            await InspectionLifecycle(db, notifier).admin_override(inspection.id, admin.id, "VERIFIED", "again")

    @pytest.mark.asyncio
    async def test_verified_inspection_cannot_be_overridden(self, db, notifier, admin, make_warranty, make_inspection):
        warranty = make_warranty(status="ACTIVE", inspection_due_date=date(2028, 2, 1))
        inspection = make_inspection(warranty, status="VERIFIED", inspection_date=date(2027, 2, 1))

        lifecycle = InspectionLifecycle(db, notifier)
        for target in ("REJECTED", "SUBMITTED", "DRAFT"):
            with pytest.raises(InvalidStateError):
                await lifecycle.admin_override(inspection.id, admin.id, target, "photos reused")

        db.refresh(warranty)
        db.refresh(inspection)
        assert warranty.inspection_due_date == date(2028, 2, 1)
        assert inspection.verification_status == "VERIFIED"
        assert AuditRecorder(db).count(inspection.id) == 0
