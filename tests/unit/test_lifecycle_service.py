"""Lifecycle coordinator tests: submit, approve, reject, delete and their badge side effects."""

from __future__ import annotations

import uuid

import pytest
from sqlalchemy import select, update

from badger.db.models import BadgeApplication, Promotion, PromotionBadge
from badger.errors import (
    AdminRequired,
    BadgeNotEligible,
    BadRequest,
    Conflict,
    InvalidStatus,
    NotDraft,
    NotOwner,
    PromotionNotFound,
    TemplateInactive,
    TemplateNotFound,
    ValidationFailed,
)
from badger.promotions import lifecycle, reservations
from tests.conftest import (
    make_application,
    make_promotion,
    make_template,
    qualifying_applications,
)


async def _statuses(db, ids: list[uuid.UUID]) -> set[str]:
    result = await db.execute(select(BadgeApplication.status).where(BadgeApplication.id.in_(ids)))
    return set(result.scalars().all())


async def _promotion_status(db, promotion_id: uuid.UUID) -> str:
    result = await db.execute(select(Promotion.status).where(Promotion.id == promotion_id))
    return result.scalar_one()


async def _ready_draft(db, identity):
    """Draft promotion with a qualifying set of reserved badges."""
    template = await make_template(db)
    promotion = await make_promotion(db, identity.user_id, template)
    apps = await qualifying_applications(db, identity.user_id)
    ids = [a.id for a in apps]
    await lifecycle.add_badges(db, identity, promotion.id, ids)
    await db.commit()
    return promotion.id, ids


class TestCreate:

    @pytest.mark.asyncio
    async def test_copies_path_and_levels(self, db_session, employee):
        template = await make_template(db_session, path="management", from_level="M1", to_level="M2")

        promotion = await lifecycle.create_promotion(db_session, employee, template.id)
        await db_session.commit()

        assert promotion.status == "draft"
        assert promotion.created_by == employee.user_id
        assert (promotion.path, promotion.from_level, promotion.to_level) == ("management", "M1", "M2")
        assert promotion.executed is False

    @pytest.mark.asyncio
    async def test_inactive_template_refused(self, db_session, employee):
        template = await make_template(db_session, is_active=False)
        with pytest.raises(TemplateInactive):
            await lifecycle.create_promotion(db_session, employee, template.id)

    @pytest.mark.asyncio
    async def test_unknown_template(self, db_session, employee):
        with pytest.raises(TemplateNotFound):
            await lifecycle.create_promotion(db_session, employee, uuid.uuid4())


class TestBadgeEdits:

    @pytest.mark.asyncio
    async def test_non_owner_cannot_add(self, db_session, employee, other_employee):
        template = await make_template(db_session)
        promotion = await make_promotion(db_session, employee.user_id, template)
        application = await make_application(db_session, other_employee.user_id)

        with pytest.raises(NotOwner):
            await lifecycle.add_badges(db_session, other_employee, promotion.id, [application.id])

    @pytest.mark.asyncio
    async def test_submitted_promotion_is_frozen(self, db_session, employee):
        template = await make_template(db_session)
        promotion = await make_promotion(db_session, employee.user_id, template, status="submitted")
        application = await make_application(db_session, employee.user_id)

        with pytest.raises(NotDraft) as exc_info:
            await lifecycle.add_badges(db_session, employee, promotion.id, [application.id])
        assert exc_info.value.extra["current_status"] == "submitted"

    @pytest.mark.asyncio
    async def test_remove_badges(self, db_session, employee):
        promotion_id, ids = await _ready_draft(db_session, employee)

        removed = await lifecycle.remove_badges(db_session, employee, promotion_id, ids[:2])
        await db_session.commit()

        assert removed == ids[:2]
        assert set(await reservations.reserved_application_ids(db_session, promotion_id)) == set(ids[2:])


class TestSubmit:

    @pytest.mark.asyncio
    async def test_submit_moves_badges_to_used(self, db_session, employee):
        promotion_id, ids = await _ready_draft(db_session, employee)

        promotion = await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        assert promotion.status == "submitted"
        assert promotion.submitted_at is not None
        assert await _statuses(db_session, ids) == {"used_in_promotion"}

    @pytest.mark.asyncio
    async def test_unmet_rules_leave_everything_untouched(self, db_session, employee):
        template = await make_template(db_session)
        promotion = await make_promotion(db_session, employee.user_id, template)
        apps = [
            await make_application(db_session, employee.user_id, "technical", "gold"),
            await make_application(db_session, employee.user_id, "technical", "silver"),
        ]
        promotion_id, ids = promotion.id, [a.id for a in apps]
        await lifecycle.add_badges(db_session, employee, promotion_id, ids)
        await db_session.commit()

        with pytest.raises(ValidationFailed) as exc_info:
            await lifecycle.submit_promotion(db_session, employee, promotion_id)

        assert exc_info.value.missing == [
            {"category": "technical", "level": "bronze", "count": 3},
            {"category": "organizational", "level": "bronze", "count": 1},
        ]
        assert exc_info.value.requirements[0]["current"] == 0
        assert await _promotion_status(db_session, promotion_id) == "draft"
        assert await _statuses(db_session, ids) == {"accepted"}
        assert set(await reservations.reserved_application_ids(db_session, promotion_id)) == set(ids)

    @pytest.mark.asyncio
    async def test_only_owner_submits(self, db_session, employee, admin):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(NotOwner):
            await lifecycle.submit_promotion(db_session, admin, promotion_id)

    @pytest.mark.asyncio
    async def test_submit_twice_reports_current_status(self, db_session, employee):
        promotion_id, _ = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        with pytest.raises(InvalidStatus) as exc_info:
            await lifecycle.submit_promotion(db_session, employee, promotion_id)
        assert exc_info.value.extra["current_status"] == "submitted"

    @pytest.mark.asyncio
    async def test_missing_promotion(self, db_session, employee):
        with pytest.raises(PromotionNotFound):
            await lifecycle.submit_promotion(db_session, employee, uuid.uuid4())


class TestApprove:

    @pytest.mark.asyncio
    async def test_approve_consumes_reservations(self, db_session, employee, admin):
        promotion_id, ids = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        promotion = await lifecycle.approve_promotion(db_session, admin, promotion_id)
        await db_session.commit()

        assert promotion.status == "approved"
        assert promotion.approved_by == admin.user_id
        assert promotion.executed is True
        result = await db_session.execute(
            select(PromotionBadge.consumed).where(PromotionBadge.promotion_id == promotion_id)
        )
        assert set(result.scalars().all()) == {True}
        assert await _statuses(db_session, ids) == {"used_in_promotion"}

    @pytest.mark.asyncio
    async def test_consumed_badges_cannot_be_reserved_again(self, db_session, employee, admin):
        promotion_id, ids = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await lifecycle.approve_promotion(db_session, admin, promotion_id)
        await db_session.commit()
        template = await make_template(db_session, from_level="J2", to_level="J3")
        next_promotion = await make_promotion(db_session, employee.user_id, template)

        with pytest.raises(BadgeNotEligible) as exc_info:
            await lifecycle.add_badges(db_session, employee, next_promotion.id, ids[:1])
        assert exc_info.value.extra["current_status"] == "used_in_promotion"

    @pytest.mark.asyncio
    async def test_requires_admin(self, db_session, employee):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(AdminRequired):
            await lifecycle.approve_promotion(db_session, employee, promotion_id)

    @pytest.mark.asyncio
    async def test_draft_cannot_be_approved(self, db_session, employee, admin):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(InvalidStatus) as exc_info:
            await lifecycle.approve_promotion(db_session, admin, promotion_id)
        assert exc_info.value.extra["current_status"] == "draft"


class TestReject:

    @pytest.mark.asyncio
    async def test_reject_releases_and_reverts(self, db_session, employee, admin):
        promotion_id, ids = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        promotion = await lifecycle.reject_promotion(db_session, admin, promotion_id, "  Needs more evidence  ")
        await db_session.commit()

        assert promotion.status == "rejected"
        assert promotion.reject_reason == "Needs more evidence"
        assert promotion.rejected_by == admin.user_id
        assert await reservations.reserved_application_ids(db_session, promotion_id, consumed=None) == []
        assert await _statuses(db_session, ids) == {"accepted"}

    @pytest.mark.asyncio
    async def test_rejected_badges_are_reusable(self, db_session, employee, admin):
        promotion_id, ids = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await lifecycle.reject_promotion(db_session, admin, promotion_id, "Try again next cycle")
        await db_session.commit()
        template = await make_template(db_session, from_level="J2", to_level="J3")
        retry = await make_promotion(db_session, employee.user_id, template)

        added = await lifecycle.add_badges(db_session, employee, retry.id, ids)
        await db_session.commit()
        assert added == ids

    @pytest.mark.asyncio
    async def test_blank_reason_refused(self, db_session, employee, admin):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(BadRequest):
            await lifecycle.reject_promotion(db_session, admin, promotion_id, "   ")

    @pytest.mark.asyncio
    async def test_overlong_reason_refused(self, db_session, employee, admin):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(BadRequest):
            await lifecycle.reject_promotion(db_session, admin, promotion_id, "x" * 2001)


class TestGuardedWrites:

    @pytest.mark.asyncio
    async def test_lost_race_is_a_conflict(self, db_session, employee, admin, monkeypatch):
        """The status read says submitted, but another writer moves it before our UPDATE lands."""
        promotion_id, _ = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        real_get = lifecycle.get_promotion

        async def get_then_race(db, pid):
            promotion = await real_get(db, pid)
            await db.execute(
                update(Promotion)
                .where(Promotion.id == pid)
                .values(status="approved")
                .execution_options(synchronize_session=False)
            )
            return promotion

        monkeypatch.setattr(lifecycle, "get_promotion", get_then_race)

        with pytest.raises(Conflict):
            await lifecycle.reject_promotion(db_session, admin, promotion_id, "Too late")


class TestDelete:

    @pytest.mark.asyncio
    async def test_delete_draft_frees_badges(self, db_session, employee):
        promotion_id, ids = await _ready_draft(db_session, employee)

        await lifecycle.delete_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        assert await lifecycle.get_promotion(db_session, promotion_id) is None
        result = await db_session.execute(
            select(PromotionBadge).where(PromotionBadge.badge_application_id.in_(ids))
        )
        assert result.scalars().all() == []

    @pytest.mark.asyncio
    async def test_admin_may_delete_any_draft(self, db_session, employee, admin):
        promotion_id, _ = await _ready_draft(db_session, employee)
        await lifecycle.delete_promotion(db_session, admin, promotion_id)
        await db_session.commit()
        assert await lifecycle.get_promotion(db_session, promotion_id) is None

    @pytest.mark.asyncio
    async def test_stranger_sees_not_found(self, db_session, employee, other_employee):
        promotion_id, _ = await _ready_draft(db_session, employee)
        with pytest.raises(PromotionNotFound):
            await lifecycle.delete_promotion(db_session, other_employee, promotion_id)

    @pytest.mark.asyncio
    async def test_submitted_cannot_be_deleted(self, db_session, employee):
        promotion_id, _ = await _ready_draft(db_session, employee)
        await lifecycle.submit_promotion(db_session, employee, promotion_id)
        await db_session.commit()

        with pytest.raises(InvalidStatus):
            await lifecycle.delete_promotion(db_session, employee, promotion_id)
