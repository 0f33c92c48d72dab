"""Promotion lifecycle coordinator.

State progression: draft -> submitted -> approved | rejected
approved and rejected are terminal.

Every status change is a guarded UPDATE (``WHERE status = <expected>``). When
it touches zero rows another caller got there first and we report a conflict
instead of writing. Badge side effects run in the same transaction; the HTTP
layer commits once at the end.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from badger.auth.identity import Identity
from badger.config import get_settings
from badger.db.enums import BadgeApplicationStatus, PromotionStatus
from badger.db.models import BadgeApplication, Promotion, PromotionBadge
from badger.errors import (
    AdminRequired,
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
from badger.promotions import reservations
from badger.promotions.rules import evaluate, parse_rules
from badger.templates.service import get_template

logger = logging.getLogger(__name__)

VALID_TRANSITIONS: dict[str, list[str]] = {
    PromotionStatus.DRAFT.value: [PromotionStatus.SUBMITTED.value],
    PromotionStatus.SUBMITTED.value: [PromotionStatus.APPROVED.value, PromotionStatus.REJECTED.value],
    PromotionStatus.APPROVED.value: [],
    PromotionStatus.REJECTED.value: [],
}


def validate_transition(current_status: str, target_status: str) -> None:
    """Raise InvalidStatus unless current -> target is an allowed edge."""
    if target_status not in VALID_TRANSITIONS.get(current_status, []):
        raise InvalidStatus(
            f"Cannot move promotion from {current_status} to {target_status}",
            current_status=current_status,
        )


async def get_promotion(db: AsyncSession, promotion_id: uuid.UUID) -> Promotion | None:
    """Fetch a promotion (with its template), bypassing any stale copy in the session."""
    result = await db.execute(
        select(Promotion)
        .where(Promotion.id == promotion_id)
        .execution_options(populate_existing=True)
    )
    return result.unique().scalar_one_or_none()


async def get_visible_promotion(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> Promotion:
    """Fetch a promotion the caller may read. Others' promotions look absent."""
    promotion = await get_promotion(db, promotion_id)
    if promotion is None or not identity.can_see(promotion.created_by):
        raise PromotionNotFound()
    return promotion


async def _guarded_update(
    db: AsyncSession,
    promotion_id: uuid.UUID,
    expected_status: str,
    **values: object,
) -> bool:
    """UPDATE the promotion only if it still has ``expected_status``. True when a row changed."""
    result = await db.execute(
        update(Promotion)
        .where(Promotion.id == promotion_id, Promotion.status == expected_status)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount == 1


async def _set_application_status(
    db: AsyncSession,
    badge_application_ids: Sequence[uuid.UUID],
    from_status: BadgeApplicationStatus,
    to_status: BadgeApplicationStatus,
) -> int:
    if not badge_application_ids:
        return 0
    result = await db.execute(
        update(BadgeApplication)
        .where(
            BadgeApplication.id.in_(badge_application_ids),
            BadgeApplication.status == from_status.value,
        )
        .values(status=to_status.value, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    return result.rowcount


# ── Drafts ──


async def create_promotion(db: AsyncSession, identity: Identity, template_id: uuid.UUID) -> Promotion:
    """Open a draft promotion from an active template. Path, levels and rules are copied and frozen."""
    template = await get_template(db, template_id)
    if template is None:
        raise TemplateNotFound()
    if not template.is_active:
        raise TemplateInactive()

    promotion = Promotion(
        template_id=template.id,
        created_by=identity.user_id,
        path=template.path,
        from_level=template.from_level,
        to_level=template.to_level,
        status=PromotionStatus.DRAFT.value,
        rules=template.rules,
        created_at=datetime.now(timezone.utc),
        executed=False,
    )
    promotion.template = template
    db.add(promotion)
    await db.flush()
    logger.info("Promotion %s created by %s from template %s", promotion.id, identity.user_id, template.id)
    return promotion


async def _editable_draft(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> Promotion:
    """Load a draft the caller owns and lock it against concurrent transitions."""
    promotion = await get_promotion(db, promotion_id)
    if promotion is None:
        raise PromotionNotFound()
    if promotion.created_by != identity.user_id:
        raise NotOwner()
    if promotion.status != PromotionStatus.DRAFT.value:
        raise NotDraft(promotion.status)

    # No-op write: takes the row lock so a concurrent submit waits for us (and vice versa).
    if not await _guarded_update(db, promotion_id, PromotionStatus.DRAFT.value, status=PromotionStatus.DRAFT.value):
        await db.rollback()
        current = await get_promotion(db, promotion_id)
        raise NotDraft(current.status if current else "deleted")
    return promotion


async def add_badges(
    db: AsyncSession,
    identity: Identity,
    promotion_id: uuid.UUID,
    badge_application_ids: Sequence[uuid.UUID],
) -> list[uuid.UUID]:
    """Reserve the caller's accepted badges for their draft promotion."""
    reservations.check_batch(badge_application_ids)
    promotion = await _editable_draft(db, identity, promotion_id)
    return await reservations.reserve(
        db,
        promotion_id=promotion.id,
        owner_id=promotion.created_by,
        badge_application_ids=badge_application_ids,
        assigned_by=identity.user_id,
    )


async def remove_badges(
    db: AsyncSession,
    identity: Identity,
    promotion_id: uuid.UUID,
    badge_application_ids: Sequence[uuid.UUID],
) -> list[uuid.UUID]:
    """Release specific reservations from the caller's draft promotion."""
    reservations.check_batch(badge_application_ids)
    promotion = await _editable_draft(db, identity, promotion_id)
    removed = await reservations.remove(db, promotion.id, badge_application_ids)
    logger.info("Removed %d badge(s) from promotion %s", len(removed), promotion.id)
    return removed


async def delete_promotion(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> None:
    """Delete a draft: release its reservations, then the promotion row, in one transaction."""
    promotion = await get_visible_promotion(db, identity, promotion_id)
    if promotion.status != PromotionStatus.DRAFT.value:
        raise InvalidStatus("Only draft promotions can be deleted", current_status=promotion.status)

    await reservations.release(db, promotion_id)
    result = await db.execute(
        delete(Promotion)
        .where(Promotion.id == promotion_id, Promotion.status == PromotionStatus.DRAFT.value)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise Conflict("Promotion has already been processed")
    db.expunge(promotion)
    logger.info("Promotion %s deleted by %s", promotion_id, identity.user_id)


# ── Transitions ──


async def submit_promotion(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> Promotion:
    """draft -> submitted, once the reserved badges satisfy every template rule.

    Reserved applications move accepted -> used_in_promotion. On unmet rules
    nothing changes and ValidationFailed carries the missing breakdown.
    """
    promotion = await get_promotion(db, promotion_id)
    if promotion is None:
        raise PromotionNotFound()
    if promotion.created_by != identity.user_id:
        raise NotOwner("You do not have permission to submit this promotion")
    if promotion.status != PromotionStatus.DRAFT.value:
        raise InvalidStatus("Only draft promotions can be submitted", current_status=promotion.status)
    validate_transition(promotion.status, PromotionStatus.SUBMITTED.value)
    rules = parse_rules(promotion.rules)

    now = datetime.now(timezone.utc)
    # Claim the transition first so badge edits cannot slip in between evaluation and the write.
    if not await _guarded_update(
        db, promotion_id, PromotionStatus.DRAFT.value,
        status=PromotionStatus.SUBMITTED.value, submitted_at=now,
    ):
        await db.rollback()
        raise Conflict("Promotion has already been processed")

    result = evaluate(rules, await reservations.held_badges(db, promotion_id))
    if not result.is_valid:
        await db.rollback()
        logger.info("Promotion %s failed validation: %d rule(s) unmet", promotion_id, len(result.missing))
        raise ValidationFailed(
            missing=[m.model_dump() for m in result.missing],
            requirements=[r.model_dump() for r in result.requirements],
        )

    reserved = await reservations.reserved_application_ids(db, promotion_id)
    moved = await _set_application_status(
        db, reserved, BadgeApplicationStatus.ACCEPTED, BadgeApplicationStatus.USED_IN_PROMOTION,
    )
    if moved != len(reserved):
        await db.rollback()
        raise Conflict("Reserved badges changed during submission")

    logger.info("Promotion %s submitted with %d badge(s)", promotion_id, len(reserved))
    return await _reload(db, promotion_id)


async def approve_promotion(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> Promotion:
    """submitted -> approved. Reservations become permanently consumed; approval also marks it executed."""
    if not identity.is_admin:
        raise AdminRequired()
    promotion = await get_promotion(db, promotion_id)
    if promotion is None:
        raise PromotionNotFound()
    if promotion.status != PromotionStatus.SUBMITTED.value:
        raise InvalidStatus("Only submitted promotions can be approved", current_status=promotion.status)
    validate_transition(promotion.status, PromotionStatus.APPROVED.value)

    if not await _guarded_update(
        db, promotion_id, PromotionStatus.SUBMITTED.value,
        status=PromotionStatus.APPROVED.value,
        approved_at=datetime.now(timezone.utc),
        approved_by=identity.user_id,
        executed=True,
    ):
        await db.rollback()
        raise Conflict("Promotion has already been processed")

    result = await db.execute(
        update(PromotionBadge)
        .where(PromotionBadge.promotion_id == promotion_id, PromotionBadge.consumed.is_(False))
        .values(consumed=True)
        .execution_options(synchronize_session=False)
    )
    logger.info("Promotion %s approved by %s, %d badge(s) consumed", promotion_id, identity.user_id, result.rowcount)
    return await _reload(db, promotion_id)


async def reject_promotion(
    db: AsyncSession,
    identity: Identity,
    promotion_id: uuid.UUID,
    reason: str,
) -> Promotion:
    """submitted -> rejected. Reservations are released and badges return to accepted."""
    if not identity.is_admin:
        raise AdminRequired()
    reason = (reason or "").strip()
    max_length = get_settings().reject_reason_max_length
    if not reason:
        raise BadRequest("Reject reason is required")
    if len(reason) > max_length:
        raise BadRequest(f"Reject reason must not exceed {max_length} characters")

    promotion = await get_promotion(db, promotion_id)
    if promotion is None:
        raise PromotionNotFound()
    if promotion.status != PromotionStatus.SUBMITTED.value:
        raise InvalidStatus("Only submitted promotions can be rejected", current_status=promotion.status)
    validate_transition(promotion.status, PromotionStatus.REJECTED.value)

    if not await _guarded_update(
        db, promotion_id, PromotionStatus.SUBMITTED.value,
        status=PromotionStatus.REJECTED.value,
        rejected_at=datetime.now(timezone.utc),
        rejected_by=identity.user_id,
        reject_reason=reason,
    ):
        await db.rollback()
        raise Conflict("Promotion has already been processed")

    released = await reservations.release(db, promotion_id)
    reverted = await _set_application_status(
        db, released, BadgeApplicationStatus.USED_IN_PROMOTION, BadgeApplicationStatus.ACCEPTED,
    )
    logger.info(
        "Promotion %s rejected by %s, %d reservation(s) released, %d badge(s) reverted",
        promotion_id, identity.user_id, len(released), reverted,
    )
    return await _reload(db, promotion_id)


async def _reload(db: AsyncSession, promotion_id: uuid.UUID) -> Promotion:
    promotion = await get_promotion(db, promotion_id)
    if promotion is None:
        raise PromotionNotFound()
    return promotion
