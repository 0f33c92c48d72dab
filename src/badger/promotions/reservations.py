"""Reservation ledger: which promotion holds which badge application.

Exclusivity is enforced by the partial unique index
``ux_promotion_badges_badge_application_unconsumed``: the insert itself is the
check, so two processes racing for the same badge cannot both win. Every
operation here runs inside the caller's transaction and rolls it back on
failure, so a batch is applied completely or not at all.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import delete, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from badger.config import get_settings
from badger.db.enums import BadgeApplicationStatus
from badger.db.models import BadgeApplication, BadgeDefinition, PromotionBadge
from badger.errors import (
    BadgeNotEligible,
    BadgeNotFound,
    BadgeNotInPromotion,
    BadRequest,
    ReservationConflict,
)
from badger.promotions.rules import HeldBadge

logger = logging.getLogger(__name__)


def check_batch(badge_application_ids: Sequence[uuid.UUID]) -> list[uuid.UUID]:
    """Require 1..limit distinct ids. Returns them in request order."""
    limit = get_settings().reservation_batch_limit
    ids = list(badge_application_ids)
    if not ids:
        raise BadRequest("At least one badge application ID is required")
    if len(ids) > limit:
        raise BadRequest(f"Cannot process more than {limit} badges at once")
    if len(set(ids)) != len(ids):
        raise BadRequest("Badge application IDs must be unique")
    return ids


async def _load_application(db: AsyncSession, badge_application_id: uuid.UUID) -> BadgeApplication | None:
    result = await db.execute(
        select(BadgeApplication)
        .where(BadgeApplication.id == badge_application_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def owning_promotion(db: AsyncSession, badge_application_id: uuid.UUID) -> uuid.UUID | None:
    """Return the promotion currently holding an unconsumed reservation on the badge, if any."""
    result = await db.execute(
        select(PromotionBadge.promotion_id).where(
            PromotionBadge.badge_application_id == badge_application_id,
            PromotionBadge.consumed.is_(False),
        )
    )
    return result.scalar_one_or_none()


async def reserve(
    db: AsyncSession,
    promotion_id: uuid.UUID,
    owner_id: uuid.UUID,
    badge_application_ids: Sequence[uuid.UUID],
    assigned_by: uuid.UUID,
) -> list[uuid.UUID]:
    """Claim accepted badge applications for a promotion.

    Applications must belong to ``owner_id``; anyone else's are reported as
    not found. Badge statuses are left untouched until submission.

    Raises:
        BadRequest: empty, oversized or duplicated batch.
        BadgeNotFound: an application does not exist (or is not the owner's).
        BadgeNotEligible: an application is not ``accepted``.
        ReservationConflict: an unconsumed reservation already holds one,
            whether another promotion's or this one's.
    """
    ids = check_batch(badge_application_ids)
    now = datetime.now(timezone.utc)

    for badge_id in ids:
        application = await _load_application(db, badge_id)
        if application is None or application.applicant_id != owner_id:
            await db.rollback()
            raise BadgeNotFound(badge_id)
        if application.status != BadgeApplicationStatus.ACCEPTED.value:
            status = application.status
            await db.rollback()
            raise BadgeNotEligible(badge_id, status)

        db.add(PromotionBadge(
            promotion_id=promotion_id,
            badge_application_id=badge_id,
            assigned_at=now,
            assigned_by=assigned_by,
            consumed=False,
        ))
        try:
            await db.flush()
        except IntegrityError:
            await db.rollback()
            holder = await owning_promotion(db, badge_id)
            logger.info(
                "Reservation conflict: badge %s requested by promotion %s is held by %s",
                badge_id, promotion_id, holder,
            )
            raise ReservationConflict(badge_id, holder, promotion_id) from None

    logger.info("Reserved %d badge(s) for promotion %s", len(ids), promotion_id)
    return ids


async def release(db: AsyncSession, promotion_id: uuid.UUID) -> list[uuid.UUID]:
    """Drop every unconsumed reservation of a promotion. Idempotent.

    Returns the badge application ids that were released.
    """
    result = await db.execute(
        select(PromotionBadge.badge_application_id).where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.consumed.is_(False),
        )
    )
    released = list(result.scalars().all())
    if not released:
        return []

    await db.execute(
        delete(PromotionBadge)
        .where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.consumed.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    logger.info("Released %d reservation(s) of promotion %s", len(released), promotion_id)
    return released


async def remove(
    db: AsyncSession,
    promotion_id: uuid.UUID,
    badge_application_ids: Sequence[uuid.UUID],
) -> list[uuid.UUID]:
    """Release specific reservations of a promotion. All ids must be held by it."""
    ids = check_batch(badge_application_ids)
    result = await db.execute(
        select(PromotionBadge.badge_application_id).where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.badge_application_id.in_(ids),
            PromotionBadge.consumed.is_(False),
        )
    )
    held = set(result.scalars().all())
    for badge_id in ids:
        if badge_id not in held:
            await db.rollback()
            raise BadgeNotInPromotion(badge_id)

    await db.execute(
        delete(PromotionBadge)
        .where(
            PromotionBadge.promotion_id == promotion_id,
            PromotionBadge.badge_application_id.in_(ids),
            PromotionBadge.consumed.is_(False),
        )
        .execution_options(synchronize_session=False)
    )
    return ids


async def reserved_application_ids(
    db: AsyncSession,
    promotion_id: uuid.UUID,
    consumed: bool | None = False,
) -> list[uuid.UUID]:
    """Badge application ids linked to a promotion, optionally filtered on the consumed flag."""
    query = select(PromotionBadge.badge_application_id).where(PromotionBadge.promotion_id == promotion_id)
    if consumed is not None:
        query = query.where(PromotionBadge.consumed.is_(consumed))
    result = await db.execute(query)
    return list(result.scalars().all())


async def held_badges(db: AsyncSession, promotion_id: uuid.UUID) -> list[HeldBadge]:
    """Category/level of every badge linked to the promotion, consumed or not."""
    result = await db.execute(
        select(BadgeDefinition.category, BadgeDefinition.level)
        .select_from(PromotionBadge)
        .join(BadgeApplication, PromotionBadge.badge_application_id == BadgeApplication.id)
        .join(BadgeDefinition, BadgeApplication.catalog_badge_id == BadgeDefinition.id)
        .where(PromotionBadge.promotion_id == promotion_id)
    )
    return [HeldBadge(category=row.category, level=row.level) for row in result]
