"""Badge application lifecycle.

draft -> submitted (applicant) -> accepted | rejected (admin review).
Drafts can be edited by their applicant; deletion is refused while any
promotion references the application.
Moves to and from used_in_promotion belong to the promotion lifecycle and are
never made here.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from badger.auth.identity import Identity
from badger.catalog.service import get_badge_definition
from badger.db.enums import BadgeApplicationStatus, CatalogBadgeStatus
from badger.db.models import BadgeApplication, PromotionBadge
from badger.errors import (
    BadgeApplicationNotFound,
    CatalogBadgeInactive,
    CatalogBadgeNotFound,
    Conflict,
    Forbidden,
    InvalidStatus,
    ReferencedByPromotion,
)

logger = logging.getLogger(__name__)

REVIEW_OUTCOMES = {
    "accept": BadgeApplicationStatus.ACCEPTED,
    "reject": BadgeApplicationStatus.REJECTED,
}

APPLICATION_SORT_COLUMNS = {
    "created_at": BadgeApplication.created_at,
    "submitted_at": BadgeApplication.submitted_at,
}


async def get_application(db: AsyncSession, application_id: uuid.UUID) -> BadgeApplication | None:
    result = await db.execute(
        select(BadgeApplication)
        .where(BadgeApplication.id == application_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def get_visible_application(
    db: AsyncSession, identity: Identity, application_id: uuid.UUID,
) -> BadgeApplication:
    """Applications are visible to their applicant and to admins only."""
    application = await get_application(db, application_id)
    if application is None or not identity.can_see(application.applicant_id):
        raise BadgeApplicationNotFound()
    return application


async def create_application(
    db: AsyncSession,
    identity: Identity,
    catalog_badge_id: uuid.UUID,
    reason: str | None = None,
) -> BadgeApplication:
    """Start a draft application pinned to the catalog badge's current version."""
    badge = await get_badge_definition(db, catalog_badge_id)
    if badge is None:
        raise CatalogBadgeNotFound()
    if badge.status != CatalogBadgeStatus.ACTIVE.value:
        raise CatalogBadgeInactive()

    now = datetime.now(timezone.utc)
    application = BadgeApplication(
        applicant_id=identity.user_id,
        catalog_badge_id=badge.id,
        catalog_badge_version=badge.version,
        reason=reason,
        status=BadgeApplicationStatus.DRAFT.value,
        created_at=now,
        updated_at=now,
    )
    application.badge = badge
    db.add(application)
    await db.flush()
    logger.info("Badge application %s created by %s for %s v%d", application.id, identity.user_id, badge.id, badge.version)
    return application


async def list_applications(
    db: AsyncSession,
    identity: Identity,
    status: str | None = None,
    applicant_id: uuid.UUID | None = None,
    catalog_badge_id: uuid.UUID | None = None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[BadgeApplication], int]:
    """Own applications for regular users; admins see everyone's and may filter by applicant."""
    query = select(BadgeApplication)
    if not identity.is_admin:
        query = query.where(BadgeApplication.applicant_id == identity.user_id)
    elif applicant_id is not None:
        query = query.where(BadgeApplication.applicant_id == applicant_id)
    if status is not None:
        query = query.where(BadgeApplication.status == status)
    if catalog_badge_id is not None:
        query = query.where(BadgeApplication.catalog_badge_id == catalog_badge_id)

    count_query = select(func.count()).select_from(query.with_only_columns(BadgeApplication.id).subquery())
    total = (await db.execute(count_query)).scalar_one()

    column = APPLICATION_SORT_COLUMNS[sort]
    query = query.order_by(column.desc() if order == "desc" else column.asc(), BadgeApplication.id)
    result = await db.execute(query.limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def _guarded_update(
    db: AsyncSession,
    application_id: uuid.UUID,
    expected_status: BadgeApplicationStatus,
    **values: object,
) -> None:
    result = await db.execute(
        update(BadgeApplication)
        .where(BadgeApplication.id == application_id, BadgeApplication.status == expected_status.value)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise Conflict("Badge application has already been processed")


async def submit_application(db: AsyncSession, identity: Identity, application_id: uuid.UUID) -> BadgeApplication:
    """draft -> submitted, applicant only."""
    application = await get_visible_application(db, identity, application_id)
    if application.applicant_id != identity.user_id:
        raise Forbidden("You do not have permission to submit this badge application")
    if application.status != BadgeApplicationStatus.DRAFT.value:
        raise InvalidStatus("Only draft badge applications can be submitted", current_status=application.status)

    now = datetime.now(timezone.utc)
    await _guarded_update(
        db, application_id, BadgeApplicationStatus.DRAFT,
        status=BadgeApplicationStatus.SUBMITTED.value, submitted_at=now, updated_at=now,
    )
    logger.info("Badge application %s submitted", application_id)
    return await get_visible_application(db, identity, application_id)


async def review_application(
    db: AsyncSession,
    identity: Identity,
    application_id: uuid.UUID,
    decision: str,
    review_reason: str | None = None,
) -> BadgeApplication:
    """submitted -> accepted | rejected, admin only."""
    outcome = REVIEW_OUTCOMES[decision]
    application = await get_application(db, application_id)
    if application is None:
        raise BadgeApplicationNotFound()
    if application.status != BadgeApplicationStatus.SUBMITTED.value:
        raise InvalidStatus("Only submitted badge applications can be reviewed", current_status=application.status)

    now = datetime.now(timezone.utc)
    await _guarded_update(
        db, application_id, BadgeApplicationStatus.SUBMITTED,
        status=outcome.value,
        reviewed_by=identity.user_id,
        reviewed_at=now,
        review_reason=review_reason,
        updated_at=now,
    )
    logger.info("Badge application %s reviewed by %s: %s", application_id, identity.user_id, outcome.value)
    return await get_visible_application(db, identity, application_id)


async def update_application(
    db: AsyncSession,
    identity: Identity,
    application_id: uuid.UUID,
    catalog_badge_id: uuid.UUID | None = None,
    reason: str | None = None,
) -> BadgeApplication:
    """Edit the applicant's draft. A new catalog badge is re-pinned to its current version."""
    application = await get_visible_application(db, identity, application_id)
    if application.applicant_id != identity.user_id:
        raise Forbidden("You do not have permission to edit this badge application")
    if application.status != BadgeApplicationStatus.DRAFT.value:
        raise InvalidStatus("Only draft badge applications can be edited", current_status=application.status)

    values: dict[str, object] = {}
    if catalog_badge_id is not None and catalog_badge_id != application.catalog_badge_id:
        badge = await get_badge_definition(db, catalog_badge_id)
        if badge is None:
            raise CatalogBadgeNotFound()
        if badge.status != CatalogBadgeStatus.ACTIVE.value:
            raise CatalogBadgeInactive()
        values["catalog_badge_id"] = badge.id
        values["catalog_badge_version"] = badge.version
    if reason is not None:
        values["reason"] = reason
    if not values:
        return application

    await _guarded_update(
        db, application_id, BadgeApplicationStatus.DRAFT,
        updated_at=datetime.now(timezone.utc), **values,
    )
    logger.info("Badge application %s edited (%s)", application_id, ", ".join(sorted(values)))
    return await get_visible_application(db, identity, application_id)


async def delete_application(db: AsyncSession, identity: Identity, application_id: uuid.UUID) -> None:
    """Delete an application nothing references.

    Applicants may delete their own drafts; admins may delete in any status.
    Any reservation row, consumed or not, keeps the application alive.
    """
    application = await get_visible_application(db, identity, application_id)
    if not identity.is_admin and application.status != BadgeApplicationStatus.DRAFT.value:
        raise InvalidStatus("Only draft badge applications can be deleted", current_status=application.status)

    referenced = select(PromotionBadge.id).where(PromotionBadge.badge_application_id == application_id)
    if (await db.execute(referenced.limit(1))).scalar_one_or_none() is not None:
        raise ReferencedByPromotion()

    stmt = delete(BadgeApplication).where(BadgeApplication.id == application_id, ~referenced.exists())
    if not identity.is_admin:
        stmt = stmt.where(BadgeApplication.status == BadgeApplicationStatus.DRAFT.value)
    result = await db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount != 1:
        await db.rollback()
        raise Conflict("Badge application has already been processed")
    db.expunge(application)
    logger.info("Badge application %s deleted by %s", application_id, identity.user_id)
