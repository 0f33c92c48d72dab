"""Catalog lookups consumed by the promotion engine.

Browsing and search live outside this service. The engine needs a badge's
category, level, status and version. Admins maintain the entries, and every
edit bumps the version so applications keep pointing at the version they
were filed against.
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badger.db.enums import BadgeCategory, BadgeLevel, CatalogBadgeStatus
from badger.db.models import BadgeDefinition
from badger.errors import BadRequest, CatalogBadgeNotFound, InvalidStatus

logger = logging.getLogger(__name__)

_EDITABLE_FIELDS = ("title", "description", "category", "level", "badge_metadata")


async def get_badge_definition(db: AsyncSession, badge_id: uuid.UUID) -> BadgeDefinition | None:
    """Fetch a catalog badge by ID."""
    result = await db.execute(select(BadgeDefinition).where(BadgeDefinition.id == badge_id))
    return result.scalar_one_or_none()


async def create_badge_definition(
    db: AsyncSession,
    title: str,
    category: BadgeCategory | str,
    level: BadgeLevel | str,
    description: str | None = None,
    created_by: uuid.UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> BadgeDefinition:
    """Add an active badge to the catalog at version 1."""
    badge = BadgeDefinition(
        title=title,
        description=description,
        category=BadgeCategory(category).value,
        level=BadgeLevel(level).value,
        badge_metadata=metadata or {},
        status=CatalogBadgeStatus.ACTIVE.value,
        created_by=created_by,
        created_at=datetime.now(timezone.utc),
        version=1,
    )
    db.add(badge)
    await db.flush()
    return badge


async def update_badge_definition(db: AsyncSession, badge_id: uuid.UUID, **changes: Any) -> BadgeDefinition:
    """Edit a catalog badge. Any effective change increments its version."""
    badge = await get_badge_definition(db, badge_id)
    if badge is None:
        raise CatalogBadgeNotFound()

    changed = False
    for field, value in changes.items():
        if field not in _EDITABLE_FIELDS:
            raise BadRequest(f"Field {field!r} cannot be edited")
        if field == "category":
            value = BadgeCategory(value).value
        elif field == "level":
            value = BadgeLevel(value).value
        if getattr(badge, field) != value:
            setattr(badge, field, value)
            changed = True

    if changed:
        badge.version += 1
        await db.flush()
        logger.info("Catalog badge %s edited, now version %d", badge.id, badge.version)
    return badge


async def deactivate_badge_definition(db: AsyncSession, badge_id: uuid.UUID) -> BadgeDefinition:
    """Hide a badge from new applications. Existing applications keep their snapshot."""
    badge = await get_badge_definition(db, badge_id)
    if badge is None:
        raise CatalogBadgeNotFound()
    if badge.status == CatalogBadgeStatus.INACTIVE.value:
        raise InvalidStatus("Catalog badge is already inactive", current_status=badge.status)

    badge.status = CatalogBadgeStatus.INACTIVE.value
    badge.deactivated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Catalog badge %s deactivated", badge.id)
    return badge
