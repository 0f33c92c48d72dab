"""Starter catalog: every badge family in gold, silver and bronze."""

from __future__ import annotations

import logging
from datetime import datetime, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from badger.db.enums import BadgeLevel
from badger.db.models import BadgeDefinition

logger = logging.getLogger(__name__)

BADGE_FAMILIES: list[dict[str, str]] = [
    # Technical
    {
        "name": "System Architecture",
        "category": "technical",
        "description": "Designs scalable, resilient system architectures.",
    },
    {
        "name": "Database Optimization",
        "category": "technical",
        "description": "Tunes queries, indexes and schemas for production workloads.",
    },
    {
        "name": "API Design Excellence",
        "category": "technical",
        "description": "Builds consistent, documented and versioned APIs.",
    },
    {
        "name": "Security Champion",
        "category": "technical",
        "description": "Applies and promotes secure engineering practices.",
    },
    {
        "name": "Testing Mastery",
        "category": "technical",
        "description": "Establishes effective unit, integration and end-to-end testing.",
    },
    # Organizational
    {
        "name": "Project Leadership",
        "category": "organizational",
        "description": "Takes projects from inception to delivery.",
    },
    {
        "name": "Process Improvement",
        "category": "organizational",
        "description": "Streamlines workflows with measurable impact.",
    },
    {
        "name": "Documentation Excellence",
        "category": "organizational",
        "description": "Writes documentation others rely on.",
    },
    {
        "name": "Cross-Team Collaboration",
        "category": "organizational",
        "description": "Works across team boundaries toward shared goals.",
    },
    # Soft skills
    {
        "name": "Mentoring",
        "category": "softskilled",
        "description": "Grows the skills of colleagues through coaching and feedback.",
    },
    {
        "name": "Communication",
        "category": "softskilled",
        "description": "Explains complex topics clearly to any audience.",
    },
    {
        "name": "Conflict Resolution",
        "category": "softskilled",
        "description": "Turns disagreement into constructive outcomes.",
    },
]


async def seed_catalog(db: AsyncSession) -> int:
    """Insert any starter badges that are missing, matched by title. Returns the number inserted."""
    existing = set((await db.execute(select(BadgeDefinition.title))).scalars().all())
    now = datetime.now(timezone.utc)

    inserted = 0
    for family in BADGE_FAMILIES:
        for level in BadgeLevel:
            title = f"{family['name']} - {level.value.capitalize()}"
            if title in existing:
                continue
            db.add(BadgeDefinition(
                title=title,
                description=family["description"],
                category=family["category"],
                level=level.value,
                badge_metadata={},
                status="active",
                created_at=now,
                version=1,
            ))
            inserted += 1

    await db.commit()
    logger.info("Seeded %d catalog badges", inserted)
    return inserted
