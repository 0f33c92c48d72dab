"""Promotion template administration.

Templates carry the rules a promotion is validated against. Once any promotion
references a template its rules are frozen; the name can still change.
"""

from __future__ import annotations

import logging
import uuid
from collections.abc import Sequence
from datetime import datetime, timezone

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from badger.auth.identity import Identity
from badger.db.models import Promotion, PromotionTemplate
from badger.errors import Conflict, InvalidStatus, TemplateNotFound
from badger.promotions.rules import TemplateRule, dump_rules, parse_rules

logger = logging.getLogger(__name__)

RULES_FROZEN = "Template rules cannot change once a promotion uses the template"

TEMPLATE_SORT_COLUMNS = {
    "name": PromotionTemplate.name,
    "created_at": PromotionTemplate.created_at,
}


async def get_template(db: AsyncSession, template_id: uuid.UUID) -> PromotionTemplate | None:
    """Fetch a template by ID."""
    result = await db.execute(
        select(PromotionTemplate)
        .where(PromotionTemplate.id == template_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


async def list_templates(
    db: AsyncSession,
    path: str | None = None,
    from_level: str | None = None,
    to_level: str | None = None,
    is_active: bool | None = True,
    sort: str = "name",
    order: str = "asc",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[PromotionTemplate], int]:
    """Filtered, sorted page of templates plus the unpaginated total."""
    query = select(PromotionTemplate)
    if path is not None:
        query = query.where(PromotionTemplate.path == path)
    if from_level is not None:
        query = query.where(PromotionTemplate.from_level == from_level)
    if to_level is not None:
        query = query.where(PromotionTemplate.to_level == to_level)
    if is_active is not None:
        query = query.where(PromotionTemplate.is_active.is_(is_active))

    total = (await db.execute(select(func.count()).select_from(query.subquery()))).scalar_one()

    column = TEMPLATE_SORT_COLUMNS[sort]
    query = query.order_by(column.desc() if order == "desc" else column.asc(), PromotionTemplate.id)
    result = await db.execute(query.limit(limit).offset(offset))
    return list(result.scalars().all()), total


async def create_template(
    db: AsyncSession,
    identity: Identity,
    name: str,
    path: str,
    from_level: str,
    to_level: str,
    rules: Sequence[TemplateRule],
) -> PromotionTemplate:
    """Create an active template. One template per (path, from_level, to_level)."""
    existing = await db.execute(
        select(PromotionTemplate.id).where(
            PromotionTemplate.path == path,
            PromotionTemplate.from_level == from_level,
            PromotionTemplate.to_level == to_level,
        ).limit(1)
    )
    if existing.scalar_one_or_none() is not None:
        raise Conflict("Promotion template already exists for path/from_level/to_level")

    now = datetime.now(timezone.utc)
    template = PromotionTemplate(
        name=name,
        path=path,
        from_level=from_level,
        to_level=to_level,
        rules=dump_rules(rules),
        is_active=True,
        created_by=identity.user_id,
        created_at=now,
        updated_at=now,
    )
    db.add(template)
    await db.flush()
    logger.info("Template %s (%s %s->%s) created by %s", template.id, path, from_level, to_level, identity.user_id)
    return template


async def is_referenced(db: AsyncSession, template_id: uuid.UUID) -> bool:
    result = await db.execute(select(Promotion.id).where(Promotion.template_id == template_id).limit(1))
    return result.scalar_one_or_none() is not None


async def update_template(
    db: AsyncSession,
    template_id: uuid.UUID,
    name: str | None = None,
    rules: Sequence[TemplateRule] | None = None,
) -> PromotionTemplate:
    """Rename a template or replace its rules.

    The rules write only lands while no promotion references the template, so
    a promotion created concurrently can never end up on rules it did not see.

    Raises:
        TemplateNotFound: unknown template.
        Conflict: rules would change on a template a promotion already uses.
    """
    template = await get_template(db, template_id)
    if template is None:
        raise TemplateNotFound()

    values: dict[str, object] = {}
    if name is not None and name != template.name:
        values["name"] = name

    rules_changed = False
    if rules is not None:
        new_rules = dump_rules(rules)
        if new_rules != dump_rules(parse_rules(template.rules)):
            if await is_referenced(db, template_id):
                raise Conflict(RULES_FROZEN)
            values["rules"] = new_rules
            rules_changed = True

    if not values:
        return template

    stmt = update(PromotionTemplate).where(PromotionTemplate.id == template_id)
    if rules_changed:
        stmt = stmt.where(~select(Promotion.id).where(Promotion.template_id == template_id).exists())
    result = await db.execute(
        stmt.values(**values, updated_at=datetime.now(timezone.utc))
        .execution_options(synchronize_session=False)
    )
    if result.rowcount != 1:
        await db.rollback()
        raise Conflict(RULES_FROZEN)

    logger.info("Template %s updated", template_id)
    return await get_template(db, template_id)


async def deactivate_template(db: AsyncSession, template_id: uuid.UUID) -> PromotionTemplate:
    """Stop offering a template for new promotions. Existing promotions keep using it."""
    template = await get_template(db, template_id)
    if template is None:
        raise TemplateNotFound()
    if not template.is_active:
        raise InvalidStatus("Promotion template is already inactive", current_status="inactive")

    template.is_active = False
    template.updated_at = datetime.now(timezone.utc)
    await db.flush()
    logger.info("Template %s deactivated", template_id)
    return template
