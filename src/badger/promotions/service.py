"""Promotion queries: detail view and filtered listing."""

from __future__ import annotations

import uuid
from dataclasses import dataclass, field

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from badger.auth.identity import Identity
from badger.db.models import Promotion, PromotionBadge
from badger.promotions.lifecycle import get_visible_promotion

PROMOTION_SORT_COLUMNS = {
    "created_at": Promotion.created_at,
    "submitted_at": Promotion.submitted_at,
}


@dataclass
class PromotionDetail:
    promotion: Promotion
    badges: list[PromotionBadge] = field(default_factory=list)


async def get_promotion_detail(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> PromotionDetail:
    """Promotion with its template and every linked badge application (consumed or not)."""
    promotion = await get_visible_promotion(db, identity, promotion_id)
    result = await db.execute(
        select(PromotionBadge)
        .where(PromotionBadge.promotion_id == promotion.id)
        .order_by(PromotionBadge.assigned_at, PromotionBadge.id)
        .execution_options(populate_existing=True)
    )
    return PromotionDetail(promotion=promotion, badges=list(result.scalars().all()))


async def list_promotions(
    db: AsyncSession,
    identity: Identity,
    status: str | None = None,
    path: str | None = None,
    template_id: uuid.UUID | None = None,
    created_by: uuid.UUID | None = None,
    sort: str = "created_at",
    order: str = "desc",
    limit: int = 20,
    offset: int = 0,
) -> tuple[list[tuple[Promotion, int]], int]:
    """Page of (promotion, badge_count) pairs plus the unpaginated total.

    Non-admins only ever see their own promotions; ``created_by`` is honoured for admins.
    """
    query = select(Promotion)
    if not identity.is_admin:
        query = query.where(Promotion.created_by == identity.user_id)
    elif created_by is not None:
        query = query.where(Promotion.created_by == created_by)
    if status is not None:
        query = query.where(Promotion.status == status)
    if path is not None:
        query = query.where(Promotion.path == path)
    if template_id is not None:
        query = query.where(Promotion.template_id == template_id)

    count_query = select(func.count()).select_from(query.with_only_columns(Promotion.id).subquery())
    total = (await db.execute(count_query)).scalar_one()

    column = PROMOTION_SORT_COLUMNS[sort]
    query = query.order_by(column.desc() if order == "desc" else column.asc(), Promotion.id)
    result = await db.execute(query.limit(limit).offset(offset))
    promotions = list(result.unique().scalars().all())
    if not promotions:
        return [], total

    counts_result = await db.execute(
        select(PromotionBadge.promotion_id, func.count(PromotionBadge.id))
        .where(PromotionBadge.promotion_id.in_([p.id for p in promotions]))
        .group_by(PromotionBadge.promotion_id)
    )
    counts = {row[0]: row[1] for row in counts_result}
    return [(p, counts.get(p.id, 0)) for p in promotions], total
