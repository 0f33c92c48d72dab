"""Promotions API: create, list, badge reservations, validation and lifecycle transitions."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from badger import audit
from badger.audit import AuditSink, get_audit_sink
from badger.auth.dependencies import get_identity, require_admin
from badger.auth.identity import Identity
from badger.database import get_session
from badger.db.models import Promotion, PromotionBadge
from badger.pagination import page_info
from badger.promotions import lifecycle
from badger.promotions.rules import parse_rules
from badger.promotions.schemas import (
    BadgeIdsRequest,
    BadgesAddedResponse,
    BadgesRemovedResponse,
    PromotionBadgeEntry,
    PromotionCreateRequest,
    PromotionDeletedResponse,
    PromotionDetailResponse,
    PromotionListItem,
    PromotionListResponse,
    PromotionResponse,
    RejectRequest,
    TemplateSummary,
    ValidationResponse,
)
from badger.promotions.service import get_promotion_detail, list_promotions
from badger.promotions.validation_service import validate_promotion

router = APIRouter(prefix="/api/v1", tags=["Promotions"])


def _promotion_fields(promotion: Promotion) -> dict[str, object]:
    return {
        "id": promotion.id,
        "template_id": promotion.template_id,
        "created_by": promotion.created_by,
        "path": promotion.path,
        "from_level": promotion.from_level,
        "to_level": promotion.to_level,
        "status": promotion.status,
        "created_at": promotion.created_at,
        "submitted_at": promotion.submitted_at,
        "approved_at": promotion.approved_at,
        "approved_by": promotion.approved_by,
        "rejected_at": promotion.rejected_at,
        "rejected_by": promotion.rejected_by,
        "reject_reason": promotion.reject_reason,
        "executed": promotion.executed,
    }


def _promotion_to_response(promotion: Promotion) -> PromotionResponse:
    return PromotionResponse(**_promotion_fields(promotion))


def _badge_entry(link: PromotionBadge) -> PromotionBadgeEntry:
    application = link.badge_application
    return PromotionBadgeEntry(
        badge_application_id=application.id,
        catalog_badge_id=application.catalog_badge_id,
        title=application.badge.title,
        category=application.badge.category,
        level=application.badge.level,
        status=application.status,
        assigned_at=link.assigned_at,
        assigned_by=link.assigned_by,
        consumed=link.consumed,
    )


# ── Drafts ──


@router.post("/promotions", response_model=PromotionResponse, status_code=201)
async def create_promotion(
    body: PromotionCreateRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> PromotionResponse:
    """Open a draft promotion from an active template."""
    promotion = await lifecycle.create_promotion(db, identity, body.template_id)
    await db.commit()
    await sink.emit(audit.PROMOTION_CREATED, identity.user_id, {
        "promotion_id": promotion.id,
        "template_id": promotion.template_id,
    })
    return _promotion_to_response(promotion)


@router.get("/promotions", response_model=PromotionListResponse)
async def get_promotions(
    status: str | None = Query(None, pattern="^(draft|submitted|approved|rejected)$"),
    path: str | None = Query(None, pattern="^(technical|financial|management)$"),
    template_id: uuid.UUID | None = Query(None),
    created_by: uuid.UUID | None = Query(None),
    sort: str = Query("created_at", pattern="^(created_at|submitted_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> PromotionListResponse:
    """List promotions. Non-admins only see their own."""
    rows, total = await list_promotions(
        db,
        identity,
        status=status,
        path=path,
        template_id=template_id,
        created_by=created_by,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return PromotionListResponse(
        data=[PromotionListItem(**_promotion_fields(p), badge_count=count) for p, count in rows],
        pagination=page_info(total, limit, offset),
    )


@router.get("/promotions/{promotion_id}", response_model=PromotionDetailResponse)
async def get_promotion(
    promotion_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> PromotionDetailResponse:
    """Promotion with its template and linked badge applications."""
    detail = await get_promotion_detail(db, identity, promotion_id)
    template = detail.promotion.template
    return PromotionDetailResponse(
        **_promotion_fields(detail.promotion),
        template=TemplateSummary(
            id=template.id,
            name=template.name,
            path=template.path,
            from_level=template.from_level,
            to_level=template.to_level,
            rules=parse_rules(detail.promotion.rules),
        ),
        badge_applications=[_badge_entry(link) for link in detail.badges],
    )


@router.delete("/promotions/{promotion_id}", response_model=PromotionDeletedResponse)
async def delete_promotion(
    promotion_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> PromotionDeletedResponse:
    """Delete a draft promotion and release its reservations."""
    await lifecycle.delete_promotion(db, identity, promotion_id)
    await db.commit()
    await sink.emit(audit.PROMOTION_DELETED, identity.user_id, {"promotion_id": promotion_id})
    return PromotionDeletedResponse(id=promotion_id)


# ── Badge reservations ──


@router.post("/promotions/{promotion_id}/badges", response_model=BadgesAddedResponse)
async def add_promotion_badges(
    promotion_id: uuid.UUID,
    body: BadgeIdsRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> BadgesAddedResponse:
    """Reserve accepted badge applications for a draft promotion. All or nothing."""
    added = await lifecycle.add_badges(db, identity, promotion_id, body.badge_application_ids)
    await db.commit()
    await sink.emit(audit.PROMOTION_BADGES_ADDED, identity.user_id, {
        "promotion_id": promotion_id,
        "badge_application_ids": added,
    })
    return BadgesAddedResponse(
        promotion_id=promotion_id,
        added_count=len(added),
        badge_application_ids=added,
        message=f"{len(added)} badge(s) added to promotion",
    )


@router.delete("/promotions/{promotion_id}/badges", response_model=BadgesRemovedResponse)
async def remove_promotion_badges(
    promotion_id: uuid.UUID,
    body: BadgeIdsRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> BadgesRemovedResponse:
    """Release reservations from a draft promotion."""
    removed = await lifecycle.remove_badges(db, identity, promotion_id, body.badge_application_ids)
    await db.commit()
    await sink.emit(audit.PROMOTION_BADGES_REMOVED, identity.user_id, {
        "promotion_id": promotion_id,
        "badge_application_ids": removed,
    })
    return BadgesRemovedResponse(
        promotion_id=promotion_id,
        removed_count=len(removed),
        badge_application_ids=removed,
        message=f"{len(removed)} badge(s) removed from promotion",
    )


@router.get("/promotions/{promotion_id}/validation", response_model=ValidationResponse)
async def get_promotion_validation(
    promotion_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> ValidationResponse:
    """Current rule satisfaction of a promotion. Read-only."""
    report = await validate_promotion(db, identity, promotion_id)
    return ValidationResponse(
        promotion_id=report.promotion_id,
        is_valid=report.result.is_valid,
        requirements=report.result.requirements,
        missing=report.result.missing,
    )


# ── Transitions ──


@router.post("/promotions/{promotion_id}/submit", response_model=PromotionResponse)
async def submit_promotion(
    promotion_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> PromotionResponse:
    """Submit a draft whose reserved badges satisfy the template."""
    promotion = await lifecycle.submit_promotion(db, identity, promotion_id)
    await db.commit()
    await sink.emit(audit.PROMOTION_SUBMITTED, identity.user_id, {"promotion_id": promotion_id})
    return _promotion_to_response(promotion)


@router.post("/promotions/{promotion_id}/approve", response_model=PromotionResponse)
async def approve_promotion(
    promotion_id: uuid.UUID,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> PromotionResponse:
    """Approve a submitted promotion (admin). Reserved badges are consumed."""
    promotion = await lifecycle.approve_promotion(db, identity, promotion_id)
    await db.commit()
    await sink.emit(audit.PROMOTION_APPROVED, identity.user_id, {"promotion_id": promotion_id})
    return _promotion_to_response(promotion)


@router.post("/promotions/{promotion_id}/reject", response_model=PromotionResponse)
async def reject_promotion(
    promotion_id: uuid.UUID,
    body: RejectRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> PromotionResponse:
    """Reject a submitted promotion (admin). Reserved badges become available again."""
    promotion = await lifecycle.reject_promotion(db, identity, promotion_id, body.reject_reason)
    await db.commit()
    await sink.emit(audit.PROMOTION_REJECTED, identity.user_id, {
        "promotion_id": promotion_id,
        "reject_reason": promotion.reject_reason,
    })
    return _promotion_to_response(promotion)
