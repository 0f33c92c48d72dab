"""Catalog badge endpoints. Any caller may read a badge; writes are admin-only."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from badger import audit
from badger.audit import AuditSink, get_audit_sink
from badger.auth.dependencies import get_identity, require_admin
from badger.auth.identity import Identity
from badger.catalog import service
from badger.catalog.schemas import CatalogBadgeCreateRequest, CatalogBadgeResponse, CatalogBadgeUpdateRequest
from badger.database import get_session
from badger.db.models import BadgeDefinition
from badger.errors import CatalogBadgeNotFound

router = APIRouter(prefix="/api/v1", tags=["Catalog Badges"])


def _badge_to_response(badge: BadgeDefinition) -> CatalogBadgeResponse:
    return CatalogBadgeResponse(
        id=badge.id,
        title=badge.title,
        description=badge.description,
        category=badge.category,
        level=badge.level,
        metadata=badge.badge_metadata or {},
        status=badge.status,
        version=badge.version,
        created_by=badge.created_by,
        created_at=badge.created_at,
        deactivated_at=badge.deactivated_at,
    )


@router.get("/catalog-badges/{badge_id}", response_model=CatalogBadgeResponse)
async def get_catalog_badge(
    badge_id: uuid.UUID,
    _identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> CatalogBadgeResponse:
    badge = await service.get_badge_definition(db, badge_id)
    if badge is None:
        raise CatalogBadgeNotFound()
    return _badge_to_response(badge)


@router.post("/catalog-badges", response_model=CatalogBadgeResponse, status_code=201)
async def create_catalog_badge(
    body: CatalogBadgeCreateRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> CatalogBadgeResponse:
    """Add an active badge to the catalog (admin)."""
    badge = await service.create_badge_definition(
        db,
        title=body.title,
        category=body.category,
        level=body.level,
        description=body.description,
        created_by=identity.user_id,
        metadata=body.metadata,
    )
    await db.commit()
    await sink.emit(audit.CATALOG_BADGE_CREATED, identity.user_id, {"catalog_badge_id": badge.id})
    return _badge_to_response(badge)


@router.put("/catalog-badges/{badge_id}", response_model=CatalogBadgeResponse)
async def update_catalog_badge(
    badge_id: uuid.UUID,
    body: CatalogBadgeUpdateRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> CatalogBadgeResponse:
    """Edit a catalog badge (admin). Effective changes bump the version."""
    changes = body.changes()
    badge = await service.update_badge_definition(db, badge_id, **changes)
    await db.commit()
    await sink.emit(audit.CATALOG_BADGE_UPDATED, identity.user_id, {
        "catalog_badge_id": badge_id,
        "fields": sorted(changes),
        "version": badge.version,
    })
    return _badge_to_response(badge)


@router.post("/catalog-badges/{badge_id}/deactivate", response_model=CatalogBadgeResponse)
async def deactivate_catalog_badge(
    badge_id: uuid.UUID,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> CatalogBadgeResponse:
    badge = await service.deactivate_badge_definition(db, badge_id)
    await db.commit()
    await sink.emit(audit.CATALOG_BADGE_DEACTIVATED, identity.user_id, {"catalog_badge_id": badge_id})
    return _badge_to_response(badge)
