"""Badge application endpoints."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from badger import audit
from badger.applications import service
from badger.applications.schemas import (
    ApplicationCreateRequest,
    ApplicationDeletedResponse,
    ApplicationListResponse,
    ApplicationResponse,
    ApplicationReviewRequest,
    ApplicationUpdateRequest,
    CatalogBadgeSummary,
)
from badger.audit import AuditSink, get_audit_sink
from badger.auth.dependencies import get_identity, require_admin
from badger.auth.identity import Identity
from badger.database import get_session
from badger.db.models import BadgeApplication
from badger.pagination import page_info

router = APIRouter(prefix="/api/v1", tags=["Badge Applications"])


def _application_to_response(application: BadgeApplication) -> ApplicationResponse:
    badge = application.badge
    return ApplicationResponse(
        id=application.id,
        applicant_id=application.applicant_id,
        catalog_badge_id=application.catalog_badge_id,
        catalog_badge_version=application.catalog_badge_version,
        catalog_badge=CatalogBadgeSummary(
            id=badge.id,
            title=badge.title,
            category=badge.category,
            level=badge.level,
            version=badge.version,
        ),
        reason=application.reason,
        status=application.status,
        submitted_at=application.submitted_at,
        reviewed_by=application.reviewed_by,
        reviewed_at=application.reviewed_at,
        review_reason=application.review_reason,
        created_at=application.created_at,
        updated_at=application.updated_at,
    )


@router.get("/badge-applications", response_model=ApplicationListResponse)
async def list_applications(
    status: str | None = Query(None, pattern="^(draft|submitted|accepted|rejected|used_in_promotion)$"),
    applicant_id: uuid.UUID | None = Query(None),
    catalog_badge_id: uuid.UUID | None = Query(None),
    sort: str = Query("created_at", pattern="^(created_at|submitted_at)$"),
    order: str = Query("desc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> ApplicationListResponse:
    applications, total = await service.list_applications(
        db,
        identity,
        status=status,
        applicant_id=applicant_id,
        catalog_badge_id=catalog_badge_id,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return ApplicationListResponse(
        data=[_application_to_response(a) for a in applications],
        pagination=page_info(total, limit, offset),
    )


@router.post("/badge-applications", response_model=ApplicationResponse, status_code=201)
async def create_application(
    body: ApplicationCreateRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationResponse:
    application = await service.create_application(db, identity, body.catalog_badge_id, body.reason)
    await db.commit()
    await sink.emit(audit.APPLICATION_CREATED, identity.user_id, {
        "badge_application_id": application.id,
        "catalog_badge_id": application.catalog_badge_id,
    })
    return _application_to_response(application)


@router.get("/badge-applications/{application_id}", response_model=ApplicationResponse)
async def get_application(
    application_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> ApplicationResponse:
    application = await service.get_visible_application(db, identity, application_id)
    return _application_to_response(application)


@router.put("/badge-applications/{application_id}", response_model=ApplicationResponse)
async def update_application(
    application_id: uuid.UUID,
    body: ApplicationUpdateRequest,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationResponse:
    """Edit a draft application (applicant)."""
    application = await service.update_application(
        db, identity, application_id, catalog_badge_id=body.catalog_badge_id, reason=body.reason,
    )
    await db.commit()
    await sink.emit(audit.APPLICATION_UPDATED, identity.user_id, {
        "badge_application_id": application_id,
        "fields": sorted(body.model_dump(exclude_none=True)),
    })
    return _application_to_response(application)


@router.delete("/badge-applications/{application_id}", response_model=ApplicationDeletedResponse)
async def delete_application(
    application_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationDeletedResponse:
    await service.delete_application(db, identity, application_id)
    await db.commit()
    await sink.emit(audit.APPLICATION_DELETED, identity.user_id, {"badge_application_id": application_id})
    return ApplicationDeletedResponse(id=application_id)


@router.post("/badge-applications/{application_id}/submit", response_model=ApplicationResponse)
async def submit_application(
    application_id: uuid.UUID,
    identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationResponse:
    """Send a draft application for admin review."""
    application = await service.submit_application(db, identity, application_id)
    await db.commit()
    await sink.emit(audit.APPLICATION_SUBMITTED, identity.user_id, {"badge_application_id": application_id})
    return _application_to_response(application)


@router.post("/badge-applications/{application_id}/review", response_model=ApplicationResponse)
async def review_application(
    application_id: uuid.UUID,
    body: ApplicationReviewRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> ApplicationResponse:
    """Accept or reject a submitted application (admin)."""
    application = await service.review_application(
        db, identity, application_id, body.decision, body.review_reason,
    )
    await db.commit()
    await sink.emit(audit.APPLICATION_REVIEWED, identity.user_id, {
        "badge_application_id": application_id,
        "decision": body.decision,
    })
    return _application_to_response(application)
