"""Promotion template endpoints. Reads are open to any caller, writes are admin-only."""

from __future__ import annotations

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from badger import audit
from badger.audit import AuditSink, get_audit_sink
from badger.auth.dependencies import get_identity, require_admin
from badger.auth.identity import Identity
from badger.database import get_session
from badger.db.models import PromotionTemplate
from badger.errors import TemplateNotFound
from badger.pagination import page_info
from badger.promotions.rules import parse_rules
from badger.templates import service
from badger.templates.schemas import (
    TemplateCreateRequest,
    TemplateListResponse,
    TemplateResponse,
    TemplateUpdateRequest,
)

router = APIRouter(prefix="/api/v1", tags=["Promotion Templates"])


def _template_to_response(template: PromotionTemplate) -> TemplateResponse:
    return TemplateResponse(
        id=template.id,
        name=template.name,
        path=template.path,
        from_level=template.from_level,
        to_level=template.to_level,
        rules=parse_rules(template.rules),
        is_active=template.is_active,
        created_by=template.created_by,
        created_at=template.created_at,
        updated_at=template.updated_at,
    )


@router.get("/promotion-templates", response_model=TemplateListResponse)
async def list_templates(
    path: str | None = Query(None, pattern="^(technical|financial|management)$"),
    from_level: str | None = Query(None),
    to_level: str | None = Query(None),
    is_active: bool = Query(True),
    sort: str = Query("name", pattern="^(name|created_at)$"),
    order: str = Query("asc", pattern="^(asc|desc)$"),
    limit: int = Query(20, ge=1, le=100),
    offset: int = Query(0, ge=0),
    _identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> TemplateListResponse:
    templates, total = await service.list_templates(
        db,
        path=path,
        from_level=from_level,
        to_level=to_level,
        is_active=is_active,
        sort=sort,
        order=order,
        limit=limit,
        offset=offset,
    )
    return TemplateListResponse(
        data=[_template_to_response(t) for t in templates],
        pagination=page_info(total, limit, offset),
    )


@router.get("/promotion-templates/{template_id}", response_model=TemplateResponse)
async def get_template(
    template_id: uuid.UUID,
    _identity: Identity = Depends(get_identity),
    db: AsyncSession = Depends(get_session),
) -> TemplateResponse:
    template = await service.get_template(db, template_id)
    if template is None:
        raise TemplateNotFound()
    return _template_to_response(template)


@router.post("/promotion-templates", response_model=TemplateResponse, status_code=201)
async def create_template(
    body: TemplateCreateRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> TemplateResponse:
    """Create a template (admin)."""
    template = await service.create_template(
        db,
        identity,
        name=body.name,
        path=body.path.value,
        from_level=body.from_level,
        to_level=body.to_level,
        rules=body.rules,
    )
    await db.commit()
    await sink.emit(audit.TEMPLATE_CREATED, identity.user_id, {"template_id": template.id})
    return _template_to_response(template)


@router.put("/promotion-templates/{template_id}", response_model=TemplateResponse)
async def update_template(
    template_id: uuid.UUID,
    body: TemplateUpdateRequest,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> TemplateResponse:
    """Rename a template or replace its rules (admin). Rules are frozen once used."""
    template = await service.update_template(db, template_id, name=body.name, rules=body.rules)
    await db.commit()
    await sink.emit(audit.TEMPLATE_UPDATED, identity.user_id, {
        "template_id": template_id,
        "fields": sorted(body.model_dump(exclude_none=True)),
    })
    return _template_to_response(template)


@router.post("/promotion-templates/{template_id}/deactivate", response_model=TemplateResponse)
async def deactivate_template(
    template_id: uuid.UUID,
    identity: Identity = Depends(require_admin),
    db: AsyncSession = Depends(get_session),
    sink: AuditSink = Depends(get_audit_sink),
) -> TemplateResponse:
    template = await service.deactivate_template(db, template_id)
    await db.commit()
    await sink.emit(audit.TEMPLATE_DEACTIVATED, identity.user_id, {"template_id": template_id})
    return _template_to_response(template)
