"""Pydantic schemas for the promotions API."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field, field_validator

from badger.pagination import Pagination
from badger.promotions.rules import MissingBadge, Requirement, TemplateRule

# --- Requests ---


class PromotionCreateRequest(BaseModel):
    template_id: uuid.UUID


class BadgeIdsRequest(BaseModel):
    badge_application_ids: list[uuid.UUID] = Field(..., min_length=1, max_length=100)

    @field_validator("badge_application_ids")
    @classmethod
    def ids_unique(cls, v: list[uuid.UUID]) -> list[uuid.UUID]:
        if len(set(v)) != len(v):
            msg = "Badge application IDs must be unique"
            raise ValueError(msg)
        return v


class RejectRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    reject_reason: str = Field(..., min_length=1, max_length=2000)


# --- Responses ---


class TemplateSummary(BaseModel):
    id: uuid.UUID
    name: str
    path: str
    from_level: str
    to_level: str
    rules: list[TemplateRule]


class PromotionResponse(BaseModel):
    id: uuid.UUID
    template_id: uuid.UUID
    created_by: uuid.UUID
    path: str
    from_level: str
    to_level: str
    status: str
    created_at: datetime
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    approved_by: uuid.UUID | None = None
    rejected_at: datetime | None = None
    rejected_by: uuid.UUID | None = None
    reject_reason: str | None = None
    executed: bool


class PromotionListItem(PromotionResponse):
    badge_count: int


class PromotionBadgeEntry(BaseModel):
    badge_application_id: uuid.UUID
    catalog_badge_id: uuid.UUID
    title: str
    category: str
    level: str
    status: str
    assigned_at: datetime
    assigned_by: uuid.UUID
    consumed: bool


class PromotionDetailResponse(PromotionResponse):
    template: TemplateSummary
    badge_applications: list[PromotionBadgeEntry]


class PromotionListResponse(BaseModel):
    data: list[PromotionListItem]
    pagination: Pagination


class BadgesAddedResponse(BaseModel):
    promotion_id: uuid.UUID
    added_count: int
    badge_application_ids: list[uuid.UUID]
    message: str


class BadgesRemovedResponse(BaseModel):
    promotion_id: uuid.UUID
    removed_count: int
    badge_application_ids: list[uuid.UUID]
    message: str


class PromotionDeletedResponse(BaseModel):
    id: uuid.UUID


class ValidationResponse(BaseModel):
    promotion_id: uuid.UUID
    is_valid: bool
    requirements: list[Requirement]
    missing: list[MissingBadge]
