"""Pydantic schemas for badge application endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

from badger.pagination import Pagination


class ApplicationCreateRequest(BaseModel):
    catalog_badge_id: uuid.UUID
    reason: str | None = Field(None, max_length=2000)


class ApplicationUpdateRequest(BaseModel):
    catalog_badge_id: uuid.UUID | None = None
    reason: str | None = Field(None, max_length=2000)


class ApplicationReviewRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    decision: Literal["accept", "reject"]
    review_reason: str | None = Field(None, max_length=2000)


class CatalogBadgeSummary(BaseModel):
    id: uuid.UUID
    title: str
    category: str
    level: str
    version: int


class ApplicationResponse(BaseModel):
    id: uuid.UUID
    applicant_id: uuid.UUID
    catalog_badge_id: uuid.UUID
    catalog_badge_version: int
    catalog_badge: CatalogBadgeSummary
    reason: str | None = None
    status: str
    submitted_at: datetime | None = None
    reviewed_by: uuid.UUID | None = None
    reviewed_at: datetime | None = None
    review_reason: str | None = None
    created_at: datetime
    updated_at: datetime


class ApplicationListResponse(BaseModel):
    data: list[ApplicationResponse]
    pagination: Pagination


class ApplicationDeletedResponse(BaseModel):
    id: uuid.UUID
