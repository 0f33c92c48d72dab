"""Pydantic schemas for promotion template endpoints."""

from __future__ import annotations

import uuid
from datetime import datetime

from pydantic import BaseModel, ConfigDict, Field

from badger.db.enums import PromotionPath
from badger.pagination import Pagination
from badger.promotions.rules import TemplateRule


class TemplateCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str = Field(..., min_length=1, max_length=200)
    path: PromotionPath
    from_level: str = Field(..., min_length=1, max_length=16)
    to_level: str = Field(..., min_length=1, max_length=16)
    rules: list[TemplateRule] = Field(..., min_length=1)


class TemplateUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True)

    name: str | None = Field(None, min_length=1, max_length=200)
    rules: list[TemplateRule] | None = Field(None, min_length=1)


class TemplateResponse(BaseModel):
    id: uuid.UUID
    name: str
    path: str
    from_level: str
    to_level: str
    rules: list[TemplateRule]
    is_active: bool
    created_by: uuid.UUID | None = None
    created_at: datetime
    updated_at: datetime


class TemplateListResponse(BaseModel):
    data: list[TemplateResponse]
    pagination: Pagination
