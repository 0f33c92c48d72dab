"""Pydantic schemas for catalog badge administration."""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from badger.db.enums import BadgeCategory, BadgeLevel


class CatalogBadgeCreateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    title: str = Field(..., min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    category: BadgeCategory
    level: BadgeLevel
    metadata: dict[str, Any] | None = None


class CatalogBadgeUpdateRequest(BaseModel):
    model_config = ConfigDict(str_strip_whitespace=True, use_enum_values=True)

    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, max_length=2000)
    category: BadgeCategory | None = None
    level: BadgeLevel | None = None
    metadata: dict[str, Any] | None = None

    def changes(self) -> dict[str, Any]:
        """Fields the caller set, keyed by model attribute."""
        values = self.model_dump(exclude_none=True)
        if "metadata" in values:
            values["badge_metadata"] = values.pop("metadata")
        return values


class CatalogBadgeResponse(BaseModel):
    id: uuid.UUID
    title: str
    description: str | None = None
    category: str
    level: str
    metadata: dict[str, Any]
    status: str
    version: int
    created_by: uuid.UUID | None = None
    created_at: datetime
    deactivated_at: datetime | None = None
