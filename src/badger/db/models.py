"""ORM models for the badge catalog, applications, templates and promotions.

The schema mirrors alembic/versions/001_badger_baseline.py. The partial unique
index on promotion_badges is the storage-level guard that keeps a badge
application reserved by at most one unconsumed promotion.
"""

from __future__ import annotations

import uuid
from datetime import datetime
from typing import Any

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    String,
    Text,
    Uuid,
    text,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from badger.db.base import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


# ---------------------------------------------------------------------------
# Catalog
# ---------------------------------------------------------------------------


class BadgeDefinition(Base):
    """Catalog entry. `version` increments on every edit."""

    __tablename__ = "catalog_badges"
    __table_args__ = (
        Index("idx_catalog_badges_category_level", "category", "level"),
        Index("idx_catalog_badges_status_created_at", "status", "created_at"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    level: Mapped[str] = mapped_column(String(16), nullable=False)
    badge_metadata: Mapped[dict[str, Any]] = mapped_column("metadata", JSONType, default=dict)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="active", server_default="active")
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    deactivated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1, server_default="1")


# ---------------------------------------------------------------------------
# Badge applications
# ---------------------------------------------------------------------------


class BadgeApplication(Base):
    """An employee's claim to a catalog badge, pinned to the catalog version it was filed against."""

    __tablename__ = "badge_applications"
    __table_args__ = (
        Index("idx_badge_applications_applicant_id", "applicant_id"),
        Index("idx_badge_applications_catalog_badge_id", "catalog_badge_id"),
        Index("idx_badge_applications_status", "status"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    applicant_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    catalog_badge_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("catalog_badges.id"), nullable=False)
    catalog_badge_version: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default="draft", server_default="draft")
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    review_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    badge: Mapped[BadgeDefinition] = relationship("BadgeDefinition", lazy="joined")


# ---------------------------------------------------------------------------
# Promotion templates
# ---------------------------------------------------------------------------


class PromotionTemplate(Base):
    """Declarative requirements for moving between two position levels on a path."""

    __tablename__ = "promotion_templates"
    __table_args__ = (
        Index("idx_promotion_templates_path_from_to", "path", "from_level", "to_level"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    path: Mapped[str] = mapped_column(String(32), nullable=False)
    from_level: Mapped[str] = mapped_column(String(16), nullable=False)
    to_level: Mapped[str] = mapped_column(String(16), nullable=False)
    rules: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, server_default=text("true"))
    created_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)


# ---------------------------------------------------------------------------
# Promotions
# ---------------------------------------------------------------------------


class Promotion(Base):
    """A promotion request. Path, levels and rules are copied from the template at creation."""

    __tablename__ = "promotions"
    __table_args__ = (
        Index("idx_promotions_created_by", "created_by"),
        Index("idx_promotions_status_created_at", "status", "created_at"),
        Index("idx_promotions_template_id", "template_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    template_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("promotion_templates.id"), nullable=False)
    created_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    path: Mapped[str] = mapped_column(String(32), nullable=False)
    from_level: Mapped[str] = mapped_column(String(16), nullable=False)
    to_level: Mapped[str] = mapped_column(String(16), nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default="draft", server_default="draft")
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    approved_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    rejected_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejected_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    reject_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    rules: Mapped[list[dict[str, Any]]] = mapped_column(JSONType, nullable=False)
    executed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    template: Mapped[PromotionTemplate] = relationship("PromotionTemplate", lazy="joined")


class PromotionBadge(Base):
    """Reservation of one badge application by one promotion.

    At most one row per badge_application_id may have consumed = false.
    """

    __tablename__ = "promotion_badges"
    __table_args__ = (
        Index(
            "ux_promotion_badges_badge_application_unconsumed",
            "badge_application_id",
            unique=True,
            postgresql_where=text("consumed = false"),
            sqlite_where=text("consumed = 0"),
        ),
        Index("idx_promotion_badges_promotion_id", "promotion_id"),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    promotion_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("promotions.id", ondelete="CASCADE"), nullable=False,
    )
    badge_application_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("badge_applications.id"), nullable=False,
    )
    assigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    assigned_by: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    consumed: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False, server_default=text("false"))

    badge_application: Mapped[BadgeApplication] = relationship("BadgeApplication", lazy="joined")
