"""Baseline: catalog, badge applications, templates, promotions and reservations.

The partial unique index on promotion_badges guarantees a badge application is
held by at most one unconsumed reservation.

Revision ID: 001_badger_baseline
Revises: None
Create Date: 2026-10-19
"""

from collections.abc import Sequence

from alembic import op

revision: str = "001_badger_baseline"
down_revision: str | None = None
branch_labels: str | Sequence[str] | None = None
depends_on: str | Sequence[str] | None = None


def upgrade() -> None:
    # --- Catalog ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS catalog_badges (
            id UUID PRIMARY KEY,
            title VARCHAR(200) NOT NULL,
            description TEXT,
            category VARCHAR(32) NOT NULL,
            level VARCHAR(16) NOT NULL,
            metadata JSONB DEFAULT '{}',
            status VARCHAR(16) NOT NULL DEFAULT 'active',
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            deactivated_at TIMESTAMPTZ,
            version INTEGER NOT NULL DEFAULT 1,
            CHECK (category IN ('technical', 'organizational', 'softskilled')),
            CHECK (level IN ('gold', 'silver', 'bronze')),
            CHECK (status IN ('active', 'inactive'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_catalog_badges_category_level
        ON catalog_badges(category, level)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_catalog_badges_status_created_at
        ON catalog_badges(status, created_at)
    """)

    # --- Badge Applications ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS badge_applications (
            id UUID PRIMARY KEY,
            applicant_id UUID NOT NULL,
            catalog_badge_id UUID NOT NULL REFERENCES catalog_badges(id),
            catalog_badge_version INTEGER NOT NULL,
            reason TEXT,
            status VARCHAR(32) NOT NULL DEFAULT 'draft',
            submitted_at TIMESTAMPTZ,
            reviewed_by UUID,
            reviewed_at TIMESTAMPTZ,
            review_reason TEXT,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (status IN ('draft', 'submitted', 'accepted', 'rejected', 'used_in_promotion'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badge_applications_applicant_id
        ON badge_applications(applicant_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badge_applications_catalog_badge_id
        ON badge_applications(catalog_badge_id)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_badge_applications_status
        ON badge_applications(status)
    """)

    # --- Promotion Templates ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS promotion_templates (
            id UUID PRIMARY KEY,
            name VARCHAR(200) NOT NULL,
            path VARCHAR(32) NOT NULL,
            from_level VARCHAR(16) NOT NULL,
            to_level VARCHAR(16) NOT NULL,
            rules JSONB NOT NULL,
            is_active BOOLEAN NOT NULL DEFAULT true,
            created_by UUID,
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            updated_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            CHECK (path IN ('technical', 'financial', 'management'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_promotion_templates_path_from_to
        ON promotion_templates(path, from_level, to_level)
    """)

    # --- Promotions ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS promotions (
            id UUID PRIMARY KEY,
            template_id UUID NOT NULL REFERENCES promotion_templates(id),
            created_by UUID NOT NULL,
            path VARCHAR(32) NOT NULL,
            from_level VARCHAR(16) NOT NULL,
            to_level VARCHAR(16) NOT NULL,
            status VARCHAR(16) NOT NULL DEFAULT 'draft',
            created_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            submitted_at TIMESTAMPTZ,
            approved_at TIMESTAMPTZ,
            approved_by UUID,
            rejected_at TIMESTAMPTZ,
            rejected_by UUID,
            reject_reason TEXT,
            rules JSONB NOT NULL,
            executed BOOLEAN NOT NULL DEFAULT false,
            CHECK (status IN ('draft', 'submitted', 'approved', 'rejected'))
        )
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_promotions_created_by
        ON promotions(created_by)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_promotions_status_created_at
        ON promotions(status, created_at)
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_promotions_template_id
        ON promotions(template_id)
    """)

    # --- Reservations ---
    op.execute("""
        CREATE TABLE IF NOT EXISTS promotion_badges (
            id UUID PRIMARY KEY,
            promotion_id UUID NOT NULL REFERENCES promotions(id) ON DELETE CASCADE,
            badge_application_id UUID NOT NULL REFERENCES badge_applications(id),
            assigned_at TIMESTAMPTZ NOT NULL DEFAULT NOW(),
            assigned_by UUID NOT NULL,
            consumed BOOLEAN NOT NULL DEFAULT false
        )
    """)
    op.execute("""
        CREATE UNIQUE INDEX IF NOT EXISTS ux_promotion_badges_badge_application_unconsumed
        ON promotion_badges(badge_application_id)
        WHERE consumed = false
    """)
    op.execute("""
        CREATE INDEX IF NOT EXISTS idx_promotion_badges_promotion_id
        ON promotion_badges(promotion_id)
    """)


def downgrade() -> None:
    op.execute("DROP TABLE IF EXISTS promotion_badges")
    op.execute("DROP TABLE IF EXISTS promotions")
    op.execute("DROP TABLE IF EXISTS promotion_templates")
    op.execute("DROP TABLE IF EXISTS badge_applications")
    op.execute("DROP TABLE IF EXISTS catalog_badges")
