"""Shared test fixtures.

Tests run against ``BADGER_TEST_DATABASE_URL`` when set, otherwise against a
fresh SQLite file per test. The schema is built from the ORM metadata.
"""

from __future__ import annotations

import os
import uuid
from collections.abc import AsyncGenerator
from datetime import datetime, timezone
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession

from badger.audit import AuditSink, get_audit_sink
from badger.auth.identity import Identity
from badger.auth.jwt import create_access_token
from badger.catalog.service import create_badge_definition
from badger.database import close_db, get_engine, get_session_factory, init_db
from badger.db import models  # noqa: F401
from badger.db.base import Base
from badger.db.models import BadgeApplication, BadgeDefinition, Promotion, PromotionTemplate
from badger.main import create_app

# Junior -> mid technical promotion used throughout the suite.
STANDARD_RULES: list[dict[str, Any]] = [
    {"category": "technical", "level": "bronze", "count": 3},
    {"category": "organizational", "level": "bronze", "count": 1},
]


@pytest_asyncio.fixture
async def database(tmp_path) -> AsyncGenerator[str, None]:
    """Initialize the engine and a clean schema."""
    url = os.environ.get("BADGER_TEST_DATABASE_URL") or f"sqlite+aiosqlite:///{tmp_path / 'badger.db'}"
    await init_db(url)
    async with get_engine().begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    yield url
    await close_db()


@pytest_asyncio.fixture
async def db_session(database: str) -> AsyncGenerator[AsyncSession, None]:
    """Direct database session for setup and assertions."""
    async with get_session_factory()() as session:
        yield session


@pytest.fixture
def audit_sink() -> MagicMock:
    """Audit sink double. ``audit_sink.emit`` records every published event."""
    sink = MagicMock(spec=AuditSink)
    sink.emit = AsyncMock()
    return sink


@pytest_asyncio.fixture
async def client(database: str, audit_sink: MagicMock) -> AsyncGenerator[AsyncClient, None]:
    """HTTP client against the app, sharing the test database."""
    app = create_app()
    app.dependency_overrides[get_audit_sink] = lambda: audit_sink
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac


# ---------------------------------------------------------------------------
# Identities
# ---------------------------------------------------------------------------


@pytest.fixture
def employee() -> Identity:
    return Identity(user_id=uuid.uuid4())


@pytest.fixture
def other_employee() -> Identity:
    return Identity(user_id=uuid.uuid4())


@pytest.fixture
def admin() -> Identity:
    return Identity(user_id=uuid.uuid4(), is_admin=True)


def auth_headers(identity: Identity) -> dict[str, str]:
    """Bearer header for an identity."""
    token = create_access_token(identity.user_id, is_admin=identity.is_admin)
    return {"Authorization": f"Bearer {token}"}


# ---------------------------------------------------------------------------
# Data builders
# ---------------------------------------------------------------------------


async def make_badge(db: AsyncSession, category: str = "technical", level: str = "bronze") -> BadgeDefinition:
    badge = await create_badge_definition(db, title=f"{category} {level} {uuid.uuid4().hex[:6]}", category=category, level=level)
    await db.commit()
    return badge


async def make_application(
    db: AsyncSession,
    applicant_id: uuid.UUID,
    category: str = "technical",
    level: str = "bronze",
    status: str = "accepted",
) -> BadgeApplication:
    """Badge application in the given status, with its own catalog badge."""
    badge = await make_badge(db, category, level)
    now = datetime.now(timezone.utc)
    application = BadgeApplication(
        applicant_id=applicant_id,
        catalog_badge_id=badge.id,
        catalog_badge_version=badge.version,
        status=status,
        submitted_at=now if status != "draft" else None,
        created_at=now,
        updated_at=now,
    )
    db.add(application)
    await db.commit()
    return application


async def make_template(
    db: AsyncSession,
    rules: list[dict[str, Any]] | None = None,
    path: str = "technical",
    from_level: str = "J1",
    to_level: str = "J2",
    is_active: bool = True,
) -> PromotionTemplate:
    now = datetime.now(timezone.utc)
    template = PromotionTemplate(
        name=f"{path} {from_level} to {to_level}",
        path=path,
        from_level=from_level,
        to_level=to_level,
        rules=STANDARD_RULES if rules is None else rules,
        is_active=is_active,
        created_at=now,
        updated_at=now,
    )
    db.add(template)
    await db.commit()
    return template


async def make_promotion(
    db: AsyncSession,
    created_by: uuid.UUID,
    template: PromotionTemplate,
    status: str = "draft",
) -> Promotion:
    promotion = Promotion(
        template_id=template.id,
        created_by=created_by,
        path=template.path,
        from_level=template.from_level,
        to_level=template.to_level,
        status=status,
        rules=template.rules,
        created_at=datetime.now(timezone.utc),
        submitted_at=datetime.now(timezone.utc) if status != "draft" else None,
        executed=False,
    )
    db.add(promotion)
    await db.commit()
    return promotion


async def qualifying_applications(db: AsyncSession, applicant_id: uuid.UUID) -> list[BadgeApplication]:
    """Accepted applications that exactly satisfy STANDARD_RULES."""
    return [
        await make_application(db, applicant_id, "technical", "bronze"),
        await make_application(db, applicant_id, "technical", "bronze"),
        await make_application(db, applicant_id, "technical", "bronze"),
        await make_application(db, applicant_id, "organizational", "bronze"),
    ]
