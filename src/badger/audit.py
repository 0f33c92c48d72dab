"""Best-effort audit sink.

Events are published as JSON to a Redis pub/sub channel after the primary
transaction commits. Delivery failures are logged and never reach the caller.
The Redis pool lives here; nothing else in the service talks to Redis.
"""

from __future__ import annotations

import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any

import redis.asyncio as redis

from badger.config import get_settings

logger = logging.getLogger(__name__)

PROMOTION_CREATED = "promotion.created"
PROMOTION_DELETED = "promotion.deleted"
PROMOTION_BADGES_ADDED = "promotion.badges_added"
PROMOTION_BADGES_REMOVED = "promotion.badges_removed"
PROMOTION_SUBMITTED = "promotion.submitted"
PROMOTION_APPROVED = "promotion.approved"
PROMOTION_REJECTED = "promotion.rejected"
TEMPLATE_CREATED = "promotion_template.created"
TEMPLATE_UPDATED = "promotion_template.updated"
TEMPLATE_DEACTIVATED = "promotion_template.deactivated"
APPLICATION_CREATED = "badge_application.created"
APPLICATION_UPDATED = "badge_application.updated"
APPLICATION_DELETED = "badge_application.deleted"
APPLICATION_SUBMITTED = "badge_application.submitted"
APPLICATION_REVIEWED = "badge_application.reviewed"
CATALOG_BADGE_CREATED = "catalog_badge.created"
CATALOG_BADGE_UPDATED = "catalog_badge.updated"
CATALOG_BADGE_DEACTIVATED = "catalog_badge.deactivated"


_client: redis.Redis | None = None


async def connect(url: str | None) -> None:
    """Open the publish pool. An empty URL leaves the sink disabled for this process."""
    global _client  # noqa: PLW0603
    if not url:
        logger.info("Audit sink disabled: no Redis URL configured")
        return
    _client = redis.from_url(  # type: ignore[no-untyped-call]
        url,
        encoding="utf-8",
        decode_responses=True,
        max_connections=20,
        socket_connect_timeout=2,
    )


async def disconnect() -> None:
    global _client  # noqa: PLW0603
    if _client is not None:
        await _client.aclose()
        _client = None


async def check() -> str:
    """Readiness of the audit channel: ``disabled``, ``ok`` or ``error: ...``."""
    if _client is None:
        return "disabled"
    try:
        await _client.ping()
    except Exception as exc:
        return f"error: {exc}"
    return "ok"


class AuditSink:
    """Fire-and-forget publisher of audit records."""

    def __init__(self, client: redis.Redis | None, channel: str) -> None:
        self._client = client
        self._channel = channel

    async def emit(self, event_type: str, actor_id: uuid.UUID | None, payload: dict[str, Any]) -> None:
        if self._client is None:
            logger.debug("Audit sink disabled, dropping %s", event_type)
            return
        record = {
            "event_type": event_type,
            "actor_id": str(actor_id) if actor_id else None,
            "payload": payload,
            "occurred_at": datetime.now(timezone.utc).isoformat(),
        }
        try:
            await self._client.publish(self._channel, json.dumps(record, default=str))
        except Exception:
            logger.warning("Failed to publish audit event %s", event_type, exc_info=True)


def get_audit_sink() -> AuditSink:
    """FastAPI dependency: sink bound to the shared Redis pool."""
    return AuditSink(_client, get_settings().audit_channel)
