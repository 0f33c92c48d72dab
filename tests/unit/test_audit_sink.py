"""Audit sink tests: events are published as JSON and failures never propagate."""

from __future__ import annotations

import json
import uuid
from unittest.mock import AsyncMock

import pytest

from badger import audit
from badger.audit import PROMOTION_APPROVED, AuditSink


@pytest.mark.asyncio
async def test_publishes_json_record():
    redis = AsyncMock()
    sink = AuditSink(redis, "pubsub:audit")
    actor = uuid.uuid4()
    promotion_id = uuid.uuid4()

    await sink.emit(PROMOTION_APPROVED, actor, {"promotion_id": promotion_id})

    channel, raw = redis.publish.await_args.args
    record = json.loads(raw)
    assert channel == "pubsub:audit"
    assert record["event_type"] == "promotion.approved"
    assert record["actor_id"] == str(actor)
    assert record["payload"] == {"promotion_id": str(promotion_id)}
    assert "occurred_at" in record


@pytest.mark.asyncio
async def test_publish_failure_is_swallowed():
    redis = AsyncMock()
    redis.publish.side_effect = ConnectionError("redis down")
    sink = AuditSink(redis, "pubsub:audit")

    await sink.emit(PROMOTION_APPROVED, uuid.uuid4(), {})

    redis.publish.assert_awaited_once()


@pytest.mark.asyncio
async def test_without_redis_is_a_noop():
    await AuditSink(None, "pubsub:audit").emit(PROMOTION_APPROVED, None, {})


@pytest.mark.asyncio
async def test_empty_url_leaves_sink_disabled():
    await audit.connect("")

    assert await audit.check() == "disabled"
    await audit.get_audit_sink().emit(PROMOTION_APPROVED, uuid.uuid4(), {})


@pytest.mark.asyncio
async def test_check_reports_ping_failure(monkeypatch):
    redis = AsyncMock()
    redis.ping.side_effect = ConnectionError("redis down")
    monkeypatch.setattr(audit, "_client", redis)

    assert await audit.check() == "error: redis down"
