"""Template service tests: rule freezing and the rules snapshot promotions keep."""

from __future__ import annotations

import pytest
from sqlalchemy import select, update

from badger.database import get_session_factory
from badger.db.models import PromotionTemplate
from badger.errors import Conflict
from badger.promotions import lifecycle
from badger.promotions.rules import TemplateRule
from badger.promotions.validation_service import validate_promotion
from badger.templates import service
from tests.conftest import STANDARD_RULES, make_promotion, make_template, qualifying_applications

GOLD_ONLY = [TemplateRule(category="technical", level="gold", count=9)]


async def _stored_rules(db, template_id):
    result = await db.execute(select(PromotionTemplate.rules).where(PromotionTemplate.id == template_id))
    return result.scalar_one()


class TestUpdateRules:

    @pytest.mark.asyncio
    async def test_unused_template_rules_replaced(self, db_session):
        template = await make_template(db_session)
        template_id = template.id

        updated = await service.update_template(db_session, template_id, rules=GOLD_ONLY)
        await db_session.commit()

        assert updated.rules == [{"category": "technical", "level": "gold", "count": 9}]
        assert await _stored_rules(db_session, template_id) == updated.rules

    @pytest.mark.asyncio
    async def test_promotion_created_between_check_and_write(self, db_session, employee, monkeypatch):
        """A promotion committed after the reference check still blocks the rules write."""
        template = await make_template(db_session)
        template_id = template.id
        real_is_referenced = service.is_referenced

        async def promotion_lands_meanwhile(db, tid):
            referenced = await real_is_referenced(db, tid)
            async with get_session_factory()() as other:
                await lifecycle.create_promotion(other, employee, tid)
                await other.commit()
            return referenced

        monkeypatch.setattr(service, "is_referenced", promotion_lands_meanwhile)

        with pytest.raises(Conflict):
            await service.update_template(db_session, template_id, rules=GOLD_ONLY)

        assert await _stored_rules(db_session, template_id) == STANDARD_RULES

    @pytest.mark.asyncio
    async def test_rename_allowed_while_referenced(self, db_session, employee):
        template = await make_template(db_session)
        template_id = template.id
        await make_promotion(db_session, employee.user_id, template)

        updated = await service.update_template(db_session, template_id, name="Renamed")
        await db_session.commit()

        assert updated.name == "Renamed"


class TestRulesSnapshot:

    @pytest.mark.asyncio
    async def test_promotion_keeps_rules_from_creation(self, db_session, employee):
        template = await make_template(db_session)
        template_id = template.id
        promotion = await lifecycle.create_promotion(db_session, employee, template_id)
        await db_session.commit()
        promotion_id = promotion.id

        # Rewrite the template underneath the promotion.
        await db_session.execute(
            update(PromotionTemplate)
            .where(PromotionTemplate.id == template_id)
            .values(rules=[{"category": "technical", "level": "gold", "count": 9}])
            .execution_options(synchronize_session=False)
        )
        await db_session.commit()

        apps = await qualifying_applications(db_session, employee.user_id)
        await lifecycle.add_badges(db_session, employee, promotion_id, [a.id for a in apps])
        await db_session.commit()

        report = await validate_promotion(db_session, employee, promotion_id)
        assert report.result.is_valid is True

        submitted = await lifecycle.submit_promotion(db_session, employee, promotion_id)
        assert submitted.status == "submitted"
        assert submitted.rules == STANDARD_RULES
