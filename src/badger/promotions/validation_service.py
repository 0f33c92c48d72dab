"""Read-only validation report for a promotion."""

from __future__ import annotations

import uuid
from dataclasses import dataclass

from sqlalchemy.ext.asyncio import AsyncSession

from badger.auth.identity import Identity
from badger.promotions import reservations
from badger.promotions.lifecycle import get_visible_promotion
from badger.promotions.rules import EvaluationResult, evaluate, parse_rules


@dataclass
class ValidationReport:
    promotion_id: uuid.UUID
    result: EvaluationResult


async def validate_promotion(db: AsyncSession, identity: Identity, promotion_id: uuid.UUID) -> ValidationReport:
    """Evaluate a promotion's linked badges against its template without changing anything."""
    promotion = await get_visible_promotion(db, identity, promotion_id)
    rules = parse_rules(promotion.rules)
    held = await reservations.held_badges(db, promotion.id)
    return ValidationReport(promotion_id=promotion.id, result=evaluate(rules, held))
