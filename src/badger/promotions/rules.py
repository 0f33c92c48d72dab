"""Promotion rule evaluation.

A template rule names a badge category (or "any"), a level and a required
count. Matching is exact: a gold badge never stands in for a silver or bronze
requirement. An "any" rule waives the category and sums every category at the
rule's level.
"""

from __future__ import annotations

from collections import Counter
from collections.abc import Iterable
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter

from badger.db.enums import ANY_CATEGORY, BadgeCategory, BadgeLevel

RuleCategory = BadgeCategory | Literal["any"]


class TemplateRule(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    category: RuleCategory
    level: BadgeLevel
    count: int = Field(..., ge=1)


class HeldBadge(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=True)

    category: BadgeCategory
    level: BadgeLevel


class Requirement(BaseModel):
    category: str
    level: str
    required: int
    current: int
    satisfied: bool


class MissingBadge(BaseModel):
    category: str
    level: str
    count: int


class EvaluationResult(BaseModel):
    is_valid: bool
    requirements: list[Requirement]
    missing: list[MissingBadge]


_rules_adapter = TypeAdapter(list[TemplateRule])


def parse_rules(raw: Any) -> list[TemplateRule]:
    """Validate rules read from storage. Raises pydantic.ValidationError on malformed data."""
    return _rules_adapter.validate_python(raw)


def dump_rules(rules: Iterable[TemplateRule]) -> list[dict[str, Any]]:
    """Serialize rules for the JSON column."""
    return [rule.model_dump(mode="json") for rule in rules]


def evaluate(rules: Iterable[TemplateRule], held: Iterable[HeldBadge]) -> EvaluationResult:
    """Compare the badges held by a promotion against its template rules."""
    counts: Counter[tuple[str, str]] = Counter((badge.category, badge.level) for badge in held)
    per_level: Counter[str] = Counter()
    for (_category, level), n in counts.items():
        per_level[level] += n

    requirements: list[Requirement] = []
    missing: list[MissingBadge] = []
    for rule in rules:
        if rule.category == ANY_CATEGORY:
            current = per_level[rule.level]
        else:
            current = counts[(rule.category, rule.level)]

        satisfied = current >= rule.count
        requirements.append(Requirement(
            category=rule.category,
            level=rule.level,
            required=rule.count,
            current=current,
            satisfied=satisfied,
        ))
        if not satisfied:
            missing.append(MissingBadge(
                category=rule.category,
                level=rule.level,
                count=rule.count - current,
            ))

    return EvaluationResult(
        is_valid=all(r.satisfied for r in requirements),
        requirements=requirements,
        missing=missing,
    )
