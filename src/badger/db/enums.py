"""Domain vocabularies shared by the ORM models, services and schemas."""

from enum import Enum


class BadgeCategory(str, Enum):
    TECHNICAL = "technical"
    ORGANIZATIONAL = "organizational"
    SOFTSKILLED = "softskilled"


class BadgeLevel(str, Enum):
    GOLD = "gold"
    SILVER = "silver"
    BRONZE = "bronze"


class CatalogBadgeStatus(str, Enum):
    ACTIVE = "active"
    INACTIVE = "inactive"


class BadgeApplicationStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    ACCEPTED = "accepted"
    REJECTED = "rejected"
    USED_IN_PROMOTION = "used_in_promotion"


class PromotionPath(str, Enum):
    TECHNICAL = "technical"
    FINANCIAL = "financial"
    MANAGEMENT = "management"


class PromotionStatus(str, Enum):
    DRAFT = "draft"
    SUBMITTED = "submitted"
    APPROVED = "approved"
    REJECTED = "rejected"


# Rule category wildcard: only the level has to match.
ANY_CATEGORY = "any"
