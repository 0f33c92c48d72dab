"""Typed domain errors.

Services raise these; the global handler in badger.middleware.error_handler
renders them as ``{"error": <code>, "message": <text>, **extra}`` with the
matching HTTP status.
"""

from __future__ import annotations

import uuid
from typing import Any


class BadgerError(Exception):
    """Base class for expected, caller-facing failures."""

    status_code: int = 500
    error: str = "internal_error"
    default_message: str = "An unexpected error occurred"

    def __init__(self, message: str | None = None, **extra: Any) -> None:
        self.message = message or self.default_message
        self.extra = extra
        super().__init__(self.message)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {"error": self.error, "message": self.message}
        for key, value in self.extra.items():
            body[key] = str(value) if isinstance(value, uuid.UUID) else value
        return body


# --- 404 ---


class NotFound(BadgerError):
    """Entity absent, or present but hidden from the caller."""

    status_code = 404
    error = "not_found"
    default_message = "Resource not found"


class PromotionNotFound(NotFound):
    default_message = "Promotion not found"


class TemplateNotFound(NotFound):
    default_message = "Promotion template not found"


class BadgeApplicationNotFound(NotFound):
    default_message = "Badge application not found"


class CatalogBadgeNotFound(NotFound):
    default_message = "Catalog badge not found"


class BadgeNotFound(NotFound):
    error = "badge_not_found"

    def __init__(self, badge_application_id: uuid.UUID) -> None:
        super().__init__(
            f"Badge application {badge_application_id} not found",
            badge_application_id=badge_application_id,
        )


class BadgeNotInPromotion(NotFound):
    def __init__(self, badge_application_id: uuid.UUID) -> None:
        super().__init__(
            f"Badge application {badge_application_id} is not assigned to this promotion",
            badge_application_id=badge_application_id,
        )


# --- 403 ---


class Forbidden(BadgerError):
    """Entity exists and is visible, but the caller may not perform the action."""

    status_code = 403
    error = "forbidden"
    default_message = "You do not have permission to perform this action"


class NotOwner(Forbidden):
    default_message = "You do not have permission to modify this promotion"


class NotDraft(Forbidden):
    error = "not_draft"

    def __init__(self, current_status: str) -> None:
        super().__init__("Only draft promotions can be modified", current_status=current_status)


class AdminRequired(Forbidden):
    default_message = "Admin access required"


# --- 400 ---


class BadRequest(BadgerError):
    status_code = 400
    error = "validation_error"
    default_message = "Invalid request"


class TemplateInactive(BadRequest):
    error = "template_inactive"
    default_message = "Promotion template is not active"


class CatalogBadgeInactive(BadRequest):
    error = "catalog_badge_inactive"
    default_message = "Catalog badge is not active"


class BadgeNotEligible(BadRequest):
    error = "badge_not_eligible"

    def __init__(self, badge_application_id: uuid.UUID, current_status: str) -> None:
        super().__init__(
            f"Badge application {badge_application_id} is not in accepted status",
            badge_application_id=badge_application_id,
            current_status=current_status,
        )


# --- 409 ---


class InvalidStatus(BadgerError):
    """Operation not valid for the entity's current lifecycle state."""

    status_code = 409
    error = "invalid_status"

    def __init__(self, message: str, current_status: str) -> None:
        super().__init__(message, current_status=current_status)


class Conflict(BadgerError):
    """A concurrent writer changed the row between our read and our guarded write."""

    status_code = 409
    error = "conflict"
    default_message = "Resource has already been processed"


class ValidationFailed(BadgerError):
    status_code = 409
    error = "validation_failed"
    default_message = "Promotion does not meet template requirements"

    def __init__(self, missing: list[dict[str, Any]], requirements: list[dict[str, Any]]) -> None:
        super().__init__(missing=missing, requirements=requirements)
        self.missing = missing
        self.requirements = requirements


class ReservationConflict(BadgerError):
    status_code = 409
    error = "reservation_conflict"
    default_message = "Badge application is already assigned to another promotion"

    def __init__(
        self,
        badge_application_id: uuid.UUID,
        owning_promotion_id: uuid.UUID | None,
        requesting_promotion_id: uuid.UUID | None = None,
    ) -> None:
        already_ours = owning_promotion_id is not None and owning_promotion_id == requesting_promotion_id
        super().__init__(
            "Badge application is already assigned to this promotion" if already_ours else None,
            conflict_type="badge_already_in_promotion" if already_ours else "badge_already_reserved",
            badge_application_id=badge_application_id,
            owning_promotion_id=owning_promotion_id,
        )
        self.badge_application_id = badge_application_id
        self.owning_promotion_id = owning_promotion_id


class ReferencedByPromotion(Conflict):
    error = "referenced_by_promotion"
    default_message = "Badge application is referenced by a promotion"
