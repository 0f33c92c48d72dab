"""Unit tests for the promotion state machine."""

from __future__ import annotations

import pytest

from badger.errors import InvalidStatus
from badger.promotions.lifecycle import VALID_TRANSITIONS, validate_transition


class TestPromotionStateMachine:

    def test_valid_transitions_structure(self):
        assert set(VALID_TRANSITIONS.keys()) == {"draft", "submitted", "approved", "rejected"}

    def test_draft_to_submitted(self):
        validate_transition("draft", "submitted")

    def test_submitted_to_approved(self):
        validate_transition("submitted", "approved")

    def test_submitted_to_rejected(self):
        validate_transition("submitted", "rejected")

    def test_terminal_states(self):
        assert VALID_TRANSITIONS["approved"] == []
        assert VALID_TRANSITIONS["rejected"] == []

    def test_cannot_skip_submission(self):
        with pytest.raises(InvalidStatus) as exc_info:
            validate_transition("draft", "approved")
        assert exc_info.value.extra["current_status"] == "draft"

    def test_cannot_go_back_to_draft(self):
        with pytest.raises(InvalidStatus):
            validate_transition("rejected", "draft")

    def test_approved_cannot_be_rejected(self):
        with pytest.raises(InvalidStatus) as exc_info:
            validate_transition("approved", "rejected")
        assert exc_info.value.status_code == 409
        assert exc_info.value.to_dict()["error"] == "invalid_status"
