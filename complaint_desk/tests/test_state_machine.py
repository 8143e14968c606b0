"""
Tests for the ticket lifecycle state machine
"""
import logging

import pytest

from complaint_desk.lifecycle.state_machine import (
    POLLING_ELIGIBLE,
    TRANSITIONS,
    Caller,
    Capabilities,
    capabilities,
    check_observed_transition,
    find_transition,
    invariant_violations,
    is_polling_eligible,
    is_valid_transition,
    ticket_capabilities,
)
from complaint_desk.models.ticket import TicketStatus

from .conftest import CREATED_AT


class TestTransitions:
    """Transition table"""

    def test_table(self):
        pairs = {(t.source, t.target) for t in TRANSITIONS}
        assert pairs == {
            (None, TicketStatus.PENDING),
            (TicketStatus.PENDING, TicketStatus.PROCESSING),
            (TicketStatus.PROCESSING, TicketStatus.READY),
            (TicketStatus.PROCESSING, TicketStatus.FAILED),
            (TicketStatus.FAILED, TicketStatus.PROCESSING),
            (TicketStatus.READY, TicketStatus.RESOLVED),
        }

    def test_only_create_and_resolve_are_client_issued(self):
        client_targets = {t.target for t in TRANSITIONS if t.caller == Caller.CLIENT}
        assert client_targets == {TicketStatus.PENDING, TicketStatus.RESOLVED}

    @pytest.mark.parametrize("source,target", [
        ("pending", "ready"),
        ("pending", "resolved"),
        ("processing", "resolved"),
        ("resolved", "ready"),
        ("resolved", "processing"),
        ("ready", "failed"),
        ("failed", "resolved"),
    ])
    def test_invalid_transitions(self, source, target):
        assert not is_valid_transition(source, target)
        assert find_transition(source, target) is None

    def test_same_status_is_valid(self):
        assert is_valid_transition("ready", "ready")

    def test_accepts_strings_and_enums(self):
        assert find_transition("ready", TicketStatus.RESOLVED).trigger == "agent resolves"

    def test_polling_eligibility(self):
        assert POLLING_ELIGIBLE == {TicketStatus.PENDING, TicketStatus.PROCESSING}
        assert is_polling_eligible("pending")
        assert not is_polling_eligible("ready")
        assert not is_polling_eligible(None)


class TestCapabilities:
    """Capabilities derived from status"""

    @pytest.mark.parametrize("status,expected", [
        ("pending", Capabilities(can_edit_draft=False, can_resolve=False)),
        ("processing", Capabilities(can_edit_draft=True, can_resolve=False)),
        ("ready", Capabilities(can_edit_draft=True, can_resolve=True)),
        ("resolved", Capabilities(can_edit_draft=False, can_resolve=False)),
        ("failed", Capabilities(can_edit_draft=False, can_resolve=False)),
    ])
    def test_capabilities_by_status(self, status, expected):
        assert capabilities(status) == expected

    def test_consistent_ready_ticket(self, make_ticket):
        assert ticket_capabilities(make_ticket(status="ready")).can_resolve

    def test_ready_without_draft_offers_nothing(self, make_ticket):
        ticket = make_ticket(status="ready", ai_draft_response=None)

        assert ticket_capabilities(ticket) == Capabilities(can_edit_draft=False, can_resolve=False)


class TestInvariants:
    """Entity invariants of a snapshot"""

    @pytest.mark.parametrize("status", ["pending", "processing", "ready", "resolved", "failed"])
    def test_fixtures_are_consistent(self, make_ticket, status):
        assert invariant_violations(make_ticket(status=status)) == []

    def test_resolved_missing_stamps(self, make_ticket):
        ticket = make_ticket(status="resolved", resolved_by=None, resolved_at=None)

        violations = invariant_violations(ticket)

        assert violations == ["resolved ticket is missing resolved_by, resolved_at"]

    def test_stamps_outside_resolved(self, make_ticket):
        ticket = make_ticket(status="ready", resolved_by="agent1")

        assert invariant_violations(ticket) == ["ready ticket carries resolution stamps"]

    def test_failed_without_error(self, make_ticket):
        ticket = make_ticket(status="failed", error_message=None, processing_attempts=0)

        assert len(invariant_violations(ticket)) == 2

    def test_updated_before_created(self, make_ticket):
        ticket = make_ticket(status="pending", updated_at="2024-04-30T00:00:00Z", created_at=CREATED_AT)

        assert invariant_violations(ticket) == ["updated_at precedes created_at"]


class TestObservedTransitions:
    """Transitions seen between two fetches"""

    def test_first_observation(self):
        assert check_observed_transition("t-1", None, "ready")

    def test_expected_transition(self, caplog):
        with caplog.at_level(logging.INFO):
            assert check_observed_transition("t-1", "processing", "ready")
        assert "unexpected" not in caplog.text

    def test_skipped_intermediate_states(self, caplog):
        with caplog.at_level(logging.INFO):
            assert not check_observed_transition("t-1", "pending", "ready")
        assert "across intermediate states" in caplog.text

    def test_leaving_resolved_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert not check_observed_transition("t-1", "resolved", "ready")
        assert "left terminal status" in caplog.text

    def test_unreachable_transition_is_reported(self, caplog):
        with caplog.at_level(logging.WARNING):
            assert not check_observed_transition("t-1", "ready", "pending")
        assert "unexpected transition" in caplog.text
