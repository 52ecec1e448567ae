"""
Unit tests for Outreach Sequences models and helpers.
"""

import pytest

from app.features.business_automations.outreach_sequences.models import (
    Prospect,
    Sequence,
    SequenceEnrollment,
    SequenceStep,
)
from app.features.business_automations.outreach_sequences.services.execution import (
    allow_all,
    message_type_for,
)


@pytest.mark.unit
class TestProspectContext:
    """Test template variables built from a prospect."""

    def test_first_name_derived_from_full_name(self):
        context = Prospect(id="p1", full_name="Jane Q. Doe", company="Acme").to_context()

        assert context["name"] == "Jane Q. Doe"
        assert context["first_name"] == "Jane"
        assert context["company"] == "Acme"
        assert context["title"] == ""

    def test_explicit_first_name_wins(self):
        context = Prospect(id="p1", full_name="John Smith", first_name="Johnny").to_context()
        assert context["first_name"] == "Johnny"

    def test_missing_name_falls_back_to_there(self):
        context = Prospect(id="p1").to_context()
        assert context["name"] == "there"
        assert context["first_name"] == ""


@pytest.mark.unit
class TestMessageType:
    """Test action type to message type mapping."""

    def test_connection_request_maps_directly(self):
        assert message_type_for("connection_request") == "connection_request"

    @pytest.mark.parametrize("action_type", ["message", "follow_up", "email"])
    def test_other_actions_collapse_to_follow_up(self, action_type):
        assert message_type_for(action_type) == "follow_up"

    def test_default_condition_hook_allows(self):
        assert allow_all(None, None, {}) is True


@pytest.mark.unit
class TestModelSerialization:
    """Test to_dict output."""

    def test_sequence_to_dict_with_steps(self):
        sequence = Sequence(id="s1", tenant_id="t", campaign_id="c", name="Intro", status="active")
        sequence.steps = [
            SequenceStep(step_order=1, action_type="message", content="Hi", delay_days=1, conditions=None),
        ]

        data = sequence.to_dict(include_steps=True)

        assert data["name"] == "Intro"
        assert data["prospect_filters"] == {}
        assert data["steps"][0]["step_order"] == 1
        assert data["steps"][0]["conditions"] == {}
        assert "created_by" in data

    def test_enrollment_to_dict(self):
        enrollment = SequenceEnrollment(
            id="e1", tenant_id="t", sequence_id="s1", prospect_id="p1",
            status="active", current_step=2, version=3,
        )

        data = enrollment.to_dict()

        assert data["current_step"] == 2
        assert data["next_eligible_at"] is None
        assert data["version"] == 3
