"""
Integration tests for the best-effort EventRecorder.
"""

from unittest.mock import AsyncMock, patch

import pytest
from sqlalchemy import select

from app.features.business_automations.outreach_sequences.models import OutreachEvent, Sequence
from app.features.business_automations.outreach_sequences.services.events import EventRecorder
from app.features.business_automations.outreach_sequences.services.sequences import SequenceCrudService


@pytest.mark.integration
class TestEventRecorder:
    """Test append-only, best-effort event recording."""

    async def test_record_and_list(self, test_db_session, seeded):
        recorder = EventRecorder(test_db_session, seeded["tenant_id"])

        assert await recorder.record(
            "sequence_paused", campaign_id=seeded["campaign_id"], sequence_id="s1", payload={"why": "test"}
        ) is True
        assert await recorder.record("sequence_resumed", campaign_id=seeded["campaign_id"], sequence_id="s1") is True
        await test_db_session.commit()

        events = await recorder.list_events(sequence_id="s1")
        assert {e.kind for e in events} == {"sequence_paused", "sequence_resumed"}

        paused = await recorder.list_events(kind="sequence_paused")
        assert paused[0].payload == {"why": "test"}
        assert paused[0].tenant_id == "tenant-a"

    async def test_global_recorder_takes_tenant_from_campaign(self, test_db_session, seeded):
        recorder = EventRecorder(test_db_session, "global")

        assert await recorder.record("sequence_executed", campaign_id=seeded["foreign_campaign_id"]) is True
        await test_db_session.commit()

        event = (await test_db_session.execute(select(OutreachEvent))).scalar_one()
        assert event.tenant_id == "tenant-b"

    async def test_failed_write_returns_false_and_keeps_transaction(self, test_db_session, seeded):
        recorder = EventRecorder(test_db_session, seeded["tenant_id"])
        test_db_session.add(Sequence(
            tenant_id=seeded["tenant_id"], campaign_id=seeded["campaign_id"], name="Pending", status="active",
        ))
        await test_db_session.flush()

        # Unknown campaign violates the foreign key inside the savepoint
        assert await recorder.record("sequence_created", campaign_id="no-such-campaign") is False

        await test_db_session.commit()
        names = (await test_db_session.execute(select(Sequence.name))).scalars().all()
        assert names == ["Pending"]
        assert (await test_db_session.execute(select(OutreachEvent))).scalars().all() == []

    @pytest.mark.tenant_isolation
    async def test_list_events_is_tenant_scoped(self, test_db_session, seeded):
        await EventRecorder(test_db_session, "tenant-b").record(
            "sequence_created", campaign_id=seeded["foreign_campaign_id"]
        )
        await test_db_session.commit()

        assert await EventRecorder(test_db_session, seeded["tenant_id"]).list_events() == []
        assert len(await EventRecorder(test_db_session, "tenant-b").list_events()) == 1

    async def test_recorder_failure_does_not_fail_sequence_creation(self, test_db_session, seeded, step_definitions):
        with patch.object(EventRecorder, "record", AsyncMock(return_value=False)):
            sequence = await SequenceCrudService(test_db_session, seeded["tenant_id"]).create_sequence(
                seeded["campaign_id"], "Intro", step_definitions
            )

        assert sequence.id
        assert (await test_db_session.execute(select(OutreachEvent))).scalars().all() == []

    async def test_recorder_exception_is_swallowed(self, test_db_session, seeded, step_definitions):
        recorder = EventRecorder(test_db_session, seeded["tenant_id"])

        with patch.object(test_db_session, "begin_nested", side_effect=RuntimeError("audit store down")):
            assert await recorder.record("sequence_created", campaign_id=seeded["campaign_id"]) is False
