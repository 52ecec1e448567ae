"""
Integration tests for StepExecutor: the per-enrollment state machine.
"""

from datetime import timedelta

import pytest
import pytest_asyncio
from sqlalchemy import func, select

from app.features.business_automations.outreach_sequences.exceptions import ContentRenderError
from app.features.business_automations.outreach_sequences.models import Message, SequenceEnrollment
from app.features.business_automations.outreach_sequences.services.enrollments import EnrollmentService
from app.features.business_automations.outreach_sequences.services.execution import StepExecutor
from app.features.business_automations.outreach_sequences.services.sequences import SequenceCrudService
from app.features.business_automations.outreach_sequences.utils import RenderedContent, TemplateContentProvider


class FailingProvider:
    """Content provider that always fails."""

    def __init__(self):
        self.calls = 0

    async def render(self, step, prospect_context):
        self.calls += 1
        raise ContentRenderError("generator unavailable")


class HookedProvider(TemplateContentProvider):
    """Template provider that runs a callback before rendering."""

    def __init__(self, before_render):
        super().__init__()
        self.before_render = before_render

    async def render(self, step, prospect_context):
        await self.before_render()
        return await super().render(step, prospect_context)


@pytest.mark.integration
class TestStepExecutor:
    """Test single-step execution and transitions."""

    @pytest_asyncio.fixture(autouse=True)
    async def setup_enrollment(self, session_factory, test_db_session, seeded):
        self.session_factory = session_factory
        self.db = test_db_session
        self.seeded = seeded
        self.prospect_id = seeded["prospect_ids"][0]

        self.sequence = await SequenceCrudService(test_db_session, seeded["tenant_id"]).create_sequence(
            seeded["campaign_id"],
            "Three touches",
            [
                {"action_type": "connection_request", "content": "Hi {{ first_name }}", "delay_days": 2},
                {"action_type": "email", "content": "Email to {{ name }} at {{ campaign_name }}",
                 "subject": "Hello {{ first_name }}", "delay_days": 3},
                {"action_type": "message", "content": "Last note for {{ company }}", "delay_days": 7},
            ],
        )
        self.sequence_id = self.sequence.id
        await EnrollmentService(test_db_session, seeded["tenant_id"]).enroll_prospects(
            self.sequence_id, [self.prospect_id]
        )
        self.enrollment_id = (await test_db_session.execute(
            select(SequenceEnrollment.id).where(SequenceEnrollment.prospect_id == self.prospect_id)
        )).scalar_one()

    async def run(self, now, provider=None, condition_hook=None):
        async with self.session_factory() as session:
            executor = StepExecutor(session, provider or TemplateContentProvider(), condition_hook=condition_hook)
            return await executor.execute_step(self.enrollment_id, now)

    async def load_enrollment(self):
        async with self.session_factory() as session:
            return await session.get(SequenceEnrollment, self.enrollment_id)

    async def load_messages(self):
        async with self.session_factory() as session:
            return (await session.execute(
                select(Message).order_by(Message.step_order)
            )).scalars().all()

    async def test_first_step_advances_with_its_delay(self, now):
        result = await self.run(now)

        assert result.status == "executed"
        assert result.step_order == 1
        assert result.completed is False

        enrollment = await self.load_enrollment()
        assert enrollment.status == "active"
        assert enrollment.current_step == 2
        assert enrollment.next_eligible_at == now + timedelta(days=2)
        assert enrollment.completed_at is None

        [message] = await self.load_messages()
        assert message.id == result.message_id
        assert message.content == "Hi Jane"
        assert message.message_type == "connection_request"
        assert message.action_type == "connection_request"
        assert message.status == "scheduled"
        assert message.scheduled_at == now
        assert message.sequence_id == self.sequence_id
        assert message.campaign_id == self.seeded["campaign_id"]

    async def test_walks_every_step_to_completion(self, now):
        await self.run(now)
        second = await self.run(now + timedelta(days=2))
        third = await self.run(now + timedelta(days=5))

        assert second.status == third.status == "executed"
        assert third.completed is True

        enrollment = await self.load_enrollment()
        assert enrollment.status == "completed"
        assert enrollment.current_step == 3
        assert enrollment.completed_at == now + timedelta(days=5)
        assert enrollment.next_eligible_at is None

        messages = await self.load_messages()
        assert [m.step_order for m in messages] == [1, 2, 3]
        assert messages[1].message_type == "follow_up"
        assert messages[1].action_type == "email"
        assert messages[1].subject == "Hello Jane"
        assert messages[1].content == "Email to Jane Doe at Q1 Outreach"
        assert messages[2].action_type == "message"

    async def test_completed_enrollment_is_skipped(self, now):
        for offset in (0, 2, 5):
            await self.run(now + timedelta(days=offset))

        result = await self.run(now + timedelta(days=30))

        assert result.status == "skipped"
        assert len(await self.load_messages()) == 3

    async def test_not_yet_due_is_skipped(self, now):
        await self.run(now)

        result = await self.run(now + timedelta(days=2) - timedelta(seconds=1))

        assert result.status == "skipped"
        assert (await self.load_enrollment()).current_step == 2
        assert len(await self.load_messages()) == 1

    async def test_due_exactly_at_eligibility_time(self, now):
        await self.run(now)

        result = await self.run(now + timedelta(days=2))

        assert result.status == "executed"
        assert result.step_order == 2

    @pytest.mark.tenant_isolation
    async def test_tenant_scoped_executor(self, now):
        async with self.session_factory() as session:
            foreign = await StepExecutor(session, TemplateContentProvider(), tenant_id="tenant-b").execute_step(
                self.enrollment_id, now
            )
        assert foreign.status == "skipped"
        assert await self.load_messages() == []

        async with self.session_factory() as session:
            own = await StepExecutor(session, TemplateContentProvider(), tenant_id="tenant-a").execute_step(
                self.enrollment_id, now
            )
        assert own.status == "executed"
        assert own.sequence_id == self.sequence_id
        assert len(await self.load_messages()) == 1

    async def test_unknown_enrollment_is_skipped(self, now):
        async with self.session_factory() as session:
            result = await StepExecutor(session, TemplateContentProvider()).execute_step("missing", now)

        assert result.status == "skipped"

    async def test_paused_sequence_is_skipped(self, now):
        await SequenceCrudService(self.db, self.seeded["tenant_id"]).pause(self.sequence_id)

        result = await self.run(now)

        assert result.status == "skipped"
        assert await self.load_messages() == []

    async def test_render_failure_leaves_state_unchanged(self, now):
        provider = FailingProvider()

        result = await self.run(now, provider=provider)

        assert result.status == "failed"
        assert "generator unavailable" in result.reason
        assert result.sequence_id == self.sequence_id
        assert result.prospect_id == self.prospect_id

        enrollment = await self.load_enrollment()
        assert enrollment.current_step == 1
        assert enrollment.next_eligible_at is None
        assert enrollment.version == 1
        assert await self.load_messages() == []

        retry = await self.run(now)
        assert retry.status == "executed"

    async def test_condition_hook_defers_without_side_effects(self, now):
        seen = []

        def hook(step, enrollment, prospect_context):
            seen.append((step.step_order, step.conditions, prospect_context["first_name"]))
            return False

        result = await self.run(now, condition_hook=hook)

        assert result.status == "deferred"
        assert seen == [(1, {}, "Jane")]
        assert (await self.load_enrollment()).version == 1
        assert await self.load_messages() == []

    async def test_async_condition_hook_allows(self, now):
        async def hook(step, enrollment, prospect_context):
            return True

        result = await self.run(now, condition_hook=hook)

        assert result.status == "executed"

    async def test_concurrent_advance_yields_single_message(self, now):
        """A second executor finishing first makes the slower one fail on its stale version."""
        inner_results = []

        async def run_competitor():
            if not inner_results:
                inner_results.append(await self.run(now))

        result = await self.run(now, provider=HookedProvider(run_competitor))

        assert inner_results[0].status == "executed"
        assert result.status == "failed"

        messages = await self.load_messages()
        assert len(messages) == 1
        assert messages[0].id == inner_results[0].message_id

        enrollment = await self.load_enrollment()
        assert enrollment.current_step == 2
        assert enrollment.version == 2

        async with self.session_factory() as session:
            total = (await session.execute(select(func.count(Message.id)))).scalar_one()
        assert total == 1
