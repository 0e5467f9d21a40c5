"""End-to-end tests for document generation, regeneration and resume."""

import asyncio
from datetime import datetime, timezone
from types import SimpleNamespace
from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest

from app.core.config import GenerationSettings
from app.core.exceptions import ConflictError, GenerationError, NotFoundError, ValidationError
from app.repositories.activity_repository import ActivityRepository
from app.repositories.document_repository import BusinessPlanRepository, DeliverableRepository
from app.services.generation.cache_store import InMemoryCacheStore
from app.services.generation.orchestrator import (
    DocumentLockRegistry,
    GenerationOrchestrator,
    build_generation_orchestrator,
    build_section_prompt,
    new_job_id,
    operation_label,
)
from app.services.generation.sections import combine_sections
from app.services.notifications import EventType

SECTIONED = GenerationSettings(SECTIONED_GENERATION=True)
SINGLE_PASS = GenerationSettings(SECTIONED_GENERATION=False)


def make_orchestrator(session, llm, notifier=None, clock=None, generation_settings=SECTIONED):
    return build_generation_orchestrator(
        session,
        llm,
        cache_store=InMemoryCacheStore(),
        notifier=notifier,
        clock=clock,
        generation_settings=generation_settings,
    )


def test_section_prompt_names_the_section():
    prompt = build_section_prompt("Market Analysis", "business plan", {"niche": "Fitness"})

    assert prompt.startswith('Generate the "Market Analysis" section for a business plan.')
    assert '"niche": "Fitness"' in prompt
    assert "starting with ## Market Analysis" in prompt
    assert "Document Brief" not in prompt


def test_section_prompt_carries_the_rendered_template():
    prompt = build_section_prompt(
        "Market Analysis", "business plan", {"niche": "Fitness"}, "Write a plan for Fitness.\n"
    )

    assert "Document Brief:\nWrite a plan for Fitness.\n\nClient Information:" in prompt


def test_job_ids_and_operation_labels():
    assert new_job_id("BUSINESS_PLAN").startswith("bp-")
    assert new_job_id("DELIVERABLE").startswith("dl-")
    assert operation_label("REGENERATE_SECTION", "Market Analysis") == "REGENERATE_SECTION_MARKET_ANALYSIS"


class TestGenerateBusinessPlan:
    async def test_sectioned_generation_end_to_end(
        self, session, client_profile, templates, fake_llm, notifier, fixed_clock
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier, fixed_clock)

        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1", job_id="bp-e2e")

        assert outcome.section_count == 8
        assert outcome.total_tokens == 8 * 300
        assert outcome.version == 1
        assert outcome.resumed is False
        assert len(fake_llm.calls) == 8
        assert all(c["system_instruction"] == "You are a brand strategist." for c in fake_llm.calls)
        assert '"generation_date": "3/7/2026"' in fake_llm.calls[0]["prompt"]

        plan = await BusinessPlanRepository(session).get_by_client_id(client_profile.id)
        assert plan.status == "DRAFT"
        assert plan.generated_by == "staff-1"
        assert plan.content_markdown.startswith("## Executive Summary\n\nGenerated content for Executive Summary.")

        sections = await orchestrator.section_store.get_sections(plan.id, "BUSINESS_PLAN")
        assert [s.section_name for s in sections][:3] == [
            "Executive Summary",
            "Market Analysis",
            "Competitive Landscape",
        ]
        assert sections[-1].section_name == "Team Structure"

        checkpoint = await orchestrator.checkpoint_manager.get_checkpoint("bp-e2e")
        assert checkpoint.status == "COMPLETED"
        assert checkpoint.progress == 100
        assert checkpoint.can_resume is False

        assert [e.type for e in notifier.events] == [EventType.BUSINESS_PLAN_GENERATED]
        assert notifier.events[0].description == "Generated business plan v1"

    async def test_active_template_reaches_every_section_prompt(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        templates[0].content = "Plan for {{client_name}}, a {{niche}} creator. Keep it upbeat."
        await session.commit()
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        assert len(fake_llm.calls) == 8
        assert all(
            "Plan for Casey Rivera, a Fitness creator. Keep it upbeat." in c["prompt"]
            for c in fake_llm.calls
        )

    async def test_single_section_template_end_to_end(
        self, session, client_profile, templates, make_llm, notifier
    ):
        templates[0].content = "## Executive Summary\n{{niche}} business plan"
        await session.commit()
        llm = make_llm(text="## Executive Summary\nFitness business plan")
        orchestrator = make_orchestrator(session, llm, notifier, generation_settings=SINGLE_PASS)

        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        assert llm.calls[0]["prompt"] == "## Executive Summary\nFitness business plan"
        sections = await orchestrator.section_store.get_sections(outcome.document_id, "BUSINESS_PLAN")
        assert [(s.section_name, s.section_order, s.content) for s in sections] == [
            ("Executive Summary", 1, "Fitness business plan")
        ]
        assert combine_sections(sections) == "## Executive Summary\n\nFitness business plan"

    async def test_second_plan_for_client_conflicts(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        with pytest.raises(ConflictError):
            await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        assert len(fake_llm.calls) == 8

    async def test_unknown_client_is_not_found(self, session, templates, fake_llm, notifier):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        with pytest.raises(NotFoundError):
            await orchestrator.generate_business_plan(uuid4(), "staff-1")

        assert fake_llm.calls == []

    async def test_single_pass_generation(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(
            session, fake_llm, notifier, generation_settings=SINGLE_PASS
        )

        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1", job_id="bp-one")

        assert len(fake_llm.calls) == 1
        assert fake_llm.calls[0]["prompt"] == (
            "Write a business plan for Casey Rivera in Fitness. Notes: {{internal_notes}}"
        )
        assert outcome.section_count == 2

        sections = await orchestrator.section_store.get_sections(outcome.document_id, "BUSINESS_PLAN")
        assert [s.section_name for s in sections] == ["Executive Summary", "Market Analysis"]
        assert "### Mission" in sections[0].content
        assert [s.tokens_used for s in sections] == [150, 150]

        checkpoint = await orchestrator.checkpoint_manager.get_checkpoint("bp-one")
        assert checkpoint.metadata["mode"] == "single_pass"
        assert checkpoint.total_sections == 1

    async def test_default_notifier_writes_activity_log(
        self, session, client_profile, templates, fake_llm
    ):
        orchestrator = make_orchestrator(session, fake_llm)

        await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        activities = await ActivityRepository(session).list_for_client(client_profile.id)
        assert [a.type for a in activities] == ["BUSINESS_PLAN_GENERATED"]
        assert activities[0].user_id == "staff-1"


class TestFailureAndResume:
    async def test_failed_job_resumes_from_its_checkpoint(
        self, session, client_profile, templates, make_llm, notifier, fixed_clock
    ):
        llm = make_llm(fail_on_calls=[3])
        orchestrator = make_orchestrator(session, llm, notifier, fixed_clock)

        with pytest.raises(GenerationError):
            await orchestrator.generate_business_plan(client_profile.id, "staff-1", job_id="bp-retry")

        checkpoint = await orchestrator.checkpoint_manager.get_checkpoint("bp-retry")
        assert checkpoint.status == "FAILED"
        assert checkpoint.can_resume is True
        assert checkpoint.completed_sections == 2
        assert checkpoint.progress == 25
        assert "Provider unavailable" in checkpoint.error_message
        assert await BusinessPlanRepository(session).get_by_client_id(client_profile.id) is None

        next_day = make_orchestrator(
            session, llm, notifier, lambda: datetime(2026, 3, 8, 0, 0, tzinfo=timezone.utc)
        )
        outcome = await next_day.resume_job("bp-retry", "staff-2")

        assert outcome.resumed is True
        assert outcome.section_count == 8
        # two completed, one failed, six resumed
        assert len(llm.calls) == 9
        resumed_prompts = [c["prompt"] for c in llm.calls[3:]]
        assert resumed_prompts[0].startswith('Generate the "Competitive Landscape" section')
        assert all('"generation_date": "3/7/2026"' in p for p in resumed_prompts)

        plan = await BusinessPlanRepository(session).get_by_client_id(client_profile.id)
        assert plan.content_markdown.count("## ") == 8
        assert (await next_day.checkpoint_manager.get_checkpoint("bp-retry")).status == "COMPLETED"
        assert notifier.events[-1].description.endswith("(resumed from checkpoint)")

    async def test_completed_job_cannot_be_resumed(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        await orchestrator.generate_business_plan(client_profile.id, "staff-1", job_id="bp-done")

        with pytest.raises(ValidationError):
            await orchestrator.resume_job("bp-done", "staff-1")

    async def test_unknown_job_cannot_be_resumed(self, session, fake_llm, notifier):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        with pytest.raises(NotFoundError):
            await orchestrator.resume_job("bp-missing", "staff-1")

    async def test_failed_single_pass_job_resumes(
        self, session, client_profile, templates, make_llm, notifier
    ):
        llm = make_llm(fail_on_calls=[1])
        orchestrator = make_orchestrator(session, llm, notifier, generation_settings=SINGLE_PASS)

        with pytest.raises(GenerationError):
            await orchestrator.generate_business_plan(client_profile.id, "staff-1", job_id="bp-sp")

        # The mode stored on the checkpoint wins over the current setting
        sectioned = make_orchestrator(session, llm, notifier)
        outcome = await sectioned.resume_job("bp-sp", "staff-1")

        assert len(llm.calls) == 2
        assert outcome.section_count == 2


class TestGenerateDeliverable:
    async def test_month_one_then_month_two(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        first = await orchestrator.generate_deliverable(client_profile.id, 1, "staff-1")
        second = await orchestrator.generate_deliverable(client_profile.id, 2, "staff-1")

        assert first.section_count == 5
        assert first.month == 1
        assert second.month == 2
        assert all(c["system_instruction"] == "You are a launch coach." for c in fake_llm.calls)
        assert "Month 1: Foundation Excellence" in fake_llm.calls[5]["prompt"]

        deliverables = await DeliverableRepository(session).list_for_client(client_profile.id)
        assert [d.title for d in deliverables] == [
            "Month 1: Foundation Excellence",
            "Month 2: Brand Readiness & Productization",
        ]
        assert [e.type for e in notifier.events] == [EventType.DELIVERABLE_GENERATED] * 2

    @pytest.mark.parametrize("month", [0, 9])
    async def test_month_out_of_range(self, session, client_profile, templates, fake_llm, month):
        orchestrator = make_orchestrator(session, fake_llm)

        with pytest.raises(ValidationError):
            await orchestrator.generate_deliverable(client_profile.id, month, "staff-1")

    async def test_existing_month_conflicts(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        await orchestrator.generate_deliverable(client_profile.id, 1, "staff-1")

        with pytest.raises(ConflictError):
            await orchestrator.generate_deliverable(client_profile.id, 1, "staff-1")

    async def test_missing_template_creates_no_checkpoint(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        with pytest.raises(NotFoundError):
            await orchestrator.generate_deliverable(client_profile.id, 5, "staff-1", job_id="dl-5")

        assert await orchestrator.checkpoint_manager.get_checkpoint("dl-5") is None
        assert fake_llm.calls == []


class TestRegeneration:
    async def test_regenerates_named_sections_and_skips_unknown(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        result = await orchestrator.regenerate_sections(
            "BUSINESS_PLAN", outcome.document_id, ["Market Analysis", "Pricing"], "staff-2"
        )

        assert result.regenerated_sections == ["Market Analysis"]
        assert result.skipped_sections == ["Pricing"]
        assert result.total_sections == 8
        assert len(fake_llm.calls) == 9

        sections = await orchestrator.section_store.get_sections(outcome.document_id, "BUSINESS_PLAN")
        by_name = {s.section_name: s for s in sections}
        assert by_name["Market Analysis"].version == 2
        assert by_name["Market Analysis"].generated_by == "staff-2"
        assert by_name["Executive Summary"].version == 1

        plan = await BusinessPlanRepository(session).get_by_id(outcome.document_id)
        assert plan.content_markdown.count("## ") == 8
        assert notifier.events[-1].type == EventType.BUSINESS_PLAN_UPDATED
        assert notifier.events[-1].metadata["skipped"] == ["Pricing"]

    async def test_regeneration_prompt_carries_the_template(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        await orchestrator.regenerate_sections(
            "BUSINESS_PLAN", outcome.document_id, ["Market Analysis"], "staff-1"
        )

        assert "Write a business plan for Casey Rivera in Fitness." in fake_llm.calls[-1]["prompt"]

    async def test_failure_midway_keeps_document_in_step_with_sections(
        self, session, client_profile, templates, fake_llm, make_llm, notifier
    ):
        outcome = await make_orchestrator(session, fake_llm, notifier).generate_business_plan(
            client_profile.id, "staff-1"
        )
        llm = make_llm(text="## Market Analysis\n\nRewritten analysis.", fail_on_calls=[2])
        orchestrator = make_orchestrator(session, llm, notifier)

        with pytest.raises(GenerationError):
            await orchestrator.regenerate_sections(
                "BUSINESS_PLAN", outcome.document_id, ["Market Analysis", "Team Structure"], "staff-2"
            )

        sections = await orchestrator.section_store.get_sections(outcome.document_id, "BUSINESS_PLAN")
        by_name = {s.section_name: s for s in sections}
        assert by_name["Market Analysis"].version == 2
        assert by_name["Market Analysis"].content == "Rewritten analysis."
        assert by_name["Team Structure"].version == 1

        plan = await BusinessPlanRepository(session).get_by_id(outcome.document_id)
        assert plan.content_markdown == combine_sections(sections)
        assert "Rewritten analysis." in plan.content_markdown

    async def test_empty_selection_is_rejected(self, session, fake_llm, notifier):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        with pytest.raises(ValidationError):
            await orchestrator.regenerate_sections("BUSINESS_PLAN", uuid4(), [], "staff-1")

    async def test_missing_document_is_not_found(self, session, fake_llm, notifier):
        orchestrator = make_orchestrator(session, fake_llm, notifier)

        with pytest.raises(NotFoundError):
            await orchestrator.regenerate_sections("DELIVERABLE", uuid4(), ["Introduction"], "staff-1")

    async def test_regenerates_sections_affected_by_profile_changes(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        result = await orchestrator.regenerate_affected_sections(
            "BUSINESS_PLAN", outcome.document_id, ["competitors"], "staff-1"
        )

        assert result.regenerated_sections == ["Competitive Landscape"]
        assert result.skipped_sections == []

    async def test_unmapped_profile_changes_regenerate_nothing(
        self, session, client_profile, templates, fake_llm, notifier
    ):
        orchestrator = make_orchestrator(session, fake_llm, notifier)
        outcome = await orchestrator.generate_business_plan(client_profile.id, "staff-1")

        result = await orchestrator.regenerate_affected_sections(
            "BUSINESS_PLAN", outcome.document_id, ["favouriteColour"], "staff-1"
        )

        assert result.regenerated_sections == []
        assert result.total_sections == 8
        assert len(fake_llm.calls) == 8


def stub_orchestrator(completion_service, documents, locks, notifier):
    """Orchestrator over in-memory collaborators, for interleaving tests."""
    sections = {
        document.id: [SimpleNamespace(section_name="Vision", section_order=1, content="old", version=1)]
        for document in documents
    }
    by_id = {document.id: document for document in documents}

    prompt_loader = Mock()
    prompt_loader.load_template = AsyncMock(return_value=SimpleNamespace(system_prompt="system"))
    prompt_loader.render_template = Mock(return_value="brief")

    section_store = Mock()
    section_store.get_sections = AsyncMock(side_effect=lambda document_id, _: sections[document_id])
    section_store.update_section = AsyncMock()

    business_plans = Mock()
    business_plans.get_by_id = AsyncMock(side_effect=lambda document_id: by_id[document_id])
    business_plans.get_for_update = AsyncMock(side_effect=lambda document_id: by_id[document_id])
    business_plans.commit = AsyncMock()
    business_plans.rollback = AsyncMock()

    return GenerationOrchestrator(
        context_builder=AsyncMock(build_context=AsyncMock(return_value={"niche": "Fitness"})),
        prompt_loader=prompt_loader,
        completion_service=completion_service,
        section_store=section_store,
        checkpoint_manager=AsyncMock(),
        business_plans=business_plans,
        deliverables=AsyncMock(),
        notifier=notifier,
        generation_settings=SECTIONED,
        locks=locks,
    )


class RecordingCompletions:
    """Completion service that yields to the event loop mid-call."""

    def __init__(self):
        self.trace = []

    async def generate(self, prompt, options):
        document_id = options.metadata["document_id"]
        self.trace.append(("start", document_id))
        for _ in range(3):
            await asyncio.sleep(0)
        self.trace.append(("end", document_id))
        return SimpleNamespace(text="## Vision\n\nnew", total_tokens=10)


def stub_plan(document_id=None):
    return SimpleNamespace(
        id=document_id or uuid4(), client_id=uuid4(), content_markdown="## Vision\n\nold", generated_by="x"
    )


class TestDocumentLocks:
    async def test_concurrent_regenerations_of_one_document_run_one_at_a_time(self, notifier):
        document = stub_plan()
        completions = RecordingCompletions()
        locks = DocumentLockRegistry()
        orchestrator = stub_orchestrator(completions, [document], locks, notifier)

        await asyncio.gather(
            orchestrator.regenerate_sections("BUSINESS_PLAN", document.id, ["Vision"], "staff-1"),
            orchestrator.regenerate_sections("BUSINESS_PLAN", document.id, ["Vision"], "staff-2"),
        )

        key = str(document.id)
        assert completions.trace == [("start", key), ("end", key), ("start", key), ("end", key)]
        assert len(locks) == 0

    async def test_different_documents_do_not_wait_for_each_other(self, notifier):
        first, second = stub_plan(), stub_plan()
        completions = RecordingCompletions()
        orchestrator = stub_orchestrator(completions, [first, second], DocumentLockRegistry(), notifier)

        await asyncio.gather(
            orchestrator.regenerate_sections("BUSINESS_PLAN", first.id, ["Vision"], "staff-1"),
            orchestrator.regenerate_sections("BUSINESS_PLAN", second.id, ["Vision"], "staff-1"),
        )

        assert [step for step, _ in completions.trace] == ["start", "start", "end", "end"]

    async def test_lock_is_released_from_the_registry_after_failure(self):
        locks = DocumentLockRegistry()
        document_id = uuid4()

        with pytest.raises(RuntimeError):
            async with locks.hold("BUSINESS_PLAN", document_id):
                assert len(locks) == 1
                raise RuntimeError("boom")

        assert len(locks) == 0
        async with locks.hold("BUSINESS_PLAN", document_id):
            assert len(locks) == 1
