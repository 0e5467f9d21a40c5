"""Tests for the prompt context builder."""

from datetime import datetime, timezone
from uuid import uuid4

import pytest

from app.core.exceptions import NotFoundError
from app.database.models import Deliverable
from app.repositories.client_repository import ClientRepository
from app.repositories.document_repository import DeliverableRepository
from app.services.generation.context_builder import ContextBuilder, format_date, month_title

EXPECTED_KEYS = {
    "client_name",
    "brand_name",
    "email",
    "niche",
    "vision_statement",
    "target_industry",
    "target_audience",
    "demographics",
    "pain_points",
    "unique_value_props",
    "target_demographic_age",
    "brand_image",
    "brand_personality",
    "preferred_font",
    "goals",
    "social_handles",
    "onboarded_date",
    "generation_date",
    "studio_name",
    "wavelaunch_studio",
}


def make_builder(session, clock=None, summary_chars=None) -> ContextBuilder:
    return ContextBuilder(
        ClientRepository(session),
        DeliverableRepository(session),
        clock=clock,
        summary_chars=summary_chars,
    )


class TestBuildContext:
    async def test_contains_every_client_key(self, session, client_profile, fixed_clock):
        context = await make_builder(session, fixed_clock).build_context(client_profile.id)

        assert set(context) == EXPECTED_KEYS
        assert context["client_name"] == "Casey Rivera"
        assert context["brand_name"] == "Casey Rivera"
        assert context["niche"] == "Fitness"
        assert context["target_industry"] == "Fitness"
        assert context["onboarded_date"] == "1/15/2026"
        assert context["social_handles"] == '{"instagram": "@caseylifts"}'

    async def test_generation_date_follows_the_clock(self, session, client_profile):
        late = make_builder(session, lambda: datetime(2026, 3, 7, 23, 59, 59, tzinfo=timezone.utc))
        early = make_builder(session, lambda: datetime(2026, 3, 8, 0, 0, 0, tzinfo=timezone.utc))

        assert (await late.build_context(client_profile.id))["generation_date"] == "3/7/2026"
        assert (await early.build_context(client_profile.id))["generation_date"] == "3/8/2026"

    async def test_optional_fields_render_as_empty_strings(self, session, client_profile, fixed_clock):
        client_profile.hope_to_achieve = None
        client_profile.social_handles = None
        await session.commit()

        context = await make_builder(session, fixed_clock).build_context(client_profile.id)

        assert context["goals"] == ""
        assert context["social_handles"] == ""

    async def test_unknown_client_raises_not_found(self, session, fixed_clock):
        with pytest.raises(NotFoundError):
            await make_builder(session, fixed_clock).build_context(uuid4())

    async def test_archived_client_still_has_a_context(self, session, client_profile, fixed_clock):
        client_profile.archived = True
        await session.commit()

        context = await make_builder(session, fixed_clock).build_context(client_profile.id)

        assert context["client_name"] == "Casey Rivera"


class TestBuildDeliverableContext:
    async def test_first_month_has_empty_summary(self, session, client_profile, fixed_clock):
        context = await make_builder(session, fixed_clock).build_deliverable_context(
            client_profile.id, 1
        )

        assert context["current_month_number"] == "1"
        assert context["month_title"] == "Month 1: Foundation Excellence"
        assert context["previous_months_summary"] == ""

    async def test_summarizes_earlier_months_in_order(self, session, client_profile, fixed_clock):
        session.add_all(
            [
                Deliverable(
                    client_id=client_profile.id,
                    month=2,
                    title=month_title(2),
                    content_markdown="B" * 20,
                ),
                Deliverable(
                    client_id=client_profile.id,
                    month=1,
                    title=month_title(1),
                    content_markdown="A" * 20,
                ),
                Deliverable(
                    client_id=client_profile.id,
                    month=4,
                    title=month_title(4),
                    content_markdown="later month",
                ),
            ]
        )
        await session.commit()

        context = await make_builder(session, fixed_clock, summary_chars=5).build_deliverable_context(
            client_profile.id, 3
        )

        assert context["previous_months_summary"] == (
            "## Month 1: Foundation Excellence\nAAAAA...\n\n"
            "## Month 2: Brand Readiness & Productization\nBBBBB..."
        )


def test_month_title_outside_program():
    assert month_title(9) == "Month 9"


def test_format_date_has_no_padding():
    assert format_date(datetime(2026, 1, 5)) == "1/5/2026"
