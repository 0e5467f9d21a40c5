"""Tests for markdown section parsing, recombination and storage."""

from types import SimpleNamespace
from uuid import uuid4

from app.repositories.section_repository import SectionRepository
from app.services.generation.sections import (
    BUSINESS_PLAN_SECTIONS,
    DELIVERABLE_SECTIONS,
    ParsedSection,
    SectionStore,
    apportion_tokens,
    combine_sections,
    get_affected_sections,
    parse_markdown_sections,
    section_titles_for,
    strip_leading_heading,
)


class TestParseMarkdownSections:
    def test_splits_on_level_two_headings(self):
        sections = parse_markdown_sections("## One\n\nFirst body\n\n## Two\nSecond body\n")

        assert [s.title for s in sections] == ["One", "Two"]
        assert [s.order for s in sections] == [1, 2]
        assert sections[0].content == "First body"
        assert sections[1].content == "Second body"

    def test_drops_preamble_before_first_heading(self):
        sections = parse_markdown_sections("# Document title\nIntro\n\n## Only\nBody")

        assert len(sections) == 1
        assert sections[0].title == "Only"
        assert "Intro" not in sections[0].content

    def test_level_three_headings_stay_in_content(self):
        sections = parse_markdown_sections("## Plan\n### Phase 1\nDo things\n### Phase 2\nMore")

        assert len(sections) == 1
        assert sections[0].content == "### Phase 1\nDo things\n### Phase 2\nMore"

    def test_no_headings_yields_no_sections(self):
        assert parse_markdown_sections("Just prose without any heading.") == []

    def test_empty_section_has_empty_content(self):
        sections = parse_markdown_sections("## Empty\n## Next\nBody")

        assert sections[0] == ParsedSection("Empty", "", 1)


class TestCombineSections:
    def test_orders_by_section_order(self):
        rows = [
            ParsedSection("Second", "b", 2),
            ParsedSection("First", "a", 1),
        ]
        rows = [
            SimpleNamespace(section_name=r.title, content=r.content, section_order=r.order)
            for r in rows
        ]

        assert combine_sections(rows) == "## First\n\na\n\n## Second\n\nb"

    def test_parse_after_combine_keeps_titles_and_content(self):
        markdown = "## Alpha\n\nOne\n\n## Beta\n\nTwo"
        parsed = parse_markdown_sections(markdown)
        rows = [
            SimpleNamespace(section_name=p.title, content=p.content, section_order=p.order)
            for p in parsed
        ]

        assert combine_sections(rows) == markdown

    def test_recombining_a_document_with_preamble_is_stable(self):
        def rows_of(markdown):
            return [
                SimpleNamespace(section_name=p.title, content=p.content, section_order=p.order)
                for p in parse_markdown_sections(markdown)
            ]

        document = (
            "# Casey Rivera\nPrepared for onboarding.\n\n"
            "## Vision\nBuild a brand.\n### Year one\nLaunch.\n\n\n"
            "## Offer\n  Coaching plans  \n"
        )

        once = combine_sections(rows_of(document))
        twice = combine_sections(rows_of(once))

        assert twice == once
        assert once == "## Vision\n\nBuild a brand.\n### Year one\nLaunch.\n\n## Offer\n\nCoaching plans"


class TestAffectedSections:
    def test_maps_changed_fields_to_section_names(self):
        affected = get_affected_sections(["competitors", "teamStructure"])

        assert affected == {"competitive_landscape", "team_structure"}

    def test_unknown_fields_are_ignored(self):
        assert get_affected_sections(["favouriteColour"]) == set()

    def test_titles_follow_catalogue_order(self):
        titles = section_titles_for(
            {"marketing_strategy", "executive_summary"}, BUSINESS_PLAN_SECTIONS
        )

        assert titles == ["Executive Summary", "Marketing Strategy"]

    def test_titles_for_deliverable_catalogue(self):
        affected = get_affected_sections(["productsServices"])

        assert section_titles_for(affected, DELIVERABLE_SECTIONS) == ["Main Content"]


def test_catalogues_are_ordered():
    assert [s.order for s in BUSINESS_PLAN_SECTIONS] == list(range(1, 9))
    assert [s.order for s in DELIVERABLE_SECTIONS] == list(range(1, 6))


def test_strip_leading_heading_removes_only_the_first():
    text = "## Market Analysis\n\nBody\n\n## Not stripped\nMore"

    assert strip_leading_heading(text) == "Body\n\n## Not stripped\nMore"
    assert strip_leading_heading("No heading here") == "No heading here"


def test_apportion_tokens_floors_share():
    assert apportion_tokens(1000, 3) == 333
    assert apportion_tokens(None, 3) is None
    assert apportion_tokens(100, 0) is None


class TestSectionStore:
    async def test_store_sections_replaces_previous_rows(self, session):
        store = SectionStore(SectionRepository(session))
        document_id = uuid4()

        await store.store_sections(document_id, "BUSINESS_PLAN", "## A\none\n## B\ntwo", "u1", 100)
        stored = await store.store_sections(document_id, "BUSINESS_PLAN", "## C\nthree", "u2", 90)

        sections = await store.get_sections(document_id, "BUSINESS_PLAN")
        assert len(stored) == 1
        assert [s.section_name for s in sections] == ["C"]
        assert sections[0].tokens_used == 90
        assert sections[0].generated_by == "u2"

    async def test_sections_are_scoped_by_document_type(self, session):
        store = SectionStore(SectionRepository(session))
        document_id = uuid4()

        await store.store_sections(document_id, "BUSINESS_PLAN", "## A\none", None)
        await store.store_sections(document_id, "DELIVERABLE", "## B\ntwo", None)

        plan_sections = await store.get_sections(document_id, "BUSINESS_PLAN")
        assert [s.section_name for s in plan_sections] == ["A"]

    async def test_update_section_bumps_version(self, session):
        store = SectionStore(SectionRepository(session))
        document_id = uuid4()
        await store.store_sections(document_id, "DELIVERABLE", "## Intro\nold", "u1")
        section = (await store.get_sections(document_id, "DELIVERABLE"))[0]

        updated = await store.update_section(section, "new", "u2", 42)

        assert updated.version == 2
        assert updated.content == "new"
        assert updated.tokens_used == 42
