"""Markdown section parsing, recombination and storage.

Generated documents are split on level-two headings (``## Title``). Each
section is stored as its own row so it can be regenerated on its own and
recombined with the untouched ones.
"""

import re
from dataclasses import dataclass
from typing import Iterable, List, Optional, Protocol, Sequence, Set
from uuid import UUID

from app.database.models import DocumentSection
from app.repositories.section_repository import SectionRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

SECTION_HEADING = re.compile(r"^##\s+(.+)$")
LEADING_HEADING = re.compile(r"^##\s+.+\n+")


@dataclass(frozen=True)
class SectionDefinition:
    name: str
    order: int
    title: str
    priority: int


BUSINESS_PLAN_SECTIONS: List[SectionDefinition] = [
    SectionDefinition("executive_summary", 1, "Executive Summary", 1),
    SectionDefinition("market_analysis", 2, "Market Analysis", 2),
    SectionDefinition("competitive_landscape", 3, "Competitive Landscape", 2),
    SectionDefinition("product_services", 4, "Products & Services", 3),
    SectionDefinition("marketing_strategy", 5, "Marketing Strategy", 3),
    SectionDefinition("financial_projections", 6, "Financial Projections", 4),
    SectionDefinition("operations_plan", 7, "Operations Plan", 4),
    SectionDefinition("team_structure", 8, "Team Structure", 5),
]

DELIVERABLE_SECTIONS: List[SectionDefinition] = [
    SectionDefinition("introduction", 1, "Introduction", 1),
    SectionDefinition("objectives", 2, "Objectives", 1),
    SectionDefinition("content", 3, "Main Content", 2),
    SectionDefinition("action_items", 4, "Action Items", 2),
    SectionDefinition("next_steps", 5, "Next Steps", 3),
]

# Client profile field -> catalogue section names whose content depends on it
FIELD_TO_SECTION_MAPPING = {
    "brandName": ["executive_summary", "introduction"],
    "visionStatement": ["executive_summary", "objectives"],
    "targetAudience": ["market_analysis", "marketing_strategy"],
    "demographics": ["market_analysis", "marketing_strategy"],
    "targetIndustry": ["market_analysis", "competitive_landscape"],
    "uniqueValueProps": ["executive_summary", "product_services", "content"],
    "productsServices": ["product_services", "content"],
    "competitors": ["competitive_landscape"],
    "competitiveAdvantages": ["competitive_landscape", "marketing_strategy"],
    "scalingGoals": ["financial_projections"],
    "revenue": ["financial_projections"],
    "workLifeBalance": ["operations_plan"],
    "teamStructure": ["team_structure"],
}


@dataclass
class ParsedSection:
    title: str
    content: str
    order: int


class SectionLike(Protocol):
    section_name: str
    content: str
    section_order: int


def parse_markdown_sections(markdown: str) -> List[ParsedSection]:
    """Split markdown into ``##`` sections.

    Text before the first heading is dropped. ``#`` and ``###`` headings are
    ordinary content lines.
    """
    sections: List[ParsedSection] = []
    title: Optional[str] = None
    lines: List[str] = []

    for line in markdown.split("\n"):
        match = SECTION_HEADING.match(line)
        if match:
            if title is not None:
                sections.append(ParsedSection(title, "\n".join(lines).strip(), len(sections) + 1))
            title = match.group(1)
            lines = []
        elif title is not None:
            lines.append(line)

    if title is not None:
        sections.append(ParsedSection(title, "\n".join(lines).strip(), len(sections) + 1))

    return sections


def combine_sections(sections: Iterable[SectionLike]) -> str:
    """Render sections in ``section_order`` as one markdown document."""
    ordered = sorted(sections, key=lambda s: s.section_order)
    return "\n\n".join(f"## {s.section_name}\n\n{s.content}" for s in ordered)


def get_affected_sections(changed_fields: Iterable[str]) -> Set[str]:
    """Catalogue section names touched by the changed client fields."""
    affected: Set[str] = set()
    for field in changed_fields:
        affected.update(FIELD_TO_SECTION_MAPPING.get(field, ()))
    return affected


def section_titles_for(
    names: Iterable[str], catalogue: Optional[Sequence[SectionDefinition]] = None
) -> List[str]:
    """Map catalogue section names to their rendered titles, in catalogue order."""
    wanted = set(names)
    definitions = catalogue if catalogue is not None else BUSINESS_PLAN_SECTIONS + DELIVERABLE_SECTIONS
    return [definition.title for definition in definitions if definition.name in wanted]


def strip_leading_heading(text: str) -> str:
    """Remove a single ``## ...`` heading the model echoed at the top."""
    return LEADING_HEADING.sub("", text.strip(), count=1).strip()


def apportion_tokens(tokens_used: Optional[int], section_count: int) -> Optional[int]:
    """Even per-section share of ``tokens_used`` (floor division, remainder dropped)."""
    if not tokens_used or section_count == 0:
        return None
    return tokens_used // section_count


class SectionStore:
    """Persists parsed sections of a document."""

    def __init__(self, repository: SectionRepository):
        self.repository = repository

    async def store_sections(
        self,
        document_id: UUID,
        document_type: str,
        markdown: str,
        generated_by: Optional[str] = None,
        tokens_used: Optional[int] = None,
    ) -> List[DocumentSection]:
        """Replace every stored section of the document with a fresh parse."""
        parsed = parse_markdown_sections(markdown)
        share = apportion_tokens(tokens_used, len(parsed))

        rows = [
            {
                "section_name": section.title,
                "section_order": section.order,
                "content": section.content,
                "generated_by": generated_by,
                "tokens_used": share,
                "version": 1,
            }
            for section in parsed
        ]
        stored = await self.repository.replace_for_document(document_id, document_type, rows)

        LOGGER.info(
            f"Stored {len(stored)} sections",
            extra={"document_id": str(document_id), "document_type": document_type},
        )
        return stored

    async def get_sections(self, document_id: UUID, document_type: str) -> List[DocumentSection]:
        return await self.repository.list_for_document(document_id, document_type)

    async def update_section(
        self,
        section: DocumentSection,
        content: str,
        generated_by: Optional[str],
        tokens_used: Optional[int],
    ) -> DocumentSection:
        """Overwrite a section in place and bump its version."""
        section.content = content
        section.version += 1
        section.generated_by = generated_by
        section.tokens_used = tokens_used
        await self.repository.commit()
        return section


def sections_by_name(sections: Sequence[DocumentSection]) -> dict:
    return {section.section_name: section for section in sections}
