"""Flat prompt context assembled from a client's onboarding profile."""

import json
from datetime import datetime
from typing import Callable, Dict, Optional
from uuid import UUID

from app.core.config import settings
from app.core.exceptions import NotFoundError
from app.database.models import Client, utcnow
from app.repositories.client_repository import ClientRepository
from app.repositories.document_repository import DeliverableRepository
from app.utils.logging import get_logger

LOGGER = get_logger(__name__)

ClientContext = Dict[str, str]

MONTH_TITLES = [
    "Month 1: Foundation Excellence",
    "Month 2: Brand Readiness & Productization",
    "Month 3: Market Entry Preparation",
    "Month 4: Sales Engine & Launch Infrastructure",
    "Month 5: Pre-Launch Mastery",
    "Month 6: Soft Launch Execution",
    "Month 7: Scaling & Growth Systems",
    "Month 8: Full Launch & Market Domination",
]


def month_title(month: int) -> str:
    if 1 <= month <= len(MONTH_TITLES):
        return MONTH_TITLES[month - 1]
    return f"Month {month}"


def format_date(value: datetime) -> str:
    """US short date, e.g. ``3/7/2026``."""
    return f"{value.month}/{value.day}/{value.year}"


class ContextBuilder:
    """Builds the ``{{variable}}`` values for prompt templates.

    ``generation_date`` is read from ``clock`` on every call and never cached.
    Callers that need one date for a whole job must build the context once
    and reuse it.
    """

    def __init__(
        self,
        client_repository: ClientRepository,
        deliverable_repository: DeliverableRepository,
        clock: Optional[Callable[[], datetime]] = None,
        summary_chars: Optional[int] = None,
    ):
        self.client_repository = client_repository
        self.deliverable_repository = deliverable_repository
        self.clock = clock or utcnow
        self.summary_chars = summary_chars or settings.generation.previous_month_summary_chars

    async def build_context(self, client_id: UUID) -> ClientContext:
        """Context for a client.

        Raises:
            NotFoundError: If the client does not exist
        """
        client = await self.client_repository.get_profile(client_id)
        if client is None:
            raise NotFoundError("Client", str(client_id))
        return self._client_context(client)

    async def build_deliverable_context(self, client_id: UUID, month: int) -> ClientContext:
        """Client context plus the program month and a digest of earlier months."""
        context = await self.build_context(client_id)

        previous = await self.deliverable_repository.list_before_month(client_id, month)
        summary = "\n\n".join(
            f"## {d.title}\n{d.content_markdown[: self.summary_chars]}..." for d in previous
        )

        context.update(
            current_month_number=str(month),
            month_title=month_title(month),
            previous_months_summary=summary,
        )
        return context

    def _client_context(self, client: Client) -> ClientContext:
        studio = settings.generation.studio_name
        return {
            "client_name": client.full_name,
            "brand_name": client.full_name,
            "email": client.email,
            "niche": client.industry_niche,
            "vision_statement": client.vision_for_venture,
            "target_industry": client.industry_niche,
            "target_audience": client.target_audience,
            "demographics": client.demographic_profile,
            "pain_points": client.key_pain_points,
            "unique_value_props": client.unique_value_props,
            "target_demographic_age": client.target_demographic_age,
            "brand_image": client.ideal_brand_image,
            "brand_personality": client.brand_personality,
            "preferred_font": client.preferred_font,
            "goals": client.hope_to_achieve or "",
            "social_handles": json.dumps(client.social_handles) if client.social_handles else "",
            "onboarded_date": format_date(client.onboarded_at),
            "generation_date": format_date(self.clock()),
            "studio_name": studio,
            "wavelaunch_studio": studio,
        }
