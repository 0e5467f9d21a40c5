"""Pytest configuration and shared fixtures."""

import os
import re
from datetime import datetime, timezone
from typing import Callable, List, Optional

# Point the app at an in-memory database before any app module creates its engine
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("LLM_PROVIDER", "openrouter")
os.environ.setdefault("OPENROUTER_API_KEY", "test-openrouter-key")
os.environ.setdefault("DEBUG", "false")

import pytest
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from app.core.database import Base
from app.core.exceptions import APIClientError
from app.core.llm_client import LLMResponse
from app.database import models  # noqa: F401
from app.database.models import Client, PromptTemplate
from app.main import app
from app.services.notifications import GenerationEvent

SECTION_PROMPT = re.compile(r'Generate the "(.+?)" section')

SINGLE_PASS_DOCUMENT = (
    "Intro text that precedes every heading.\n\n"
    "## Executive Summary\n\nA focused fitness brand.\n\n"
    "### Mission\n\nHelp busy parents train.\n\n"
    "## Market Analysis\n\nHome fitness keeps growing."
)


class FakeLLMClient:
    """Stands in for ``UnifiedLLMClient`` and records every prompt."""

    def __init__(
        self,
        model: str = "test-model",
        fail_on_calls: Optional[List[int]] = None,
        prompt_tokens: Optional[int] = 100,
        completion_tokens: Optional[int] = 200,
        text: Optional[str] = None,
    ):
        self.model = model
        self.fail_on_calls = set(fail_on_calls or [])
        self.prompt_tokens = prompt_tokens
        self.completion_tokens = completion_tokens
        self.text = text
        self.calls: List[dict] = []

    async def generate_content(
        self,
        prompt: str,
        system_instruction: Optional[str] = None,
        max_output_tokens: Optional[int] = None,
        temperature: float = 0.7,
    ) -> LLMResponse:
        self.calls.append({"prompt": prompt, "system_instruction": system_instruction})
        if len(self.calls) in self.fail_on_calls:
            raise APIClientError("Provider unavailable")

        if self.text is not None:
            text = self.text
        else:
            match = SECTION_PROMPT.search(prompt)
            if match:
                title = match.group(1)
                text = f"## {title}\n\nGenerated content for {title}."
            else:
                text = SINGLE_PASS_DOCUMENT

        return LLMResponse(
            text=text,
            model=self.model,
            prompt_tokens=self.prompt_tokens,
            completion_tokens=self.completion_tokens,
        )


class RecordingNotifier:
    """Notification sink that keeps events in memory."""

    def __init__(self):
        self.events: List[GenerationEvent] = []

    async def notify(self, event: GenerationEvent) -> None:
        self.events.append(event)


@pytest.fixture
def test_client() -> TestClient:
    """Create FastAPI test client.

    Returns:
        TestClient: FastAPI test client instance
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def clear_dependency_overrides():
    """Ensure FastAPI dependency overrides are reset between tests."""
    app.dependency_overrides = {}
    yield
    app.dependency_overrides = {}


@pytest.fixture
async def db_engine():
    """Fresh in-memory SQLite schema per test."""
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture
async def session(db_engine) -> AsyncSession:
    maker = async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)
    async with maker() as db_session:
        yield db_session


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: datetime(2026, 3, 7, 23, 59, 59, tzinfo=timezone.utc)


@pytest.fixture
def fake_llm() -> FakeLLMClient:
    return FakeLLMClient()


@pytest.fixture
def make_llm() -> Callable[..., FakeLLMClient]:
    """Factory for fake LLM clients with custom failure or usage behaviour."""
    return FakeLLMClient


@pytest.fixture
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture
async def client_profile(session: AsyncSession) -> Client:
    """Onboarded fitness creator."""
    client = Client(
        full_name="Casey Rivera",
        email="casey@example.com",
        industry_niche="Fitness",
        vision_for_venture="Make strength training approachable for busy parents",
        target_audience="Parents aged 30-45",
        demographic_profile="Urban, dual income",
        key_pain_points="No time for the gym",
        unique_value_props="Twenty minute home workouts",
        target_demographic_age="30-45",
        ideal_brand_image="Warm and energetic",
        brand_personality="Encouraging coach",
        preferred_font="Inter",
        hope_to_achieve="Launch a subscription app",
        social_handles={"instagram": "@caseylifts"},
        competitors="Peloton, Beachbody",
        onboarded_at=datetime(2026, 1, 15, 9, 30, tzinfo=timezone.utc),
    )
    session.add(client)
    await session.commit()
    return client


@pytest.fixture
async def templates(session: AsyncSession) -> List[PromptTemplate]:
    """Active business plan template and default templates for months 1 and 2."""
    rows = [
        PromptTemplate(
            name="Business plan v2",
            type="BUSINESS_PLAN",
            system_prompt="You are a brand strategist.",
            content="Write a business plan for {{client_name}} in {{niche}}. Notes: {{internal_notes}}",
            variables=["client_name", "niche", "internal_notes"],
            is_active=True,
            is_default=False,
        ),
        PromptTemplate(
            name="Month 1 default",
            type="DELIVERABLE_M1",
            system_prompt="You are a launch coach.",
            content="Month {{current_month_number}} plan for {{client_name}}",
            variables=["current_month_number", "client_name"],
            is_active=False,
            is_default=True,
        ),
        PromptTemplate(
            name="Month 2 default",
            type="DELIVERABLE_M2",
            system_prompt="You are a launch coach.",
            content="Month {{current_month_number}} plan for {{client_name}}. So far: {{previous_months_summary}}",
            variables=["current_month_number", "client_name", "previous_months_summary"],
            is_active=False,
            is_default=True,
        ),
    ]
    session.add_all(rows)
    await session.commit()
    return rows
