"""Dependency providers for the v1 API."""

from functools import lru_cache
from typing import Annotated, Optional

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from app.core.config import settings
from app.core.database import get_async_session as get_session
from app.core.exceptions import AuthenticationError
from app.core.unified_llm import UnifiedLLMClient, create_llm_client_from_settings
from app.repositories.checkpoint_repository import CheckpointRepository
from app.repositories.document_repository import BusinessPlanRepository, DeliverableRepository
from app.repositories.section_repository import SectionRepository
from app.services.budget_service import BudgetService
from app.services.generation.checkpoint_manager import CheckpointManager
from app.services.generation.orchestrator import (
    GenerationOrchestrator,
    build_generation_orchestrator,
)
from app.services.generation.sections import SectionStore
from app.services.prompt_template_service import PromptTemplateService
from app.temporal.dispatch import GenerationJobDispatcher


async def get_current_user_id(
    x_user_id: Annotated[Optional[str], Header(alias="X-User-ID")] = None,
) -> str:
    """Identity of the staff member making the request.

    Authentication happens upstream; this service only needs the user id for
    attribution of generated content and usage.
    """
    if not x_user_id or not x_user_id.strip():
        raise AuthenticationError("Missing X-User-ID header")
    return x_user_id.strip()


@lru_cache(maxsize=1)
def get_llm_client() -> UnifiedLLMClient:
    return create_llm_client_from_settings(settings.llm)


async def get_orchestrator(
    db_session: Annotated[AsyncSession, Depends(get_session)],
    llm_client: Annotated[UnifiedLLMClient, Depends(get_llm_client)],
) -> GenerationOrchestrator:
    return build_generation_orchestrator(db_session, llm_client)


async def get_checkpoint_manager(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> CheckpointManager:
    return CheckpointManager(CheckpointRepository(db_session))


async def get_section_store(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> SectionStore:
    return SectionStore(SectionRepository(db_session))


async def get_business_plan_repository(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> BusinessPlanRepository:
    return BusinessPlanRepository(db_session)


async def get_deliverable_repository(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> DeliverableRepository:
    return DeliverableRepository(db_session)


async def get_budget_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> BudgetService:
    return BudgetService(db_session)


async def get_prompt_template_service(
    db_session: Annotated[AsyncSession, Depends(get_session)]
) -> PromptTemplateService:
    return PromptTemplateService(db_session)


CurrentUserId = Annotated[str, Depends(get_current_user_id)]
Orchestrator = Annotated[GenerationOrchestrator, Depends(get_orchestrator)]


async def get_job_dispatcher() -> GenerationJobDispatcher:
    return GenerationJobDispatcher()


JobDispatcher = Annotated[GenerationJobDispatcher, Depends(get_job_dispatcher)]
