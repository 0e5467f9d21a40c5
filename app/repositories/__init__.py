"""Repository layer for the generation pipeline."""

from app.repositories.activity_repository import ActivityRepository
from app.repositories.base_repository import BaseRepository
from app.repositories.checkpoint_repository import CheckpointRepository
from app.repositories.client_repository import ClientRepository
from app.repositories.document_repository import BusinessPlanRepository, DeliverableRepository
from app.repositories.prompt_cache_repository import PromptCacheRepository
from app.repositories.prompt_template_repository import PromptTemplateRepository
from app.repositories.section_repository import SectionRepository
from app.repositories.token_budget_repository import TokenBudgetRepository, TokenUsageRepository

__all__ = [
    "ActivityRepository",
    "BaseRepository",
    "BusinessPlanRepository",
    "CheckpointRepository",
    "ClientRepository",
    "DeliverableRepository",
    "PromptCacheRepository",
    "PromptTemplateRepository",
    "SectionRepository",
    "TokenBudgetRepository",
    "TokenUsageRepository",
]
