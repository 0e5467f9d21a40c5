"""Database models for the generation pipeline."""

from app.database.models import (
    Activity,
    BudgetPeriod,
    BusinessPlan,
    CheckpointStatus,
    Client,
    Deliverable,
    DocumentSection,
    DocumentStatus,
    DocumentType,
    GenerationCheckpoint,
    PromptCache,
    PromptTemplate,
    PromptTemplateType,
    TokenBudget,
    TokenUsage,
)

__all__ = [
    "Activity",
    "BudgetPeriod",
    "BusinessPlan",
    "CheckpointStatus",
    "Client",
    "Deliverable",
    "DocumentSection",
    "DocumentStatus",
    "DocumentType",
    "GenerationCheckpoint",
    "PromptCache",
    "PromptTemplate",
    "PromptTemplateType",
    "TokenBudget",
    "TokenUsage",
]
