"""SQLAlchemy models for the generation pipeline tables."""

import uuid
from datetime import datetime, timezone
from enum import Enum

from sqlalchemy import (
    JSON,
    Boolean,
    DateTime,
    Float,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    Uuid,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from app.core.database import Base

JSONType = JSON().with_variant(JSONB(), "postgresql")


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


class DocumentType(str, Enum):
    """Kind of generated document a section or checkpoint belongs to."""

    BUSINESS_PLAN = "BUSINESS_PLAN"
    DELIVERABLE = "DELIVERABLE"


class DocumentStatus(str, Enum):
    DRAFT = "DRAFT"
    PENDING_REVIEW = "PENDING_REVIEW"
    APPROVED = "APPROVED"
    DELIVERED = "DELIVERED"
    REJECTED = "REJECTED"


class CheckpointStatus(str, Enum):
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    FAILED = "FAILED"


class BudgetPeriod(str, Enum):
    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class PromptTemplateType(str, Enum):
    BUSINESS_PLAN = "BUSINESS_PLAN"
    DELIVERABLE_M1 = "DELIVERABLE_M1"
    DELIVERABLE_M2 = "DELIVERABLE_M2"
    DELIVERABLE_M3 = "DELIVERABLE_M3"
    DELIVERABLE_M4 = "DELIVERABLE_M4"
    DELIVERABLE_M5 = "DELIVERABLE_M5"
    DELIVERABLE_M6 = "DELIVERABLE_M6"
    DELIVERABLE_M7 = "DELIVERABLE_M7"
    DELIVERABLE_M8 = "DELIVERABLE_M8"
    CUSTOM = "CUSTOM"


class Client(Base):
    """Onboarded creator profile. Read-only to the generation pipeline."""

    __tablename__ = "clients"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    full_name: Mapped[str] = mapped_column(String, nullable=False)
    email: Mapped[str] = mapped_column(String, nullable=False)
    industry_niche: Mapped[str] = mapped_column(String, nullable=False, default="")
    vision_for_venture: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_audience: Mapped[str] = mapped_column(Text, nullable=False, default="")
    demographic_profile: Mapped[str] = mapped_column(Text, nullable=False, default="")
    key_pain_points: Mapped[str] = mapped_column(Text, nullable=False, default="")
    unique_value_props: Mapped[str] = mapped_column(Text, nullable=False, default="")
    target_demographic_age: Mapped[str] = mapped_column(String, nullable=False, default="")
    ideal_brand_image: Mapped[str] = mapped_column(Text, nullable=False, default="")
    brand_personality: Mapped[str] = mapped_column(Text, nullable=False, default="")
    preferred_font: Mapped[str] = mapped_column(String, nullable=False, default="")
    hope_to_achieve: Mapped[str | None] = mapped_column(Text, nullable=True)
    social_handles: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    scaling_goals: Mapped[str | None] = mapped_column(Text, nullable=True)
    competitors: Mapped[str | None] = mapped_column(Text, nullable=True)
    competitive_advantages: Mapped[str | None] = mapped_column(Text, nullable=True)
    products_services: Mapped[str | None] = mapped_column(Text, nullable=True)
    work_life_balance: Mapped[str | None] = mapped_column(Text, nullable=True)
    team_structure: Mapped[str | None] = mapped_column(Text, nullable=True)
    archived: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    onboarded_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utcnow
    )

    business_plan: Mapped["BusinessPlan | None"] = relationship(
        "BusinessPlan", back_populates="client", uselist=False
    )
    deliverables: Mapped[list["Deliverable"]] = relationship(
        "Deliverable", back_populates="client", order_by="Deliverable.month"
    )


class PromptTemplate(Base):
    """Prompt template with {{variable}} placeholders."""

    __tablename__ = "prompt_templates"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    name: Mapped[str] = mapped_column(String(200), nullable=False)
    type: Mapped[str] = mapped_column(String, nullable=False, index=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    system_prompt: Mapped[str | None] = mapped_column(Text, nullable=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    variables: Mapped[list] = mapped_column(JSONType, nullable=False, default=list)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_default: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class BusinessPlan(Base):
    """Generated business plan. One per client."""

    __tablename__ = "business_plans"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("clients.id"), nullable=False, unique=True
    )
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String, nullable=False, default=DocumentStatus.DRAFT.value)
    content_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    client: Mapped["Client"] = relationship("Client", back_populates="business_plan")


class Deliverable(Base):
    """Generated monthly deliverable. One per client and program month."""

    __tablename__ = "deliverables"
    __table_args__ = (UniqueConstraint("client_id", "month", name="uq_deliverable_client_month"),)

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, ForeignKey("clients.id"), nullable=False)
    month: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    status: Mapped[str] = mapped_column(String, nullable=False, default=DocumentStatus.DRAFT.value)
    content_markdown: Mapped[str] = mapped_column(Text, nullable=False, default="")
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    generated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )

    client: Mapped["Client"] = relationship("Client", back_populates="deliverables")


class DocumentSection(Base):
    """A ##-delimited section of a generated document."""

    __tablename__ = "document_sections"
    __table_args__ = (
        UniqueConstraint(
            "document_id", "document_type", "section_name", name="uq_document_section_name"
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    document_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    document_type: Mapped[str] = mapped_column(String, nullable=False)
    section_name: Mapped[str] = mapped_column(String, nullable=False)
    section_order: Mapped[int] = mapped_column(Integer, nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False, default="")
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    tokens_used: Mapped[int | None] = mapped_column(Integer, nullable=True)
    generated_by: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, onupdate=utcnow
    )


class GenerationCheckpoint(Base):
    """Durable progress record of an in-flight generation job."""

    __tablename__ = "generation_checkpoints"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    job_id: Mapped[str] = mapped_column(String, nullable=False, unique=True)
    job_type: Mapped[str] = mapped_column(String, nullable=False)
    client_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    status: Mapped[str] = mapped_column(
        String, nullable=False, default=CheckpointStatus.IN_PROGRESS.value
    )
    total_sections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completed_sections: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    current_section: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    document_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)
    # Serialized JSON text
    generated_content: Mapped[str] = mapped_column(Text, nullable=False, default="[]")
    prompt_context: Mapped[str] = mapped_column(Text, nullable=False, default="{}")
    job_metadata: Mapped[str | None] = mapped_column(Text, nullable=True)
    can_resume: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class TokenBudget(Base):
    """Period-scoped cap on LLM token and cost consumption."""

    __tablename__ = "token_budgets"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    period: Mapped[str] = mapped_column(String, nullable=False, index=True)
    token_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    cost_limit: Mapped[float] = mapped_column(Float, nullable=False)
    tokens_used: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    cost_used: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    is_paused: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    alert_at_50: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    alert_at_75: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    alert_at_90: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    alert_at_100: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    auto_pause_at_limit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    last_alert_threshold: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    end_date: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class TokenUsage(Base):
    """One completion request, for cost accounting."""

    __tablename__ = "token_usage"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    operation: Mapped[str] = mapped_column(String, nullable=False, index=True)
    model: Mapped[str] = mapped_column(String, nullable=False)
    prompt_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    completion_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    total_tokens: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    estimated_cost: Mapped[float] = mapped_column(Float, nullable=False, default=0.0)
    cache_hit: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cache_key: Mapped[str | None] = mapped_column(String, nullable=True)
    client_id: Mapped[str | None] = mapped_column(String, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    usage_metadata: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class PromptCache(Base):
    """Cached completion keyed by a normalized prompt hash."""

    __tablename__ = "prompt_cache"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    cache_key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    prompt_hash: Mapped[str] = mapped_column(String(64), nullable=False)
    response: Mapped[str] = mapped_column(Text, nullable=False)
    model: Mapped[str] = mapped_column(String, nullable=False)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    hit_count: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    tokens_saved: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    last_used_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)


class Activity(Base):
    """Activity log entry, fed by the notification sink."""

    __tablename__ = "activities"

    id: Mapped[uuid.UUID] = mapped_column(Uuid, primary_key=True, default=uuid.uuid4)
    client_id: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True, index=True)
    type: Mapped[str] = mapped_column(String, nullable=False)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    user_id: Mapped[str | None] = mapped_column(String, nullable=True)
    activity_metadata: Mapped[dict | None] = mapped_column(JSONType, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
